"""
CaesarBot API gateway: uniform async access to Solana data and trading
providers with a single success/error envelope.
"""

from .envelope import (
    ApiError,
    ConfigurationError,
    Envelope,
    ProviderError,
    combine,
    failure,
    invoke,
    not_implemented,
    success,
    unwrap,
)
from .gateway import Gateway
from .retry import with_retry

__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "ConfigurationError",
    "Envelope",
    "ProviderError",
    "combine",
    "failure",
    "invoke",
    "not_implemented",
    "success",
    "unwrap",
    "Gateway",
    "with_retry",
]
