"""
Configuration management for the CaesarBot gateway.
"""

from .models import (
    GatewayConfig,
    HttpConfig,
    RetryConfig,
    HeliusConfig,
    BirdeyeConfig,
    JupiterConfig,
    SupabaseConfig,
    PumpPortalConfig,
    OpenAIConfig,
    RugCheckConfig,
    DexScreenerConfig,
    LoggingConfig
)
from .manager import ConfigManager
from .validation import (
    GatewayConfigValidator,
    validate_config_dict,
    get_env_var_mappings,
    LogLevelEnum
)

__all__ = [
    # Models
    'GatewayConfig',
    'HttpConfig',
    'RetryConfig',
    'HeliusConfig',
    'BirdeyeConfig',
    'JupiterConfig',
    'SupabaseConfig',
    'PumpPortalConfig',
    'OpenAIConfig',
    'RugCheckConfig',
    'DexScreenerConfig',
    'LoggingConfig',

    # Manager
    'ConfigManager',

    # Validation
    'GatewayConfigValidator',
    'validate_config_dict',
    'get_env_var_mappings',
    'LogLevelEnum',
]
