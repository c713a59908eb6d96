"""
Factory for creating provider adapters from the gateway configuration.
"""

from typing import Dict, Optional, Type

import aiohttp

from ..config.models import GatewayConfig
from .base import BaseAdapter
from .birdeye import BirdeyeAdapter
from .dexscreener import DexScreenerAdapter
from .helius import HeliusAdapter
from .jupiter import JupiterAdapter
from .openai import OpenAIAdapter
from .pumpportal import PumpPortalAdapter
from .realtime import SubscriptionRegistry
from .rugcheck import RugCheckAdapter
from .supabase import SupabaseAdapter


ADAPTER_CLASSES: Dict[str, Type[BaseAdapter]] = {
    "birdeye": BirdeyeAdapter,
    "helius": HeliusAdapter,
    "jupiter": JupiterAdapter,
    "supabase": SupabaseAdapter,
    "pumpportal": PumpPortalAdapter,
    "openai": OpenAIAdapter,
    "rugcheck": RugCheckAdapter,
    "dexscreener": DexScreenerAdapter,
}


def create_adapter(
    provider: str,
    config: GatewayConfig,
    session: Optional[aiohttp.ClientSession] = None,
    registry: Optional[SubscriptionRegistry] = None,
) -> BaseAdapter:
    """
    Create the adapter for a provider.

    Args:
        provider: Provider name, one of ``ADAPTER_CLASSES``
        config: Gateway configuration holding the provider section
        session: Shared HTTP session, adapter creates its own when omitted
        registry: Subscription registry handed to the store adapter

    Returns:
        Configured adapter instance

    Raises:
        ValueError: For an unknown provider name
        ConfigurationError: When a required credential is missing
    """
    try:
        adapter_class = ADAPTER_CLASSES[provider]
    except KeyError:
        raise ValueError(f"Unknown provider: {provider}") from None

    provider_config = getattr(config, provider)
    if adapter_class is SupabaseAdapter:
        return SupabaseAdapter(provider_config, http_config=config.http, session=session, registry=registry)
    return adapter_class(provider_config, http_config=config.http, session=session)
