"""
Provider adapters for the CaesarBot gateway.
"""

from .base import BaseAdapter
from .birdeye import BirdeyeAdapter
from .helius import HeliusAdapter
from .jupiter import JupiterAdapter
from .supabase import SupabaseAdapter
from .pumpportal import PumpPortalAdapter
from .openai import OpenAIAdapter
from .rugcheck import RugCheckAdapter
from .dexscreener import DexScreenerAdapter
from .realtime import RealtimeClient, RealtimeChannel, SubscriptionRegistry
from .factory import create_adapter, ADAPTER_CLASSES

__all__ = [
    "BaseAdapter",
    "BirdeyeAdapter",
    "HeliusAdapter",
    "JupiterAdapter",
    "SupabaseAdapter",
    "PumpPortalAdapter",
    "OpenAIAdapter",
    "RugCheckAdapter",
    "DexScreenerAdapter",
    "RealtimeClient",
    "RealtimeChannel",
    "SubscriptionRegistry",
    "create_adapter",
    "ADAPTER_CLASSES",
]
