"""
Session-scoped composition of the provider adapters.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .clients.base import BaseAdapter
from .clients.birdeye import BirdeyeAdapter
from .clients.dexscreener import DexScreenerAdapter
from .clients.factory import create_adapter
from .clients.helius import HeliusAdapter
from .clients.jupiter import JupiterAdapter
from .clients.openai import OpenAIAdapter
from .clients.pumpportal import PumpPortalAdapter
from .clients.realtime import RealtimeClient, SubscriptionRegistry
from .clients.rugcheck import RugCheckAdapter
from .clients.supabase import SupabaseAdapter
from .config.manager import ConfigManager
from .config.models import GatewayConfig
from .envelope import Envelope, invoke, not_implemented, unwrap
from .retry import with_retry_config
from .utils.structured_logging import logging_manager


logger = logging.getLogger(__name__)


class Gateway:
    """
    Owns one adapter per provider and the subscription registry.

    Adapters are built on first use, so a missing credential only fails
    the provider that needs it. Use as an async context manager to close
    every opened adapter and tear down subscriptions on exit.
    """

    def __init__(self, config: Optional[GatewayConfig] = None):
        self.config = config or GatewayConfig()
        self._adapters: Dict[str, BaseAdapter] = {}
        self._registry: Optional[SubscriptionRegistry] = None
        self._realtime: Optional[RealtimeClient] = None
        self._config_manager: Optional[ConfigManager] = None
        self._config_callback: Optional[Callable[[GatewayConfig], None]] = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def adapter(self, provider: str) -> BaseAdapter:
        """Return the adapter for a provider, creating it if needed."""
        if provider not in self._adapters:
            registry = self.registry if provider == "supabase" else None
            self._adapters[provider] = create_adapter(provider, self.config, registry=registry)
            logger.debug(f"Created {provider} adapter")
        return self._adapters[provider]

    @property
    def registry(self) -> SubscriptionRegistry:
        if self._registry is None:
            self._realtime = RealtimeClient(
                self.config.supabase.url,
                self.config.supabase.anon_key,
                heartbeat_interval=self.config.supabase.heartbeat_interval,
            )
            self._registry = SubscriptionRegistry(self._realtime)
        return self._registry

    @property
    def birdeye(self) -> BirdeyeAdapter:
        return self.adapter("birdeye")

    @property
    def helius(self) -> HeliusAdapter:
        return self.adapter("helius")

    @property
    def jupiter(self) -> JupiterAdapter:
        return self.adapter("jupiter")

    @property
    def supabase(self) -> SupabaseAdapter:
        return self.adapter("supabase")

    @property
    def pumpportal(self) -> PumpPortalAdapter:
        return self.adapter("pumpportal")

    @property
    def openai(self) -> OpenAIAdapter:
        return self.adapter("openai")

    @property
    def rugcheck(self) -> RugCheckAdapter:
        return self.adapter("rugcheck")

    @property
    def dexscreener(self) -> DexScreenerAdapter:
        return self.adapter("dexscreener")

    async def close(self) -> None:
        """Tear down subscriptions and close every opened adapter."""
        self.unfollow_config()
        await self._close_realtime()

        adapters = list(self._adapters.items())
        self._adapters.clear()
        await self._close_adapters(adapters)

    async def _close_realtime(self) -> None:
        if self._registry is not None:
            await self._registry.unsubscribe_all()
        if self._realtime is not None:
            await self._realtime.close()
        self._registry = None
        self._realtime = None

    @staticmethod
    async def _close_adapters(adapters) -> None:
        for provider, adapter in adapters:
            try:
                await adapter.close()
            except Exception as e:
                logger.error(f"Error closing {provider} adapter: {e}")

    async def apply_config(self, config: GatewayConfig) -> None:
        """
        Switch to a new configuration.

        Opened adapters are closed and rebuilt from ``config`` on next use.
        Subscriptions are kept unless the Supabase settings changed.
        """
        if config == self.config:
            return

        previous = self.config
        adapters = list(self._adapters.items())
        self._adapters = {}
        self.config = config

        if config.supabase != previous.supabase:
            await self._close_realtime()
        if config.logging != previous.logging and logging_manager.configured:
            logging_manager.setup_from_config(config.logging, force=True)

        await self._close_adapters(adapters)
        logger.info(f"Applied new configuration, closed {len(adapters)} adapter(s)")

    async def follow_config(self, manager: ConfigManager) -> None:
        """
        Apply every configuration ``manager`` reloads and watch its file.

        Reloads happen on the watcher thread; they are handed to the
        running event loop.
        """
        loop = asyncio.get_running_loop()

        def _on_change(config: GatewayConfig) -> None:
            asyncio.run_coroutine_threadsafe(self.apply_config(config), loop)

        self.unfollow_config()
        self._config_manager = manager
        self._config_callback = _on_change
        manager.add_change_callback(_on_change)
        manager.start_hot_reload()

    def unfollow_config(self) -> None:
        if self._config_manager is None:
            return
        self._config_manager.remove_change_callback(self._config_callback)
        self._config_manager.stop_hot_reload()
        self._config_manager = None
        self._config_callback = None

    async def with_retry(self, envelope_call: Callable[[], Awaitable[Envelope]],
                         operation: Optional[str] = None) -> Envelope:
        """
        Retry an adapter call while it returns a failed envelope.

        The last failure is returned as an envelope; nothing is raised.
        """
        async def _attempt():
            return unwrap(await envelope_call())

        return await invoke(
            lambda: with_retry_config(_attempt, self.config.retry, operation=operation),
            operation=operation,
        )

    async def get_wallet_overview(self, address: str) -> Dict[str, Envelope]:
        """
        Fetch native balance and token holdings concurrently.

        Each envelope is kept as returned; one failing does not affect the other.
        """
        balance, tokens = await asyncio.gather(
            self.helius.get_native_balance(address),
            self.helius.get_token_accounts(address),
        )
        return {"balance": balance, "tokens": tokens}

    async def scan_tokens(self, filters: Optional[Dict[str, Any]] = None) -> Envelope:
        return not_implemented("Token scanning")

    async def get_airdrops(self, address: str) -> Envelope:
        return not_implemented("Airdrop lookup")
