"""
Birdeye price and market data adapter.
"""

import logging
import time
from typing import Any, Dict, Iterable, List, Optional

import aiohttp

from ..config.models import BirdeyeConfig, HttpConfig
from ..envelope import Envelope, ProviderError
from ..models.core import Candle, TokenPrice
from .base import BaseAdapter


logger = logging.getLogger(__name__)

OHLCV_TIMEFRAMES = (
    "1m", "3m", "5m", "15m", "30m", "1H", "2H", "4H", "6H", "8H", "12H",
    "1D", "3D", "1W", "1M",
)
DEFAULT_OHLCV_WINDOW_SECONDS = 86400


class BirdeyeAdapter(BaseAdapter):
    """
    Price feed adapter for single and batched prices, OHLCV candles and
    ranked token lists.
    """

    provider_name = "birdeye"

    def __init__(self, config: BirdeyeConfig, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        api_key = self._require(config.api_key, "BIRDEYE_API_KEY")
        super().__init__(
            config.base_url,
            http_config=http_config,
            headers={
                "Content-Type": "application/json",
                "X-API-KEY": api_key,
                "x-chain": config.chain,
            },
            session=session,
        )

    async def _get_data(self, path: str, params: Dict[str, Any]) -> Any:
        """GET an endpoint and return its ``data`` member."""
        body = await self._get(path, params=params)

        # Birdeye reports application errors with HTTP 200 and success=false
        if isinstance(body, dict) and body.get("success") is False:
            raise ProviderError(
                body.get("message") or "Birdeye request failed",
                code=body.get("statusCode", "UNKNOWN"),
                details=body,
            )

        return body.get("data") if isinstance(body, dict) else body

    async def get_price(self, address: str) -> Envelope[TokenPrice]:
        """Get the current price of a token."""
        async def _get_price():
            data = await self._get_data("/defi/price", {"address": address})
            if not data:
                raise ProviderError("Token price not available", code="NOT_FOUND", details=data)
            return TokenPrice.from_api(address, data)

        return await self._call("get_price", _get_price)

    async def get_multi_price(self, addresses: Iterable[str]) -> Envelope[Dict[str, TokenPrice]]:
        """
        Get prices for several tokens in one request.

        Addresses the provider does not return are left out of the mapping.
        Batch-size limits are the provider's.
        """
        address_list = list(addresses)

        async def _get_multi_price():
            data = await self._get_data("/defi/multi_price", {"list_address": ",".join(address_list)})
            prices: Dict[str, TokenPrice] = {}
            for address, payload in (data or {}).items():
                if payload:
                    prices[address] = TokenPrice.from_api(address, payload)
            return prices

        return await self._call("get_multi_price", _get_multi_price)

    async def get_ohlcv(
        self,
        address: str,
        timeframe: str = "1H",
        from_time: Optional[int] = None,
        to_time: Optional[int] = None,
    ) -> Envelope[List[Candle]]:
        """
        Get OHLCV candles in provider order.

        Args:
            address: Token mint
            timeframe: Candle width, one of ``OHLCV_TIMEFRAMES``
            from_time: Window start in unix seconds, default 24h before ``to_time``
            to_time: Window end in unix seconds, default now
        """
        async def _get_ohlcv():
            if timeframe not in OHLCV_TIMEFRAMES:
                raise ProviderError(f"Unsupported timeframe: {timeframe}", code="INVALID_TIMEFRAME")

            end = to_time if to_time is not None else int(time.time())
            start = from_time if from_time is not None else end - DEFAULT_OHLCV_WINDOW_SECONDS

            data = await self._get_data("/defi/ohlcv", {
                "address": address,
                "type": timeframe,
                "time_from": start,
                "time_to": end,
            })
            return [Candle.from_api(item) for item in (data or {}).get("items") or []]

        return await self._call("get_ohlcv", _get_ohlcv)

    async def get_trending(
        self,
        sort_by: str = "volume24hUSD",
        sort_type: str = "desc",
        offset: int = 0,
        limit: int = 50,
    ) -> Envelope[List[Dict[str, Any]]]:
        """Get a ranked token list; ordering is entirely the provider's."""
        async def _get_trending():
            data = await self._get_data("/defi/tokenlist", {
                "sort_by": sort_by,
                "sort_type": sort_type,
                "offset": offset,
                "limit": limit,
            })
            return list((data or {}).get("tokens") or [])

        return await self._call("get_trending", _get_trending)

    async def get_token_overview(self, address: str) -> Envelope[Dict[str, Any]]:
        async def _get_overview():
            return await self._get_data("/defi/token_overview", {"address": address})

        return await self._call("get_token_overview", _get_overview)

    async def get_token_trades(self, address: str, limit: int = 100, offset: int = 0) -> Envelope[List[Dict[str, Any]]]:
        async def _get_trades():
            data = await self._get_data("/defi/txs/token", {
                "address": address,
                "limit": limit,
                "offset": offset,
            })
            return list((data or {}).get("items") or [])

        return await self._call("get_token_trades", _get_trades)

    async def get_wallet_portfolio(self, wallet: str) -> Envelope[List[Dict[str, Any]]]:
        async def _get_portfolio():
            data = await self._get_data("/v1/wallet/token_list", {"wallet": wallet})
            return list((data or {}).get("items") or [])

        return await self._call("get_wallet_portfolio", _get_portfolio)
