"""
DexScreener pair summary adapter.
"""

import logging
from typing import List, Optional

import aiohttp

from ..config.models import DexScreenerConfig, HttpConfig
from ..envelope import Envelope
from ..models.core import PairSummary
from .base import BaseAdapter


logger = logging.getLogger(__name__)


class DexScreenerAdapter(BaseAdapter):

    provider_name = "dexscreener"

    def __init__(self, config: Optional[DexScreenerConfig] = None, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config or DexScreenerConfig()
        super().__init__(
            self.config.base_url,
            http_config=http_config,
            headers={"Content-Type": "application/json"},
            session=session,
        )

    async def _pairs(self, mint: str) -> List[PairSummary]:
        body = await self._get(f"/latest/dex/tokens/{mint}")
        pairs = (body or {}).get("pairs") or []
        return [
            PairSummary.from_api(pair) for pair in pairs
            if not pair.get("chainId") or pair.get("chainId") == self.config.chain
        ]

    async def get_token_pairs(self, mint: str) -> Envelope[List[PairSummary]]:
        """Get every pair trading the token on the configured chain."""
        return await self._call("get_token_pairs", lambda: self._pairs(mint))

    async def get_token_summary(self, mint: str) -> Envelope[Optional[PairSummary]]:
        """
        Get the provider's first pair for the token.

        A token without pairs is not an error; data is None.
        """
        async def _get_token_summary():
            pairs = await self._pairs(mint)
            return pairs[0] if pairs else None

        return await self._call("get_token_summary", _get_token_summary)
