"""
RugCheck token safety adapter.
"""

import logging
from typing import List, Optional

import aiohttp

from ..config.models import HttpConfig, RugCheckConfig
from ..envelope import Envelope
from ..models.core import ContractAnalysis, TokenHolder, TokenSafetyReport
from .base import BaseAdapter


logger = logging.getLogger(__name__)

DEFAULT_HOLDER_LIMIT = 100


class RugCheckAdapter(BaseAdapter):
    """Token safety reports; the API key is optional."""

    provider_name = "rugcheck"

    def __init__(self, config: Optional[RugCheckConfig] = None, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config or RugCheckConfig()
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        super().__init__(self.config.base_url, http_config=http_config, headers=headers, session=session)

    async def check_token(self, mint: str) -> Envelope[TokenSafetyReport]:
        """Get the full safety report of a token."""
        async def _check_token():
            body = await self._get(f"/v1/tokens/{mint}/report")
            return TokenSafetyReport.from_api(mint, body or {})

        return await self._call("check_token", _check_token)

    async def get_token_risks(self, mint: str) -> Envelope[TokenSafetyReport]:
        """Get only the score and risk list of a token."""
        async def _get_token_risks():
            body = await self._get(f"/v1/tokens/{mint}/report/summary")
            return TokenSafetyReport.from_api(mint, body or {})

        return await self._call("get_token_risks", _get_token_risks)

    async def get_token_holders(self, mint: str, limit: int = DEFAULT_HOLDER_LIMIT) -> Envelope[List[TokenHolder]]:
        """Largest holders of a token."""
        async def _get_holders():
            body = await self._get(f"/v1/tokens/{mint}/holders", params={"limit": limit})
            return [TokenHolder.from_api(holder) for holder in (body or {}).get("holders") or []]

        return await self._call("get_token_holders", _get_holders)

    async def analyze_contract(self, mint: str) -> Envelope[ContractAnalysis]:
        """Mint and freeze authorities, decimals and supply of a token."""
        async def _analyze_contract():
            body = await self._get(f"/v1/tokens/{mint}/contract")
            return ContractAnalysis.from_api(mint, body or {})

        return await self._call("analyze_contract", _analyze_contract)
