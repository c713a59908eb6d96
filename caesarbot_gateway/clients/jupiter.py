"""
Jupiter swap-quote adapter.
"""

import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..config.models import HttpConfig, JupiterConfig
from ..envelope import Envelope, failure
from ..models.core import SwapQuote, SwapTransaction
from .base import BaseAdapter


logger = logging.getLogger(__name__)

STALE_QUOTE_CODE = "STALE_QUOTE"
SWAP_MODES = ("ExactIn", "ExactOut")


class JupiterAdapter(BaseAdapter):
    """
    Obtains routed swap quotes and unsigned swap transactions.

    Quotes go stale within seconds; re-request one before building a swap
    unless ``max_quote_age_ms`` is used to reject old quotes.
    """

    provider_name = "jupiter"

    def __init__(self, config: Optional[JupiterConfig] = None, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config or JupiterConfig()
        super().__init__(
            self.config.base_url,
            http_config=http_config,
            headers={"Content-Type": "application/json"},
            session=session,
        )

    async def get_quote(
        self,
        input_mint: str,
        output_mint: str,
        amount: int,
        slippage_bps: Optional[int] = None,
        swap_mode: str = "ExactIn",
        **options: Any,
    ) -> Envelope[SwapQuote]:
        """
        Get a routed quote.

        Args:
            input_mint: Mint being sold
            output_mint: Mint being bought
            amount: Raw amount (smallest units) of the input, or output for ExactOut
            slippage_bps: Slippage tolerance, default from config (50)
            swap_mode: ``ExactIn`` or ``ExactOut``
            **options: Extra provider parameters such as ``onlyDirectRoutes``,
                ``dexes``, ``excludeDexes``, ``maxAccounts``, ``platformFeeBps``
        """
        slippage = self.config.default_slippage_bps if slippage_bps is None else slippage_bps

        async def _get_quote():
            body = await self._get("/quote", params={
                **options,
                "inputMint": input_mint,
                "outputMint": output_mint,
                "amount": int(amount),
                "slippageBps": slippage,
                "swapMode": swap_mode,
            })
            return SwapQuote.from_api(body or {})

        if swap_mode not in SWAP_MODES:
            return failure(f"Unsupported swap mode: {swap_mode}", code="INVALID_SWAP_MODE")

        return await self._call("get_quote", _get_quote)

    async def get_swap_transaction(
        self,
        quote: SwapQuote,
        wallet_address: str,
        max_quote_age_ms: Optional[int] = None,
    ) -> Envelope[SwapTransaction]:
        """
        Build an unsigned swap transaction for a quote.

        Signing and submission are the caller's job.

        Args:
            quote: Quote returned by ``get_quote``
            wallet_address: Public key of the wallet that will sign
            max_quote_age_ms: Reject quotes older than this without calling the provider
        """
        if max_quote_age_ms is not None:
            age = quote.age_ms()
            if age > max_quote_age_ms:
                return failure(
                    f"Quote is {age} ms old, exceeding {max_quote_age_ms} ms",
                    code=STALE_QUOTE_CODE,
                    details={"age_ms": age, "max_quote_age_ms": max_quote_age_ms},
                )

        async def _get_swap():
            body = await self._post("/swap", json_body={
                "quoteResponse": quote.raw,
                "userPublicKey": wallet_address,
                "wrapAndUnwrapSol": True,
                "useSharedAccounts": True,
                "computeUnitPriceMicroLamports": "auto",
                "asLegacyTransaction": False,
            })
            return SwapTransaction.from_api(body or {})

        return await self._call("get_swap_transaction", _get_swap)

    async def get_token_list(self) -> Envelope[List[Dict[str, Any]]]:
        """Get the tradable token list."""
        async def _get_tokens():
            return list(await self._get("/tokens") or [])

        return await self._call("get_token_list", _get_tokens)

    async def get_indexed_route_map(self) -> Envelope[Dict[str, List[str]]]:
        """
        Which output mints each input mint can be routed to.

        The provider indexes mints into ``mintKeys``; the result is expanded
        to mint addresses. A body that is already keyed by mint is returned as is.
        """
        async def _get_route_map():
            body = await self._get("/indexed-route-map") or {}
            mint_keys = body.get("mintKeys")
            if mint_keys is None:
                return dict(body)
            return {
                mint_keys[int(index)]: [mint_keys[target] for target in targets]
                for index, targets in (body.get("indexedRouteMap") or {}).items()
            }

        return await self._call("get_indexed_route_map", _get_route_map)
