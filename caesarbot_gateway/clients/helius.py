"""
Helius wallet and chain-state adapter (REST indexing API plus JSON-RPC).
"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..config.models import HeliusConfig, HttpConfig
from ..envelope import Envelope, ProviderError
from ..models.core import TokenAccount, Transaction
from .base import BaseAdapter


logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000
MAX_TRANSACTIONS_PER_CALL = 100


class HeliusAdapter(BaseAdapter):
    """
    Reads native balance, token holdings and transaction history.

    Every method is wrapped independently, so callers can fan out several
    calls concurrently and treat each envelope on its own.
    """

    provider_name = "helius"

    def __init__(self, config: HeliusConfig, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        self._api_key = self._require(config.api_key, "HELIUS_API_KEY")
        self.rpc_url = config.resolved_rpc_url()
        self._rpc_ids = itertools.count(1)
        super().__init__(
            config.base_url,
            http_config=http_config,
            headers={"Content-Type": "application/json"},
            session=session,
        )

    async def _rest_get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._get(path, params={"api-key": self._api_key, **(params or {})})

    async def _rpc(self, method: str, params: Any) -> Any:
        """
        Issue a JSON-RPC request and return its ``result``.

        Raises:
            ProviderError: When the response carries a JSON-RPC ``error``
        """
        body = await self._post(self.rpc_url, json_body={
            "jsonrpc": "2.0",
            "id": next(self._rpc_ids),
            "method": method,
            "params": params,
        })

        if isinstance(body, dict) and body.get("error"):
            error = body["error"]
            if isinstance(error, dict):
                raise ProviderError(
                    error.get("message") or f"RPC {method} failed",
                    code=error.get("code", "UNKNOWN"),
                    details=error,
                )
            raise ProviderError(str(error), details=error)

        return body.get("result") if isinstance(body, dict) else None

    async def get_native_balance(self, address: str) -> Envelope[float]:
        """Get the SOL balance of an address (lamports / 1e9)."""
        async def _get_balance():
            result = await self._rpc("getBalance", [address])
            if not isinstance(result, dict) or result.get("value") is None:
                raise ProviderError("getBalance returned no value", details={"result": result})
            return result["value"] / LAMPORTS_PER_SOL

        return await self._call("get_native_balance", _get_balance)

    async def get_token_accounts(self, address: str) -> Envelope[List[TokenAccount]]:
        """Get the token holdings of an address."""
        async def _get_token_accounts():
            body = await self._rest_get(f"/addresses/{address}/balances")
            return [TokenAccount.from_api(token) for token in (body or {}).get("tokens") or []]

        return await self._call("get_token_accounts", _get_token_accounts)

    async def get_transaction_history(self, address: str, limit: int = MAX_TRANSACTIONS_PER_CALL) -> Envelope[List[Transaction]]:
        """
        Get the most recent parsed transactions of an address.

        Only the first page is available; the provider caps ``limit``.
        """
        async def _get_history():
            body = await self._rest_get(f"/addresses/{address}/transactions", {
                "limit": limit,
                "type": "all",
            })
            return [Transaction.from_api(tx) for tx in body or []]

        return await self._call("get_transaction_history", _get_history)

    async def get_asset(self, mint: str) -> Envelope[Optional[Dict[str, Any]]]:
        """Get token metadata through the DAS ``getAsset`` method."""
        async def _get_asset():
            return await self._rpc("getAsset", {"id": mint})

        return await self._call("get_asset", _get_asset)

    async def search_assets(self, **query) -> Envelope[List[Dict[str, Any]]]:
        """
        Search assets through the DAS ``searchAssets`` method.

        Keyword arguments are passed through as the provider's query fields
        (``ownerAddress``, ``creatorAddress``, ``limit``, ``page`` ...).
        """
        async def _search_assets():
            result = await self._rpc("searchAssets", query)
            return list((result or {}).get("items") or [])

        return await self._call("search_assets", _search_assets)

    async def get_priority_fee_estimate(self, account_keys: Optional[List[str]] = None) -> Envelope[Dict[str, Any]]:
        """Get a priority fee estimate in micro-lamports."""
        async def _get_priority_fee():
            params: Dict[str, Any] = {"options": {"includeAllPriorityFeeLevels": True}}
            if account_keys:
                params["accountKeys"] = account_keys
            return await self._rpc("getPriorityFeeEstimate", [params])

        return await self._call("get_priority_fee_estimate", _get_priority_fee)

    async def create_webhook(self, webhook_url: str, account_addresses: List[str]) -> Envelope[Dict[str, Any]]:
        """Register an enhanced webhook for the given accounts."""
        async def _create_webhook():
            return await self._post(
                "/webhooks",
                params={"api-key": self._api_key},
                json_body={
                    "webhookURL": webhook_url,
                    "accountAddresses": account_addresses,
                    "transactionTypes": ["Any"],
                    "webhookType": "enhanced",
                },
            )

        return await self._call("create_webhook", _create_webhook)
