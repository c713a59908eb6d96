"""
Tests for the Helius wallet adapter.
"""

import aiohttp
import pytest

from caesarbot_gateway.clients.helius import HeliusAdapter
from caesarbot_gateway.config.models import HeliusConfig
from caesarbot_gateway.envelope import ConfigurationError


WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


class TestHeliusAdapter:
    """Test Helius adapter operations."""

    def test_missing_api_key(self):
        """Construction fails fast without HELIUS_API_KEY."""
        with pytest.raises(ConfigurationError, match="HELIUS_API_KEY"):
            HeliusAdapter(HeliusConfig(api_key=""))

    def test_rpc_url_defaults_from_key(self, helius_config):
        adapter = HeliusAdapter(helius_config)
        assert adapter.rpc_url == "https://mainnet.helius-rpc.com/?api-key=helius-test-key"

    def test_rpc_url_override(self):
        adapter = HeliusAdapter(HeliusConfig(api_key="k", rpc_url="https://rpc.example.com"))
        assert adapter.rpc_url == "https://rpc.example.com"

    @pytest.mark.asyncio
    async def test_native_balance_in_sol(self, helius_config, make_session):
        """2,500,000,000 lamports is 2.5 SOL."""
        session = make_session((200, {"jsonrpc": "2.0", "id": 1, "result": {"value": 2_500_000_000}}))
        adapter = HeliusAdapter(helius_config, session=session)

        envelope = await adapter.get_native_balance(WALLET)

        assert envelope.success is True
        assert envelope.data == 2.5
        body = session.calls[0]["json"]
        assert body["method"] == "getBalance"
        assert body["params"] == [WALLET]
        assert session.calls[0]["url"] == adapter.rpc_url

    @pytest.mark.asyncio
    async def test_native_balance_zero_is_kept(self, helius_config, make_session):
        adapter = HeliusAdapter(helius_config, session=make_session((200, {"jsonrpc": "2.0", "id": 1, "result": {"value": 0}})))

        envelope = await adapter.get_native_balance(WALLET)

        assert envelope.success is True
        assert envelope.data == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("result", [None, {"context": {"slot": 1}}, {"value": None}])
    async def test_native_balance_missing_value_fails(self, helius_config, make_session, result):
        """A reply without a balance is a failure, never 0 SOL."""
        adapter = HeliusAdapter(helius_config, session=make_session((200, {"jsonrpc": "2.0", "id": 1, "result": result})))

        envelope = await adapter.get_native_balance(WALLET)

        assert envelope.success is False
        assert envelope.data is None
        assert envelope.error.message == "getBalance returned no value"
        assert envelope.error.details == {"result": result}

    @pytest.mark.asyncio
    async def test_native_balance_rpc_error(self, helius_config, make_session):
        error = {"code": -32602, "message": "Invalid param: WrongSize"}
        adapter = HeliusAdapter(helius_config, session=make_session((200, {"jsonrpc": "2.0", "error": error})))

        envelope = await adapter.get_native_balance("bad")

        assert envelope.success is False
        assert envelope.error.code == -32602
        assert envelope.error.details == error

    @pytest.mark.asyncio
    async def test_native_balance_transport_error(self, helius_config, make_session):
        """Network failures surface as UNKNOWN."""
        adapter = HeliusAdapter(helius_config, session=make_session(aiohttp.ClientConnectionError("refused")))

        envelope = await adapter.get_native_balance(WALLET)

        assert envelope.success is False
        assert envelope.error.code == "UNKNOWN"

    @pytest.mark.asyncio
    async def test_token_accounts(self, helius_config, make_session):
        session = make_session((200, {
            "nativeBalance": 0,
            "tokens": [
                {"mint": "MintA", "amount": 1500000, "decimals": 6, "tokenAccount": "acc"},
                {"mint": "MintB", "amount": 5, "decimals": 0},
            ],
        }))
        adapter = HeliusAdapter(helius_config, session=session)

        envelope = await adapter.get_token_accounts(WALLET)

        assert envelope.success is True
        assert [t.mint for t in envelope.data] == ["MintA", "MintB"]
        assert envelope.data[0].ui_amount == 1.5
        call = session.calls[0]
        assert call["url"] == f"https://api.helius.xyz/v0/addresses/{WALLET}/balances"
        assert call["params"] == {"api-key": "helius-test-key"}

    @pytest.mark.asyncio
    async def test_transaction_history(self, helius_config, make_session):
        session = make_session((200, [
            {"signature": "sig1", "type": "SWAP", "timestamp": 10, "fee": 5000, "feePayer": WALLET},
        ]))
        adapter = HeliusAdapter(helius_config, session=session)

        envelope = await adapter.get_transaction_history(WALLET, limit=10)

        assert envelope.data[0].signature == "sig1"
        assert envelope.data[0].type == "SWAP"
        assert session.calls[0]["params"] == {"api-key": "helius-test-key", "limit": "10", "type": "all"}

    @pytest.mark.asyncio
    async def test_search_assets_returns_items(self, helius_config, make_session):
        session = make_session((200, {"result": {"total": 1, "items": [{"id": "asset"}]}}))
        adapter = HeliusAdapter(helius_config, session=session)

        envelope = await adapter.search_assets(ownerAddress=WALLET, page=1)

        assert envelope.data == [{"id": "asset"}]
        assert session.calls[0]["json"]["params"] == {"ownerAddress": WALLET, "page": 1}
