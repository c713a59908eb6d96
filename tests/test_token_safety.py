"""
Tests for the RugCheck and DexScreener adapters.
"""

import pytest

from caesarbot_gateway.clients.dexscreener import DexScreenerAdapter
from caesarbot_gateway.clients.rugcheck import RugCheckAdapter
from caesarbot_gateway.config.models import RugCheckConfig


MINT = "CaesarMint1111111111111111111111111111111111"


def pair(dex_id, price, chain="solana"):
    return {
        "chainId": chain,
        "dexId": dex_id,
        "pairAddress": f"pair-{dex_id}",
        "baseToken": {"address": MINT, "name": "Caesar", "symbol": "CSR"},
        "priceUsd": price,
        "liquidity": {"usd": 5000},
        "marketCap": 100000,
        "volume": {"h24": 2500},
    }


class TestRugCheckAdapter:

    @pytest.mark.asyncio
    async def test_check_token(self, make_session):
        session = make_session((200, {"mint": MINT, "score": 1200, "risks": [{"name": "Mutable metadata"}]}))
        adapter = RugCheckAdapter(session=session)

        envelope = await adapter.check_token(MINT)

        assert envelope.success is True
        assert envelope.data.score == 1200
        assert envelope.data.risks[0]["name"] == "Mutable metadata"
        assert session.calls[0]["url"] == f"https://api.rugcheck.xyz/v1/tokens/{MINT}/report"
        assert "Authorization" not in session.calls[0]["headers"]

    @pytest.mark.asyncio
    async def test_get_token_risks_with_key(self, make_session):
        session = make_session((200, {"score": 0}))
        adapter = RugCheckAdapter(RugCheckConfig(api_key="rc-key"), session=session)

        envelope = await adapter.get_token_risks(MINT)

        assert envelope.data.mint == MINT
        assert envelope.data.risks == []
        assert session.calls[0]["url"].endswith("/report/summary")
        assert session.calls[0]["headers"]["Authorization"] == "Bearer rc-key"

    @pytest.mark.asyncio
    async def test_get_token_holders(self, make_session):
        session = make_session((200, {"holders": [
            {"address": "Holder1", "uiAmount": 250000.5, "pct": 25.0, "owner": "Owner1", "insider": True},
            {"address": "Holder2", "amount": 1000, "pct": "0.1"},
        ]}))
        adapter = RugCheckAdapter(session=session)

        envelope = await adapter.get_token_holders(MINT, limit=2)

        first, second = envelope.data
        assert (first.address, first.amount, first.pct, first.insider) == ("Holder1", 250000.5, 25.0, True)
        assert (second.amount, second.pct, second.owner) == (1000.0, 0.1, None)
        assert session.calls[0]["url"] == f"https://api.rugcheck.xyz/v1/tokens/{MINT}/holders"
        assert session.calls[0]["params"] == {"limit": "2"}

    @pytest.mark.asyncio
    async def test_get_token_holders_defaults(self, make_session):
        session = make_session((200, {}))
        adapter = RugCheckAdapter(session=session)

        envelope = await adapter.get_token_holders(MINT)

        assert envelope.success is True
        assert envelope.data == []
        assert session.calls[0]["params"] == {"limit": "100"}

    @pytest.mark.asyncio
    async def test_analyze_contract(self, make_session):
        session = make_session((200, {
            "mintAuthority": None,
            "freezeAuthority": "Freezer1",
            "decimals": 6,
            "supply": "1000000000000",
            "isInitialized": True,
        }))
        adapter = RugCheckAdapter(session=session)

        envelope = await adapter.analyze_contract(MINT)

        contract = envelope.data
        assert contract.mint == MINT
        assert contract.freeze_authority == "Freezer1"
        assert contract.supply == 1_000_000_000_000
        assert contract.authorities_revoked is False
        assert session.calls[0]["url"] == f"https://api.rugcheck.xyz/v1/tokens/{MINT}/contract"

    @pytest.mark.asyncio
    async def test_analyze_contract_error(self, make_session):
        adapter = RugCheckAdapter(session=make_session((500, {"error": "internal"})))

        envelope = await adapter.analyze_contract(MINT)

        assert envelope.success is False
        assert envelope.error.code == 500


class TestDexScreenerAdapter:

    @pytest.mark.asyncio
    async def test_get_token_pairs(self, make_session):
        session = make_session((200, {"pairs": [pair("raydium", "0.01"), pair("uniswap", "0.02", chain="ethereum")]}))
        adapter = DexScreenerAdapter(session=session)

        envelope = await adapter.get_token_pairs(MINT)

        assert [p.dex_id for p in envelope.data] == ["raydium"]
        assert envelope.data[0].price_usd == 0.01
        assert envelope.data[0].liquidity_usd == 5000
        assert session.calls[0]["url"] == f"https://api.dexscreener.com/latest/dex/tokens/{MINT}"

    @pytest.mark.asyncio
    async def test_get_token_summary_first_pair(self, make_session):
        adapter = DexScreenerAdapter(session=make_session((200, {"pairs": [pair("raydium", "1"), pair("orca", "2")]})))

        envelope = await adapter.get_token_summary(MINT)

        assert envelope.data.dex_id == "raydium"
        assert envelope.data.symbol == "CSR"

    @pytest.mark.asyncio
    async def test_get_token_summary_no_pairs(self, make_session):
        """No pairs is a successful empty result, not a failure."""
        adapter = DexScreenerAdapter(session=make_session((200, {"schemaVersion": "1.0.0", "pairs": None})))

        envelope = await adapter.get_token_summary(MINT)

        assert envelope.success is True
        assert envelope.data is None
