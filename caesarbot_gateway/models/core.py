"""
Core data models for the CaesarBot gateway.

Records are built from provider payloads and never persisted.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ..envelope import now_ms


def _float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class _Record:
    """Mixin giving dataclass records a JSON-friendly ``to_dict``."""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("raw", None)
        return data


@dataclass
class TokenPrice(_Record):
    """Price record for a single token."""
    address: str
    value: float
    update_unix_time: Optional[int] = None
    price_change_24h: Optional[float] = None
    price_change_24h_percent: Optional[float] = None
    liquidity: Optional[float] = None
    market_cap: Optional[float] = None

    @classmethod
    def from_api(cls, address: str, payload: Dict[str, Any]) -> "TokenPrice":
        return cls(
            address=payload.get("address") or address,
            value=_float(payload.get("value")),
            update_unix_time=payload.get("updateUnixTime"),
            price_change_24h=_float(payload.get("priceChange24h"), None),
            price_change_24h_percent=_float(payload.get("priceChange24hPercent"), None),
            liquidity=_float(payload.get("liquidity"), None),
            market_cap=_float(payload.get("marketCap"), None),
        )


@dataclass
class Candle(_Record):
    """OHLCV candle."""
    unix_time: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Candle":
        return cls(
            unix_time=_int(payload.get("unixTime")),
            open=_float(payload.get("o")),
            high=_float(payload.get("h")),
            low=_float(payload.get("l")),
            close=_float(payload.get("c")),
            volume=_float(payload.get("v")),
        )


@dataclass
class TokenAccount(_Record):
    """A single token holding of a wallet."""
    mint: str
    amount: int
    decimals: int
    token_account: Optional[str] = None
    owner: Optional[str] = None
    symbol: Optional[str] = None
    name: Optional[str] = None
    provider_ui_amount: Optional[float] = None

    @property
    def ui_amount(self) -> float:
        """Human-readable amount; provider value when given."""
        if self.provider_ui_amount is not None:
            return self.provider_ui_amount
        return self.amount / (10 ** self.decimals)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "TokenAccount":
        return cls(
            mint=payload.get("mint", ""),
            amount=_int(payload.get("amount")),
            decimals=_int(payload.get("decimals")),
            token_account=payload.get("tokenAccount"),
            owner=payload.get("owner"),
            symbol=payload.get("tokenSymbol"),
            name=payload.get("tokenName"),
            provider_ui_amount=_float(payload.get("uiAmount"), None),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.pop("provider_ui_amount")
        data["ui_amount"] = self.ui_amount
        return data


@dataclass
class Transaction(_Record):
    """Parsed transaction from the indexing API."""
    signature: str
    slot: Optional[int] = None
    timestamp: Optional[int] = None
    fee: Optional[int] = None
    fee_payer: Optional[str] = None
    type: str = "UNKNOWN"
    description: str = ""
    source: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "Transaction":
        return cls(
            signature=payload.get("signature", ""),
            slot=payload.get("slot"),
            timestamp=payload.get("timestamp"),
            fee=payload.get("fee"),
            fee_payer=payload.get("feePayer"),
            type=payload.get("type") or "UNKNOWN",
            description=payload.get("description") or "",
            source=payload.get("source"),
            raw=payload,
        )


@dataclass
class RouteHop(_Record):
    """One hop of a routed swap."""
    amm_key: str
    label: Optional[str]
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    fee_amount: int = 0
    fee_mint: Optional[str] = None
    percent: int = 100

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "RouteHop":
        swap_info = payload.get("swapInfo") or {}
        return cls(
            amm_key=swap_info.get("ammKey", ""),
            label=swap_info.get("label"),
            input_mint=swap_info.get("inputMint", ""),
            output_mint=swap_info.get("outputMint", ""),
            in_amount=_int(swap_info.get("inAmount")),
            out_amount=_int(swap_info.get("outAmount")),
            fee_amount=_int(swap_info.get("feeAmount")),
            fee_mint=swap_info.get("feeMint"),
            percent=_int(payload.get("percent"), 100),
        )


@dataclass
class SwapQuote(_Record):
    """
    Routed swap quote.

    Valid only momentarily; ``raw`` is the provider body sent back when
    requesting the swap transaction.
    """
    input_mint: str
    output_mint: str
    in_amount: int
    out_amount: int
    other_amount_threshold: int
    swap_mode: str
    slippage_bps: int
    price_impact_pct: float = 0.0
    route_plan: List[RouteHop] = field(default_factory=list)
    fetched_at: int = field(default_factory=now_ms)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    def age_ms(self, now: Optional[int] = None) -> int:
        """Milliseconds since the quote was fetched."""
        return (now if now is not None else now_ms()) - self.fetched_at

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "SwapQuote":
        return cls(
            input_mint=payload.get("inputMint", ""),
            output_mint=payload.get("outputMint", ""),
            in_amount=_int(payload.get("inAmount")),
            out_amount=_int(payload.get("outAmount")),
            other_amount_threshold=_int(payload.get("otherAmountThreshold")),
            swap_mode=payload.get("swapMode", "ExactIn"),
            slippage_bps=_int(payload.get("slippageBps")),
            price_impact_pct=_float(payload.get("priceImpactPct")),
            route_plan=[RouteHop.from_api(hop) for hop in payload.get("routePlan") or []],
            raw=payload,
        )


@dataclass
class SwapTransaction(_Record):
    """Serialized, unsigned swap transaction."""
    transaction: str
    last_valid_block_height: Optional[int] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "SwapTransaction":
        return cls(
            transaction=payload.get("swapTransaction", ""),
            last_valid_block_height=payload.get("lastValidBlockHeight"),
        )


@dataclass
class UserStats(_Record):
    """Row of the ``user_stats`` table."""
    wallet_address: str
    caesar_points: int = 0
    tier: Optional[str] = None
    successful_snipes: int = 0
    tokens_deployed: int = 0
    total_trades: int = 0
    last_activity: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "UserStats":
        return cls(
            wallet_address=row.get("wallet_address", ""),
            caesar_points=_int(row.get("caesar_points")),
            tier=row.get("tier"),
            successful_snipes=_int(row.get("successful_snipes")),
            tokens_deployed=_int(row.get("tokens_deployed")),
            total_trades=_int(row.get("total_trades")),
            last_activity=row.get("last_activity"),
            created_at=row.get("created_at"),
        )


@dataclass
class LeaderboardEntry(UserStats):
    """User stats with its position in the returned ordering."""
    rank: int = 0


@dataclass
class Mission(_Record):
    """Row of the ``missions`` table."""
    id: str
    title: str
    description: str = ""
    reward_points: int = 0
    target_value: int = 0
    mission_type: str = "daily"
    is_active: bool = True
    expires_at: Optional[str] = None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "Mission":
        return cls(
            id=str(row.get("id", "")),
            title=row.get("title", ""),
            description=row.get("description") or "",
            reward_points=_int(row.get("reward_points")),
            target_value=_int(row.get("target_value")),
            mission_type=row.get("mission_type") or "daily",
            is_active=bool(row.get("is_active", True)),
            expires_at=row.get("expires_at"),
        )


@dataclass
class UserMission(_Record):
    """Progress of one wallet on one mission."""
    wallet_address: str
    mission_id: str
    progress: float = 0
    completed_at: Optional[str] = None
    claimed_at: Optional[str] = None
    mission: Optional[Mission] = None

    @property
    def completed(self) -> bool:
        return self.completed_at is not None

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> "UserMission":
        mission_row = row.get("missions")
        return cls(
            wallet_address=row.get("wallet_address", ""),
            mission_id=str(row.get("mission_id", "")),
            progress=_float(row.get("progress")),
            completed_at=row.get("completed_at"),
            claimed_at=row.get("claimed_at"),
            mission=Mission.from_api(mission_row) if isinstance(mission_row, dict) else None,
        )


@dataclass
class UploadResult(_Record):
    """Content-addressed upload result."""
    ipfs: str
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "UploadResult":
        return cls(
            ipfs=payload.get("ipfs") or payload.get("metadataUri") or "",
            metadata=payload.get("metadata"),
        )


@dataclass
class TrendAnalysis(_Record):
    analysis: str
    prediction: str
    confidence: int


@dataclass
class TradingStrategy(_Record):
    strategy: str
    recommendations: List[str] = field(default_factory=list)


@dataclass
class RugPullAssessment(_Record):
    risk_score: int
    warnings: List[str] = field(default_factory=list)


@dataclass
class TokenSafetyReport(_Record):
    """Token safety report from RugCheck."""
    mint: str
    score: float
    risks: List[Dict[str, Any]] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_api(cls, mint: str, payload: Dict[str, Any]) -> "TokenSafetyReport":
        return cls(
            mint=payload.get("mint") or mint,
            score=_float(payload.get("score")),
            risks=list(payload.get("risks") or []),
            raw=payload,
        )


@dataclass
class TokenHolder(_Record):
    """One holder of a token, share given in percent."""
    address: str
    amount: float
    pct: float
    owner: Optional[str] = None
    insider: bool = False

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "TokenHolder":
        return cls(
            address=payload.get("address", ""),
            amount=_float(payload.get("uiAmount", payload.get("amount"))),
            pct=_float(payload.get("pct")),
            owner=payload.get("owner"),
            insider=bool(payload.get("insider")),
        )


@dataclass
class ContractAnalysis(_Record):
    """Mint account facts; a set authority means supply or transfers can still change."""
    mint: str
    mint_authority: Optional[str]
    freeze_authority: Optional[str]
    decimals: int
    supply: int
    is_initialized: bool

    @property
    def authorities_revoked(self) -> bool:
        return self.mint_authority is None and self.freeze_authority is None

    @classmethod
    def from_api(cls, mint: str, payload: Dict[str, Any]) -> "ContractAnalysis":
        return cls(
            mint=mint,
            mint_authority=payload.get("mintAuthority") or None,
            freeze_authority=payload.get("freezeAuthority") or None,
            decimals=_int(payload.get("decimals")),
            supply=_int(payload.get("supply")),
            is_initialized=bool(payload.get("isInitialized", True)),
        )


@dataclass
class PairSummary(_Record):
    """Summary of a DEX pair from DexScreener."""
    mint: str
    name: Optional[str]
    symbol: Optional[str]
    price_usd: Optional[float]
    liquidity_usd: Optional[float]
    market_cap: Optional[float]
    volume_24h: Optional[float]
    dex_id: Optional[str]
    pair_address: Optional[str]

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "PairSummary":
        base_token = payload.get("baseToken") or {}
        return cls(
            mint=base_token.get("address", ""),
            name=base_token.get("name"),
            symbol=base_token.get("symbol"),
            price_usd=_float(payload.get("priceUsd"), None),
            liquidity_usd=_float((payload.get("liquidity") or {}).get("usd"), None),
            market_cap=_float(payload.get("marketCap"), None),
            volume_24h=_float((payload.get("volume") or {}).get("h24"), None),
            dex_id=payload.get("dexId"),
            pair_address=payload.get("pairAddress"),
        )


@dataclass(frozen=True)
class ChangeFilter:
    """Row filter for a realtime change subscription."""
    table: str
    schema: str = "public"
    event: str = "*"
    filter: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {"event": self.event, "schema": self.schema, "table": self.table}
        if self.filter:
            payload["filter"] = self.filter
        return payload
