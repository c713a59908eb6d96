"""
Data models for provider results.
"""

from .core import (
    TokenPrice,
    Candle,
    TokenAccount,
    Transaction,
    RouteHop,
    SwapQuote,
    SwapTransaction,
    UserStats,
    LeaderboardEntry,
    Mission,
    UserMission,
    UploadResult,
    TrendAnalysis,
    TradingStrategy,
    RugPullAssessment,
    TokenSafetyReport,
    TokenHolder,
    ContractAnalysis,
    PairSummary,
    ChangeFilter,
)

__all__ = [
    "TokenPrice",
    "Candle",
    "TokenAccount",
    "Transaction",
    "RouteHop",
    "SwapQuote",
    "SwapTransaction",
    "UserStats",
    "LeaderboardEntry",
    "Mission",
    "UserMission",
    "UploadResult",
    "TrendAnalysis",
    "TradingStrategy",
    "RugPullAssessment",
    "TokenSafetyReport",
    "TokenHolder",
    "ContractAnalysis",
    "PairSummary",
    "ChangeFilter",
]
