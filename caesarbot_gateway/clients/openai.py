"""
OpenAI chat-completion adapter for trend, strategy and rug-pull analysis.

Responses are free text; structured fields are pulled out with loose
pattern matching and fall back to neutral defaults.
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence

import aiohttp

from ..config.models import HttpConfig, OpenAIConfig
from ..envelope import Envelope
from ..models.core import RugPullAssessment, TradingStrategy, TrendAnalysis
from .base import BaseAdapter


logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 50
DEFAULT_RISK_SCORE = 50
MAX_LIST_ITEMS = 5

CONFIDENCE_PATTERN = re.compile(r"confidence[:\s]*(\d+)%", re.IGNORECASE)
RISK_SCORE_PATTERN = re.compile(r"risk score[:\s]*(\d+)", re.IGNORECASE)
RECOMMENDATION_PATTERN = re.compile(r"^(\d+\.|-|•)")
WARNING_MARKERS = ("\U0001f6a9", "\u26a0")

TREND_SYSTEM_PROMPT = (
    "You are an expert crypto analyst specializing in Solana DeFi tokens. "
    "Provide clear, actionable trading insights."
)
STRATEGY_SYSTEM_PROMPT = (
    "You are a DeFi portfolio manager specializing in Solana tokens. Provide strategic advice."
)
RUG_PULL_SYSTEM_PROMPT = (
    "You are a smart contract security analyst. Identify rug pull risks clearly."
)


def parse_confidence(content: str) -> int:
    match = CONFIDENCE_PATTERN.search(content)
    return int(match.group(1)) if match else DEFAULT_CONFIDENCE


def parse_prediction(content: str) -> str:
    for line in content.split("\n"):
        if "prediction" in line.lower():
            return line
    return ""


def parse_recommendations(content: str) -> List[str]:
    lines = [line for line in content.split("\n") if RECOMMENDATION_PATTERN.match(line)]
    return lines[:MAX_LIST_ITEMS]


def parse_risk_score(content: str) -> int:
    match = RISK_SCORE_PATTERN.search(content)
    return int(match.group(1)) if match else DEFAULT_RISK_SCORE


def parse_warnings(content: str) -> List[str]:
    lines = [
        line for line in content.split("\n")
        if "warning" in line.lower() or any(marker in line for marker in WARNING_MARKERS)
    ]
    return lines[:MAX_LIST_ITEMS]


def trend_prompt(token_data: Mapping[str, Any], timeframe: str) -> str:
    holders = f"Holders: {token_data['holders']}" if token_data.get("holders") else ""
    return f"""
Analyze this Solana token data and provide trading insights:

Token: {token_data.get('symbol')}
Current Price: ${token_data.get('price')}
24h Volume: ${token_data.get('volume24h')}
24h Price Change: {token_data.get('priceChange24h')}%
Market Cap: ${token_data.get('marketCap')}
{holders}

Timeframe: {timeframe}

Please provide:
1. Market sentiment analysis
2. Price prediction for the next {timeframe}
3. Risk assessment
4. Confidence level (0-100%)

Keep the response concise and actionable for a crypto trader.
"""


def strategy_prompt(portfolio: Sequence[Mapping[str, Any]], risk_tolerance: str) -> str:
    summary = "\n".join(
        f"{token.get('symbol')}: ${token.get('value')} ({token.get('percentage')}%)"
        for token in portfolio
    )
    return f"""
Current Portfolio:
{summary}

Risk Tolerance: {risk_tolerance}

Generate a personalized trading strategy for this Solana DeFi portfolio. Include:
1. Portfolio diversification recommendations
2. Entry/exit strategies
3. Risk management tips
4. Specific action items

Keep recommendations practical and implementable.
"""


def rug_pull_prompt(token_metrics: Mapping[str, Any]) -> str:
    return f"""
Analyze this token for rug pull risk:

Liquidity Locked: {token_metrics.get('liquidityLocked')}
Ownership Renounced: {token_metrics.get('ownershipRenounced')}
Top Holder %: {token_metrics.get('topHolderPercentage')}%
Liquidity: ${token_metrics.get('liquidityAmount')}
Age: {token_metrics.get('ageInDays')} days
24h Volume: ${token_metrics.get('tradingVolume24h')}

Provide:
1. Risk score (0-100, where 100 is highest risk)
2. Specific warning flags
3. Key indicators to monitor

Be direct about red flags.
"""


class OpenAIAdapter(BaseAdapter):
    """
    Thin wrapper over the chat completions endpoint with three canned
    analysis prompts.
    """

    provider_name = "openai"

    def __init__(self, config: OpenAIConfig, http_config: Optional[HttpConfig] = None,
                 session: Optional[aiohttp.ClientSession] = None):
        self.config = config
        api_key = self._require(config.api_key, "OPENAI_API_KEY")
        super().__init__(
            config.base_url,
            http_config=http_config,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            session=session,
        )

    async def _complete(self, system_prompt: str, prompt: str, max_tokens: int, temperature: float) -> str:
        """Run one chat completion and return the first choice's text."""
        body = await self._post("/chat/completions", json_body={
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        })
        choices = (body or {}).get("choices") or []
        if not choices:
            return ""
        return ((choices[0] or {}).get("message") or {}).get("content") or ""

    async def analyze_trend(self, token_data: Mapping[str, Any], timeframe: str = "24h") -> Envelope[TrendAnalysis]:
        """
        Ask for sentiment, a price prediction and a confidence level.

        Args:
            token_data: ``symbol``, ``price``, ``volume24h``, ``priceChange24h``,
                ``marketCap`` and optionally ``holders``
            timeframe: Horizon of the prediction
        """
        async def _analyze_trend():
            prompt = trend_prompt(token_data, timeframe)
            content = await self._complete(TREND_SYSTEM_PROMPT, prompt, max_tokens=500, temperature=0.3)
            return TrendAnalysis(
                analysis=content,
                prediction=parse_prediction(content),
                confidence=parse_confidence(content),
            )

        return await self._call("analyze_trend", _analyze_trend)

    async def generate_trading_strategy(self, portfolio: Sequence[Mapping[str, Any]],
                                        risk_tolerance: str = "medium") -> Envelope[TradingStrategy]:
        """Ask for a strategy for a portfolio of ``symbol``/``value``/``percentage`` rows."""
        async def _generate_strategy():
            prompt = strategy_prompt(portfolio, risk_tolerance)
            content = await self._complete(STRATEGY_SYSTEM_PROMPT, prompt, max_tokens=600, temperature=0.4)
            return TradingStrategy(strategy=content, recommendations=parse_recommendations(content))

        return await self._call("generate_trading_strategy", _generate_strategy)

    async def detect_rug_pull(self, token_metrics: Dict[str, Any]) -> Envelope[RugPullAssessment]:
        async def _detect_rug_pull():
            prompt = rug_pull_prompt(token_metrics)
            content = await self._complete(RUG_PULL_SYSTEM_PROMPT, prompt, max_tokens=400, temperature=0.2)
            return RugPullAssessment(risk_score=parse_risk_score(content), warnings=parse_warnings(content))

        return await self._call("detect_rug_pull", _detect_rug_pull)
