"""
Configuration data models and validation.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class HttpConfig:
    """Shared HTTP client configuration."""
    timeout: int = 30
    user_agent: str = "caesarbot-gateway/0.1"


@dataclass
class RetryConfig:
    """Retry helper configuration."""
    max_attempts: int = 3
    base_delay_ms: int = 1000


@dataclass
class HeliusConfig:
    """Helius indexing API and JSON-RPC configuration."""
    api_key: str = ""
    base_url: str = "https://api.helius.xyz/v0"
    rpc_url: Optional[str] = None

    def resolved_rpc_url(self) -> str:
        """RPC endpoint, derived from the API key when not set explicitly."""
        if self.rpc_url:
            return self.rpc_url
        return f"https://mainnet.helius-rpc.com/?api-key={self.api_key}"


@dataclass
class BirdeyeConfig:
    """Birdeye price feed configuration."""
    api_key: str = ""
    base_url: str = "https://public-api.birdeye.so"
    chain: str = "solana"


@dataclass
class JupiterConfig:
    """Jupiter swap aggregator configuration."""
    base_url: str = "https://quote-api.jup.ag/v6"
    default_slippage_bps: int = 50


@dataclass
class SupabaseConfig:
    """Supabase store and realtime configuration."""
    url: str = ""
    anon_key: str = ""
    schema: str = "public"
    heartbeat_interval: float = 30.0


@dataclass
class PumpPortalConfig:
    """PumpPortal upload API configuration."""
    api_key: str = ""
    base_url: str = "https://pumpportal.fun/api"


@dataclass
class OpenAIConfig:
    """OpenAI chat completions configuration."""
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4-turbo-preview"


@dataclass
class RugCheckConfig:
    """RugCheck API configuration."""
    api_key: str = ""
    base_url: str = "https://api.rugcheck.xyz"


@dataclass
class DexScreenerConfig:
    """DexScreener API configuration."""
    base_url: str = "https://api.dexscreener.com"
    chain: str = "solana"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: Optional[str] = None
    structured: bool = False


@dataclass
class GatewayConfig:
    """Main gateway configuration container."""
    http: HttpConfig = field(default_factory=HttpConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    helius: HeliusConfig = field(default_factory=HeliusConfig)
    birdeye: BirdeyeConfig = field(default_factory=BirdeyeConfig)
    jupiter: JupiterConfig = field(default_factory=JupiterConfig)
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    pumpportal: PumpPortalConfig = field(default_factory=PumpPortalConfig)
    openai: OpenAIConfig = field(default_factory=OpenAIConfig)
    rugcheck: RugCheckConfig = field(default_factory=RugCheckConfig)
    dexscreener: DexScreenerConfig = field(default_factory=DexScreenerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> List[str]:
        """
        Validate configuration settings.

        Missing API keys are not errors here: an adapter whose credentials
        are absent fails when it is constructed.

        Returns:
            List of validation errors, empty if valid
        """
        errors = []

        if self.http.timeout <= 0:
            errors.append("HTTP timeout must be positive")

        if self.retry.max_attempts < 1:
            errors.append("Retry max_attempts must be at least 1")

        if self.retry.base_delay_ms < 0:
            errors.append("Retry base_delay_ms must be non-negative")

        if not 0 <= self.jupiter.default_slippage_bps <= 10000:
            errors.append("Default slippage must be between 0 and 10000 bps")

        for name, url in self._base_urls():
            if not url.startswith(("http://", "https://")):
                errors.append(f"Invalid base URL for {name}: {url}")

        if self.supabase.url and not self.supabase.url.startswith(("http://", "https://")):
            errors.append(f"Invalid Supabase URL: {self.supabase.url}")

        return errors

    def missing_credentials(self) -> List[str]:
        """Names of providers whose required credentials are not set."""
        missing = []
        if not self.helius.api_key:
            missing.append("helius")
        if not self.birdeye.api_key:
            missing.append("birdeye")
        if not (self.supabase.url and self.supabase.anon_key):
            missing.append("supabase")
        if not self.pumpportal.api_key:
            missing.append("pumpportal")
        if not self.openai.api_key:
            missing.append("openai")
        return missing

    def _base_urls(self):
        return [
            ("helius", self.helius.base_url),
            ("birdeye", self.birdeye.base_url),
            ("jupiter", self.jupiter.base_url),
            ("pumpportal", self.pumpportal.base_url),
            ("openai", self.openai.base_url),
            ("rugcheck", self.rugcheck.base_url),
            ("dexscreener", self.dexscreener.base_url),
        ]
