"""
Configuration validation using Pydantic.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


class LogLevelEnum(str, Enum):
    """Supported logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _check_url(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return v
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must start with http:// or https://")
    return v.rstrip('/')


class HttpConfigValidator(BaseModel):
    """Pydantic model for HTTP client configuration validation."""
    timeout: int = Field(default=30, ge=1, le=300, description="Request timeout in seconds")
    user_agent: str = Field(default="caesarbot-gateway/0.1", min_length=1)


class RetryConfigValidator(BaseModel):
    """Pydantic model for retry configuration validation."""
    max_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts per call")
    base_delay_ms: int = Field(default=1000, ge=0, le=60000, description="Linear backoff unit in ms")


class HeliusConfigValidator(BaseModel):
    api_key: str = Field(default="", description="Helius API key")
    base_url: str = Field(default="https://api.helius.xyz/v0")
    rpc_url: Optional[str] = Field(default=None, description="JSON-RPC endpoint override")

    @field_validator('base_url', 'rpc_url')
    @classmethod
    def validate_urls(cls, v):
        """Validate URL format."""
        return _check_url(v)


class BirdeyeConfigValidator(BaseModel):
    api_key: str = Field(default="", description="Birdeye API key")
    base_url: str = Field(default="https://public-api.birdeye.so")
    chain: str = Field(default="solana", min_length=1)

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v)


class JupiterConfigValidator(BaseModel):
    base_url: str = Field(default="https://quote-api.jup.ag/v6")
    default_slippage_bps: int = Field(default=50, ge=0, le=10000)

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v)


class SupabaseConfigValidator(BaseModel):
    url: str = Field(default="", description="Supabase project URL")
    anon_key: str = Field(default="", description="Supabase anon key")
    schema_name: str = Field(default="public", alias="schema")
    heartbeat_interval: float = Field(default=30.0, gt=0, le=300)

    model_config = {"populate_by_name": True}

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        return _check_url(v)


class PumpPortalConfigValidator(BaseModel):
    api_key: str = Field(default="")
    base_url: str = Field(default="https://pumpportal.fun/api")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v)


class OpenAIConfigValidator(BaseModel):
    api_key: str = Field(default="")
    base_url: str = Field(default="https://api.openai.com/v1")
    model: str = Field(default="gpt-4-turbo-preview", min_length=1)

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v)


class RugCheckConfigValidator(BaseModel):
    api_key: str = Field(default="")
    base_url: str = Field(default="https://api.rugcheck.xyz")

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v)


class DexScreenerConfigValidator(BaseModel):
    base_url: str = Field(default="https://api.dexscreener.com")
    chain: str = Field(default="solana", min_length=1)

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        return _check_url(v)


class LoggingConfigValidator(BaseModel):
    level: LogLevelEnum = Field(default=LogLevelEnum.INFO)
    file: Optional[str] = Field(default=None, description="Rotating log file path")
    structured: bool = Field(default=False, description="Emit JSON log lines")

    model_config = {"use_enum_values": True}

    @field_validator('level', mode='before')
    @classmethod
    def normalize_level(cls, v):
        """Accept lower-case level names."""
        return v.upper() if isinstance(v, str) else v


class GatewayConfigValidator(BaseModel):
    """Main configuration validator using Pydantic."""
    http: HttpConfigValidator = Field(default_factory=HttpConfigValidator)
    retry: RetryConfigValidator = Field(default_factory=RetryConfigValidator)
    helius: HeliusConfigValidator = Field(default_factory=HeliusConfigValidator)
    birdeye: BirdeyeConfigValidator = Field(default_factory=BirdeyeConfigValidator)
    jupiter: JupiterConfigValidator = Field(default_factory=JupiterConfigValidator)
    supabase: SupabaseConfigValidator = Field(default_factory=SupabaseConfigValidator)
    pumpportal: PumpPortalConfigValidator = Field(default_factory=PumpPortalConfigValidator)
    openai: OpenAIConfigValidator = Field(default_factory=OpenAIConfigValidator)
    rugcheck: RugCheckConfigValidator = Field(default_factory=RugCheckConfigValidator)
    dexscreener: DexScreenerConfigValidator = Field(default_factory=DexScreenerConfigValidator)
    logging: LoggingConfigValidator = Field(default_factory=LoggingConfigValidator)

    model_config = {
        "validate_assignment": True,
        "extra": "forbid",
        "use_enum_values": True
    }

    def to_config(self) -> 'GatewayConfig':
        """Convert to the dataclass configuration used by the adapters."""
        from caesarbot_gateway.config.models import (
            GatewayConfig, HttpConfig, RetryConfig, HeliusConfig, BirdeyeConfig,
            JupiterConfig, SupabaseConfig, PumpPortalConfig, OpenAIConfig,
            RugCheckConfig, DexScreenerConfig, LoggingConfig
        )

        return GatewayConfig(
            http=HttpConfig(**self.http.model_dump()),
            retry=RetryConfig(**self.retry.model_dump()),
            helius=HeliusConfig(**self.helius.model_dump()),
            birdeye=BirdeyeConfig(**self.birdeye.model_dump()),
            jupiter=JupiterConfig(**self.jupiter.model_dump()),
            supabase=SupabaseConfig(
                url=self.supabase.url,
                anon_key=self.supabase.anon_key,
                schema=self.supabase.schema_name,
                heartbeat_interval=self.supabase.heartbeat_interval
            ),
            pumpportal=PumpPortalConfig(**self.pumpportal.model_dump()),
            openai=OpenAIConfig(**self.openai.model_dump()),
            rugcheck=RugCheckConfig(**self.rugcheck.model_dump()),
            dexscreener=DexScreenerConfig(**self.dexscreener.model_dump()),
            logging=LoggingConfig(
                level=self.logging.level,
                file=self.logging.file,
                structured=self.logging.structured
            )
        )


def validate_config_dict(config_data: Dict[str, Any]) -> GatewayConfigValidator:
    """
    Validate configuration dictionary using Pydantic.

    Args:
        config_data: Configuration dictionary

    Returns:
        Validated configuration object

    Raises:
        ValueError: If validation fails
    """
    try:
        return GatewayConfigValidator(**config_data)
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")


def get_env_var_mappings() -> Dict[str, str]:
    """
    Get mapping of environment variables to configuration paths.

    Returns:
        Dictionary mapping environment variable names to config paths
    """
    return {
        # Credentials
        'HELIUS_API_KEY': 'helius.api_key',
        'BIRDEYE_API_KEY': 'birdeye.api_key',
        'SUPABASE_URL': 'supabase.url',
        'SUPABASE_ANON_KEY': 'supabase.anon_key',
        'PUMPPORTAL_API_KEY': 'pumpportal.api_key',
        'OPENAI_API_KEY': 'openai.api_key',
        'RUGCHECK_API_KEY': 'rugcheck.api_key',

        # Endpoints
        'HELIUS_RPC': 'helius.rpc_url',
        'HELIUS_API': 'helius.base_url',
        'BIRDEYE_API': 'birdeye.base_url',
        'JUPITER_API': 'jupiter.base_url',
        'PUMPPORTAL_API': 'pumpportal.base_url',
        'OPENAI_API': 'openai.base_url',
        'RUGCHECK_API': 'rugcheck.base_url',
        'DEXSCREENER_API': 'dexscreener.base_url',

        # Behaviour
        'CAESAR_HTTP_TIMEOUT': 'http.timeout',
        'CAESAR_RETRY_MAX_ATTEMPTS': 'retry.max_attempts',
        'CAESAR_RETRY_BASE_DELAY_MS': 'retry.base_delay_ms',
        'CAESAR_DEFAULT_SLIPPAGE_BPS': 'jupiter.default_slippage_bps',
        'CAESAR_OPENAI_MODEL': 'openai.model',
        'CAESAR_LOG_LEVEL': 'logging.level',
        'CAESAR_LOG_FILE': 'logging.file',
        'CAESAR_LOG_STRUCTURED': 'logging.structured',
    }
