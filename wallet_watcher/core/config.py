"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Invalid wallet configuration. Fatal: the watcher refuses to start."""


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Wallet list
    coins_file: str = Field(default="coins.toml", description="TOML file listing monitored wallets")

    # Server
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8080)

    # Explorer APIs
    chainz_base_url: str = Field(
        default="https://chainz.cryptoid.info",
        description="Chainz (cryptoID) explorer base URL"
    )
    chainz_coins: List[str] = Field(
        default=["btc", "ltc", "dash", "doge", "dgb", "grs", "ppc", "via", "blk"],
        description="Tickers served by the Chainz explorer"
    )
    blnscan_base_url: str = Field(
        default="https://blnexplorer.io",
        description="BLNScan explorer base URL"
    )
    user_agent: str = Field(default="wallet-watcher")

    # Polling cadence
    poll_interval_seconds: int = Field(
        default=300,
        gt=0,
        description="Global poll interval; wallets may override it"
    )
    evaluation_interval_seconds: int = Field(
        default=60,
        gt=0,
        description="Fixed staleness evaluation tick"
    )
    default_expected_interval_hours: float = Field(
        default=24.0,
        gt=0,
        description="Expected activity cadence for wallets that do not set one"
    )
    grace_multiplier: float = Field(
        default=1.5,
        description="Wallet is stale once silent for expected_interval * grace_multiplier"
    )

    # Concurrency and provider limits
    max_concurrency: int = Field(default=8, gt=0, description="Max fetches in flight overall")
    provider_max_concurrency: int = Field(default=1, gt=0, description="Max fetches in flight per provider")
    provider_rate_limit_per_minute: int = Field(default=30, gt=0)

    # Timeouts
    fetch_timeout_seconds: float = Field(default=20.0, gt=0, description="Hard bound on a single fetch")
    api_connect_timeout_seconds: float = Field(default=10.0, gt=0)
    api_read_timeout_seconds: float = Field(default=15.0, gt=0)

    # Retry / backoff
    retry_initial_backoff_seconds: float = Field(default=30.0, gt=0)
    retry_backoff_multiplier: float = Field(default=2.0, ge=1.0)
    retry_max_backoff_seconds: float = Field(default=1800.0, gt=0)
    retry_jitter_ratio: float = Field(
        default=0.25,
        ge=0.0,
        le=1.0,
        description="Random jitter added to backoff, as a fraction of the delay"
    )
    rate_limit_default_delay_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Pause applied on 429 when the provider gives no Retry-After"
    )
    retry_after_max_wait_seconds: float = Field(
        default=900.0,
        gt=0,
        description="Cap on provider-suggested Retry-After"
    )

    # Alert thresholds
    not_found_suspect_threshold: int = Field(
        default=5,
        gt=0,
        description="Consecutive NotFound results before a wallet is configuration-suspect"
    )
    failure_alert_threshold: int = Field(
        default=5,
        gt=0,
        description="Consecutive failures without any baseline before FetchFailurePersisted"
    )
    alert_history_size: int = Field(default=200, gt=0)

    @field_validator("grace_multiplier")
    @classmethod
    def grace_at_least_one(cls, v: float) -> float:
        if v < 1.0:
            raise ValueError("grace_multiplier must be >= 1.0")
        return v

    @field_validator("chainz_coins")
    @classmethod
    def normalize_tickers(cls, v: List[str]) -> List[str]:
        return [t.strip().lower() for t in v if t.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
