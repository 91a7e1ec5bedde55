"""Wallet domain models.

Identity of a monitored wallet is the ``(coin, address)`` pair. Timestamps are
integer UTC epoch seconds throughout the core.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional


@dataclass(frozen=True, order=True)
class WalletId:
    """Identity of a configured wallet."""
    coin: str
    address: str

    def __str__(self) -> str:
        return f"{self.coin}:{self.address}"


@dataclass(frozen=True)
class WalletConfig:
    """A wallet to monitor, as loaded from the wallet file.

    ``coin`` is the CoinId (lower-cased ticker) used to resolve the explorer
    adapter. ``poll_interval`` overrides the global poll cadence when set.
    """
    address: str
    coin: str
    expected_interval: timedelta
    label: Optional[str] = None
    ticker: Optional[str] = None
    api: Optional[str] = None
    poll_interval: Optional[timedelta] = None

    @property
    def id(self) -> WalletId:
        return WalletId(coin=self.coin, address=self.address)

    @property
    def display_name(self) -> str:
        return self.label or f"{self.display_ticker} {self.address[:10]}"

    @property
    def display_ticker(self) -> str:
        return (self.ticker or self.coin).upper()


@dataclass(frozen=True)
class ActivityRecord:
    """Normalized result of one successful explorer fetch.

    Never mutated; every poll produces a new record.
    """
    wallet: WalletId
    last_seen: int
    balance: Optional[float] = None
    raw_provider_payload: Optional[Any] = field(default=None, compare=False, repr=False)
    fetched_at: int = 0

    @property
    def last_seen_at(self) -> datetime:
        return datetime.fromtimestamp(self.last_seen, timezone.utc)


@dataclass
class WalletState:
    """Mutable per-wallet state owned by the WalletStateStore."""
    wallet: WalletId
    current: Optional[ActivityRecord] = None
    last_poll_attempt: Optional[int] = None
    last_success_at: Optional[int] = None
    consecutive_failures: int = 0
    consecutive_not_found: int = 0
    config_suspect: bool = False
    alert_active: bool = False
    failure_alert_active: bool = False
    rate_limited_count: int = 0
    last_error_kind: Optional[str] = None
    last_error: Optional[str] = None
    next_retry_seconds: Optional[float] = None

    @property
    def has_baseline(self) -> bool:
        return self.current is not None
