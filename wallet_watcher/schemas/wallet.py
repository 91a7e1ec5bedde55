"""Wallet schemas for API responses."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class WalletStatusResponse(BaseModel):
    """Current view of one monitored wallet."""

    coin: str
    address: str
    label: Optional[str] = None
    provider: str
    explorer_url: Optional[str] = None
    expected_interval_hours: float
    stale_after_hours: float

    last_seen: Optional[datetime] = None
    balance: Optional[float] = None
    age_hours: Optional[float] = None
    is_stale: Optional[bool] = None

    last_poll_attempt: Optional[datetime] = None
    last_success_at: Optional[datetime] = None
    consecutive_failures: int = 0
    config_suspect: bool = False
    alert_active: bool = False
    failure_alert_active: bool = False
    last_error_kind: Optional[str] = None
    last_error: Optional[str] = None
    next_retry_seconds: Optional[float] = None


class WalletListResponse(BaseModel):
    """List of monitored wallets."""

    wallets: List[WalletStatusResponse]
    total: int
    stale_count: int
    failing_count: int


class PollResponse(BaseModel):
    """Result of requesting an immediate poll."""

    coin: str
    address: str
    accepted: bool
    detail: str
