"""Common schemas used across the API."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ProviderLimiterStatus(BaseModel):
    """Rate limiter state for one provider."""
    provider: str
    max_concurrent: int
    requests_per_minute: int
    in_flight: int = 0
    paused_for_seconds: float = 0.0


class SchedulerStatus(BaseModel):
    """Scheduler status for health check."""
    running: bool
    stopping: bool = False
    wallet_count: int = 0
    job_count: int = 0
    next_evaluation: Optional[str] = None
    in_flight: List[str] = []
    pending_outcomes: int = 0
    backed_off: List[str] = []
    providers: List[ProviderLimiterStatus] = []


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str
    wallets: int
    stale_wallets: int = 0
    failing_wallets: int = 0
    scheduler: Optional[SchedulerStatus] = None
    providers: List[Dict[str, Any]] = []
    uptime_seconds: float = 0.0

