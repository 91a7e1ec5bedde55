"""Pydantic schemas for API request/response models."""

from wallet_watcher.schemas.common import (
    HealthResponse,
    SchedulerStatus,
)
from wallet_watcher.schemas.wallet import (
    WalletStatusResponse,
    WalletListResponse,
    PollResponse,
)
from wallet_watcher.schemas.alert import (
    AlertResponse,
    AlertListResponse,
)

__all__ = [
    "HealthResponse",
    "SchedulerStatus",
    "WalletStatusResponse",
    "WalletListResponse",
    "PollResponse",
    "AlertResponse",
    "AlertListResponse",
]
