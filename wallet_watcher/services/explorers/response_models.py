"""Pydantic response models for explorer API validation.

These models validate API responses and provide typed access to data.
They don't need to capture every field - just the ones we use.
"""

import math
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Epoch values above this are treated as milliseconds
_MILLISECOND_THRESHOLD = 10_000_000_000


# ==================== Timestamp Parsing ====================

def parse_epoch_timestamp(value: Any) -> Optional[int]:
    """Parse an explorer timestamp into integer UTC epoch seconds.

    Handles:
    - Unix timestamp as int, float, or numeric string (seconds or milliseconds)
    - ISO8601 with Z suffix or offset: "2024-01-15T12:00:00Z"
    - Naive "YYYY-MM-DD HH:MM:SS" strings, taken as UTC
    - None/empty values
    """
    if value is None or value == "":
        return None

    if isinstance(value, bool):
        raise ValueError(f"Cannot parse timestamp: {value!r}")

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp())

    if isinstance(value, (int, float)):
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"Invalid epoch timestamp: {value!r}")
        if value > _MILLISECOND_THRESHOLD:
            value = value / 1000
        return int(value)

    if isinstance(value, str):
        value = value.strip()

        # Numeric string
        try:
            return parse_epoch_timestamp(float(value))
        except ValueError:
            pass

        if value.endswith("Z"):
            value = value[:-1] + "+00:00"

        try:
            dt = datetime.fromisoformat(value)
        except ValueError:
            dt = None

        if dt is None:
            for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d"):
                try:
                    dt = datetime.strptime(value, fmt)
                    break
                except ValueError:
                    continue

        if dt is not None:
            return parse_epoch_timestamp(dt)

    raise ValueError(f"Cannot parse timestamp: {value!r}")


# ==================== Chainz ====================

class ChainzAddressInfo(BaseModel):
    """Response of Chainz ``api.dws?q=addressinfo``."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    balance: Optional[float] = None
    last_block_timestamp: Optional[int] = Field(default=None, alias="lastBlockTimestamp")

    @field_validator("last_block_timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, v: Any) -> Optional[int]:
        return parse_epoch_timestamp(v)


# ==================== BLNScan ====================

class BlnscanTxn(BaseModel):
    """Transaction entry in a BLNScan account response."""
    model_config = ConfigDict(extra="ignore")

    time: Optional[int] = None

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, v: Any) -> Optional[int]:
        # Individual unreadable entries are skipped, not fatal
        try:
            return parse_epoch_timestamp(v)
        except ValueError:
            return None


class BlnscanAccount(BaseModel):
    """Response of BLNScan ``/api/account/{address}``."""
    model_config = ConfigDict(extra="ignore")

    balance: Optional[float] = None
    txns: List[BlnscanTxn] = Field(default_factory=list)

    @field_validator("txns", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> List[Any]:
        if v is None:
            return []
        if isinstance(v, list):
            return [item for item in v if isinstance(item, dict)]
        raise ValueError("txns must be a list")

    @field_validator("balance", mode="before")
    @classmethod
    def lenient_balance(cls, v: Any) -> Optional[float]:
        try:
            return float(v) if v is not None else None
        except (TypeError, ValueError):
            return None

    @property
    def latest_time(self) -> Optional[int]:
        times = [t.time for t in self.txns if t.time is not None]
        return max(times) if times else None
