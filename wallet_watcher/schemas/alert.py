"""Alert schemas."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class AlertResponse(BaseModel):
    """Alert event as delivered to sinks."""
    coin: str
    address: str
    label: Optional[str] = None
    kind: str
    title: str
    observed_last_seen: Optional[datetime] = None
    emitted_at: datetime
    consecutive_failures: int = 0
    config_suspect: bool = False


class AlertListResponse(BaseModel):
    """Alert list response."""
    alerts: List[AlertResponse]
    total: int
    by_kind: Dict[str, int]
