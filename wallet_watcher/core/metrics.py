"""Per-provider fetch metrics for observability.

Tracks call counts, failure kinds, rate-limit hits and latency for each
explorer provider; surfaced by the health endpoint.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger()


@dataclass
class ProviderCallMetrics:
    """Metrics for a single explorer provider."""
    provider: str
    call_count: int = 0
    success_count: int = 0
    error_count: int = 0
    errors_by_kind: Dict[str, int] = field(default_factory=dict)
    rate_limit_count: int = 0
    total_latency_ms: float = 0.0
    last_call_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def avg_latency_ms(self) -> float:
        if self.call_count == 0:
            return 0.0
        return self.total_latency_ms / self.call_count

    @property
    def success_rate(self) -> float:
        if self.call_count == 0:
            return 1.0
        return self.success_count / self.call_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "call_count": self.call_count,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "errors_by_kind": dict(self.errors_by_kind),
            "rate_limit_count": self.rate_limit_count,
            "avg_latency_ms": round(self.avg_latency_ms, 2),
            "success_rate": round(self.success_rate, 4),
            "last_call_at": self.last_call_at.isoformat() if self.last_call_at else None,
            "last_error": self.last_error,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
        }


class ProviderMetrics:
    """Collects fetch metrics for every provider."""

    def __init__(self):
        self._lock = asyncio.Lock()
        self._providers: Dict[str, ProviderCallMetrics] = {}
        self._started_at = datetime.now(timezone.utc)

    async def record_call(
        self,
        provider: str,
        latency_ms: float,
        success: bool,
        error_kind: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Record one fetch result."""
        async with self._lock:
            m = self._providers.get(provider)
            if m is None:
                m = ProviderCallMetrics(provider=provider)
                self._providers[provider] = m

            now = datetime.now(timezone.utc)
            m.call_count += 1
            m.total_latency_ms += latency_ms
            m.last_call_at = now

            if success:
                m.success_count += 1
            else:
                m.error_count += 1
                m.last_error = error_message
                m.last_error_at = now
                if error_kind:
                    m.errors_by_kind[error_kind] = m.errors_by_kind.get(error_kind, 0) + 1
                if error_kind == "rate_limited":
                    m.rate_limit_count += 1

        logger.debug(
            "Explorer call",
            provider=provider,
            latency_ms=round(latency_ms, 2),
            success=success,
            error_kind=error_kind,
        )

    def get(self, provider: str) -> Optional[ProviderCallMetrics]:
        return self._providers.get(provider)

    def to_list(self) -> List[Dict[str, Any]]:
        return [m.to_dict() for _, m in sorted(self._providers.items())]

    @property
    def uptime_seconds(self) -> float:
        return (datetime.now(timezone.utc) - self._started_at).total_seconds()
