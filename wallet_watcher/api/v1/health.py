"""Health check and observability endpoints."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from wallet_watcher import __version__
from wallet_watcher.api.deps import get_context
from wallet_watcher.core.context import WatcherContext
from wallet_watcher.schemas.common import HealthResponse, SchedulerStatus

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(context: WatcherContext = Depends(get_context)) -> HealthResponse:
    """Report scheduler state, provider metrics and wallet alert counts."""
    states = context.store.snapshot().values()
    stale = sum(1 for s in states if s.alert_active)
    failing = sum(1 for s in states if s.failure_alert_active or s.config_suspect)

    scheduler_status = context.scheduler.get_status()
    healthy = scheduler_status["running"] and failing == 0

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        wallets=len(context.wallets),
        stale_wallets=stale,
        failing_wallets=failing,
        scheduler=SchedulerStatus(**scheduler_status),
        providers=context.metrics.to_list(),
        uptime_seconds=round(context.metrics.uptime_seconds, 1),
    )
