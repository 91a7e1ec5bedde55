"""Alerts endpoints."""

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from wallet_watcher.api.deps import get_context
from wallet_watcher.core.context import WatcherContext
from wallet_watcher.models.alert import AlertEvent, AlertKind
from wallet_watcher.schemas.alert import AlertListResponse, AlertResponse

router = APIRouter()


def _to_response(event: AlertEvent) -> AlertResponse:
    return AlertResponse(
        coin=event.wallet.coin,
        address=event.wallet.address,
        label=event.label,
        kind=event.kind.value,
        title=event.title,
        observed_last_seen=(
            datetime.fromtimestamp(event.observed_last_seen, timezone.utc)
            if event.observed_last_seen is not None else None
        ),
        emitted_at=datetime.fromtimestamp(event.emitted_at, timezone.utc),
        consecutive_failures=event.consecutive_failures,
        config_suspect=event.config_suspect,
    )


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    kind: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    context: WatcherContext = Depends(get_context),
) -> AlertListResponse:
    """List recent alerts, newest first."""
    alert_kind = None
    if kind is not None:
        try:
            alert_kind = AlertKind(kind)
        except ValueError:
            raise HTTPException(
                status_code=422,
                detail=f"Unknown alert kind {kind!r}; expected one of {[k.value for k in AlertKind]}",
            )

    events = context.history.recent(kind=alert_kind, limit=limit)

    by_kind = {}
    for e in events:
        by_kind[e.kind.value] = by_kind.get(e.kind.value, 0) + 1

    return AlertListResponse(
        alerts=[_to_response(e) for e in events],
        total=len(events),
        by_kind=by_kind,
    )
