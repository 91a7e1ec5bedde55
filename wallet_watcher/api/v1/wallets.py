"""Wallet status API endpoints."""

import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from wallet_watcher.api.deps import get_context
from wallet_watcher.core.context import WatcherContext
from wallet_watcher.models.wallet import WalletConfig, WalletId
from wallet_watcher.schemas.wallet import PollResponse, WalletListResponse, WalletStatusResponse

router = APIRouter()


def _dt(epoch: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(epoch, timezone.utc) if epoch is not None else None


def build_wallet_status(context: WatcherContext, wallet: WalletConfig, now: float) -> WalletStatusResponse:
    """Combine a wallet's configuration with its current state."""
    adapter = context.registry.resolve(wallet.coin)
    state = context.store.get(wallet.id)
    threshold = context.evaluator.threshold_seconds(wallet)

    response = WalletStatusResponse(
        coin=wallet.coin,
        address=wallet.address,
        label=wallet.label,
        provider=adapter.provider if adapter else "unknown",
        explorer_url=adapter.explorer_url(wallet.address) if adapter else None,
        expected_interval_hours=round(wallet.expected_interval.total_seconds() / 3600, 3),
        stale_after_hours=round(threshold / 3600, 3),
    )
    if state is None:
        return response

    response.last_poll_attempt = _dt(state.last_poll_attempt)
    response.last_success_at = _dt(state.last_success_at)
    response.consecutive_failures = state.consecutive_failures
    response.config_suspect = state.config_suspect
    response.alert_active = state.alert_active
    response.failure_alert_active = state.failure_alert_active
    response.last_error_kind = state.last_error_kind
    response.last_error = state.last_error
    response.next_retry_seconds = state.next_retry_seconds

    if state.current is not None:
        response.last_seen = state.current.last_seen_at
        response.balance = state.current.balance
        response.age_hours = round((now - state.current.last_seen) / 3600, 3)
        response.is_stale = context.evaluator.is_stale(wallet, state.current.last_seen, now)
    return response


def _find_wallet(context: WatcherContext, coin: str, address: str) -> WalletConfig:
    wallet = context.scheduler.get_wallet(WalletId(coin=coin.lower(), address=address))
    if wallet is None:
        raise HTTPException(status_code=404, detail=f"Wallet {coin}:{address} is not monitored")
    return wallet


@router.get("", response_model=WalletListResponse)
async def list_wallets(
    stale_only: bool = False,
    context: WatcherContext = Depends(get_context),
) -> WalletListResponse:
    """List all monitored wallets with their current status."""
    now = time.time()
    statuses = [build_wallet_status(context, w, now) for w in context.scheduler.wallets]
    stale_count = sum(1 for s in statuses if s.is_stale)
    failing_count = sum(1 for s in statuses if s.consecutive_failures > 0)
    if stale_only:
        statuses = [s for s in statuses if s.is_stale]

    return WalletListResponse(
        wallets=statuses,
        total=len(statuses),
        stale_count=stale_count,
        failing_count=failing_count,
    )


@router.get("/{coin}/{address}", response_model=WalletStatusResponse)
async def get_wallet(
    coin: str,
    address: str,
    context: WatcherContext = Depends(get_context),
) -> WalletStatusResponse:
    """Get one wallet's status."""
    wallet = _find_wallet(context, coin, address)
    return build_wallet_status(context, wallet, time.time())


@router.post("/{coin}/{address}/poll", response_model=PollResponse, status_code=202)
async def poll_wallet(
    coin: str,
    address: str,
    context: WatcherContext = Depends(get_context),
):
    """Poll a wallet now instead of waiting for its next scheduled poll."""
    wallet = _find_wallet(context, coin, address)
    if context.scheduler.stopping:
        raise HTTPException(status_code=503, detail="Wallet watcher is shutting down")
    accepted = context.scheduler.poll_now(wallet.id)
    response = PollResponse(
        coin=wallet.coin,
        address=wallet.address,
        accepted=accepted,
        detail="Poll started" if accepted else "A poll for this wallet is already running",
    )
    if not accepted:
        return JSONResponse(status_code=409, content=response.model_dump())
    return response
