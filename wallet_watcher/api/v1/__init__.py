"""API v1 router."""

from fastapi import APIRouter

from wallet_watcher.api.v1 import alerts, health, wallets

router = APIRouter(prefix="/api/v1")

router.include_router(health.router, tags=["Health"])
router.include_router(wallets.router, prefix="/wallets", tags=["Wallets"])
router.include_router(alerts.router, prefix="/alerts", tags=["Alerts"])
