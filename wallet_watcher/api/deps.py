"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from wallet_watcher.core.context import WatcherContext


def get_context(request: Request) -> WatcherContext:
    """The WatcherContext built by the application lifespan."""
    context = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(status_code=503, detail="Wallet watcher is not running")
    return context
