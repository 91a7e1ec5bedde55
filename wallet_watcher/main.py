"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from wallet_watcher import __version__
from wallet_watcher.api import status_page
from wallet_watcher.api.v1 import router as api_router
from wallet_watcher.core.config import get_settings
from wallet_watcher.core.context import WatcherContext

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting Crypto Wallet Watcher", version=__version__)

    # A ConfigurationError here aborts startup before any polling
    if getattr(app.state, "context", None) is None:
        app.state.context = await WatcherContext.from_settings(get_settings())
    context: WatcherContext = app.state.context
    context.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await context.aclose()
    app.state.context = None
    logger.info("Cleanup complete")


def create_app(context: Optional[WatcherContext] = None) -> FastAPI:
    """Create the application, optionally around an already-built context."""
    app = FastAPI(
        title="Crypto Wallet Watcher",
        description="Monitors wallet activity through block explorers and flags wallets gone silent",
        version=__version__,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.context = context

    app.include_router(status_page.router)
    app.include_router(api_router)
    return app


app = create_app()


def run() -> None:
    """Serve the watcher with uvicorn on the configured host and port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("wallet_watcher.main:app", host=settings.host, port=settings.port)
