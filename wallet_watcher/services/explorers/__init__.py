"""Explorer adapters: one per supported block-explorer provider."""

from wallet_watcher.services.explorers.base import (
    ExplorerAdapter,
    FetchError,
    FetchErrorKind,
    HttpExplorerAdapter,
    MalformedResponseError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
)
from wallet_watcher.services.explorers.blnscan import BlnscanAdapter
from wallet_watcher.services.explorers.chainz import ChainzAdapter
from wallet_watcher.services.explorers.registry import AdapterRegistry, build_default_registry

__all__ = [
    "ExplorerAdapter",
    "HttpExplorerAdapter",
    "FetchError",
    "FetchErrorKind",
    "NetworkError",
    "NotFoundError",
    "MalformedResponseError",
    "RateLimitedError",
    "ChainzAdapter",
    "BlnscanAdapter",
    "AdapterRegistry",
    "build_default_registry",
]
