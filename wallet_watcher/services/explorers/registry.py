"""Adapter registry.

Maps a CoinId to the ExplorerAdapter that serves it. Populated once at
startup, then frozen; lookups never mutate it.
"""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from wallet_watcher.core.config import Settings
from wallet_watcher.services.explorers.base import ExplorerAdapter
from wallet_watcher.services.explorers.blnscan import BlnscanAdapter
from wallet_watcher.services.explorers.chainz import ChainzAdapter

logger = structlog.get_logger()

BLNSCAN_COIN = "bln"


class AdapterRegistry:
    """Registry of explorer adapters keyed by CoinId."""

    def __init__(self):
        self._adapters: Dict[str, ExplorerAdapter] = {}
        self._frozen = False

    def register(self, adapter: ExplorerAdapter) -> None:
        """Register an adapter for its coin."""
        if self._frozen:
            raise RuntimeError("AdapterRegistry is frozen; register adapters before startup completes")
        if adapter.coin in self._adapters:
            logger.warning(
                "Replacing explorer adapter",
                coin=adapter.coin,
                old=repr(self._adapters[adapter.coin]),
                new=repr(adapter),
            )
        self._adapters[adapter.coin] = adapter
        logger.debug("Registered explorer adapter", coin=adapter.coin, provider=adapter.provider)

    def freeze(self) -> "AdapterRegistry":
        self._frozen = True
        return self

    def resolve(self, coin: str) -> Optional[ExplorerAdapter]:
        """Get the adapter serving ``coin``, or None when unsupported."""
        return self._adapters.get(coin.lower())

    def coins(self) -> List[str]:
        return sorted(self._adapters)

    def providers(self) -> List[str]:
        return sorted({a.provider for a in self._adapters.values()})

    def get_catalog(self) -> List[Dict[str, Any]]:
        """Get catalog of registered coins and their providers."""
        return [
            {"coin": coin, "provider": adapter.provider, "adapter": type(adapter).__name__}
            for coin, adapter in sorted(self._adapters.items())
        ]

    def __len__(self) -> int:
        return len(self._adapters)

    def __contains__(self, coin: str) -> bool:
        return coin.lower() in self._adapters


def build_default_registry(client: httpx.AsyncClient, settings: Settings) -> AdapterRegistry:
    """Register every built-in adapter and freeze the registry."""
    registry = AdapterRegistry()
    for ticker in settings.chainz_coins:
        registry.register(
            ChainzAdapter(
                ticker,
                client,
                settings.chainz_base_url,
                retry_after_cap=settings.retry_after_max_wait_seconds,
            )
        )
    registry.register(
        BlnscanAdapter(
            BLNSCAN_COIN,
            client,
            settings.blnscan_base_url,
            retry_after_cap=settings.retry_after_max_wait_seconds,
        )
    )
    logger.info("Explorer registry ready", coins=registry.coins(), providers=registry.providers())
    return registry.freeze()
