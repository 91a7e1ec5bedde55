"""Watcher context: every long-lived collaborator, built at startup.

The context owns the shared HTTP client and is the only place components
are wired together. It is created by the application lifespan (or directly
by tests) and closed on shutdown.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import httpx
import structlog

from wallet_watcher import __version__
from wallet_watcher.core.config import Settings
from wallet_watcher.core.metrics import ProviderMetrics
from wallet_watcher.core.scheduler import PollingScheduler
from wallet_watcher.core.wallets import load_wallet_configs, validate_wallets
from wallet_watcher.models.wallet import WalletConfig
from wallet_watcher.services.explorers.registry import AdapterRegistry, build_default_registry
from wallet_watcher.services.monitoring.evaluator import StalenessEvaluator
from wallet_watcher.services.monitoring.rate_limiter import ProviderLimiters
from wallet_watcher.services.monitoring.sinks import AlertHistory, AlertSink, LoggingAlertSink
from wallet_watcher.services.monitoring.state_store import WalletStateStore

logger = structlog.get_logger()


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared HTTP client for every explorer adapter."""
    timeout = httpx.Timeout(
        connect=settings.api_connect_timeout_seconds,
        read=settings.api_read_timeout_seconds,
        write=10.0,
        pool=5.0,
    )
    return httpx.AsyncClient(
        timeout=timeout,
        headers={"Accept": "application/json", "User-Agent": settings.user_agent},
        follow_redirects=True,
    )


@dataclass
class WatcherContext:
    """Wired-up watcher components."""
    settings: Settings
    registry: AdapterRegistry
    store: WalletStateStore
    evaluator: StalenessEvaluator
    scheduler: PollingScheduler
    history: AlertHistory
    metrics: ProviderMetrics
    http_client: Optional[httpx.AsyncClient] = None
    wallets: List[WalletConfig] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        settings: Settings,
        wallets: Sequence[WalletConfig],
        registry: Optional[AdapterRegistry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        extra_sinks: Sequence[AlertSink] = (),
    ) -> "WatcherContext":
        """Validate ``wallets`` and wire every component.

        Raises:
            ConfigurationError: if any wallet fails validation.
        """
        if registry is None:
            http_client = http_client or create_http_client(settings)
            registry = build_default_registry(http_client, settings)

        validated = validate_wallets(wallets, registry)

        store = WalletStateStore()
        evaluator = StalenessEvaluator(
            store,
            grace_multiplier=settings.grace_multiplier,
            failure_alert_threshold=settings.failure_alert_threshold,
        )
        history = AlertHistory(maxlen=settings.alert_history_size)
        metrics = ProviderMetrics()
        scheduler = PollingScheduler(
            settings=settings,
            registry=registry,
            store=store,
            evaluator=evaluator,
            wallets=validated,
            sinks=[LoggingAlertSink(), history, *extra_sinks],
            metrics=metrics,
            limiters=ProviderLimiters(
                max_concurrent=settings.provider_max_concurrency,
                requests_per_minute=settings.provider_rate_limit_per_minute,
            ),
        )
        return cls(
            settings=settings,
            registry=registry,
            store=store,
            evaluator=evaluator,
            scheduler=scheduler,
            history=history,
            metrics=metrics,
            http_client=http_client,
            wallets=list(validated),
        )

    @classmethod
    async def from_settings(cls, settings: Settings) -> "WatcherContext":
        """Load the wallet file named in settings and build the context."""
        wallets = load_wallet_configs(settings.coins_file, settings.default_expected_interval_hours)
        http_client = create_http_client(settings)
        try:
            return cls.build(settings, wallets, http_client=http_client)
        except Exception:
            await http_client.aclose()
            raise

    def start(self) -> None:
        logger.info("Starting wallet watcher", version=__version__, wallets=len(self.wallets))
        self.scheduler.start()

    async def aclose(self) -> None:
        await self.scheduler.stop()
        if self.http_client is not None:
            await self.http_client.aclose()
            self.http_client = None
        logger.info("Wallet watcher stopped")

