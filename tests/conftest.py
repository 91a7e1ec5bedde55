"""Pytest configuration and fixtures for wallet watcher tests."""

import asyncio
import os
import sys
import time
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Keep tests independent of any local .env / wallet file
os.environ.setdefault("COINS_FILE", str(project_root / "tests" / "missing-coins.toml"))

from wallet_watcher.models.wallet import ActivityRecord, WalletConfig  # noqa: E402
from wallet_watcher.services.explorers.base import ExplorerAdapter, FetchError  # noqa: E402

HOUR = 3600
NOW = 1_700_000_000

Scripted = Union[int, FetchError]


class FakeClock:
    """Controllable wall clock returning epoch seconds."""

    def __init__(self, now: float = NOW):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter(ExplorerAdapter):
    """Adapter replaying scripted results per address.

    Each scripted item is either a last_seen epoch or a FetchError to raise.
    The final item repeats once the script is exhausted.
    """

    def __init__(
        self,
        coin: str = "ltc",
        provider: str = "fake",
        script: Optional[Dict[str, Sequence[Scripted]]] = None,
        delay: float = 0.0,
        balance: Optional[float] = None,
    ):
        super().__init__(coin)
        self.provider = provider
        self.script: Dict[str, List[Scripted]] = {k: list(v) for k, v in (script or {}).items()}
        self.delay = delay
        self.balance = balance
        self.calls: List[str] = []
        self.concurrent = 0
        self.max_concurrent = 0

    def _next(self, address: str) -> Scripted:
        items = self.script.get(address)
        if not items:
            raise AssertionError(f"No scripted result for {address}")
        return items.pop(0) if len(items) > 1 else items[0]

    async def fetch_activity(self, address: str) -> ActivityRecord:
        self.calls.append(address)
        self.concurrent += 1
        self.max_concurrent = max(self.max_concurrent, self.concurrent)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            result = self._next(address)
        finally:
            self.concurrent -= 1

        if isinstance(result, FetchError):
            raise result
        return ActivityRecord(
            wallet=self.wallet_id(address),
            last_seen=result,
            balance=self.balance,
            fetched_at=int(time.time()),
        )

    def explorer_url(self, address: str) -> str:
        return f"https://explorer.test/{self.coin}/{address}"

    @property
    def logo_url(self) -> str:
        return f"https://explorer.test/{self.coin}.png"


def make_wallet(
    address: str = "LWalletAddress1",
    coin: str = "ltc",
    hours: float = 24,
    label: Optional[str] = None,
    poll_seconds: Optional[float] = None,
    api: Optional[str] = None,
) -> WalletConfig:
    return WalletConfig(
        address=address,
        coin=coin,
        ticker=coin.upper(),
        label=label,
        api=api,
        expected_interval=timedelta(hours=hours),
        poll_interval=timedelta(seconds=poll_seconds) if poll_seconds is not None else None,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    """Deterministic settings: no jitter, generous provider budget, short timeouts."""
    from wallet_watcher.core.config import Settings

    return Settings(
        _env_file=None,
        coins_file="unused.toml",
        poll_interval_seconds=300,
        grace_multiplier=1.5,
        max_concurrency=8,
        provider_max_concurrency=1,
        provider_rate_limit_per_minute=1000,
        fetch_timeout_seconds=1.0,
        retry_initial_backoff_seconds=30,
        retry_backoff_multiplier=2.0,
        retry_max_backoff_seconds=600,
        retry_jitter_ratio=0.0,
        rate_limit_default_delay_seconds=60,
        retry_after_max_wait_seconds=900,
        not_found_suspect_threshold=5,
        failure_alert_threshold=5,
    )


@pytest.fixture
def wallet_factory():
    return make_wallet


@pytest.fixture
def adapter_factory():
    return FakeAdapter


@pytest.fixture
def build_scheduler(settings, clock):
    """Wire a PollingScheduler around fake adapters."""
    from wallet_watcher.core.scheduler import PollingScheduler
    from wallet_watcher.services.explorers.registry import AdapterRegistry
    from wallet_watcher.services.monitoring.evaluator import StalenessEvaluator
    from wallet_watcher.services.monitoring.sinks import AlertHistory
    from wallet_watcher.services.monitoring.state_store import WalletStateStore

    def _build(wallets, adapters, sinks=None, settings_override=None):
        cfg = settings_override or settings
        registry = AdapterRegistry()
        for adapter in adapters:
            registry.register(adapter)
        registry.freeze()
        store = WalletStateStore()
        evaluator = StalenessEvaluator(
            store,
            grace_multiplier=cfg.grace_multiplier,
            failure_alert_threshold=cfg.failure_alert_threshold,
            clock=clock,
        )
        history = AlertHistory()
        scheduler = PollingScheduler(
            settings=cfg,
            registry=registry,
            store=store,
            evaluator=evaluator,
            wallets=wallets,
            sinks=[history] if sinks is None else sinks,
            clock=clock,
        )
        return scheduler

    return _build
