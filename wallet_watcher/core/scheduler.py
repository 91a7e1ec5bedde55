"""APScheduler-driven wallet polling.

Each configured wallet gets its own interval job (``max_instances=1``,
``coalesce=True``), so polls for one wallet never overlap while different
wallets poll concurrently. Fetches are bounded by a global semaphore and by
a shared limiter per provider.

Poll tasks never touch wallet state directly: they put a PollOutcome on a
queue, and a single consumer applies outcomes in completion order, runs the
staleness evaluator and hands alerts to the sinks. Failed fetches back the
wallet's job off exponentially; the next success restores its interval.
"""

import asyncio
import random
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from wallet_watcher.core.config import Settings
from wallet_watcher.core.metrics import ProviderMetrics
from wallet_watcher.models.alert import AlertEvent
from wallet_watcher.models.wallet import ActivityRecord, WalletConfig, WalletId
from wallet_watcher.services.explorers.base import (
    ExplorerAdapter,
    FetchError,
    FetchErrorKind,
    MalformedResponseError,
    NetworkError,
    RateLimitedError,
)
from wallet_watcher.services.explorers.registry import AdapterRegistry
from wallet_watcher.services.monitoring.evaluator import StalenessEvaluator
from wallet_watcher.services.monitoring.rate_limiter import ProviderLimiter, ProviderLimiters
from wallet_watcher.services.monitoring.sinks import AlertSink
from wallet_watcher.services.monitoring.state_store import WalletStateStore

logger = structlog.get_logger()

EVALUATION_JOB_ID = "staleness_tick"


@dataclass(frozen=True)
class PollOutcome:
    """Result of one fetch, travelling from a poll task to the consumer."""
    wallet: WalletConfig
    provider: str
    completed_at: int
    record: Optional[ActivityRecord] = None
    error: Optional[FetchError] = None

    @property
    def success(self) -> bool:
        return self.record is not None


class PollingScheduler:
    """Periodic poller for every configured wallet."""

    def __init__(
        self,
        settings: Settings,
        registry: AdapterRegistry,
        store: WalletStateStore,
        evaluator: StalenessEvaluator,
        wallets: Iterable[WalletConfig],
        sinks: Sequence[AlertSink] = (),
        metrics: Optional[ProviderMetrics] = None,
        limiters: Optional[ProviderLimiters] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings
        self.registry = registry
        self.store = store
        self.evaluator = evaluator
        self.sinks = list(sinks)
        self.metrics = metrics or ProviderMetrics()
        self.limiters = limiters or ProviderLimiters(
            max_concurrent=settings.provider_max_concurrency,
            requests_per_minute=settings.provider_rate_limit_per_minute,
        )
        self._clock = clock
        self._wallets: Dict[WalletId, WalletConfig] = {w.id: w for w in wallets}
        self._pool = asyncio.Semaphore(settings.max_concurrency)
        self._outcomes: "asyncio.Queue[PollOutcome]" = asyncio.Queue()
        self._in_flight: Set[WalletId] = set()
        self._backed_off: Set[WalletId] = set()
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._consumer: Optional["asyncio.Task[None]"] = None
        self._stopping = False
        self._scheduler = AsyncIOScheduler(timezone="UTC")

    # ==================== Wallets & timing ====================

    @property
    def wallets(self) -> List[WalletConfig]:
        return [self._wallets[w] for w in sorted(self._wallets)]

    def get_wallet(self, wallet_id: WalletId) -> Optional[WalletConfig]:
        return self._wallets.get(wallet_id)

    @property
    def running(self) -> bool:
        return self._scheduler.running and not self._stopping

    @property
    def stopping(self) -> bool:
        return self._stopping

    def poll_interval(self, wallet: WalletConfig) -> float:
        """Seconds between polls of ``wallet`` when healthy."""
        if wallet.poll_interval is not None:
            return wallet.poll_interval.total_seconds()
        return float(self.settings.poll_interval_seconds)

    def compute_retry_delay(self, consecutive_failures: int, error: FetchError) -> Optional[float]:
        """Delay before the next poll after a failure, or None for the normal interval.

        RateLimited uses the provider's suggestion when present. NotFound keeps
        the normal cadence since retrying sooner cannot help. Network and
        Malformed use exponential backoff with jitter, capped at the maximum.
        """
        settings = self.settings
        if isinstance(error, RateLimitedError):
            if error.retry_after is not None and error.retry_after > 0:
                return min(error.retry_after, settings.retry_after_max_wait_seconds)
            return settings.rate_limit_default_delay_seconds

        if error.kind == FetchErrorKind.NOT_FOUND:
            return None

        attempt = max(consecutive_failures, 1) - 1
        delay = settings.retry_initial_backoff_seconds * (settings.retry_backoff_multiplier ** attempt)
        delay = min(delay, settings.retry_max_backoff_seconds)
        if settings.retry_jitter_ratio > 0:
            delay += random.uniform(0, settings.retry_jitter_ratio * delay)
        return min(delay, settings.retry_max_backoff_seconds)

    # ==================== Polling ====================

    def _claim(self, wallet_id: WalletId) -> bool:
        if wallet_id not in self._wallets:
            raise KeyError(f"Unknown wallet {wallet_id}")
        if self._stopping:
            return False
        if wallet_id in self._in_flight:
            logger.debug("Poll already in flight, skipping", wallet=str(wallet_id))
            return False
        self._in_flight.add(wallet_id)
        return True

    async def poll_wallet(self, wallet_id: WalletId) -> bool:
        """Fetch one wallet and queue the outcome.

        Returns False when the poll was skipped (already in flight or
        shutting down) or its result was discarded.
        """
        if not self._claim(wallet_id):
            return False
        return await self._poll_claimed(self._wallets[wallet_id])

    def poll_now(self, wallet_id: WalletId) -> bool:
        """Start an immediate poll in the background. False if one is already running."""
        if not self._claim(wallet_id):
            return False
        task = asyncio.create_task(self._poll_claimed(self._wallets[wallet_id]))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _poll_claimed(self, wallet: WalletConfig) -> bool:
        try:
            adapter = self.registry.resolve(wallet.coin)
            if adapter is None:
                # validate_wallets() rules this out before startup
                raise KeyError(f"No adapter for coin {wallet.coin!r}")
            limiter = self.limiters.get(adapter.provider)
            self.store.record_attempt(wallet.id, int(self._clock()))
            # Provider pauses and budgets are waited out before taking a global slot
            async with limiter.slot():
                async with self._pool:
                    outcome = await self._fetch(adapter, limiter, wallet)
        finally:
            self._in_flight.discard(wallet.id)

        if self._stopping:
            logger.info("Discarding poll result after shutdown", wallet=str(wallet.id))
            return False
        await self._outcomes.put(outcome)
        return True

    async def _fetch(self, adapter: ExplorerAdapter, limiter: ProviderLimiter, wallet: WalletConfig) -> PollOutcome:
        timeout = self.settings.fetch_timeout_seconds
        record: Optional[ActivityRecord] = None
        error: Optional[FetchError] = None
        start = time.monotonic()

        try:
            record = await asyncio.wait_for(adapter.fetch_activity(wallet.address), timeout=timeout)
        except asyncio.TimeoutError:
            error = NetworkError(f"{adapter.provider} fetch timed out after {timeout}s")
        except FetchError as e:
            error = e
        except Exception as e:
            if self._stopping:
                logger.debug("Adapter failed during shutdown", wallet=str(wallet.id), error=str(e))
            else:
                logger.exception("Explorer adapter raised unexpectedly", wallet=str(wallet.id), provider=adapter.provider)
            error = MalformedResponseError(f"{adapter.provider} adapter error: {e}")

        latency_ms = (time.monotonic() - start) * 1000

        if isinstance(error, RateLimitedError):
            limiter.pause(
                min(error.retry_after, self.settings.retry_after_max_wait_seconds)
                if error.retry_after else self.settings.rate_limit_default_delay_seconds
            )

        await self.metrics.record_call(
            provider=adapter.provider,
            latency_ms=latency_ms,
            success=error is None,
            error_kind=error.kind.value if error else None,
            error_message=str(error) if error else None,
        )

        return PollOutcome(
            wallet=wallet,
            provider=adapter.provider,
            completed_at=int(self._clock()),
            record=record,
            error=error,
        )

    # ==================== Applying outcomes ====================

    async def process_pending(self) -> int:
        """Apply every queued outcome now. Returns how many were applied."""
        applied = 0
        while True:
            try:
                outcome = self._outcomes.get_nowait()
            except asyncio.QueueEmpty:
                return applied
            try:
                if await self._apply_outcome(outcome):
                    applied += 1
            finally:
                self._outcomes.task_done()

    async def _consume_outcomes(self) -> None:
        while True:
            outcome = await self._outcomes.get()
            try:
                await self._apply_outcome(outcome)
            except Exception as e:
                logger.error("Failed to apply poll outcome", wallet=str(outcome.wallet.id), error=str(e))
            finally:
                self._outcomes.task_done()

    async def _apply_outcome(self, outcome: PollOutcome) -> bool:
        if self._stopping:
            return False

        wallet = outcome.wallet
        delay: Optional[float] = None

        if outcome.record is not None:
            state = self.store.apply_success(outcome.record, outcome.completed_at)
            logger.debug(
                "Wallet polled",
                wallet=str(wallet.id),
                last_seen=state.current.last_seen if state.current else None,
            )
        else:
            error = outcome.error or NetworkError("fetch produced neither record nor error")
            state = self.store.apply_failure(
                wallet.id,
                error,
                outcome.completed_at,
                not_found_threshold=self.settings.not_found_suspect_threshold,
            )
            delay = self.compute_retry_delay(state.consecutive_failures, error)
            logger.warning(
                "Wallet poll failed",
                wallet=str(wallet.id),
                provider=outcome.provider,
                error_kind=error.kind.value,
                error=str(error),
                consecutive_failures=state.consecutive_failures,
                retry_in_seconds=round(delay, 1) if delay is not None else None,
            )

        self.store.set_next_retry(wallet.id, delay)
        self._reschedule(wallet, delay)

        result = self.evaluator.evaluate(wallet, now=self._clock())
        await self._deliver(result.events)
        return True

    async def _deliver(self, events: Iterable[AlertEvent]) -> None:
        for event in events:
            for sink in self.sinks:
                try:
                    await sink.deliver(event)
                except Exception as e:
                    logger.error(
                        "Alert sink failed",
                        sink=type(sink).__name__,
                        wallet=str(event.wallet),
                        kind=event.kind.value,
                        error=str(e),
                    )

    async def run_evaluation_tick(self) -> int:
        """Evaluate every wallet and deliver resulting alerts. Returns alert count."""
        if self._stopping:
            return 0
        results = self.evaluator.evaluate_all(self.wallets, now=self._clock())
        events = [event for result in results for event in result.events]
        anomalies = sum(1 for result in results if result.anomaly is not None)
        await self._deliver(events)
        logger.debug("Staleness tick", wallets=len(results), alerts=len(events), without_baseline=anomalies)
        return len(events)

    # ==================== Job management ====================

    @staticmethod
    def _job_id(wallet_id: WalletId) -> str:
        return f"poll:{wallet_id}"

    async def _run_scheduled_poll(self, wallet_id: WalletId) -> None:
        # Tracked so stop() can cancel it before the HTTP client closes
        task = asyncio.current_task()
        if task is not None:
            self._tasks.add(task)
        try:
            await self.poll_wallet(wallet_id)
        except Exception as e:
            logger.error("Scheduled poll failed", wallet=str(wallet_id), error=str(e))
        finally:
            if task is not None:
                self._tasks.discard(task)

    async def _run_scheduled_evaluation(self) -> None:
        try:
            await self.run_evaluation_tick()
        except Exception as e:
            logger.error("Scheduled evaluation failed", error=str(e))

    def _reschedule(self, wallet: WalletConfig, delay: Optional[float]) -> None:
        """Back the wallet's job off by ``delay``, or restore its interval after a backoff."""
        if not self._scheduler.running:
            return
        job = self._scheduler.get_job(self._job_id(wallet.id))
        if job is None:
            return

        interval = self.poll_interval(wallet)
        if delay is not None:
            next_run = datetime.now(timezone.utc) + timedelta(seconds=delay)
            job.reschedule(trigger=IntervalTrigger(seconds=interval, start_date=next_run, timezone="UTC"))
            self._backed_off.add(wallet.id)
            logger.info("Backing off wallet poll", wallet=str(wallet.id), next_poll=next_run.isoformat())
        elif wallet.id in self._backed_off:
            job.reschedule(trigger=IntervalTrigger(seconds=interval, timezone="UTC"))
            self._backed_off.discard(wallet.id)
            logger.info("Wallet poll back to normal interval", wallet=str(wallet.id), interval_seconds=interval)

    def start(self) -> None:
        """Register one job per wallet plus the evaluation tick, and start.

        Must be called from a running event loop.
        """
        if self._scheduler.running:
            logger.warning("Scheduler already running")
            return

        now = datetime.now(timezone.utc)
        for wallet in self.wallets:
            self._scheduler.add_job(
                self._run_scheduled_poll,
                trigger=IntervalTrigger(seconds=self.poll_interval(wallet), timezone="UTC"),
                id=self._job_id(wallet.id),
                name=f"Poll {wallet.display_name}",
                args=[wallet.id],
                next_run_time=now,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )

        self._scheduler.add_job(
            self._run_scheduled_evaluation,
            trigger=IntervalTrigger(seconds=self.settings.evaluation_interval_seconds, timezone="UTC"),
            id=EVALUATION_JOB_ID,
            name="Staleness evaluation",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

        self._consumer = asyncio.create_task(self._consume_outcomes())
        self._scheduler.start()
        logger.info(
            "Polling scheduler started",
            wallets=len(self._wallets),
            poll_interval=f"{self.settings.poll_interval_seconds}s",
            evaluation_interval=f"{self.settings.evaluation_interval_seconds}s",
            max_concurrency=self.settings.max_concurrency,
        )

    async def stop(self) -> None:
        """Stop polling. No outcome is applied once this has been called."""
        self._stopping = True

        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)

        tasks = list(self._tasks)
        if self._consumer is not None:
            tasks.append(self._consumer)
            self._consumer = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        dropped = 0
        while not self._outcomes.empty():
            self._outcomes.get_nowait()
            self._outcomes.task_done()
            dropped += 1

        logger.info("Polling scheduler stopped", dropped_outcomes=dropped)

    def get_status(self) -> Dict[str, Any]:
        """Scheduler status for health checks."""
        running = self._scheduler.running
        eval_job = self._scheduler.get_job(EVALUATION_JOB_ID) if running else None
        return {
            "running": self.running,
            "stopping": self._stopping,
            "wallet_count": len(self._wallets),
            "job_count": len(self._scheduler.get_jobs()) if running else 0,
            "next_evaluation": (
                eval_job.next_run_time.isoformat() if eval_job and eval_job.next_run_time else None
            ),
            "in_flight": sorted(str(w) for w in self._in_flight),
            "pending_outcomes": self._outcomes.qsize(),
            "backed_off": sorted(str(w) for w in self._backed_off),
            "providers": self.limiters.status(),
        }
