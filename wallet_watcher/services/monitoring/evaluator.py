"""Staleness evaluator.

Decides, per wallet, whether the last observed activity is older than the
wallet's expected cadence allows, and emits edge-triggered alerts:

    Fresh -> Stale                      BECAME_STALE
    Stale -> Fresh                      RECOVERED
    no baseline, failures >= threshold  FETCH_FAILURE_PERSISTED

Re-evaluating a wallet without a state change never repeats an alert.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

import structlog

from wallet_watcher.models.alert import AlertEvent, AlertKind
from wallet_watcher.models.wallet import WalletConfig, WalletId, WalletState
from wallet_watcher.services.monitoring.state_store import WalletStateStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class EvaluationAnomaly:
    """Wallet could not be judged because no activity was ever recorded.

    Reported alongside the evaluation, never raised.
    """
    wallet: WalletId
    reason: str
    consecutive_failures: int = 0


@dataclass
class EvaluationResult:
    """Outcome of evaluating one wallet."""
    wallet: WalletId
    stale: Optional[bool] = None
    age_seconds: Optional[float] = None
    threshold_seconds: float = 0.0
    events: List[AlertEvent] = field(default_factory=list)
    anomaly: Optional[EvaluationAnomaly] = None


class StalenessEvaluator:
    """Compares observed activity against each wallet's expected cadence."""

    def __init__(
        self,
        store: WalletStateStore,
        grace_multiplier: float = 1.5,
        failure_alert_threshold: int = 5,
        clock: Callable[[], float] = time.time,
    ):
        if grace_multiplier < 1.0:
            raise ValueError("grace_multiplier must be >= 1.0")
        self.store = store
        self.grace_multiplier = grace_multiplier
        self.failure_alert_threshold = failure_alert_threshold
        self._clock = clock

    def threshold_seconds(self, wallet: WalletConfig) -> float:
        return wallet.expected_interval.total_seconds() * self.grace_multiplier

    def is_stale(self, wallet: WalletConfig, last_seen: int, now: float) -> bool:
        return now - last_seen > self.threshold_seconds(wallet)

    def evaluate(self, wallet: WalletConfig, now: Optional[float] = None) -> EvaluationResult:
        """Evaluate one wallet and apply any alert transition to the store."""
        now = self._clock() if now is None else now
        wallet_id = wallet.id
        result = EvaluationResult(wallet=wallet_id, threshold_seconds=self.threshold_seconds(wallet))

        state = self.store.get(wallet_id)
        if state is None or state.current is None:
            return self._evaluate_without_baseline(wallet, state, now, result)

        # A baseline exists now, so any failure alert is over
        self.store.transition_failure_alert(wallet_id, False)

        last_seen = state.current.last_seen
        result.age_seconds = now - last_seen
        result.stale = self.is_stale(wallet, last_seen, now)

        if self.store.transition_alert(wallet_id, result.stale):
            kind = AlertKind.BECAME_STALE if result.stale else AlertKind.RECOVERED
            result.events.append(self._event(wallet, state, kind, now))
            logger.info(
                "Wallet staleness changed",
                wallet=str(wallet_id),
                kind=kind.value,
                age_hours=round(result.age_seconds / 3600, 2),
                threshold_hours=round(result.threshold_seconds / 3600, 2),
            )
        return result

    def evaluate_all(self, wallets: Iterable[WalletConfig], now: Optional[float] = None) -> List[EvaluationResult]:
        now = self._clock() if now is None else now
        return [self.evaluate(wallet, now) for wallet in wallets]

    def _evaluate_without_baseline(
        self,
        wallet: WalletConfig,
        state: Optional[WalletState],
        now: float,
        result: EvaluationResult,
    ) -> EvaluationResult:
        failures = state.consecutive_failures if state else 0
        result.anomaly = EvaluationAnomaly(
            wallet=wallet.id,
            reason="no activity recorded yet" if state else "not polled yet",
            consecutive_failures=failures,
        )
        logger.debug("Wallet has no activity baseline", wallet=str(wallet.id), consecutive_failures=failures)

        if state is not None and failures >= self.failure_alert_threshold:
            if self.store.transition_failure_alert(wallet.id, True):
                result.events.append(self._event(wallet, state, AlertKind.FETCH_FAILURE_PERSISTED, now))
                logger.warning(
                    "Wallet fetch failures persisted",
                    wallet=str(wallet.id),
                    consecutive_failures=failures,
                    config_suspect=state.config_suspect,
                    last_error=state.last_error,
                )
        return result

    def _event(self, wallet: WalletConfig, state: WalletState, kind: AlertKind, now: float) -> AlertEvent:
        return AlertEvent(
            wallet=wallet.id,
            kind=kind,
            emitted_at=int(now),
            observed_last_seen=state.current.last_seen if state.current else None,
            label=wallet.label,
            consecutive_failures=state.consecutive_failures,
            config_suspect=state.config_suspect,
        )
