"""In-memory wallet state store.

Single owner of every WalletState. The scheduler writes fetch outcomes, the
evaluator writes alert flags, and the API reads snapshots. A single coarse
lock guards all entries; no method awaits while holding it.
"""

import threading
from dataclasses import replace
from typing import Dict, List, Optional

import structlog

from wallet_watcher.models.wallet import ActivityRecord, WalletId, WalletState
from wallet_watcher.services.explorers.base import FetchError, FetchErrorKind

logger = structlog.get_logger()


class WalletStateStore:
    """Wallet identity -> WalletState.

    Readers always receive copies; mutation goes through the methods below.
    """

    def __init__(self):
        self._states: Dict[WalletId, WalletState] = {}
        self._lock = threading.Lock()

    def _entry(self, wallet: WalletId) -> WalletState:
        # States are created lazily on first poll attempt and never removed
        state = self._states.get(wallet)
        if state is None:
            state = WalletState(wallet=wallet)
            self._states[wallet] = state
        return state

    def get(self, wallet: WalletId) -> Optional[WalletState]:
        with self._lock:
            state = self._states.get(wallet)
            return replace(state) if state is not None else None

    def snapshot(self) -> Dict[WalletId, WalletState]:
        with self._lock:
            return {wallet: replace(state) for wallet, state in self._states.items()}

    def wallets(self) -> List[WalletId]:
        with self._lock:
            return sorted(self._states)

    def record_attempt(self, wallet: WalletId, at: int) -> WalletState:
        with self._lock:
            state = self._entry(wallet)
            state.last_poll_attempt = at
            return replace(state)

    def apply_success(self, record: ActivityRecord, at: int) -> WalletState:
        """Apply a successful fetch.

        ``current`` only moves forward: a record older than the one held is
        ignored, so outcomes may be applied in any order.
        """
        with self._lock:
            state = self._entry(record.wallet)
            current = state.current
            if current is None or record.last_seen >= current.last_seen:
                state.current = record
            else:
                logger.info(
                    "Explorer reported older activity, keeping newest",
                    wallet=str(record.wallet),
                    kept_last_seen=current.last_seen,
                    reported_last_seen=record.last_seen,
                )

            state.last_poll_attempt = at
            state.last_success_at = at
            state.consecutive_failures = 0
            state.consecutive_not_found = 0
            state.config_suspect = False
            state.last_error_kind = None
            state.last_error = None
            state.next_retry_seconds = None
            return replace(state)

    def apply_failure(self, wallet: WalletId, error: FetchError, at: int, not_found_threshold: int) -> WalletState:
        """Apply a failed fetch. ``current`` is never touched.

        Rate limiting is a provider-wide condition and is counted separately
        from the wallet's own failures.
        """
        with self._lock:
            state = self._entry(wallet)
            state.last_poll_attempt = at
            state.last_error_kind = error.kind.value
            state.last_error = str(error)

            if error.kind == FetchErrorKind.RATE_LIMITED:
                state.rate_limited_count += 1
                return replace(state)

            state.consecutive_failures += 1
            if error.kind == FetchErrorKind.NOT_FOUND:
                state.consecutive_not_found += 1
                if state.consecutive_not_found >= not_found_threshold and not state.config_suspect:
                    state.config_suspect = True
                    logger.warning(
                        "Wallet flagged configuration-suspect",
                        wallet=str(wallet),
                        consecutive_not_found=state.consecutive_not_found,
                    )
            else:
                state.consecutive_not_found = 0
            return replace(state)

    def set_next_retry(self, wallet: WalletId, seconds: Optional[float]) -> None:
        with self._lock:
            self._entry(wallet).next_retry_seconds = seconds

    def transition_alert(self, wallet: WalletId, active: bool) -> bool:
        """Set the staleness alert flag; True only if it actually changed."""
        with self._lock:
            state = self._entry(wallet)
            if state.alert_active == active:
                return False
            state.alert_active = active
            return True

    def transition_failure_alert(self, wallet: WalletId, active: bool) -> bool:
        """Set the persistent-failure alert flag; True only if it actually changed."""
        with self._lock:
            state = self._entry(wallet)
            if state.failure_alert_active == active:
                return False
            state.failure_alert_active = active
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)
