"""Alert events emitted by the staleness evaluator."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from wallet_watcher.models.wallet import WalletId


class AlertKind(str, Enum):
    """Kind of wallet alert transition."""
    BECAME_STALE = "became_stale"
    RECOVERED = "recovered"
    FETCH_FAILURE_PERSISTED = "fetch_failure_persisted"


@dataclass(frozen=True)
class AlertEvent:
    """A single edge-triggered alert for one wallet."""
    wallet: WalletId
    kind: AlertKind
    emitted_at: int
    observed_last_seen: Optional[int] = None
    label: Optional[str] = None
    consecutive_failures: int = 0
    config_suspect: bool = False

    @property
    def title(self) -> str:
        name = self.label or str(self.wallet)
        if self.kind == AlertKind.BECAME_STALE:
            if self.consecutive_failures:
                polls = "failed poll" if self.consecutive_failures == 1 else "failed polls"
                return f"{name} has gone stale (explorer unreachable, {self.consecutive_failures} {polls})"
            return f"{name} has gone stale"
        if self.kind == AlertKind.RECOVERED:
            return f"{name} is active again"
        if self.config_suspect:
            return f"{name} is unknown to its explorer (check configuration)"
        return f"{name} cannot be fetched from its explorer"
