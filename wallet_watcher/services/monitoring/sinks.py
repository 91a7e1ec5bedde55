"""Alert sinks.

The core hands every AlertEvent to each configured sink exactly once. Sinks
may be slow or fail; the scheduler isolates those failures from polling.
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional

import structlog

from wallet_watcher.models.alert import AlertEvent, AlertKind

logger = structlog.get_logger()


class AlertSink(ABC):
    """Consumer of alert events."""

    @abstractmethod
    async def deliver(self, event: AlertEvent) -> None:
        pass


class LoggingAlertSink(AlertSink):
    """Writes alerts to the structured log."""

    async def deliver(self, event: AlertEvent) -> None:
        log = logger.info if event.kind == AlertKind.RECOVERED else logger.warning
        log(
            "Wallet alert",
            title=event.title,
            wallet=str(event.wallet),
            kind=event.kind.value,
            observed_last_seen=event.observed_last_seen,
            consecutive_failures=event.consecutive_failures,
            config_suspect=event.config_suspect,
        )


class AlertHistory(AlertSink):
    """Bounded in-memory history of recent alerts, newest last."""

    def __init__(self, maxlen: int = 200):
        self._events: Deque[AlertEvent] = deque(maxlen=maxlen)

    async def deliver(self, event: AlertEvent) -> None:
        self._events.append(event)

    def recent(self, kind: Optional[AlertKind] = None, limit: Optional[int] = None) -> List[AlertEvent]:
        """Recent events, newest first."""
        events = [e for e in reversed(self._events) if kind is None or e.kind == kind]
        return events[:limit] if limit is not None else events

    def __len__(self) -> int:
        return len(self._events)
