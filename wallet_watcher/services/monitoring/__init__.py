"""Wallet monitoring: state store, staleness evaluation, rate limits, alert sinks."""

from wallet_watcher.services.monitoring.evaluator import (
    EvaluationAnomaly,
    EvaluationResult,
    StalenessEvaluator,
)
from wallet_watcher.services.monitoring.rate_limiter import ProviderLimiter, ProviderLimiters
from wallet_watcher.services.monitoring.sinks import AlertHistory, AlertSink, LoggingAlertSink
from wallet_watcher.services.monitoring.state_store import WalletStateStore

__all__ = [
    "WalletStateStore",
    "StalenessEvaluator",
    "EvaluationResult",
    "EvaluationAnomaly",
    "ProviderLimiter",
    "ProviderLimiters",
    "AlertSink",
    "AlertHistory",
    "LoggingAlertSink",
]
