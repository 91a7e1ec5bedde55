# Domain models
from wallet_watcher.models.wallet import ActivityRecord, WalletConfig, WalletId, WalletState
from wallet_watcher.models.alert import AlertEvent, AlertKind

__all__ = [
    "ActivityRecord",
    "WalletConfig",
    "WalletId",
    "WalletState",
    "AlertEvent",
    "AlertKind",
]
