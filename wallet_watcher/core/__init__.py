# Core module
from wallet_watcher.core.config import ConfigurationError, Settings, get_settings

__all__ = ["get_settings", "Settings", "ConfigurationError"]
