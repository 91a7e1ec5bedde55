"""Crypto wallet watcher: polls block explorers and flags wallets gone silent."""

__version__ = "0.3.0"
