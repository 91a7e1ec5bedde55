"""Wallet list loading and startup validation.

The wallet file is TOML with one ``[[coins]]`` table per wallet:

    [[coins]]
    name = "Litecoin stake"
    ticker = "LTC"
    api = "Chainz"
    address = "ltc1q..."
    expected_interval_hours = 24
    poll_interval_seconds = 600

Every problem found here is a ConfigurationError and stops startup before
any polling begins.
"""

import tomllib
from datetime import timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Set

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from wallet_watcher.core.config import ConfigurationError
from wallet_watcher.models.wallet import WalletConfig, WalletId
from wallet_watcher.services.explorers.registry import AdapterRegistry

logger = structlog.get_logger()

# Ten years of silence / one week between polls
MAX_EXPECTED_INTERVAL_HOURS = 24 * 365 * 10
MAX_POLL_INTERVAL_SECONDS = 7 * 86400


class WalletEntry(BaseModel):
    """One ``[[coins]]`` entry of the wallet file."""
    model_config = ConfigDict(extra="forbid")

    address: str = Field(..., min_length=1)
    ticker: str = Field(..., min_length=1)
    name: Optional[str] = None
    api: Optional[str] = None
    expected_interval_hours: Optional[float] = Field(
        default=None, gt=0, le=MAX_EXPECTED_INTERVAL_HOURS, allow_inf_nan=False
    )
    poll_interval_seconds: Optional[float] = Field(
        default=None, gt=0, le=MAX_POLL_INTERVAL_SECONDS, allow_inf_nan=False
    )

    def to_config(self, default_expected_hours: float) -> WalletConfig:
        hours = self.expected_interval_hours if self.expected_interval_hours is not None else default_expected_hours
        return WalletConfig(
            address=self.address.strip(),
            coin=self.ticker.strip().lower(),
            ticker=self.ticker.strip(),
            label=self.name,
            api=self.api,
            expected_interval=timedelta(hours=hours),
            poll_interval=(
                timedelta(seconds=self.poll_interval_seconds)
                if self.poll_interval_seconds is not None else None
            ),
        )


class WalletFile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    coins: List[WalletEntry] = Field(default_factory=list)


def parse_wallet_configs(text: str, default_expected_hours: float = 24.0, source: str = "<string>") -> List[WalletConfig]:
    """Parse wallet-file TOML text into WalletConfig entries."""
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"{source}: invalid TOML: {e}") from e

    try:
        parsed = WalletFile.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"{source}: invalid wallet entry: {e}") from e

    return [entry.to_config(default_expected_hours) for entry in parsed.coins]


def load_wallet_configs(path: str | Path, default_expected_hours: float = 24.0) -> List[WalletConfig]:
    """Load and parse the wallet file at ``path``."""
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read wallet file {path}: {e}") from e

    wallets = parse_wallet_configs(text, default_expected_hours, source=str(path))
    logger.info("Loaded wallet file", path=str(path), wallets=len(wallets))
    return wallets


def validate_wallets(wallets: Iterable[WalletConfig], registry: AdapterRegistry) -> List[WalletConfig]:
    """Check every wallet against the registry before polling starts.

    Raises:
        ConfigurationError: unknown coin, duplicate (coin, address), invalid
            interval, or an ``api`` that does not match the serving provider.
    """
    seen: Set[WalletId] = set()
    validated = []
    for wallet in wallets:
        if not wallet.address:
            raise ConfigurationError(f"Wallet for coin {wallet.coin!r} has an empty address")

        adapter = registry.resolve(wallet.coin)
        if adapter is None:
            raise ConfigurationError(
                f"No explorer registered for coin {wallet.coin!r} (wallet {wallet.address}); "
                f"supported coins: {', '.join(registry.coins())}"
            )

        if wallet.api is not None and wallet.api.strip().lower() != adapter.provider:
            raise ConfigurationError(
                f"Wallet {wallet.id} asks for api {wallet.api!r} but coin {wallet.coin!r} "
                f"is served by {adapter.provider!r}"
            )

        if wallet.id in seen:
            raise ConfigurationError(f"Duplicate wallet {wallet.id}")
        seen.add(wallet.id)

        if wallet.expected_interval <= timedelta(0):
            raise ConfigurationError(f"Wallet {wallet.id} has a non-positive expected interval")
        if wallet.poll_interval is not None and wallet.poll_interval <= timedelta(0):
            raise ConfigurationError(f"Wallet {wallet.id} has a non-positive poll interval")

        validated.append(wallet)

    return validated
