"""Chainz (chainz.cryptoid.info) explorer adapter.

One Chainz deployment serves many coins, addressed by lower-case ticker:
``GET {base}/{ticker}/api.dws?q=addressinfo&a={address}`` returns an object
with ``balance`` and ``lastBlockTimestamp`` (epoch seconds).
"""

from typing import Any

from pydantic import ValidationError

from wallet_watcher.models.wallet import ActivityRecord
from wallet_watcher.services.explorers.base import (
    HttpExplorerAdapter,
    MalformedResponseError,
    NotFoundError,
)
from wallet_watcher.services.explorers.response_models import ChainzAddressInfo


class ChainzAdapter(HttpExplorerAdapter):
    """Chainz adapter for a single ticker."""

    provider = "chainz"

    def build_url(self, address: str) -> str:
        return f"{self.base_url}/{self.coin}/api.dws?q=addressinfo&a={address}"

    def explorer_url(self, address: str) -> str:
        return f"{self.base_url}/{self.coin}/address.dws?{address}.htm"

    @property
    def logo_url(self) -> str:
        return f"{self.base_url}/logo/{self.coin}.png"

    def parse(self, address: str, payload: Any) -> ActivityRecord:
        # Chainz answers unknown addresses with a JSON null
        if payload is None:
            raise NotFoundError(f"chainz/{self.coin} has no record of {address}")
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"chainz/{self.coin} returned {type(payload).__name__}, expected object"
            )

        try:
            info = ChainzAddressInfo.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(f"chainz/{self.coin} response invalid: {e}") from e

        if info.last_block_timestamp is None:
            raise NotFoundError(f"chainz/{self.coin} reports no activity for {address}")

        return self._record(address, info.last_block_timestamp, info.balance, payload)
