"""BLNScan (blnexplorer.io) explorer adapter.

``GET {base}/api/account/{address}`` returns an object with a ``txns`` list;
each transaction carries ``time`` as an integer or a numeric string.
"""

from typing import Any

from pydantic import ValidationError

from wallet_watcher.models.wallet import ActivityRecord
from wallet_watcher.services.explorers.base import (
    HttpExplorerAdapter,
    MalformedResponseError,
    NotFoundError,
)
from wallet_watcher.services.explorers.response_models import BlnscanAccount


class BlnscanAdapter(HttpExplorerAdapter):
    """BLNScan adapter."""

    provider = "blnscan"

    def build_url(self, address: str) -> str:
        return f"{self.base_url}/api/account/{address}"

    def explorer_url(self, address: str) -> str:
        return f"{self.base_url}/{address}"

    @property
    def logo_url(self) -> str:
        return f"{self.base_url}/favicon.ico"

    def parse(self, address: str, payload: Any) -> ActivityRecord:
        if payload is None:
            raise NotFoundError(f"blnscan has no record of {address}")
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                f"blnscan returned {type(payload).__name__}, expected object"
            )

        try:
            account = BlnscanAccount.model_validate(payload)
        except ValidationError as e:
            raise MalformedResponseError(f"blnscan response invalid: {e}") from e

        if not account.txns:
            raise NotFoundError(f"blnscan reports no transactions for {address}")

        latest = account.latest_time
        if latest is None:
            raise MalformedResponseError(f"blnscan transactions for {address} carry no readable time")

        return self._record(address, latest, account.balance, payload)
