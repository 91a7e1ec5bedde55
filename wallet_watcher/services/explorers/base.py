"""Explorer adapter contract and shared HTTP plumbing.

Every supported block explorer is an ExplorerAdapter that turns a bare wallet
address into a normalized ActivityRecord. Adapters hold no mutable state and
are safe to share across concurrent polls.

The HttpExplorerAdapter base maps transport and HTTP outcomes onto the
FetchError hierarchy:
- 404 -> NotFoundError
- 429 -> RateLimitedError (Retry-After honoured, capped)
- other non-200 status, timeouts, transport failures -> NetworkError
- body that is not JSON -> MalformedResponseError
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any, Optional

import httpx
import structlog

from wallet_watcher.models.wallet import ActivityRecord, WalletId

logger = structlog.get_logger()


class FetchErrorKind(str, Enum):
    """Classification of a failed fetch."""
    NETWORK = "network"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    RATE_LIMITED = "rate_limited"


class FetchError(Exception):
    """Explorer fetch failed."""

    kind: FetchErrorKind = FetchErrorKind.NETWORK
    retryable: bool = True

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NetworkError(FetchError):
    """Transport failure, timeout, or unexpected HTTP status."""
    kind = FetchErrorKind.NETWORK


class NotFoundError(FetchError):
    """Address unknown to the provider. Retrying will not help."""
    kind = FetchErrorKind.NOT_FOUND
    retryable = False


class MalformedResponseError(FetchError):
    """Provider response could not be parsed."""
    kind = FetchErrorKind.MALFORMED


class RateLimitedError(FetchError):
    """Provider asked us to back off."""
    kind = FetchErrorKind.RATE_LIMITED

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ExplorerAdapter(ABC):
    """Capability contract for one explorer serving one coin."""

    #: Provider name; wallets on the same provider share a rate limiter.
    provider: str = ""

    def __init__(self, coin: str):
        self.coin = coin.lower()

    @abstractmethod
    async def fetch_activity(self, address: str) -> ActivityRecord:
        """Fetch the latest activity for ``address``.

        Raises:
            FetchError: one of its subclasses, never a bare transport error.
        """
        pass

    def explorer_url(self, address: str) -> str:
        """Human-facing explorer page for ``address``."""
        return ""

    @property
    def logo_url(self) -> str:
        return ""

    def wallet_id(self, address: str) -> WalletId:
        return WalletId(coin=self.coin, address=address)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(coin={self.coin!r})"


class HttpExplorerAdapter(ExplorerAdapter):
    """Adapter for explorers exposing a JSON-over-HTTP API.

    The shared ``httpx.AsyncClient`` is owned by the WatcherContext and only
    borrowed here.
    """

    def __init__(
        self,
        coin: str,
        client: httpx.AsyncClient,
        base_url: str,
        retry_after_cap: float = 900.0,
    ):
        super().__init__(coin)
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.retry_after_cap = retry_after_cap

    @abstractmethod
    def build_url(self, address: str) -> str:
        """Provider-specific API URL for ``address``."""
        pass

    @abstractmethod
    def parse(self, address: str, payload: Any) -> ActivityRecord:
        """Turn a decoded JSON payload into an ActivityRecord."""
        pass

    async def fetch_activity(self, address: str) -> ActivityRecord:
        payload = await self._get_json(self.build_url(address))
        return self.parse(address, payload)

    def _record(self, address: str, last_seen: int, balance: Optional[float], payload: Any) -> ActivityRecord:
        return ActivityRecord(
            wallet=self.wallet_id(address),
            last_seen=last_seen,
            balance=balance,
            raw_provider_payload=payload,
            fetched_at=int(time.time()),
        )

    def _parse_retry_after(self, response: httpx.Response) -> Optional[float]:
        """Parse Retry-After header from response.

        Handles both delta-seconds and HTTP-date formats.
        Returns seconds to wait (capped), or None if not present/parseable.
        """
        retry_after = response.headers.get("Retry-After")
        if not retry_after:
            return None

        seconds: Optional[float] = None
        try:
            seconds = float(int(retry_after))
        except ValueError:
            try:
                dt = parsedate_to_datetime(retry_after)
                # "-0000" dates come back naive; they are UTC
                if dt.tzinfo is None:
                    dt = dt.replace(tzinfo=timezone.utc)
                seconds = max(0.0, (dt - datetime.now(timezone.utc)).total_seconds())
            except (ValueError, TypeError):
                return None

        return min(seconds, self.retry_after_cap)

    async def _get_json(self, url: str) -> Any:
        try:
            response = await self.client.get(url)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.provider} request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{self.provider} request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"{self.provider} does not know this address", status_code=404)

        if response.status_code == 429:
            retry_after = self._parse_retry_after(response)
            logger.warning(
                "Explorer rate limit hit",
                provider=self.provider,
                coin=self.coin,
                retry_after_seconds=retry_after,
            )
            raise RateLimitedError(f"{self.provider} rate limit exceeded", retry_after=retry_after)

        if response.status_code != 200:
            body = response.text[:200]
            raise NetworkError(
                f"{self.provider} API error {response.status_code}: {body}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.provider} returned a non-JSON body: {response.text[:100]!r}"
            ) from e
