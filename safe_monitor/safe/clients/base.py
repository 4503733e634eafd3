"""
Base Safe API client interface.

Defines the contract that all pending-transaction sources must implement,
the canonical PendingTransaction record and the source error taxonomy.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field
from web3 import Web3


class PendingTransaction(BaseModel):
    """A not-yet-executed Safe transaction as observed at polling time."""

    safe_tx_hash: str
    to: str = ""
    value: str = "0"
    data: Optional[str] = None
    method: Optional[str] = None
    operation: int = 0
    nonce: int = 0
    confirmations: int = Field(default=0, ge=0)
    confirmations_required: int = Field(default=0, ge=0)
    confirmed_signers: List[str] = Field(default_factory=list)
    submission_date: Optional[datetime] = None

    @property
    def needs_signatures(self) -> bool:
        return self.confirmations < self.confirmations_required

    @property
    def sort_key(self) -> tuple[int, str]:
        """Processing order within a wallet: nonce, then hash."""
        return (self.nonce, self.safe_tx_hash)


class SafeAPIError(Exception):
    """Base exception for Safe API client errors."""

    pass


class SafeConnectionError(SafeAPIError):
    """Raised when the Safe API is unreachable, times out or returns 5xx."""

    pass


class SafeAuthenticationError(SafeAPIError):
    """Raised when the Safe API rejects the credentials."""

    pass


class SafeRateLimitError(SafeAPIError):
    """Raised when the Safe API rate limit is exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class SafeResponseError(SafeAPIError):
    """Raised when the Safe API returns a payload we cannot interpret."""

    pass


class SafeNotFoundError(SafeAPIError):
    """Raised when the Safe does not exist on the requested chain."""

    pass


TRANSIENT_ERRORS = (SafeConnectionError, SafeRateLimitError)


def to_checksum(address: str) -> str:
    """EIP-55 checksum an address; the Safe APIs reject other casings."""
    try:
        return Web3.to_checksum_address(address)
    except ValueError as e:
        raise SafeResponseError(f"Invalid address {address!r}: {e}") from e


class BaseSafeClient(ABC):
    """
    Abstract base class for pending-transaction sources.

    Implementations must resolve pagination before returning and must take
    confirmation counts and thresholds from the same snapshot.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: API authentication key
            base_url: Base URL override for the API
            timeout: Request timeout in seconds
            http_client: Shared client (mainly for tests with a mock transport)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self._http_client = http_client

    @abstractmethod
    async def fetch_pending(
        self, chain_id: int, address: str
    ) -> List[PendingTransaction]:
        """
        Fetch every pending transaction of a Safe.

        Raises:
            SafeConnectionError: If the API is unreachable
            SafeAuthenticationError: If authentication fails
            SafeRateLimitError: If rate limit exceeded
            SafeResponseError: If the payload is malformed
        """
        pass

    @abstractmethod
    def get_source_name(self) -> str:
        """Source identifier (e.g., 'transaction_service', 'mock')."""
        pass

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """GET a JSON object, mapping transport and HTTP failures to SafeAPIError."""
        try:
            response = await client.get(url, params=params, headers=self._headers())
        except httpx.TimeoutException as e:
            raise SafeConnectionError(f"Timeout calling {url}") from e
        except httpx.HTTPError as e:
            raise SafeConnectionError(f"Failed to reach {url}: {e}") from e

        status = response.status_code
        if status in (401, 403):
            raise SafeAuthenticationError(f"Safe API rejected credentials ({status})")
        if status == 404:
            raise SafeNotFoundError(f"Not found: {url}")
        if status == 429:
            retry_after = response.headers.get("retry-after", "")
            raise SafeRateLimitError(
                "Safe API rate limit exceeded",
                retry_after=float(retry_after) if retry_after.isdigit() else None,
            )
        if status >= 500:
            raise SafeConnectionError(f"Safe API returned {status}")
        if status >= 400:
            raise SafeAPIError(f"Safe API returned {status}: {response.text[:200]}")

        try:
            payload = response.json()
        except ValueError as e:
            raise SafeResponseError(f"Invalid JSON from {url}") from e

        if not isinstance(payload, dict):
            raise SafeResponseError(f"Expected a JSON object from {url}")
        return payload
