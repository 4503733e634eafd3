"""Safe API client implementations."""

from safe_monitor.safe.clients.base import (
    BaseSafeClient,
    PendingTransaction,
    SafeAPIError,
    SafeAuthenticationError,
    SafeConnectionError,
    SafeNotFoundError,
    SafeRateLimitError,
    SafeResponseError,
)
from safe_monitor.safe.clients.client_gateway import ClientGatewayClient
from safe_monitor.safe.clients.mock_client import MockSafeClient
from safe_monitor.safe.clients.transaction_service import TransactionServiceClient

__all__ = [
    "BaseSafeClient",
    "PendingTransaction",
    "SafeAPIError",
    "SafeAuthenticationError",
    "SafeConnectionError",
    "SafeNotFoundError",
    "SafeRateLimitError",
    "SafeResponseError",
    "ClientGatewayClient",
    "MockSafeClient",
    "TransactionServiceClient",
]
