"""
Safe Transaction Service client.

Reads the Safe's current threshold and nonce, then every queued multisig
transaction at or above that nonce, following pagination links.
"""

from typing import Any, Dict, List, Optional

import structlog

from safe_monitor.safe.chains import get_chain
from safe_monitor.safe.clients.base import (
    BaseSafeClient,
    PendingTransaction,
    SafeResponseError,
    to_checksum,
)

logger = structlog.get_logger(__name__)

PAGE_LIMIT = 100
MAX_PAGES = 50


def as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Coerce API integers that may arrive as strings."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def normalize_service_transaction(
    item: Any, safe_threshold: Optional[int]
) -> PendingTransaction:
    """
    Map one multisig-transactions entry to a PendingTransaction.

    The Safe's threshold from the same poll wins over the per-transaction
    ``confirmationsRequired``, which reflects the threshold at proposal time.
    """
    if not isinstance(item, dict):
        return PendingTransaction(safe_tx_hash="")

    confirmations = item.get("confirmations") or []
    signers = [
        c.get("owner", "") for c in confirmations if isinstance(c, dict) and c.get("owner")
    ]
    threshold = safe_threshold or as_int(item.get("confirmationsRequired"), 0)
    decoded = item.get("dataDecoded") or {}

    return PendingTransaction(
        safe_tx_hash=item.get("safeTxHash") or "",
        to=item.get("to") or "",
        value=str(item.get("value") or "0"),
        data=item.get("data"),
        method=decoded.get("method") if isinstance(decoded, dict) else None,
        operation=as_int(item.get("operation"), 0),
        nonce=as_int(item.get("nonce"), 0),
        confirmations=len(confirmations),
        confirmations_required=threshold or 0,
        confirmed_signers=signers,
        submission_date=item.get("submissionDate"),
    )


class TransactionServiceClient(BaseSafeClient):
    """Pending transaction source backed by the Safe Transaction Service."""

    def get_source_name(self) -> str:
        return "transaction_service"

    def _service_url(self, chain_id: int) -> str:
        return self.base_url or get_chain(chain_id).tx_service_url

    async def fetch_pending(
        self, chain_id: int, address: str
    ) -> List[PendingTransaction]:
        checksummed = to_checksum(address)
        base = self._service_url(chain_id)

        async with self._client() as client:
            safe_info = await self._get_json(client, f"{base}/api/v1/safes/{checksummed}/")
            threshold = as_int(safe_info.get("threshold"))
            if not threshold:
                raise SafeResponseError(f"Safe info for {checksummed} has no threshold")
            current_nonce = as_int(safe_info.get("nonce"), 0)

            raw = await self._fetch_all_pages(
                client,
                f"{base}/api/v1/safes/{checksummed}/multisig-transactions/",
                {
                    "executed": "false",
                    "nonce__gte": current_nonce,
                    "ordering": "nonce",
                    "limit": PAGE_LIMIT,
                },
            )

        transactions = [
            normalize_service_transaction(item, threshold)
            for item in raw
            if not (isinstance(item, dict) and item.get("isExecuted"))
        ]
        logger.debug(
            "safe_source.fetched",
            source=self.get_source_name(),
            chain_id=chain_id,
            address=checksummed,
            threshold=threshold,
            count=len(transactions),
        )
        return transactions

    async def _fetch_all_pages(
        self, client, url: str, params: Optional[Dict[str, Any]]
    ) -> List[Any]:
        items: List[Any] = []
        next_url: Optional[str] = url
        pages = 0

        while next_url:
            if pages >= MAX_PAGES:
                raise SafeResponseError(f"Pagination exceeded {MAX_PAGES} pages")
            page = await self._get_json(client, next_url, params)
            results = page.get("results")
            if not isinstance(results, list):
                raise SafeResponseError("Response is missing a 'results' list")
            items.extend(results)
            next_url = page.get("next")
            # next links already carry the query string
            params = None
            pages += 1

        return items
