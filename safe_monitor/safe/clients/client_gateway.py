"""
Safe Client Gateway client.

The gateway's queued endpoint returns a mixed list of labels, conflict
headers and transaction summaries; only transaction items are kept.
Confirmations and threshold both come from the item's executionInfo.
"""

from typing import Any, Dict, List, Optional

import structlog

from safe_monitor.safe.clients.base import (
    BaseSafeClient,
    PendingTransaction,
    SafeResponseError,
    to_checksum,
)
from safe_monitor.safe.clients.transaction_service import MAX_PAGES, as_int

logger = structlog.get_logger(__name__)

DEFAULT_GATEWAY_URL = "https://safe-client.safe.global"


def hash_from_gateway_id(tx_id: Optional[str]) -> str:
    """Extract the safeTxHash from ids shaped ``multisig_<safe>_<safeTxHash>``."""
    if not tx_id or not tx_id.startswith("multisig_"):
        return ""
    return tx_id.rsplit("_", 1)[-1]


def _address_value(field: Any) -> str:
    if isinstance(field, dict):
        return field.get("value") or ""
    return field or ""


def normalize_gateway_item(item: Dict[str, Any]) -> PendingTransaction:
    """Map one TRANSACTION item of the queued endpoint to a PendingTransaction."""
    transaction = item.get("transaction") or {}
    tx_info = transaction.get("txInfo") or {}
    execution = transaction.get("executionInfo") or {}

    transfer_info = tx_info.get("transferInfo") or {}
    destination = _address_value(tx_info.get("to")) or _address_value(
        tx_info.get("recipient")
    )
    value = tx_info.get("value") or transfer_info.get("value") or "0"

    return PendingTransaction(
        safe_tx_hash=hash_from_gateway_id(transaction.get("id")),
        to=destination,
        value=str(value),
        method=tx_info.get("methodName"),
        nonce=as_int(execution.get("nonce"), 0),
        confirmations=as_int(execution.get("confirmationsSubmitted"), 0),
        confirmations_required=as_int(execution.get("confirmationsRequired"), 0),
    )


class ClientGatewayClient(BaseSafeClient):
    """Pending transaction source backed by the Safe Client Gateway."""

    def get_source_name(self) -> str:
        return "client_gateway"

    async def fetch_pending(
        self, chain_id: int, address: str
    ) -> List[PendingTransaction]:
        checksummed = to_checksum(address)
        base = self.base_url or DEFAULT_GATEWAY_URL
        next_url: Optional[str] = (
            f"{base}/v1/chains/{chain_id}/safes/{checksummed}/transactions/queued"
        )

        transactions: List[PendingTransaction] = []
        pages = 0
        async with self._client() as client:
            while next_url:
                if pages >= MAX_PAGES:
                    raise SafeResponseError(f"Pagination exceeded {MAX_PAGES} pages")
                page = await self._get_json(client, next_url)
                results = page.get("results")
                if not isinstance(results, list):
                    raise SafeResponseError("Response is missing a 'results' list")

                for item in results:
                    if isinstance(item, dict) and item.get("type") == "TRANSACTION":
                        transactions.append(normalize_gateway_item(item))

                next_url = page.get("next")
                pages += 1

        logger.debug(
            "safe_source.fetched",
            source=self.get_source_name(),
            chain_id=chain_id,
            address=checksummed,
            count=len(transactions),
        )
        return transactions
