"""Domain records shared by the reconciliation engine, stores and scheduler."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MonitoredWallet(BaseModel):
    """A (tenant, chain, address) Safe watched by the monitor."""

    id: int
    tenant_id: str = "default"
    chain_id: int
    address: str
    name: Optional[str] = None
    enabled: bool = True

    @field_validator("address")
    @classmethod
    def lower_address(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def label(self) -> str:
        return self.name or self.address


class SeenTransactionRecord(BaseModel):
    """Durable state of one transaction already processed for one wallet."""

    wallet_id: int
    tx_hash: str
    first_seen: datetime
    last_checked: datetime
    confirmations: int = Field(ge=0)
    threshold: int = Field(ge=1)
    notified: bool = False

    @field_validator("first_seen", "last_checked")
    @classmethod
    def utc_timestamps(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    def refreshed(
        self, checked_at: datetime, confirmations: int, threshold: int
    ) -> "SeenTransactionRecord":
        """Copy with the latest observation; first_seen and notified are kept."""
        return self.model_copy(
            update={
                "last_checked": checked_at,
                "confirmations": confirmations,
                "threshold": threshold,
            }
        )

    def mark_notified(self) -> "SeenTransactionRecord":
        return self.model_copy(update={"notified": True})

    def to_dict(self) -> Dict[str, Any]:
        """Persisted record shape with ISO-8601 timestamps."""
        return {
            "walletId": self.wallet_id,
            "txHash": self.tx_hash,
            "firstSeen": self.first_seen.isoformat(),
            "lastChecked": self.last_checked.isoformat(),
            "confirmations": self.confirmations,
            "threshold": self.threshold,
            "notified": self.notified,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SeenTransactionRecord":
        return cls(
            wallet_id=data["walletId"],
            tx_hash=data["txHash"],
            first_seen=datetime.fromisoformat(data["firstSeen"]),
            last_checked=datetime.fromisoformat(data["lastChecked"]),
            confirmations=data["confirmations"],
            threshold=data["threshold"],
            notified=data.get("notified", False),
        )
