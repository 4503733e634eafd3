"""Models for outbound notifications."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from safe_monitor.monitor.models import MonitoredWallet
from safe_monitor.safe.clients.base import PendingTransaction


class NotificationReason(str, Enum):
    """Why an event is being sent."""

    NEW = "new"  # First report of a pending transaction
    PROGRESSED = "progressed"  # More signatures collected since the last report


class NotificationEvent(BaseModel):
    """One pending transaction to report for one wallet."""

    wallet: MonitoredWallet
    transaction: PendingTransaction
    confirmations: int = Field(ge=0)
    threshold: int = Field(ge=1)
    reason: NotificationReason = NotificationReason.NEW

    @property
    def tx_hash(self) -> str:
        return self.transaction.safe_tx_hash
