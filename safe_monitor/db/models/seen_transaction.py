"""SeenTransaction model recording what the monitor already processed."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safe_monitor.db.base import Base

if TYPE_CHECKING:
    from safe_monitor.db.models.wallet import Wallet


class SeenTransaction(Base):
    """
    Last known state of a pending Safe transaction for one wallet.

    Created the first time a safeTxHash is observed, refreshed on every
    subsequent poll that still reports it, never updated afterwards.
    """

    __tablename__ = "seen_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    wallet_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("wallets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    safe_tx_hash: Mapped[str] = mapped_column(
        String(66), nullable=False, comment="Content hash of the Safe transaction"
    )

    first_seen: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    last_checked: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )

    confirmations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    notified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Set once a notification was delivered; never reset",
    )

    wallet: Mapped["Wallet"] = relationship(back_populates="seen_transactions")

    __table_args__ = (
        UniqueConstraint("wallet_id", "safe_tx_hash", name="uq_seen_wallet_hash"),
        Index("idx_seen_wallet_notified", "wallet_id", "notified"),
    )

    def __repr__(self) -> str:
        return (
            f"<SeenTransaction(wallet_id={self.wallet_id}, "
            f"safe_tx_hash={self.safe_tx_hash}, confirmations={self.confirmations}/"
            f"{self.threshold}, notified={self.notified})>"
        )
