"""Wallet model for Safe multisig wallets watched on behalf of a tenant."""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from safe_monitor.db.base import Base

if TYPE_CHECKING:
    from safe_monitor.db.models.seen_transaction import SeenTransaction


class Wallet(Base):
    """
    A Safe wallet monitored for pending transactions.

    Addresses are stored lower-cased; (tenant_id, chain_id, address) is unique.
    Seen transactions belong to the wallet and are removed with it.
    """

    __tablename__ = "wallets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tenant_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Owner of the wallet (user or team identifier)",
    )
    chain_id: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="EVM chain id (1, 10, 137, 8453, ...)"
    )
    address: Mapped[str] = mapped_column(
        String(42), nullable=False, index=True, comment="Lower-cased Safe address"
    )
    name: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Optional display name"
    )
    enabled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    seen_transactions: Mapped[List["SeenTransaction"]] = relationship(
        back_populates="wallet",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "chain_id", "address", name="uq_wallet_tenant_chain_address"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Wallet(id={self.id}, tenant_id={self.tenant_id}, "
            f"chain_id={self.chain_id}, address={self.address}, enabled={self.enabled})>"
        )
