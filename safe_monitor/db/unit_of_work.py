"""Unit of Work pattern for managing database transactions."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from safe_monitor.db import base
from safe_monitor.db.models import NotificationSetting, SeenTransaction, Wallet
from safe_monitor.db.repositories import (
    NotificationSettingRepository,
    SeenTransactionRepository,
    WalletRepository,
)


class UnitOfWork:
    """
    Unit of Work pattern implementation for managing database transactions.

    All repositories used within one context share a session and transaction.

    Usage:
        async with UnitOfWork() as uow:
            wallet = await uow.wallets.get_by_id(1)
            await uow.seen_transactions.upsert(
                wallet.id, safe_tx_hash="0xabc...", confirmations=1, threshold=2
            )
            await uow.commit()
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        """
        Initialize Unit of Work.

        Args:
            session: Optional existing session (useful for testing)
        """
        self._session = session
        self._owned_session = session is None

        self.wallets: WalletRepository = None  # type: ignore
        self.seen_transactions: SeenTransactionRepository = None  # type: ignore
        self.notification_settings: NotificationSettingRepository = None  # type: ignore

    async def __aenter__(self):
        if self._owned_session:
            # Looked up at call time so tests can swap the session factory
            self._session = base.AsyncSessionLocal()

        assert self._session is not None, "Session must be initialized"
        self.wallets = WalletRepository(Wallet, self._session)
        self.seen_transactions = SeenTransactionRepository(
            SeenTransaction, self._session
        )
        self.notification_settings = NotificationSettingRepository(
            NotificationSetting, self._session
        )

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            await self.rollback()
        elif self._owned_session:
            await self.commit()

        if self._owned_session and self._session:
            await self._session.close()

    async def commit(self):
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self):
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()

    async def flush(self):
        """Flush pending changes to the database without committing."""
        if self._session:
            await self._session.flush()
