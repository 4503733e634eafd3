"""Wallet repository with specialized queries."""

from typing import List, Optional

from sqlalchemy import delete, select

from safe_monitor.db.models.seen_transaction import SeenTransaction
from safe_monitor.db.models.wallet import Wallet
from safe_monitor.db.repository import BaseRepository


class WalletRepository(BaseRepository[Wallet]):
    """Repository for Wallet model with specialized queries."""

    async def get_enabled(self) -> List[Wallet]:
        """Enabled wallets in a stable order (id ascending)."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.enabled.is_(True))
            .order_by(self.model.id)
        )
        return list(result.scalars().all())

    async def get_by_tenant(self, tenant_id: str) -> List[Wallet]:
        result = await self.session.execute(
            select(self.model)
            .where(self.model.tenant_id == tenant_id)
            .order_by(self.model.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_by_identity(
        self, tenant_id: str, chain_id: int, address: str
    ) -> Optional[Wallet]:
        result = await self.session.execute(
            select(self.model).where(
                self.model.tenant_id == tenant_id,
                self.model.chain_id == chain_id,
                self.model.address == address.lower(),
            )
        )
        return result.scalar_one_or_none()

    async def delete_with_history(self, wallet_id: int) -> bool:
        """
        Delete a wallet and its seen transaction records.

        Bulk deletes bypass ORM cascades, so the owned records are removed
        explicitly before the wallet row.
        """
        await self.session.execute(
            delete(SeenTransaction).where(SeenTransaction.wallet_id == wallet_id)
        )
        return await self.delete(wallet_id)
