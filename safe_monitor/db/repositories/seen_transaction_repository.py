"""Seen transaction repository with conditional-insert support."""

from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from safe_monitor.db.models.seen_transaction import SeenTransaction
from safe_monitor.db.repository import BaseRepository

_CONFLICT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class SeenTransactionRepository(BaseRepository[SeenTransaction]):
    """Repository for SeenTransaction keyed by (wallet_id, safe_tx_hash)."""

    async def get_by_hash(
        self, wallet_id: int, safe_tx_hash: str
    ) -> Optional[SeenTransaction]:
        result = await self.session.execute(
            select(self.model).where(
                self.model.wallet_id == wallet_id,
                self.model.safe_tx_hash == safe_tx_hash,
            )
        )
        return result.scalar_one_or_none()

    async def insert_if_absent(self, wallet_id: int, **fields: Any) -> bool:
        """
        Insert a record unless one already exists for the key.

        Uses ``INSERT ... ON CONFLICT DO NOTHING`` where the dialect supports it,
        so only one of several concurrent writers can create the row.

        Returns:
            True if this call created the row, False if it already existed
        """
        dialect = self.session.get_bind().dialect.name
        insert_factory = _CONFLICT_INSERTS.get(dialect)

        if insert_factory is None:
            if await self.get_by_hash(wallet_id, fields["safe_tx_hash"]):
                return False
            await self.create(wallet_id=wallet_id, **fields)
            return True

        statement = (
            insert_factory(self.model)
            .values(wallet_id=wallet_id, **fields)
            .on_conflict_do_nothing(index_elements=["wallet_id", "safe_tx_hash"])
        )
        result = await self.session.execute(statement)
        await self.session.flush()
        return (result.rowcount or 0) > 0  # type: ignore

    async def upsert(self, wallet_id: int, **fields: Any) -> SeenTransaction:
        """Create the record or overwrite the stored fields of an existing one."""
        existing = await self.get_by_hash(wallet_id, fields["safe_tx_hash"])
        if existing is None:
            return await self.create(wallet_id=wallet_id, **fields)

        for key, value in fields.items():
            setattr(existing, key, value)
        await self.session.flush()
        return existing

    async def list_for_wallet(self, wallet_id: int) -> List[SeenTransaction]:
        """All records of a wallet, oldest first."""
        result = await self.session.execute(
            select(self.model)
            .where(self.model.wallet_id == wallet_id)
            .order_by(self.model.first_seen, self.model.safe_tx_hash)
        )
        return list(result.scalars().all())

    async def count_unnotified(self, wallet_id: int) -> int:
        return await self.count(wallet_id=wallet_id, notified=False)

    async def delete_checked_before(self, cutoff: datetime) -> int:
        """Remove records that no poll has refreshed since ``cutoff``."""
        return await self.delete_all(last_checked__lt=cutoff)

    async def delete_for_wallet(self, wallet_id: int) -> int:
        return await self.delete_all(wallet_id=wallet_id)
