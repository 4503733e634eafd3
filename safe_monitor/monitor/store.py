"""
Seen-transaction stores.

A store maps (wallet_id, tx_hash) to the SeenTransactionRecord the engine
last wrote. Three backends share one async contract: in-process memory for
development, SQL through the unit of work, and Redis.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from safe_monitor.db.models import SeenTransaction
from safe_monitor.db.unit_of_work import UnitOfWork
from safe_monitor.monitor.models import SeenTransactionRecord, ensure_utc

logger = structlog.get_logger(__name__)


class StoreError(Exception):
    """Raised when the backing store cannot complete an operation."""

    pass


class SeenTransactionStore(ABC):
    """Durable (wallet, tx hash) -> record mapping."""

    @abstractmethod
    async def get(
        self, wallet_id: int, tx_hash: str
    ) -> Optional[SeenTransactionRecord]:
        """Return the stored record or None."""
        pass

    @abstractmethod
    async def put(self, wallet_id: int, record: SeenTransactionRecord) -> None:
        """Create or overwrite the record for (wallet_id, record.tx_hash)."""
        pass

    @abstractmethod
    async def insert_if_absent(
        self, wallet_id: int, record: SeenTransactionRecord
    ) -> bool:
        """
        Create the record only if no record exists for the key.

        Returns:
            True if this call created it, False if another writer got there first
        """
        pass

    @abstractmethod
    async def list_all(self, wallet_id: int) -> List[SeenTransactionRecord]:
        """Every record of a wallet, for diagnostics."""
        pass

    @abstractmethod
    async def delete_older_than(self, cutoff: datetime) -> int:
        """Delete records whose last_checked is before ``cutoff``."""
        pass

    @abstractmethod
    async def count_older_than(self, cutoff: datetime) -> int:
        """Number of records ``delete_older_than(cutoff)`` would remove."""
        pass

    @abstractmethod
    async def delete_wallet(self, wallet_id: int) -> int:
        """Delete every record owned by a wallet. Returns the number removed."""
        pass

    def get_backend_name(self) -> str:
        return self.__class__.__name__


class InMemorySeenTransactionStore(SeenTransactionStore):
    """Process-local store. State is lost on restart."""

    def __init__(self) -> None:
        self._records: Dict[Tuple[int, str], SeenTransactionRecord] = {}

    async def get(
        self, wallet_id: int, tx_hash: str
    ) -> Optional[SeenTransactionRecord]:
        record = self._records.get((wallet_id, tx_hash))
        return record.model_copy() if record else None

    async def put(self, wallet_id: int, record: SeenTransactionRecord) -> None:
        self._records[(wallet_id, record.tx_hash)] = record.model_copy(
            update={"wallet_id": wallet_id}
        )

    async def insert_if_absent(
        self, wallet_id: int, record: SeenTransactionRecord
    ) -> bool:
        key = (wallet_id, record.tx_hash)
        if key in self._records:
            return False
        self._records[key] = record.model_copy(update={"wallet_id": wallet_id})
        return True

    async def list_all(self, wallet_id: int) -> List[SeenTransactionRecord]:
        records = [r for (w, _), r in self._records.items() if w == wallet_id]
        return sorted(records, key=lambda r: (r.first_seen, r.tx_hash))

    async def delete_older_than(self, cutoff: datetime) -> int:
        cutoff = ensure_utc(cutoff)
        stale = [k for k, r in self._records.items() if r.last_checked < cutoff]
        for key in stale:
            del self._records[key]
        return len(stale)

    async def count_older_than(self, cutoff: datetime) -> int:
        cutoff = ensure_utc(cutoff)
        return sum(1 for r in self._records.values() if r.last_checked < cutoff)

    async def delete_wallet(self, wallet_id: int) -> int:
        owned = [k for k in self._records if k[0] == wallet_id]
        for key in owned:
            del self._records[key]
        return len(owned)

    def clear(self) -> None:
        self._records.clear()


def _row_to_record(row: SeenTransaction) -> SeenTransactionRecord:
    return SeenTransactionRecord(
        wallet_id=row.wallet_id,
        tx_hash=row.safe_tx_hash,
        first_seen=row.first_seen,
        last_checked=row.last_checked,
        confirmations=row.confirmations,
        threshold=row.threshold,
        notified=row.notified,
    )


def _record_fields(record: SeenTransactionRecord) -> dict:
    return {
        "safe_tx_hash": record.tx_hash,
        "first_seen": record.first_seen,
        "last_checked": record.last_checked,
        "confirmations": record.confirmations,
        "threshold": record.threshold,
        "notified": record.notified,
    }


class SqlSeenTransactionStore(SeenTransactionStore):
    """
    SQLAlchemy-backed store.

    Every operation runs in its own unit of work, so a write is committed
    by the time the call returns.
    """

    async def get(
        self, wallet_id: int, tx_hash: str
    ) -> Optional[SeenTransactionRecord]:
        try:
            async with UnitOfWork() as uow:
                row = await uow.seen_transactions.get_by_hash(wallet_id, tx_hash)
                return _row_to_record(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"get failed for {tx_hash}: {e}") from e

    async def put(self, wallet_id: int, record: SeenTransactionRecord) -> None:
        try:
            async with UnitOfWork() as uow:
                await uow.seen_transactions.upsert(wallet_id, **_record_fields(record))
        except SQLAlchemyError as e:
            raise StoreError(f"put failed for {record.tx_hash}: {e}") from e

    async def insert_if_absent(
        self, wallet_id: int, record: SeenTransactionRecord
    ) -> bool:
        try:
            async with UnitOfWork() as uow:
                return await uow.seen_transactions.insert_if_absent(
                    wallet_id, **_record_fields(record)
                )
        except SQLAlchemyError as e:
            raise StoreError(f"insert failed for {record.tx_hash}: {e}") from e

    async def list_all(self, wallet_id: int) -> List[SeenTransactionRecord]:
        try:
            async with UnitOfWork() as uow:
                rows = await uow.seen_transactions.list_for_wallet(wallet_id)
                return [_row_to_record(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"list failed for wallet {wallet_id}: {e}") from e

    async def delete_older_than(self, cutoff: datetime) -> int:
        try:
            async with UnitOfWork() as uow:
                return await uow.seen_transactions.delete_checked_before(cutoff)
        except SQLAlchemyError as e:
            raise StoreError(f"retention delete failed: {e}") from e

    async def count_older_than(self, cutoff: datetime) -> int:
        try:
            async with UnitOfWork() as uow:
                return await uow.seen_transactions.count(last_checked__lt=cutoff)
        except SQLAlchemyError as e:
            raise StoreError(f"retention count failed: {e}") from e

    async def delete_wallet(self, wallet_id: int) -> int:
        try:
            async with UnitOfWork() as uow:
                return await uow.seen_transactions.delete_for_wallet(wallet_id)
        except SQLAlchemyError as e:
            raise StoreError(f"delete failed for wallet {wallet_id}: {e}") from e


class RedisSeenTransactionStore(SeenTransactionStore):
    """
    Redis-backed store.

    Records are JSON documents under ``{prefix}{wallet_id}:{tx_hash}``;
    ``SET NX`` provides the conditional insert.
    """

    DEFAULT_KEY_PREFIX = "safe:tx:"

    def __init__(self, redis: Redis, key_prefix: str = DEFAULT_KEY_PREFIX):
        self._redis = redis
        self._key_prefix = key_prefix

    def _key(self, wallet_id: int, tx_hash: str) -> str:
        return f"{self._key_prefix}{wallet_id}:{tx_hash}"

    @staticmethod
    def _decode(raw) -> SeenTransactionRecord:
        return SeenTransactionRecord.from_dict(json.loads(raw))

    @staticmethod
    def _encode(wallet_id: int, record: SeenTransactionRecord) -> str:
        return json.dumps(record.model_copy(update={"wallet_id": wallet_id}).to_dict())

    async def get(
        self, wallet_id: int, tx_hash: str
    ) -> Optional[SeenTransactionRecord]:
        try:
            raw = await self._redis.get(self._key(wallet_id, tx_hash))
        except RedisError as e:
            raise StoreError(f"get failed for {tx_hash}: {e}") from e
        return self._decode(raw) if raw else None

    async def put(self, wallet_id: int, record: SeenTransactionRecord) -> None:
        try:
            await self._redis.set(
                self._key(wallet_id, record.tx_hash), self._encode(wallet_id, record)
            )
        except RedisError as e:
            raise StoreError(f"put failed for {record.tx_hash}: {e}") from e

    async def insert_if_absent(
        self, wallet_id: int, record: SeenTransactionRecord
    ) -> bool:
        try:
            was_set = await self._redis.set(
                self._key(wallet_id, record.tx_hash),
                self._encode(wallet_id, record),
                nx=True,
            )
        except RedisError as e:
            raise StoreError(f"insert failed for {record.tx_hash}: {e}") from e
        # None when the key already existed
        return bool(was_set)

    async def _load_matching(self, pattern: str) -> List[Tuple[str, SeenTransactionRecord]]:
        keys = [key async for key in self._redis.scan_iter(match=pattern)]
        if not keys:
            return []
        values = await self._redis.mget(keys)
        return [(k, self._decode(v)) for k, v in zip(keys, values) if v]

    async def list_all(self, wallet_id: int) -> List[SeenTransactionRecord]:
        try:
            matches = await self._load_matching(f"{self._key_prefix}{wallet_id}:*")
        except RedisError as e:
            raise StoreError(f"list failed for wallet {wallet_id}: {e}") from e
        records = [record for _, record in matches]
        return sorted(records, key=lambda r: (r.first_seen, r.tx_hash))

    async def _stale_keys(self, cutoff: datetime) -> List[str]:
        cutoff = ensure_utc(cutoff)
        matches = await self._load_matching(f"{self._key_prefix}*")
        return [key for key, record in matches if record.last_checked < cutoff]

    async def delete_older_than(self, cutoff: datetime) -> int:
        try:
            stale = await self._stale_keys(cutoff)
            if not stale:
                return 0
            return int(await self._redis.delete(*stale))
        except RedisError as e:
            raise StoreError(f"retention delete failed: {e}") from e

    async def count_older_than(self, cutoff: datetime) -> int:
        try:
            return len(await self._stale_keys(cutoff))
        except RedisError as e:
            raise StoreError(f"retention count failed: {e}") from e

    async def delete_wallet(self, wallet_id: int) -> int:
        try:
            keys = [
                key
                async for key in self._redis.scan_iter(
                    match=f"{self._key_prefix}{wallet_id}:*"
                )
            ]
            if not keys:
                return 0
            return int(await self._redis.delete(*keys))
        except RedisError as e:
            raise StoreError(f"delete failed for wallet {wallet_id}: {e}") from e
