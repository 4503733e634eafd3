"""Tests for database models and repositories."""

from datetime import datetime, timedelta, timezone

import pytest

from safe_monitor.db.unit_of_work import UnitOfWork
from tests.conftest import SAFE_A, SAFE_B

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
HASH_1 = "0x" + "11" * 32
HASH_2 = "0x" + "22" * 32


async def create_wallet(**overrides):
    fields = {"tenant_id": "acme", "chain_id": 8453, "address": SAFE_A}
    fields.update(overrides)
    async with UnitOfWork() as uow:
        return await uow.wallets.create(**fields)


def seen_fields(tx_hash, **overrides):
    fields = {
        "safe_tx_hash": tx_hash,
        "first_seen": NOW,
        "last_checked": NOW,
        "confirmations": 0,
        "threshold": 2,
        "notified": False,
    }
    fields.update(overrides)
    return fields


@pytest.mark.asyncio
class TestWalletRepository:
    """Test Wallet model and repository."""

    async def test_create_wallet(self, test_db):
        """Test creating a wallet record."""
        wallet = await create_wallet(name="Treasury")

        assert wallet.id is not None
        assert wallet.enabled is True
        assert wallet.created_at is not None

    async def test_get_enabled(self, test_db):
        """Disabled wallets are not returned; order is by id."""
        first = await create_wallet()
        await create_wallet(address=SAFE_B, enabled=False)
        third = await create_wallet(chain_id=1)

        async with UnitOfWork() as uow:
            enabled = await uow.wallets.get_enabled()

        assert [w.id for w in enabled] == [first.id, third.id]

    async def test_get_by_identity_ignores_case(self, test_db):
        """Lookup by (tenant, chain, address) lower-cases the address."""
        wallet = await create_wallet()

        async with UnitOfWork() as uow:
            found = await uow.wallets.get_by_identity("acme", 8453, SAFE_A.upper().replace("0X", "0x"))
            missing = await uow.wallets.get_by_identity("other", 8453, SAFE_A)

        assert found.id == wallet.id
        assert missing is None

    async def test_delete_with_history(self, test_db):
        """Deleting a wallet removes its seen transactions."""
        wallet = await create_wallet()
        async with UnitOfWork() as uow:
            await uow.seen_transactions.insert_if_absent(wallet.id, **seen_fields(HASH_1))

        async with UnitOfWork() as uow:
            assert await uow.wallets.delete_with_history(wallet.id) is True

        async with UnitOfWork() as uow:
            assert await uow.seen_transactions.count(wallet_id=wallet.id) == 0
            assert await uow.wallets.delete_with_history(wallet.id) is False


@pytest.mark.asyncio
class TestSeenTransactionRepository:
    """Test SeenTransaction model and repository."""

    async def test_insert_if_absent(self, test_db):
        """Only the first insert for a (wallet, hash) key creates a row."""
        wallet = await create_wallet()

        async with UnitOfWork() as uow:
            created = await uow.seen_transactions.insert_if_absent(
                wallet.id, **seen_fields(HASH_1)
            )
        async with UnitOfWork() as uow:
            again = await uow.seen_transactions.insert_if_absent(
                wallet.id, **seen_fields(HASH_1, confirmations=1)
            )
            row = await uow.seen_transactions.get_by_hash(wallet.id, HASH_1)

        assert created is True
        assert again is False
        assert row.confirmations == 0

    async def test_upsert_updates_existing(self, test_db):
        """Upsert overwrites the stored fields of an existing row."""
        wallet = await create_wallet()
        async with UnitOfWork() as uow:
            await uow.seen_transactions.upsert(wallet.id, **seen_fields(HASH_1))
        async with UnitOfWork() as uow:
            await uow.seen_transactions.upsert(
                wallet.id, **seen_fields(HASH_1, confirmations=2, notified=True)
            )
            rows = await uow.seen_transactions.list_for_wallet(wallet.id)

        assert len(rows) == 1
        assert rows[0].confirmations == 2
        assert rows[0].notified is True

    async def test_count_unnotified(self, test_db):
        wallet = await create_wallet()
        async with UnitOfWork() as uow:
            await uow.seen_transactions.upsert(wallet.id, **seen_fields(HASH_1))
            await uow.seen_transactions.upsert(
                wallet.id, **seen_fields(HASH_2, notified=True)
            )

        async with UnitOfWork() as uow:
            assert await uow.seen_transactions.count_unnotified(wallet.id) == 1

    async def test_delete_checked_before(self, test_db):
        """Retention deletes rows by last_checked."""
        wallet = await create_wallet()
        async with UnitOfWork() as uow:
            await uow.seen_transactions.upsert(
                wallet.id, **seen_fields(HASH_1, last_checked=NOW - timedelta(days=40))
            )
            await uow.seen_transactions.upsert(wallet.id, **seen_fields(HASH_2))

        async with UnitOfWork() as uow:
            deleted = await uow.seen_transactions.delete_checked_before(
                NOW - timedelta(days=30)
            )
            remaining = await uow.seen_transactions.list_for_wallet(wallet.id)

        assert deleted == 1
        assert [r.safe_tx_hash for r in remaining] == [HASH_2]


@pytest.mark.asyncio
class TestNotificationSettingRepository:
    """Test per-tenant notification settings."""

    async def test_upsert_for_tenant(self, test_db):
        async with UnitOfWork() as uow:
            await uow.notification_settings.upsert_for_tenant("acme", "token", "chat")
        async with UnitOfWork() as uow:
            await uow.notification_settings.upsert_for_tenant(
                "acme", "token", "chat-2", enabled=False
            )
            setting = await uow.notification_settings.get_for_tenant("acme")
            total = await uow.notification_settings.count()

        assert total == 1
        assert setting.telegram_chat_id == "chat-2"
        assert setting.is_deliverable is False

    async def test_missing_tenant(self, test_db):
        async with UnitOfWork() as uow:
            assert await uow.notification_settings.get_for_tenant("nobody") is None
