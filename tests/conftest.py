import asyncio
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Ensure project root is on sys.path so `import safe_monitor` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Force test settings before any application imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("ENV", "development")

from safe_monitor.db import base  # noqa: E402
from safe_monitor.db.base import Base  # noqa: E402
from safe_monitor.db.models import NotificationSetting, SeenTransaction, Wallet  # noqa: E402,F401
from safe_monitor.monitor.models import MonitoredWallet  # noqa: E402
from safe_monitor.notifications.models import NotificationEvent  # noqa: E402
from safe_monitor.notifications.sinks import BaseNotificationSink  # noqa: E402
from safe_monitor.safe.clients.base import BaseSafeClient, PendingTransaction  # noqa: E402

SAFE_A = "0x" + "a1" * 20
SAFE_B = "0x" + "b2" * 20


@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """
    File-backed SQLite database for one test.

    NullPool opens a connection per session, so the database can be used
    from the test's event loop and from TestClient's loop alike.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
    )

    async def create_all():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_all())

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    monkeypatch.setattr(base, "engine", engine)
    monkeypatch.setattr(base, "AsyncSessionLocal", session_factory)
    yield session_factory


def make_wallet(
    id: int = 1, chain_id: int = 8453, address: str = SAFE_A, tenant_id: str = "default"
) -> MonitoredWallet:
    return MonitoredWallet(id=id, tenant_id=tenant_id, chain_id=chain_id, address=address)


def make_tx(
    tx_hash: str,
    nonce: int = 0,
    confirmations: int = 0,
    threshold: int = 2,
) -> PendingTransaction:
    return PendingTransaction(
        safe_tx_hash=tx_hash,
        to="0x" + "c3" * 20,
        value="1000000000000000000",
        data="0x",
        nonce=nonce,
        confirmations=confirmations,
        confirmations_required=threshold,
    )


class FakeSafeSource(BaseSafeClient):
    """Source returning scripted pending sets per address."""

    def __init__(self, pending: Optional[Dict[str, List[PendingTransaction]]] = None):
        super().__init__()
        self.pending = pending or {}
        self.error: Optional[Exception] = None
        self.calls: List[str] = []

    def get_source_name(self) -> str:
        return "fake"

    async def fetch_pending(self, chain_id: int, address: str) -> List[PendingTransaction]:
        self.calls.append(address)
        if self.error is not None:
            raise self.error
        return list(self.pending.get(address.lower(), []))


class RecordingSink(BaseNotificationSink):
    """Sink answering from a script and recording every event."""

    def __init__(self, results: Optional[List[bool]] = None, default: bool = True):
        self.results = list(results or [])
        self.default = default
        self.events: List[NotificationEvent] = []

    async def notify(self, event: NotificationEvent) -> bool:
        self.events.append(event)
        if self.results:
            return self.results.pop(0)
        return self.default


class FixedClock:
    """Clock advanced by hand."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now
