"""Wallet providers: where the scheduler gets the list of Safes to check."""

import hashlib
import re
from abc import ABC, abstractmethod
from typing import List, Set, Tuple

import structlog

from safe_monitor.db.unit_of_work import UnitOfWork
from safe_monitor.monitor.models import MonitoredWallet

logger = structlog.get_logger(__name__)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


class WalletProvider(ABC):
    """Source of the enabled wallets for one pass."""

    @abstractmethod
    async def list_enabled(self) -> List[MonitoredWallet]:
        pass


class DatabaseWalletProvider(WalletProvider):
    """Enabled rows of the wallets table."""

    async def list_enabled(self) -> List[MonitoredWallet]:
        async with UnitOfWork() as uow:
            rows = await uow.wallets.get_enabled()
            return [
                MonitoredWallet(
                    id=row.id,
                    tenant_id=row.tenant_id,
                    chain_id=row.chain_id,
                    address=row.address,
                    name=row.name,
                    enabled=row.enabled,
                )
                for row in rows
            ]


def static_wallet_id(chain_id: int, address: str) -> int:
    """
    Stable id for a configured Safe, derived from its (chain, address) identity.

    Seen records are keyed by wallet id, so the id must not depend on where
    the entry sits in the list. Kept below 2**28 to fit an INTEGER column.
    """
    digest = hashlib.sha256(f"{chain_id}:{address.lower()}".encode()).hexdigest()
    return int(digest[:7], 16)


def parse_monitored_safes(value: str) -> List[MonitoredWallet]:
    """
    Parse a ``chain_id:address`` comma list such as
    ``8453:0xabc...,1:0xdef...``.

    Entries that do not parse are logged and skipped. A repeated
    (chain, address) pair, in any letter case, is kept once.
    """
    wallets: List[MonitoredWallet] = []
    seen: Set[Tuple[int, str]] = set()
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue

        chain_part, _, address = entry.partition(":")
        address = address.strip()
        if not chain_part.strip().isdigit() or not ADDRESS_PATTERN.match(address):
            logger.warning("wallets.static.invalid_entry", entry=entry)
            continue

        identity = (int(chain_part), address.lower())
        if identity in seen:
            logger.warning("wallets.static.duplicate_entry", entry=entry)
            continue
        seen.add(identity)

        wallets.append(
            MonitoredWallet(
                id=static_wallet_id(*identity),
                chain_id=identity[0],
                address=address,
            )
        )
    return wallets


class StaticWalletProvider(WalletProvider):
    """Fixed wallet list, typically from the MONITORED_SAFES setting."""

    def __init__(self, wallets: List[MonitoredWallet]):
        self._wallets = list(wallets)

    @classmethod
    def from_string(cls, value: str) -> "StaticWalletProvider":
        return cls(parse_monitored_safes(value))

    async def list_enabled(self) -> List[MonitoredWallet]:
        return [w for w in self._wallets if w.enabled]
