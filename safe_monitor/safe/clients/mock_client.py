"""
Mock Safe API client for testing and development.

Produces a stable synthetic queue per Safe so repeated polls observe the
same safeTxHashes, with confirmations creeping up between polls.
"""

import asyncio
import hashlib
import random
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from safe_monitor.safe.clients.base import (
    BaseSafeClient,
    PendingTransaction,
    SafeConnectionError,
)

_METHODS = [None, "transfer", "approve", "multiSend", "execTransaction", "swap"]


class MockSafeClient(BaseSafeClient):
    """Mock source that fabricates pending transactions for any Safe."""

    def __init__(
        self,
        failure_rate: float = 0.0,
        latency_ms: int = 100,
        queue_size: int = 3,
        threshold: int = 2,
    ):
        """
        Initialize mock client.

        Args:
            failure_rate: Probability of simulated failure (0.0 to 1.0)
            latency_ms: Simulated network latency in milliseconds
            queue_size: Pending transactions per Safe
            threshold: Confirmations required for every transaction
        """
        super().__init__()
        self.failure_rate = failure_rate
        self.latency_ms = latency_ms
        self.queue_size = queue_size
        self.threshold = threshold
        self._polls: Dict[str, int] = {}

    def get_source_name(self) -> str:
        return "mock"

    async def fetch_pending(
        self, chain_id: int, address: str
    ) -> List[PendingTransaction]:
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)

        if random.random() < self.failure_rate:
            raise SafeConnectionError("Simulated Safe API connection failure")

        key = f"{chain_id}:{address.lower()}"
        poll = self._polls.get(key, 0)
        self._polls[key] = poll + 1

        return [self._generate(key, nonce, poll) for nonce in range(self.queue_size)]

    def _generate(self, key: str, nonce: int, poll: int) -> PendingTransaction:
        seed = f"{key}:{nonce}"
        rng = random.Random(seed)
        safe_tx_hash = "0x" + hashlib.sha256(seed.encode()).hexdigest()
        recipient = "0x" + hashlib.sha256(f"{seed}:to".encode()).hexdigest()[:40]

        confirmations = min(rng.randint(0, 1) + poll // 2, self.threshold)
        submitted = datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(
            minutes=rng.randint(0, 60 * 24 * 30)
        )

        return PendingTransaction(
            safe_tx_hash=safe_tx_hash,
            to=recipient,
            value=str(rng.choice([0, 10**16, 25 * 10**16, 10**18])),
            data="0x",
            method=rng.choice(_METHODS),
            nonce=nonce,
            confirmations=confirmations,
            confirmations_required=self.threshold,
            submission_date=submitted,
        )

    def reset(self, address: Optional[str] = None) -> None:
        """Forget poll counters, for one Safe or all of them."""
        if address is None:
            self._polls.clear()
            return
        for key in [k for k in self._polls if k.endswith(address.lower())]:
            del self._polls[key]
