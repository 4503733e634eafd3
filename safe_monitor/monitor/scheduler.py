"""
Fleet scheduler.

Runs one reconciliation pass over every enabled wallet with bounded
concurrency. Work for the same wallet is serialized across overlapping
passes; a failure in one wallet never affects another.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import structlog

from safe_monitor.monitor.config import MonitorConfig
from safe_monitor.monitor.metrics import MonitorMetrics, PassStatus
from safe_monitor.monitor.models import MonitoredWallet
from safe_monitor.monitor.reconciler import ReconcileResult, ReconciliationEngine
from safe_monitor.monitor.wallets import WalletProvider

logger = structlog.get_logger(__name__)


class PassFailedError(Exception):
    """Raised when a pass cannot run at all."""

    pass


@dataclass
class PassResult:
    """Aggregate of one fleet pass."""

    run_id: str
    timestamp: datetime
    results: List[ReconcileResult] = field(default_factory=list)

    @property
    def wallets_checked(self) -> int:
        return len(self.results)

    @property
    def total_new(self) -> int:
        return sum(r.new_count for r in self.results)

    @property
    def total_notified(self) -> int:
        return sum(r.notified_count for r in self.results)

    @property
    def errors(self) -> List[str]:
        return [
            f"wallet {r.wallet_id} ({r.address}): {error}"
            for r in self.results
            for error in r.errors
        ]

    def to_summary(self) -> Dict[str, Any]:
        """Response body of the check endpoint."""
        return {
            "success": True,
            "timestamp": self.timestamp.isoformat(),
            "checked": self.wallets_checked,
            "newTransactions": self.total_new,
            "notificationsSent": self.total_notified,
            "errors": self.errors,
            "results": [r.to_dict() for r in self.results],
        }


class FleetScheduler:
    """Reconciles all enabled wallets, at most ``concurrency_limit`` at a time."""

    def __init__(
        self,
        wallet_provider: WalletProvider,
        engine: ReconciliationEngine,
        config: Optional[MonitorConfig] = None,
        metrics: Optional[MonitorMetrics] = None,
    ):
        self.wallet_provider = wallet_provider
        self.engine = engine
        self.config = config or MonitorConfig()
        self.metrics = metrics or MonitorMetrics()

        self._semaphore = asyncio.Semaphore(self.config.concurrency_limit)
        self._wallet_locks: Dict[int, asyncio.Lock] = {}
        self.last_result: Optional[PassResult] = None

    def _lock_for(self, wallet_id: int) -> asyncio.Lock:
        lock = self._wallet_locks.get(wallet_id)
        if lock is None:
            lock = asyncio.Lock()
            self._wallet_locks[wallet_id] = lock
        return lock

    def _prune_locks(self, active_ids: Set[int]) -> None:
        """Forget locks of wallets that were not part of the last pass."""
        for wallet_id in list(self._wallet_locks):
            if wallet_id not in active_ids and not self._wallet_locks[wallet_id].locked():
                del self._wallet_locks[wallet_id]

    async def _run_wallet(self, wallet: MonitoredWallet) -> ReconcileResult:
        # Wallet lock first so a waiting wallet does not hold a concurrency slot
        async with self._lock_for(wallet.id):
            async with self._semaphore:
                try:
                    return await self.engine.reconcile(wallet)
                except Exception as e:
                    logger.error(
                        "pass.wallet_failed",
                        wallet_id=wallet.id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return ReconcileResult(
                        wallet_id=wallet.id,
                        chain_id=wallet.chain_id,
                        address=wallet.address,
                        errors=[f"unexpected error: {type(e).__name__}: {e}"],
                    )

    async def run_pass(self) -> PassResult:
        """
        Run one pass over the enabled wallets.

        Raises:
            PassFailedError: If the wallet list cannot be loaded
        """
        run = self.metrics.start_run()
        logger.info("pass.started", run_id=run.run_id)

        try:
            wallets = await self.wallet_provider.list_enabled()
        except Exception as e:
            run.errors.append(f"wallet list unavailable: {e}")
            self.metrics.end_run(run, PassStatus.FAILED)
            logger.error("pass.failed", run_id=run.run_id, error=str(e))
            raise PassFailedError(f"Could not load wallets: {e}") from e

        unique: Dict[int, MonitoredWallet] = {}
        for wallet in wallets:
            if wallet.enabled:
                unique.setdefault(wallet.id, wallet)

        results = await asyncio.gather(
            *(self._run_wallet(wallet) for wallet in unique.values())
        )
        self._prune_locks(set(unique))

        result = PassResult(run_id=run.run_id, timestamp=datetime.now(timezone.utc))
        result.results = list(results)

        run.wallets_checked = result.wallets_checked
        run.wallets_failed = sum(1 for r in result.results if not r.success)
        run.transactions_new = result.total_new
        run.notifications_sent = result.total_notified
        run.errors.extend(result.errors)
        self.metrics.end_run(
            run, PassStatus.PARTIAL if run.errors else PassStatus.SUCCESS
        )
        self.last_result = result

        logger.info(
            "pass.completed",
            run_id=run.run_id,
            checked=result.wallets_checked,
            new=result.total_new,
            notified=result.total_notified,
            errors=len(run.errors),
            duration_seconds=run.duration_seconds,
        )
        return result

    def get_status(self) -> Dict[str, Any]:
        last = self.metrics.get_last_run()
        return {
            "concurrency_limit": self.config.concurrency_limit,
            "last_run": last.to_dict() if last else None,
            "circuit_breakers": [
                breaker.get_state() for breaker in self.engine.breakers.values()
            ],
        }
