"""
Reconciliation engine.

Compares the pending transactions reported for one wallet against the
seen-transaction store and sends each new transaction to the notification
sink at most once successfully.

Record lifecycle per (wallet, tx hash):

    absent --insert--> seen, notified=False --sink ok--> seen, notified=True

A failed notification leaves the record unnotified, so the next pass retries
it. A notified record is only ever refreshed.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import structlog

from safe_monitor.monitor.config import MonitorConfig
from safe_monitor.monitor.models import MonitoredWallet, SeenTransactionRecord
from safe_monitor.monitor.retry import CircuitBreaker, CircuitOpenError, retry_with_backoff
from safe_monitor.monitor.store import SeenTransactionStore, StoreError
from safe_monitor.notifications.models import NotificationEvent, NotificationReason
from safe_monitor.notifications.sinks import BaseNotificationSink
from safe_monitor.safe.clients.base import (
    TRANSIENT_ERRORS,
    BaseSafeClient,
    PendingTransaction,
    SafeAPIError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileResult:
    """Outcome of reconciling one wallet."""

    wallet_id: int
    chain_id: int
    address: str
    pending_count: int = 0
    new_count: int = 0
    notified_count: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "walletId": self.wallet_id,
            "chainId": self.chain_id,
            "address": self.address,
            "pending": self.pending_count,
            "newTransactions": self.new_count,
            "notificationsSent": self.notified_count,
            "errors": list(self.errors),
        }


class ReconciliationEngine:
    """
    Reconciles one wallet per call.

    Collaborators are injected so the engine can run against any source,
    store and sink. Circuit breakers are kept per chain: one Safe service
    being down must not slow down wallets on other chains.
    """

    def __init__(
        self,
        source: BaseSafeClient,
        store: SeenTransactionStore,
        sink: BaseNotificationSink,
        config: Optional[MonitorConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.source = source
        self.store = store
        self.sink = sink
        self.config = config or MonitorConfig()
        self.clock = clock or utc_now
        self.breakers: Dict[int, CircuitBreaker] = {}

    def breaker_for(self, chain_id: int) -> CircuitBreaker:
        breaker = self.breakers.get(chain_id)
        if breaker is None:
            breaker = CircuitBreaker(
                self.config.circuit_breaker, name=f"safe_source:{chain_id}"
            )
            self.breakers[chain_id] = breaker
        return breaker

    async def reconcile(self, wallet: MonitoredWallet) -> ReconcileResult:
        result = ReconcileResult(
            wallet_id=wallet.id, chain_id=wallet.chain_id, address=wallet.address
        )
        log = logger.bind(
            wallet_id=wallet.id, chain_id=wallet.chain_id, address=wallet.address
        )
        log.info("reconcile.started")

        try:
            pending = await self._fetch_pending(wallet)
        except CircuitOpenError as e:
            result.errors.append(f"source unavailable: {e}")
            log.warning("reconcile.circuit_open", error=str(e))
            return result
        except asyncio.TimeoutError:
            result.errors.append(
                f"source timed out after {self.config.source_timeout_seconds}s"
            )
            log.error("reconcile.source_timeout")
            return result
        except SafeAPIError as e:
            result.errors.append(f"source error: {type(e).__name__}: {e}")
            log.error("reconcile.source_failed", error=str(e), error_type=type(e).__name__)
            return result

        result.pending_count = len(pending)
        checked_at = self.clock()

        for tx in sorted(pending, key=lambda t: t.sort_key):
            if not tx.safe_tx_hash:
                result.errors.append(f"malformed transaction at nonce {tx.nonce}: missing hash")
                log.warning("reconcile.malformed_transaction", nonce=tx.nonce)
                continue
            if tx.confirmations_required < 1:
                result.errors.append(
                    f"malformed transaction {tx.safe_tx_hash}: missing threshold"
                )
                log.warning("reconcile.malformed_transaction", tx_hash=tx.safe_tx_hash)
                continue

            try:
                await self._process_transaction(wallet, tx, checked_at, result)
            except asyncio.TimeoutError:
                result.errors.append(f"store timed out for {tx.safe_tx_hash}")
                log.error("reconcile.store_timeout", tx_hash=tx.safe_tx_hash)
            except Exception as e:
                result.errors.append(f"store error for {tx.safe_tx_hash}: {e}")
                log.error(
                    "reconcile.store_failed",
                    tx_hash=tx.safe_tx_hash,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        log.info(
            "reconcile.completed",
            pending=result.pending_count,
            new=result.new_count,
            notified=result.notified_count,
            errors=len(result.errors),
        )
        return result

    async def _fetch_pending(self, wallet: MonitoredWallet) -> List[PendingTransaction]:
        async def fetch() -> List[PendingTransaction]:
            return await asyncio.wait_for(
                self.source.fetch_pending(wallet.chain_id, wallet.address),
                timeout=self.config.source_timeout_seconds,
            )

        transient = TRANSIENT_ERRORS + (asyncio.TimeoutError,)
        breaker = self.breaker_for(wallet.chain_id)
        # Errors that belong to one wallet (not found, auth, bad payload) do not trip the chain breaker
        return await breaker.call_async(
            lambda: retry_with_backoff(
                fetch,
                self.config.retry,
                operation_name=f"fetch_pending:{wallet.chain_id}:{wallet.address}",
                retry_on=transient,
            ),
            failure_on=transient,
        )

    async def _store_call(self, operation: Awaitable[T]) -> T:
        return await asyncio.wait_for(
            operation, timeout=self.config.store_timeout_seconds
        )

    async def _notify(
        self,
        wallet: MonitoredWallet,
        tx: PendingTransaction,
        reason: NotificationReason,
    ) -> bool:
        event = NotificationEvent(
            wallet=wallet,
            transaction=tx,
            confirmations=tx.confirmations,
            threshold=tx.confirmations_required,
            reason=reason,
        )
        try:
            sent = await asyncio.wait_for(
                self.sink.notify(event), timeout=self.config.sink_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "reconcile.notify_timeout", wallet_id=wallet.id, tx_hash=tx.safe_tx_hash
            )
            return False
        except Exception as e:
            # Sinks report failure as False; anything raised counts as a failure too
            logger.error(
                "reconcile.notify_raised",
                wallet_id=wallet.id,
                tx_hash=tx.safe_tx_hash,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if not sent:
            logger.warning(
                "reconcile.notify_failed",
                wallet_id=wallet.id,
                tx_hash=tx.safe_tx_hash,
                reason=reason.value,
            )
        return bool(sent)

    async def _process_transaction(
        self,
        wallet: MonitoredWallet,
        tx: PendingTransaction,
        checked_at: datetime,
        result: ReconcileResult,
    ) -> None:
        tx_hash = tx.safe_tx_hash
        existing = await self._store_call(self.store.get(wallet.id, tx_hash))

        if existing is None:
            record = SeenTransactionRecord(
                wallet_id=wallet.id,
                tx_hash=tx_hash,
                first_seen=checked_at,
                last_checked=checked_at,
                confirmations=tx.confirmations,
                threshold=tx.confirmations_required,
                notified=False,
            )
            created = await self._store_call(
                self.store.insert_if_absent(wallet.id, record)
            )
            if created:
                result.new_count += 1
                logger.info(
                    "reconcile.new_transaction",
                    wallet_id=wallet.id,
                    tx_hash=tx_hash,
                    nonce=tx.nonce,
                    confirmations=tx.confirmations,
                    threshold=tx.confirmations_required,
                )
                if await self._notify(wallet, tx, NotificationReason.NEW):
                    await self._store_call(self.store.put(wallet.id, record.mark_notified()))
                    result.notified_count += 1
                return

            # Another writer inserted first; continue with its record
            existing = await self._store_call(self.store.get(wallet.id, tx_hash))
            if existing is None:
                raise StoreError(f"record for {tx_hash} missing after conflicting insert")

        refreshed = existing.refreshed(
            checked_at, tx.confirmations, tx.confirmations_required
        )

        if not existing.notified:
            if await self._notify(wallet, tx, NotificationReason.NEW):
                refreshed = refreshed.mark_notified()
                result.notified_count += 1
            await self._store_call(self.store.put(wallet.id, refreshed))
            return

        if (
            self.config.notify_on_progress
            and tx.confirmations > existing.confirmations
            and tx.needs_signatures
        ):
            if await self._notify(wallet, tx, NotificationReason.PROGRESSED):
                result.notified_count += 1
            else:
                # Keep the old count so the progress is reported next pass
                refreshed = refreshed.model_copy(
                    update={"confirmations": existing.confirmations}
                )

        await self._store_call(self.store.put(wallet.id, refreshed))
