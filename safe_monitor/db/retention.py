"""Retention of seen transaction records."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import structlog

from safe_monitor.monitor.store import SeenTransactionStore

logger = structlog.get_logger(__name__)


class RetentionPolicy:
    """
    Removes seen transaction records that no pass has refreshed recently.

    A record stops being refreshed once its transaction leaves the pending
    set (executed or replaced), so old records only cost storage.
    """

    def __init__(self, store: SeenTransactionStore, retention_days: int = 30):
        self.store = store
        self.retention_days = retention_days

    async def cleanup_seen_transactions(
        self, days: Optional[int] = None, dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Delete records whose last_checked is older than the retention period.

        Args:
            days: Retention period in days (defaults to the policy's)
            dry_run: If True, only count what would be deleted
        """
        days = days or self.retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)

        if dry_run:
            found = await self.store.count_older_than(cutoff)
            logger.info("retention.seen_transactions", days=days, found=found, dry_run=True)
            return {
                "action": "cleanup_seen_transactions",
                "days": days,
                "found": found,
                "deleted": 0,
                "dry_run": True,
            }

        deleted = await self.store.delete_older_than(cutoff)
        logger.info(
            "retention.seen_transactions", days=days, deleted=deleted, dry_run=False
        )
        return {
            "action": "cleanup_seen_transactions",
            "days": days,
            "deleted": deleted,
            "dry_run": False,
        }


async def run_retention_cleanup(dry_run: bool = True) -> Dict[str, Any]:
    """Run retention against the store configured in settings."""
    from safe_monitor.monitor.service import build_monitor

    monitor = build_monitor()
    try:
        policy = RetentionPolicy(monitor.store, monitor.config.retention_days)
        results = await policy.cleanup_seen_transactions(dry_run=dry_run)
    finally:
        await monitor.aclose()

    print("\n" + "=" * 60)
    print("RETENTION POLICY CLEANUP RESULTS")
    print("=" * 60)
    print(f"Mode: {'DRY RUN' if dry_run else 'LIVE'}")
    print(f"Store: {monitor.store.get_backend_name()}")
    print(f"Retention period: {results['days']} days")
    if "found" in results:
        print(f"Found: {results['found']}")
    print(f"Deleted: {results['deleted']}")
    print("=" * 60)

    return results


if __name__ == "__main__":
    import asyncio
    import sys

    dry_run = "--live" not in sys.argv
    if not dry_run:
        response = input(
            "WARNING: This will permanently delete data. Continue? (yes/no): "
        )
        if response.lower() != "yes":
            print("Cancelled.")
            sys.exit(0)

    asyncio.run(run_retention_cleanup(dry_run=dry_run))
