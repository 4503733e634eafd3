"""
Monitor API routes.

Trigger endpoints for scheduled (cron) and manual passes, pass metrics and
per-wallet seen-transaction diagnostics.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from safe_monitor.core.config import Settings, get_settings
from safe_monitor.monitor.service import Monitor
from safe_monitor.monitor.store import StoreError
from safe_monitor.safe.clients import MockSafeClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/monitor", tags=["monitor"])


class MetricsResponse(BaseModel):
    """Response for metrics endpoint."""

    aggregate: Dict[str, Any]
    success_rate: float
    recent_runs: list[Dict[str, Any]]
    circuit_breakers: list[Dict[str, Any]]


def get_monitor(request: Request) -> Monitor:
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Monitor is not initialized",
        )
    return monitor


def verify_cron_request(
    x_cron: Optional[str] = Header(default=None),
    authorization: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """In production, scheduled calls must carry the cron bearer secret."""
    if settings.ENV != "production" or x_cron is None:
        return

    expected = f"Bearer {settings.CRON_SECRET}" if settings.CRON_SECRET else None
    if expected is None or not secrets.compare_digest(authorization or "", expected):
        logger.error("Unauthorized cron request")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized"
        )


async def _run_check(monitor: Monitor, trigger: str, settings: Settings):
    if isinstance(monitor.source, MockSafeClient) and settings.ENV == "development":
        logger.warning(
            "🔔 MOCK DATA MODE: Using mock Safe client in development. "
            "Pending transactions are synthetic."
        )

    logger.info(f"Starting {trigger} Safe transaction check...")
    try:
        result = await monitor.scheduler.run_pass()
    except Exception as e:
        logger.error(f"Error in {trigger} check: {e}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": str(e),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    logger.info(
        f"{trigger.capitalize()} check complete: checked={result.wallets_checked} "
        f"new={result.total_new} notified={result.total_notified}"
    )
    return result.to_summary()


@router.get("/check", dependencies=[Depends(verify_cron_request)])
async def cron_check(
    monitor: Monitor = Depends(get_monitor),
    settings: Settings = Depends(get_settings),
):
    """Run a fleet pass. Called by the external cron scheduler."""
    return await _run_check(monitor, "scheduled", settings)


@router.post("/check")
async def manual_check(
    monitor: Monitor = Depends(get_monitor),
    settings: Settings = Depends(get_settings),
):
    """Run a fleet pass on demand (dashboard button)."""
    return await _run_check(monitor, "manual", settings)


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(
    hours: Optional[int] = None, monitor: Monitor = Depends(get_monitor)
):
    """
    Aggregate pass metrics.

    Args:
        hours: Limit to last N hours (omit for all history)
    """
    metrics = monitor.scheduler.metrics
    return MetricsResponse(
        aggregate=metrics.get_aggregate_metrics(hours).to_dict(),
        success_rate=metrics.get_success_rate(hours),
        recent_runs=[run.to_dict() for run in metrics.get_history(limit=10)],
        circuit_breakers=[
            breaker.get_state() for breaker in monitor.engine.breakers.values()
        ],
    )


@router.get("/wallets/{wallet_id}/transactions")
async def list_seen_transactions(
    wallet_id: int, monitor: Monitor = Depends(get_monitor)
):
    """Every seen-transaction record of a wallet, in the persisted shape."""
    try:
        records = await monitor.store.list_all(wallet_id)
    except StoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Store unavailable: {e}",
        )
    return {
        "walletId": wallet_id,
        "count": len(records),
        "transactions": [record.to_dict() for record in records],
    }
