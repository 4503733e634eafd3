"""FastAPI router for automation control."""

import logging

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from safe_monitor.core.automation import AutomationService, get_automation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/automation", tags=["automation"])


class AutomationStatusResponse(BaseModel):
    """Response for automation status endpoint."""

    running: bool
    interval_seconds: int
    cycles_completed: int
    last_cycle: dict | None
    errors_count: int
    last_error: str | None
    monitor: dict


def _require_service() -> AutomationService:
    service = get_automation_service()
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automation service is not initialized",
        )
    return service


@router.get(
    "/status", response_model=AutomationStatusResponse, status_code=status.HTTP_200_OK
)
async def get_automation_status():
    """Automation loop state plus the last pass and circuit breaker states."""
    service = _require_service()
    return AutomationStatusResponse(**service.get_status())


@router.post("/start", status_code=status.HTTP_200_OK)
async def start_automation():
    service = _require_service()

    if service.running:
        logger.info("[AUTOMATION] Already running")
        return {
            "status": "already_running",
            "message": "Automation service is already running",
        }

    logger.info("[AUTOMATION] Starting automation service via API")
    await service.start()
    return {"status": "started", "message": "Automation service started successfully"}


@router.post("/stop", status_code=status.HTTP_200_OK)
async def stop_automation():
    """Stop the loop. A pass already in flight is cancelled."""
    service = _require_service()

    if not service.running:
        logger.info("[AUTOMATION] Not running")
        return {"status": "not_running", "message": "Automation service is not running"}

    logger.info("[AUTOMATION] Stopping automation service via API")
    await service.stop()
    return {"status": "stopped", "message": "Automation service stopped successfully"}
