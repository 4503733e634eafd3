from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from safe_monitor.core.automation import (
    AutomationService,
    get_automation_service,
    set_automation_service,
)
from safe_monitor.core.automation_router import router as automation_router
from safe_monitor.core.config import get_settings
from safe_monitor.core.logging import configure_logging, request_id_middleware
from safe_monitor.db.init import create_tables, sanitize_db_url
from safe_monitor.db.base import get_database_url
from safe_monitor.monitor.router import router as monitor_router
from safe_monitor.monitor.service import build_monitor
from safe_monitor.wallets.router import router as wallets_router

logger = logging.getLogger(__name__)

settings = get_settings()
configure_logging(settings.ENV)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    # Startup
    logger.info("=" * 70)
    logger.info("🚀 Starting Safe Monitor...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Database: {sanitize_db_url(get_database_url())}")
    logger.info(f"Safe source: {settings.SAFE_SOURCE}, store: {settings.STORE_BACKEND}")
    logger.info("=" * 70)

    if settings.ENV == "development":
        await create_tables()
    else:
        logger.info("Schema is managed by migrations: run `alembic upgrade head` before deploying")

    monitor = build_monitor(settings)
    app.state.monitor = monitor
    logger.info("✓ Monitor initialized")

    automation = AutomationService(
        monitor.scheduler, interval_seconds=settings.MONITOR_INTERVAL_SECONDS
    )
    set_automation_service(automation)
    if settings.AUTOMATION_AUTOSTART:
        await automation.start()
        logger.info("✓ Automation started")
    else:
        logger.info("✓ Automation initialized (not auto-started)")
        logger.info("   Use POST /automation/start or an external cron on GET /monitor/check")

    logger.info("✓ Safe Monitor startup complete - Ready to process requests")

    yield

    # Shutdown
    logger.info("🛑 Shutting down Safe Monitor...")

    automation = get_automation_service()
    if automation and automation.running:
        logger.info("Stopping automation service...")
        await automation.stop()
        logger.info("✓ Automation service stopped")
    set_automation_service(None)

    await monitor.aclose()
    logger.info("✓ Safe Monitor shutdown complete")


app = FastAPI(title="Safe Monitor", version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(automation_router)
app.include_router(monitor_router)
app.include_router(wallets_router)


@app.get("/")
def health_check():
    logger.debug("Health check endpoint called")
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    logger.debug(f"Healthz endpoint called (env: {settings.ENV})")
    return {"status": "healthy", "env": settings.ENV}
