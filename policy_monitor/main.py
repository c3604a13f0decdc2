# policy_monitor/main.py
from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .logging_config import configure_logging
from .routers import monitoring
from .services.monitor import build_monitor
from .services.scheduling import IntervalScheduler
from .settings import (
    CredentialsError,
    Settings,
    customer_id,
    ensure_credentials,
    get_settings,
    settings,
)

__version__ = "0.1.0"
SERVICE_NAME = "google-ads-policy-monitor"

# ---------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("policy-monitor")

_STARTED = time.monotonic()

# ---------------------------------------------------------------------
# Lifespan (startup/shutdown)
# ---------------------------------------------------------------------


def _start_interval_loop(app: FastAPI, cfg: Settings) -> None:
    try:
        monitor = build_monitor(cfg)
    except CredentialsError as e:
        logger.warning("Background monitoring disabled: %s", e)
        return
    app.state.monitor = monitor
    scheduler = IntervalScheduler(cfg.MONITOR_INTERVAL_MINUTES * 60)
    app.state.scheduler = scheduler
    app.state.scheduler_task = asyncio.create_task(
        asyncio.to_thread(scheduler.run, monitor.run))
    logger.info("Background monitoring every %d min", cfg.MONITOR_INTERVAL_MINUTES)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Google Ads policy monitor")
    app.state.scheduler = None
    app.state.scheduler_task = None

    check = ensure_credentials(settings)
    if not check["ok"]:
        logger.warning("Missing environment variables: %s", ", ".join(check["missing"]))
    if not settings.OPENAI_API_KEY:
        logger.info("OPENAI_API_KEY is not set; over-long ad text will be truncated.")

    if settings.MONITOR_INTERVAL_MINUTES > 0 and check["ok"]:
        _start_interval_loop(app, settings)

    yield  # --- Application runs here ---

    logger.info("Shutting down Google Ads policy monitor")
    if app.state.scheduler is not None:
        app.state.scheduler.stop()
    task = app.state.scheduler_task
    if task is not None and not task.done():
        try:
            # lets the in-flight cycle finish
            await task
        except Exception as e:
            logger.warning("Background monitoring ended with error: %s", e)


# ---------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------
APP = FastAPI(
    title="Google Ads Policy Monitor",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

__all__ = ["APP"]


@APP.exception_handler(CredentialsError)
async def credentials_error_handler(request: Request, exc: CredentialsError):
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": str(exc),
            "missing": exc.missing,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )


# ---------------------------------------------------------------------
# Basic routes
# ---------------------------------------------------------------------


@APP.get("/", response_class=PlainTextResponse, include_in_schema=False)
def root():
    return "Google Ads policy monitor is running"


@APP.get("/health")
def health(cfg: Settings = Depends(get_settings)):
    check = ensure_credentials(cfg)
    try:
        has_customer = bool(customer_id(cfg))
    except CredentialsError:
        has_customer = False
    return {
        "status": "healthy" if check["ok"] else "degraded",
        "service": SERVICE_NAME,
        "version": __version__,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(time.monotonic() - _STARTED, 3),
        "credentials": check["present"],
        "missing": check["missing"],
        "customer_id_configured": has_customer,
        "endpoints": {
            "health": "/health",
            "monitoring": "/run-monitoring",
            "docs": "/docs",
        },
    }


@APP.head("/health")
def health_head():
    return {}


APP.include_router(monitoring.router)
