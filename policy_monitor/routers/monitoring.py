# policy_monitor/routers/monitoring.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..deps.auth import optional_api_key
from ..services.google_ads import AuthenticationError
from ..services.monitor import CycleError, CycleInProgressError, MonitoringCycle, build_monitor
from ..settings import CredentialsError, Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitoring"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "error": message, "timestamp": _now()}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


def get_monitor(request: Request, cfg: Settings = Depends(get_settings)) -> MonitoringCycle:
    """One MonitoringCycle per app, so its lock guards concurrent triggers.

    Raises CredentialsError (handled in main) when credentials are missing.
    """
    monitor = getattr(request.app.state, "monitor", None)
    if monitor is None:
        monitor = build_monitor(cfg)
        request.app.state.monitor = monitor
    return monitor


def _keep_running(request: Request, task: asyncio.Task) -> None:
    """Hold a reference to a cycle that outlived the request deadline."""
    pending = getattr(request.app.state, "background_cycles", None)
    if pending is None:
        pending = set()
        request.app.state.background_cycles = pending
    pending.add(task)

    def _done(t: asyncio.Task) -> None:
        pending.discard(t)
        if t.cancelled():
            return
        exc = t.exception()
        if exc is not None:
            logger.error("Background monitoring cycle failed: %s", exc)
        else:
            logger.info("Background monitoring cycle finished: %s", t.result().to_dict())

    task.add_done_callback(_done)


@router.get("/run-monitoring", dependencies=[Depends(optional_api_key)])
async def run_monitoring(
    request: Request,
    monitor: MonitoringCycle = Depends(get_monitor),
    cfg: Settings = Depends(get_settings),
):
    """Run one remediation cycle; answer 202 if it outlives the soft deadline."""
    if monitor.running:
        return _error(409, "A monitoring cycle is already running")

    logger.info("Monitoring triggered via HTTP")
    task = asyncio.create_task(asyncio.to_thread(monitor.run))
    try:
        summary = await asyncio.wait_for(
            asyncio.shield(task), timeout=cfg.RUN_MONITORING_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        _keep_running(request, task)
        logger.warning(
            "Monitoring cycle exceeded %.0fs; continuing in background",
            cfg.RUN_MONITORING_TIMEOUT_SECONDS,
        )
        return JSONResponse(
            status_code=202,
            content={
                "success": True,
                "status": "timeout",
                "message": "Monitoring cycle is still running in the background",
                "timestamp": _now(),
            },
        )
    except CycleInProgressError as e:
        return _error(409, str(e))
    except CredentialsError as e:
        return _error(500, str(e), missing=e.missing)
    except (CycleError, AuthenticationError) as e:
        logger.error("Monitoring cycle failed: %s", e)
        return _error(500, str(e))
    except Exception as e:
        logger.exception("Monitoring cycle crashed")
        return _error(500, str(e))

    return {
        "success": True,
        "message": "Monitoring cycle completed",
        "results": summary.to_dict(),
        "timestamp": _now(),
    }
