"""Scheduler endpoints that run the alert sweep.

Both routes run the same full evaluation; they exist separately so the
scheduler can call them on different cadences. GET is what the scheduler
uses, POST allows manual triggering.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from src.alerts.service import AlertService
from src.api.auth import verify_cron_secret
from src.api.dependencies import get_alert_service
from src.api.models import CronResponse

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/cron", dependencies=[Depends(verify_cron_secret)])


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _run_sweep(service: AlertService, job: str, done_message: str):
    logger.info("Cron sweep starting", job=job)
    try:
        summary = await service.evaluate_all_centers()
    except Exception as e:
        logger.error("Cron sweep failed", job=job, error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e), "timestamp": _now_iso()},
        )

    logger.info("Cron sweep completed", job=job, **summary.to_dict())
    return CronResponse(
        success=True,
        message=done_message,
        timestamp=_now_iso(),
        date=summary.date.isoformat(),
        summary=summary.to_dict(),
    )


@router.api_route(
    "/evaluate-alerts",
    methods=["GET", "POST"],
    response_model=CronResponse,
    summary="Evaluate all alert rules",
)
async def evaluate_alerts(service: AlertService = Depends(get_alert_service)):
    return await _run_sweep(service, "evaluate-alerts", "Alert evaluation completed")


@router.api_route(
    "/hourly-check",
    methods=["GET", "POST"],
    response_model=CronResponse,
    summary="Hourly threshold check",
)
async def hourly_check(service: AlertService = Depends(get_alert_service)):
    return await _run_sweep(service, "hourly-check", "Hourly threshold check completed")
