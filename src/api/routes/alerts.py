"""Alert endpoints for listing, acknowledging and test-sending alerts."""

import time

from fastapi import APIRouter, Depends, HTTPException, Query, status
import structlog

from src.alerts.schemas import (
    VALID_CHANNELS,
    VALID_PRIORITIES,
    VALID_TRIGGER_TYPES,
    NotificationMetadata,
)
from src.alerts.service import AlertService
from src.api.auth import verify_api_key
from src.api.dependencies import get_alert_service
from src.api.models import (
    AlertAcknowledgeRequest,
    AlertItem,
    AlertsResponse,
    DeliveryItem,
    ErrorResponse,
    NotificationTestRequest,
    NotificationTestResponse,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/alerts",
    response_model=AlertsResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid filter parameter"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
    summary="List alerts",
    description=(
        "List sent alerts with optional filtering by center, trigger type "
        "and acknowledgement status. Ordered by most recent first."
    ),
)
async def list_alerts(
    center_id: str | None = Query(default=None, description="Filter by center identifier"),
    alert_type: str | None = Query(
        default=None,
        description="Filter by trigger type: low_sales, zero_sales, high_dq, low_approval, milestone, below_threshold_duration",
    ),
    acknowledged: bool | None = Query(
        default=None,
        description="Filter by acknowledgement status",
    ),
    limit: int = Query(default=50, ge=1, le=500, description="Maximum alerts to return"),
    offset: int = Query(default=0, ge=0, description="Offset for pagination"),
    api_key: str = Depends(verify_api_key),
    service: AlertService = Depends(get_alert_service),
) -> AlertsResponse:
    start_time = time.perf_counter()

    if alert_type and alert_type not in VALID_TRIGGER_TYPES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=(
                f"Invalid alert_type {alert_type!r}. "
                f"Must be one of: {sorted(VALID_TRIGGER_TYPES)}"
            ),
        )

    try:
        alerts = await service.list_alerts(
            center_id=center_id,
            alert_type=alert_type,
            acknowledged=acknowledged,
            limit=limit,
            offset=offset,
        )
    except Exception as e:
        logger.error(f"Failed to list alerts: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to list alerts: {str(e)}",
        )

    items = [AlertItem.from_alert(a) for a in alerts]
    latency_ms = (time.perf_counter() - start_time) * 1000

    logger.info(
        "Alerts listed",
        total=len(items),
        center_id=center_id,
        alert_type=alert_type,
        latency_ms=round(latency_ms, 2),
    )

    return AlertsResponse(
        alerts=items,
        total=len(items),
        latency_ms=round(latency_ms, 2),
    )


@router.get(
    "/alerts/{alert_id}",
    response_model=AlertItem,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Alert not found"},
    },
    summary="Get alert",
)
async def get_alert(
    alert_id: str,
    api_key: str = Depends(verify_api_key),
    service: AlertService = Depends(get_alert_service),
) -> AlertItem:
    try:
        alert = await service.get_alert(alert_id)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert {alert_id} not found",
        )
    return AlertItem.from_alert(alert)


@router.patch(
    "/alerts/{alert_id}",
    response_model=AlertItem,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        404: {"model": ErrorResponse, "description": "Alert not found"},
    },
    summary="Acknowledge alert",
    description=(
        "Record who acknowledged the alert and the action taken. "
        "Only the first acknowledgement is stored; repeated calls return "
        "the alert unchanged."
    ),
)
async def acknowledge_alert(
    alert_id: str,
    request: AlertAcknowledgeRequest,
    api_key: str = Depends(verify_api_key),
    service: AlertService = Depends(get_alert_service),
) -> AlertItem:
    try:
        alert = await service.acknowledge(
            alert_id,
            request.acknowledged_by,
            response_action=request.response_action,
        )
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Alert {alert_id} not found",
        )

    logger.info(
        "Alert acknowledged",
        alert_id=alert_id,
        acknowledged_by=alert.acknowledged_by,
    )
    return AlertItem.from_alert(alert)


@router.get(
    "/centers/{center_id}/alerts",
    response_model=AlertsResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid API key"}},
    summary="Center alert history",
)
async def center_alert_history(
    center_id: str,
    days: int = Query(default=7, ge=1, le=90, description="Look-back window in days"),
    api_key: str = Depends(verify_api_key),
    service: AlertService = Depends(get_alert_service),
) -> AlertsResponse:
    start_time = time.perf_counter()
    alerts = await service.get_alert_history(center_id, days=days)
    latency_ms = (time.perf_counter() - start_time) * 1000
    return AlertsResponse(
        alerts=[AlertItem.from_alert(a) for a in alerts],
        total=len(alerts),
        latency_ms=round(latency_ms, 2),
    )


@router.post(
    "/alerts/test",
    response_model=NotificationTestResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Invalid channel or priority"},
    },
    summary="Send test notification",
    description="Send a message through the given channels without writing to the ledger.",
)
async def send_test_notification(
    request: NotificationTestRequest,
    api_key: str = Depends(verify_api_key),
    service: AlertService = Depends(get_alert_service),
) -> NotificationTestResponse:
    start_time = time.perf_counter()

    unknown = sorted(set(request.channels) - VALID_CHANNELS)
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid channels {unknown}. Must be a subset of: {sorted(VALID_CHANNELS)}",
        )
    if request.priority not in VALID_PRIORITIES:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid priority {request.priority!r}. Must be one of: {sorted(VALID_PRIORITIES)}",
        )

    metadata = NotificationMetadata(
        center_name=request.center_name,
        priority=request.priority,
        trigger_type=request.trigger_type,
        recipients=request.recipients,
        user_ids=request.user_ids,
        phone_numbers=request.phone_numbers,
    )
    results = await service.send_test_notification(request.channels, request.message, metadata)
    latency_ms = (time.perf_counter() - start_time) * 1000

    logger.info(
        "Test notification sent",
        channels=request.channels,
        succeeded=sum(1 for r in results if r.success),
        latency_ms=round(latency_ms, 2),
    )
    return NotificationTestResponse(
        results=[DeliveryItem.from_result(r) for r in results],
        latency_ms=round(latency_ms, 2),
    )
