"""Web Push subscription endpoints used by the portal's browser client."""

from fastapi import APIRouter, Depends, Request
import structlog

from src.alerts.subscriptions import PushSubscription, PushSubscriptionRepository
from src.api.auth import verify_api_key
from src.api.dependencies import get_push_subscriptions
from src.api.models import (
    ErrorResponse,
    PushSubscribeRequest,
    PushSubscriptionResponse,
    PushUnsubscribeRequest,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post(
    "/push/subscriptions",
    response_model=PushSubscriptionResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid API key"},
        422: {"model": ErrorResponse, "description": "Missing subscription data"},
    },
    summary="Register push subscription",
    description=(
        "Store a browser push subscription for a user. Re-registering a "
        "known endpoint refreshes its keys and reactivates it."
    ),
)
async def subscribe(
    body: PushSubscribeRequest,
    request: Request,
    api_key: str = Depends(verify_api_key),
    subscriptions: PushSubscriptionRepository = Depends(get_push_subscriptions),
) -> PushSubscriptionResponse:
    created = await subscriptions.upsert(
        PushSubscription(
            user_id=body.user_id,
            endpoint=body.endpoint,
            p256dh=body.keys.p256dh,
            auth=body.keys.auth,
        ),
        user_agent=request.headers.get("user-agent"),
    )
    logger.info("Push subscription registered", user_id=body.user_id, created=created)
    return PushSubscriptionResponse(success=True, created=created)


@router.delete(
    "/push/subscriptions",
    response_model=PushSubscriptionResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid API key"}},
    summary="Remove push subscription",
    description="Mark an endpoint inactive. The row is kept.",
)
async def unsubscribe(
    body: PushUnsubscribeRequest,
    api_key: str = Depends(verify_api_key),
    subscriptions: PushSubscriptionRepository = Depends(get_push_subscriptions),
) -> PushSubscriptionResponse:
    await subscriptions.deactivate(body.endpoint)
    return PushSubscriptionResponse(success=True)
