"""
Request and response models for the sales alert API.
"""

from typing import Any

from pydantic import BaseModel, Field

from src.alerts.schemas import DeliveryResult, SentAlert


class ComponentHealth(BaseModel):
    """Health status of a single infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency in milliseconds")
    details: dict[str, Any] = Field(default_factory=dict, description="Extra diagnostics")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(
        ...,
        description="Overall service status: healthy, degraded, or unhealthy",
    )
    environment: str = Field(..., description="Deployment environment")
    channels_configured: dict[str, bool] = Field(
        default_factory=dict,
        description="Which notification channels have credentials (others are mocked)",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health",
    )
    version: str = Field(default="0.1.0", description="Service version")


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error type",
    )


# Alert models


class AlertItem(BaseModel):
    """Single ledger row."""

    id: str = Field(..., description="Unique alert identifier")
    rule_id: str = Field(..., description="Rule that fired")
    center_id: str = Field(..., description="Center the rule fired for")
    alert_type: str = Field(..., description="Trigger type of the rule")
    message: str = Field(..., description="Substituted alert message")
    channels_sent: list[str] = Field(default_factory=list, description="Channels requested by the rule")
    recipients: list[str] = Field(default_factory=list, description="Recipient email addresses")
    sent_at: str = Field(..., description="Send timestamp (ISO format)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Trigger-specific values")
    acknowledged: bool = Field(default=False, description="Whether the alert has been acknowledged")
    acknowledged_by: str | None = Field(default=None, description="Who acknowledged it")
    acknowledged_at: str | None = Field(default=None, description="When it was acknowledged (ISO format)")
    response_action: str | None = Field(default=None, description="Action recorded on acknowledgement")

    @classmethod
    def from_alert(cls, alert: SentAlert) -> "AlertItem":
        data = alert.to_dict()
        return cls(acknowledged=alert.acknowledged, **data)


class AlertsResponse(BaseModel):
    """Response model for listing alerts."""

    alerts: list[AlertItem] = Field(..., description="List of alerts")
    total: int = Field(..., description="Number of alerts returned")
    latency_ms: float = Field(..., description="Processing latency in milliseconds")


class AlertAcknowledgeRequest(BaseModel):
    """Request body for acknowledging an alert."""

    acknowledged_by: str = Field(..., min_length=1, description="User acknowledging the alert")
    response_action: str | None = Field(
        default=None,
        max_length=500,
        description="Optional note on the action taken",
    )


class NotificationTestRequest(BaseModel):
    """Request body for sending a test notification."""

    channels: list[str] = Field(
        default_factory=lambda: ["slack"],
        min_length=1,
        description="Channels to send through: slack, email, push, whatsapp",
    )
    message: str = Field(
        default="Test alert from the Sales Alert Portal",
        min_length=1,
        max_length=2000,
        description="Message text",
    )
    center_name: str | None = Field(default=None, description="Title shown on the notification")
    priority: str = Field(default="low", description="critical, high, medium or low")
    trigger_type: str | None = Field(default=None, description="Trigger type used for Slack routing")
    recipients: list[str] = Field(default_factory=list, description="Email addresses")
    user_ids: list[str] = Field(default_factory=list, description="Users to reach via Web Push")
    phone_numbers: list[str] = Field(default_factory=list, description="WhatsApp numbers")


class DeliveryItem(BaseModel):
    """Outcome of one channel delivery."""

    channel: str
    success: bool
    mocked: bool = False
    error: str | None = None
    detail: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, result: DeliveryResult) -> "DeliveryItem":
        return cls(
            channel=result.channel,
            success=result.success,
            mocked=result.mocked,
            error=result.error,
            detail=result.detail,
        )


class NotificationTestResponse(BaseModel):
    """Per-channel results of a test notification."""

    results: list[DeliveryItem]
    latency_ms: float = Field(..., description="Processing latency in milliseconds")


class CronResponse(BaseModel):
    """Response of a scheduled evaluation trigger."""

    success: bool
    message: str
    timestamp: str
    date: str
    summary: dict[str, Any] = Field(default_factory=dict)


# Push subscription models


class PushKeys(BaseModel):
    """Browser-generated encryption keys of a push subscription."""

    p256dh: str = Field(..., min_length=1, description="Client public key")
    auth: str = Field(..., min_length=1, description="Client auth secret")


class PushSubscribeRequest(BaseModel):
    """Request body for registering a browser push subscription."""

    user_id: str = Field(..., min_length=1, description="Portal user receiving pushes")
    endpoint: str = Field(..., min_length=1, description="Push service endpoint URL")
    keys: PushKeys


class PushUnsubscribeRequest(BaseModel):
    """Request body for retiring a push subscription."""

    endpoint: str = Field(..., min_length=1, description="Push service endpoint URL")


class PushSubscriptionResponse(BaseModel):
    """Outcome of a subscribe or unsubscribe call."""

    success: bool
    created: bool = False
