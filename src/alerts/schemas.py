"""Schema definitions for alert rules, ledger rows and deliveries.

``AlertRule`` maps to the admin-managed ``alert_rules`` table and
``SentAlert`` maps 1:1 to the ``alerts_sent`` ledger. Each ledger row
records one fired (non-suppressed) rule for one center, together with the
channels the rule asked for and the recipients resolved at firing time.
"""

import json
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from src.alerts.templates import DEFAULT_TEMPLATES
from src.centers.schemas import Center

AlertTriggerType = Literal[
    "low_sales",
    "zero_sales",
    "high_dq",
    "low_approval",
    "milestone",
    "below_threshold_duration",
]

VALID_TRIGGER_TYPES: frozenset[str] = frozenset({
    "low_sales",
    "zero_sales",
    "high_dq",
    "low_approval",
    "milestone",
    "below_threshold_duration",
})

AlertPriority = Literal["critical", "high", "medium", "low"]

VALID_PRIORITIES: frozenset[str] = frozenset({
    "critical",
    "high",
    "medium",
    "low",
})

NotificationChannelName = Literal["slack", "email", "push", "whatsapp"]

VALID_CHANNELS: frozenset[str] = frozenset({
    "slack",
    "email",
    "push",
    "whatsapp",
})

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def _parse_datetime(value: Any) -> datetime | None:
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return value


@dataclass
class AlertRule:
    """An admin-defined alert rule, immutable during one evaluation pass.

    Attributes:
        id: Rule identifier.
        name: Human-readable rule name.
        trigger_type: Which condition the rule checks.
        condition_threshold: Threshold whose meaning depends on the trigger
            (percent of target, DQ percent, approval ratio percent).
        message_template: Text with ``[Placeholder]`` tokens. A blank template
            falls back to the trigger type's default.
        recipient_roles: User roles that receive the alert.
        channels: Delivery channels requested by the rule.
        priority: critical, high, medium or low.
        enabled: Disabled rules are never evaluated.
        quiet_hours_start: Optional ``HH:MM`` start of the quiet window.
        quiet_hours_end: Optional ``HH:MM`` end of the quiet window.
    """

    id: str
    name: str
    trigger_type: str
    condition_threshold: float
    message_template: str
    channels: list[str] = field(default_factory=list)
    recipient_roles: list[str] = field(default_factory=list)
    priority: str = "medium"
    enabled: bool = True
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None

    def __post_init__(self) -> None:
        if self.trigger_type not in VALID_TRIGGER_TYPES:
            raise ValueError(
                f"Invalid trigger_type {self.trigger_type!r}. "
                f"Must be one of: {sorted(VALID_TRIGGER_TYPES)}"
            )
        if self.priority not in VALID_PRIORITIES:
            raise ValueError(
                f"Invalid priority {self.priority!r}. "
                f"Must be one of: {sorted(VALID_PRIORITIES)}"
            )
        unknown = set(self.channels) - VALID_CHANNELS
        if unknown:
            raise ValueError(
                f"Invalid channels {sorted(unknown)}. "
                f"Must be a subset of: {sorted(VALID_CHANNELS)}"
            )
        for bound in (self.quiet_hours_start, self.quiet_hours_end):
            if bound is not None and not _HHMM.match(bound):
                raise ValueError(f"Invalid quiet hours bound {bound!r}, expected HH:MM")
        if not self.message_template.strip():
            self.message_template = DEFAULT_TEMPLATES[self.trigger_type]

    @property
    def has_quiet_hours(self) -> bool:
        return bool(self.quiet_hours_start and self.quiet_hours_end)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "trigger_type": self.trigger_type,
            "condition_threshold": self.condition_threshold,
            "message_template": self.message_template,
            "channels": list(self.channels),
            "recipient_roles": list(self.recipient_roles),
            "priority": self.priority,
            "enabled": self.enabled,
            "quiet_hours_start": self.quiet_hours_start,
            "quiet_hours_end": self.quiet_hours_end,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertRule":
        """Create an AlertRule from a dictionary or ``alert_rules`` row.

        Accepts the portal column names ``rule_name`` and
        ``alert_message_template``. Postgres ``TIME`` values are
        truncated to ``HH:MM``.
        """

        def _hhmm(value: Any) -> str | None:
            if value is None or value == "":
                return None
            return str(value)[:5]

        return cls(
            id=str(data["id"]),
            name=data.get("name") or data.get("rule_name") or str(data["id"]),
            trigger_type=data["trigger_type"],
            condition_threshold=float(data.get("condition_threshold") or 0),
            message_template=(
                data.get("message_template")
                or data.get("alert_message_template")
                or ""
            ),
            channels=list(data.get("channels") or []),
            recipient_roles=list(data.get("recipient_roles") or []),
            priority=data.get("priority", "medium"),
            enabled=bool(data.get("enabled", True)),
            quiet_hours_start=_hhmm(data.get("quiet_hours_start")),
            quiet_hours_end=_hhmm(data.get("quiet_hours_end")),
        )


@dataclass
class PendingAlert:
    """A rule whose condition holds for a center, not yet gated or persisted.

    Attributes:
        rule: Rule that fired.
        center: Center it fired for.
        message: Fully substituted alert message.
        metadata: Trigger-specific values stored with the ledger row.
    """

    rule: AlertRule
    center: Center
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def trigger_type(self) -> str:
        return self.rule.trigger_type


@dataclass
class SentAlert:
    """A row of the append-only ``alerts_sent`` ledger.

    ``channels_sent`` records the channels the rule requested (intent to
    send), not the subset that delivered successfully. Only the
    acknowledgement fields change after creation, and only once.
    """

    rule_id: str
    center_id: str
    alert_type: str
    message: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    channels_sent: list[str] = field(default_factory=list)
    recipients: list[str] = field(default_factory=list)
    sent_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    metadata: dict[str, Any] = field(default_factory=dict)
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    response_action: str | None = None

    def __post_init__(self) -> None:
        if self.alert_type not in VALID_TRIGGER_TYPES:
            raise ValueError(
                f"Invalid alert_type {self.alert_type!r}. "
                f"Must be one of: {sorted(VALID_TRIGGER_TYPES)}"
            )

    @property
    def acknowledged(self) -> bool:
        return self.acknowledged_at is not None

    @classmethod
    def from_pending(
        cls,
        pending: PendingAlert,
        recipients: list[str],
        sent_at: datetime | None = None,
    ) -> "SentAlert":
        """Build the ledger row for a pending alert about to be sent."""
        return cls(
            rule_id=pending.rule.id,
            center_id=pending.center.id,
            alert_type=pending.rule.trigger_type,
            message=pending.message,
            channels_sent=list(pending.rule.channels),
            recipients=list(recipients),
            sent_at=sent_at or datetime.now(timezone.utc),
            metadata={**pending.metadata, "priority": pending.rule.priority},
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "center_id": self.center_id,
            "alert_type": self.alert_type,
            "message": self.message,
            "channels_sent": list(self.channels_sent),
            "recipients": list(self.recipients),
            "sent_at": self.sent_at.isoformat(),
            "metadata": self.metadata,
            "acknowledged_by": self.acknowledged_by,
            "acknowledged_at": (
                self.acknowledged_at.isoformat() if self.acknowledged_at else None
            ),
            "response_action": self.response_action,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SentAlert":
        sent_at = _parse_datetime(data.get("sent_at")) or datetime.now(timezone.utc)

        metadata = data.get("metadata") or {}
        if isinstance(metadata, str):
            metadata = json.loads(metadata)

        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            rule_id=str(data["rule_id"]),
            center_id=str(data["center_id"]),
            alert_type=data["alert_type"],
            message=data["message"],
            channels_sent=list(data.get("channels_sent") or []),
            recipients=list(data.get("recipients") or []),
            sent_at=sent_at,
            metadata=metadata,
            acknowledged_by=data.get("acknowledged_by"),
            acknowledged_at=_parse_datetime(data.get("acknowledged_at")),
            response_action=data.get("response_action"),
        )


@dataclass(frozen=True)
class Recipient:
    """A portal user who receives alerts for one of their roles."""

    user_id: str
    email: str | None = None
    name: str | None = None
    phone: str | None = None


@dataclass
class NotificationMetadata:
    """Context passed to every channel alongside the message text.

    Attributes:
        center_name: Used as title/header/subject.
        priority: Rule priority; drives badges and Slack fallback routing.
        trigger_type: Rule trigger type; drives Slack routing.
        recipients: Email addresses.
        user_ids: Users to reach via Web Push.
        phone_numbers: E.164 numbers to reach via WhatsApp.
        action_items: Optional bullet list rendered by Slack and email.
        dashboard_url: Link rendered as a button.
        alert_id: Ledger id, echoed in push data and Slack actions.
    """

    center_name: str | None = None
    priority: str | None = None
    trigger_type: str | None = None
    recipients: list[str] = field(default_factory=list)
    user_ids: list[str] = field(default_factory=list)
    phone_numbers: list[str] = field(default_factory=list)
    action_items: list[str] = field(default_factory=list)
    dashboard_url: str | None = None
    alert_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "center_name": self.center_name,
            "priority": self.priority,
            "trigger_type": self.trigger_type,
            "recipients": list(self.recipients),
            "user_ids": list(self.user_ids),
            "phone_numbers": list(self.phone_numbers),
            "action_items": list(self.action_items),
            "dashboard_url": self.dashboard_url,
            "alert_id": self.alert_id,
        }


@dataclass
class DeliveryResult:
    """Outcome of one channel's delivery attempt.

    ``mocked`` is set when the channel is not configured in this
    environment and the message was only logged.
    ``retryable`` is cleared for failures another attempt cannot fix,
    such as a missing recipient list.
    """

    channel: str
    success: bool
    mocked: bool = False
    error: str | None = None
    detail: dict[str, Any] = field(default_factory=dict)
    retryable: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Serialize, omitting ``mocked``/``error`` when unset."""
        data: dict[str, Any] = {"channel": self.channel, "success": self.success}
        if self.mocked:
            data["mocked"] = True
        if self.error is not None:
            data["error"] = self.error
        if self.detail:
            data.update(self.detail)
        return data
