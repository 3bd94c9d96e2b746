"""Alert engine turning center KPIs into deduplicated multi-channel notifications.

Components:
- AlertRule / SentAlert / PendingAlert: Rule definitions and ledger rows
- AlertConfig: Pydantic settings for cooldown, milestones and concurrency
- RuleEvaluator: Fetches the metrics a rule needs and applies its trigger
- FrequencyGate: Suppresses repeats of a (rule, center) within the cooldown
- AlertRepository / AlertRuleRepository / RecipientRepository: asyncpg access
- AlertService: Orchestrator for the center x rule sweep and acknowledgement
- NotificationChannel / SlackChannel / EmailChannel / WebPushChannel /
  WhatsAppChannel: Delivery transports with mocked fallback
- NotificationConfig / NotificationDispatcher: Fan-out with retries
"""

from src.alerts.channels import (
    EmailChannel,
    NotificationChannel,
    SlackChannel,
    WebPushChannel,
    WhatsAppChannel,
    create_default_channels,
    route_slack_channel,
)
from src.alerts.clock import Clock, FixedClock, SystemClock
from src.alerts.config import AlertConfig
from src.alerts.dispatcher import NotificationConfig, NotificationDispatcher
from src.alerts.evaluator import RuleEvaluator
from src.alerts.gate import FrequencyGate
from src.alerts.repository import AlertRepository, AlertRuleRepository, RecipientRepository
from src.alerts.schemas import (
    VALID_CHANNELS,
    VALID_PRIORITIES,
    VALID_TRIGGER_TYPES,
    AlertPriority,
    AlertRule,
    AlertTriggerType,
    DeliveryResult,
    NotificationMetadata,
    PendingAlert,
    Recipient,
    SentAlert,
)
from src.alerts.service import AlertService, EvaluationSummary

__all__ = [
    "AlertConfig",
    "AlertPriority",
    "AlertRepository",
    "AlertRule",
    "AlertRuleRepository",
    "AlertService",
    "AlertTriggerType",
    "Clock",
    "DeliveryResult",
    "EmailChannel",
    "EvaluationSummary",
    "FixedClock",
    "FrequencyGate",
    "NotificationChannel",
    "NotificationConfig",
    "NotificationDispatcher",
    "NotificationMetadata",
    "PendingAlert",
    "Recipient",
    "RecipientRepository",
    "RuleEvaluator",
    "SentAlert",
    "SlackChannel",
    "SystemClock",
    "VALID_CHANNELS",
    "VALID_PRIORITIES",
    "VALID_TRIGGER_TYPES",
    "WebPushChannel",
    "WhatsAppChannel",
    "create_default_channels",
    "route_slack_channel",
]
