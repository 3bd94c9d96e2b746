"""Tests for alert schema validation and serialization."""

import pytest
from datetime import datetime, timezone

from src.alerts.templates import DEFAULT_TEMPLATES
from src.alerts.schemas import (
    VALID_CHANNELS,
    VALID_PRIORITIES,
    VALID_TRIGGER_TYPES,
    AlertRule,
    DeliveryResult,
    PendingAlert,
    SentAlert,
)
from src.centers.schemas import Center
from tests.conftest import make_rule


class TestAlertRuleValidation:
    """Test AlertRule __post_init__ validation."""

    def test_valid_rule(self):
        rule = make_rule(priority="critical", channels=["slack", "email", "push", "whatsapp"])
        assert rule.enabled is True
        assert rule.has_quiet_hours is False

    def test_invalid_trigger_type_raises(self):
        with pytest.raises(ValueError, match="Invalid trigger_type"):
            make_rule("volume_surge")

    def test_invalid_priority_raises(self):
        with pytest.raises(ValueError, match="Invalid priority"):
            make_rule(priority="urgent")

    def test_invalid_channel_raises(self):
        with pytest.raises(ValueError, match="Invalid channels"):
            make_rule(channels=["slack", "sms"])

    def test_invalid_quiet_hours_raises(self):
        with pytest.raises(ValueError, match="quiet hours"):
            make_rule(quiet_hours_start="25:00", quiet_hours_end="07:00")

    def test_quiet_hours(self):
        rule = make_rule(quiet_hours_start="22:00", quiet_hours_end="07:00")
        assert rule.has_quiet_hours is True

    def test_constants(self):
        assert len(VALID_TRIGGER_TYPES) == 6
        assert VALID_PRIORITIES == {"critical", "high", "medium", "low"}
        assert VALID_CHANNELS == {"slack", "email", "push", "whatsapp"}


class TestAlertRuleSerialization:
    def test_roundtrip(self):
        rule = make_rule(quiet_hours_start="22:00", quiet_hours_end="07:00")
        assert AlertRule.from_dict(rule.to_dict()) == rule

    def test_from_dict_defaults(self):
        rule = AlertRule.from_dict({"id": 3, "trigger_type": "milestone"})
        assert rule.name == "3"
        assert rule.condition_threshold == 0.0
        assert rule.channels == []
        assert rule.priority == "medium"
        assert rule.quiet_hours_start is None

    def test_missing_template_uses_trigger_default(self):
        rule = AlertRule.from_dict({"id": "r1", "trigger_type": "zero_sales"})
        assert rule.message_template == DEFAULT_TEMPLATES["zero_sales"]

    def test_blank_template_uses_trigger_default(self):
        rule = make_rule("high_dq", 5, "   ")
        assert rule.message_template == DEFAULT_TEMPLATES["high_dq"]


class TestSentAlert:
    @pytest.fixture
    def pending(self, center):
        rule = make_rule(channels=["slack", "email"], priority="high")
        return PendingAlert(rule=rule, center=center, message="msg", metadata={"sales": 40})

    def test_from_pending(self, pending):
        sent_at = datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)
        alert = SentAlert.from_pending(pending, ["a@example.com"], sent_at=sent_at)

        assert alert.rule_id == "rule_low_sales"
        assert alert.center_id == "center_1"
        assert alert.alert_type == "low_sales"
        assert alert.channels_sent == ["slack", "email"]
        assert alert.recipients == ["a@example.com"]
        assert alert.sent_at == sent_at
        assert alert.metadata == {"sales": 40, "priority": "high"}
        assert alert.acknowledged is False
        assert alert.id

    def test_channels_sent_is_a_copy(self, pending):
        alert = SentAlert.from_pending(pending, [])
        alert.channels_sent.append("push")
        assert pending.rule.channels == ["slack", "email"]

    def test_invalid_alert_type_raises(self):
        with pytest.raises(ValueError, match="Invalid alert_type"):
            SentAlert(rule_id="r", center_id="c", alert_type="nope", message="m")

    def test_to_dict_from_dict_roundtrip(self, pending):
        alert = SentAlert.from_pending(pending, ["a@example.com"])
        alert.acknowledged_by = "ana"
        alert.acknowledged_at = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)

        restored = SentAlert.from_dict(alert.to_dict())

        assert restored == alert


class TestDeliveryResult:
    def test_to_dict_omits_unset_fields(self):
        assert DeliveryResult(channel="slack", success=True).to_dict() == {
            "channel": "slack",
            "success": True,
        }

    def test_to_dict_mocked_and_error(self):
        data = DeliveryResult(
            channel="email", success=False, mocked=True, error="boom", detail={"sent": 0},
        ).to_dict()
        assert data == {
            "channel": "email",
            "success": False,
            "mocked": True,
            "error": "boom",
            "sent": 0,
        }


class TestCenter:
    def test_from_portal_row(self):
        center = Center.from_dict({
            "id": 9, "center_name": "Lagos", "daily_sales_target": 40, "status": False,
        })
        assert center.id == "9"
        assert center.name == "Lagos"
        assert center.active is False

    def test_achievement_pct(self):
        center = Center(id="1", name="X", daily_sales_target=80)
        assert center.achievement_pct(20) == 25.0

    def test_zero_target_has_no_percentage(self):
        center = Center(id="1", name="X", daily_sales_target=0)
        assert center.has_target is False
        assert center.achievement_pct(10) is None
