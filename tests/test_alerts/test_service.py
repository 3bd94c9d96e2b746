"""Tests for AlertService sweep orchestration with mocked storage and delivery."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from src.alerts.clock import FixedClock
from src.alerts.dispatcher import NotificationDispatcher
from src.alerts.evaluator import RuleEvaluator
from src.alerts.gate import FrequencyGate
from src.alerts.repository import AlertRepository, AlertRuleRepository, RecipientRepository
from src.alerts.schemas import DeliveryResult, NotificationMetadata, Recipient, SentAlert
from src.alerts.service import AlertService
from src.centers.repository import CenterRepository
from src.centers.schemas import Center
from tests.conftest import BUSINESS_DAY, FakeMetricsProvider, make_rule


def _stored(alert: SentAlert, *_args) -> SentAlert:
    return alert


def _make_alert(**overrides) -> SentAlert:
    defaults = {
        "id": "alert-1",
        "rule_id": "rule_low_sales",
        "center_id": "center_1",
        "alert_type": "low_sales",
        "message": "Austin BPO at 40/100",
        "sent_at": datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc),
    }
    defaults.update(overrides)
    return SentAlert(**defaults)


# ── Fixtures ─────────────────────────────────────────────


@pytest.fixture
def centers(center):
    repo = AsyncMock(spec=CenterRepository)
    repo.active_centers.return_value = [center]
    repo.get_by_id.return_value = center
    return repo


@pytest.fixture
def rules():
    repo = AsyncMock(spec=AlertRuleRepository)
    repo.active_rules.return_value = [make_rule("low_sales", 50, channels=["slack", "email"])]
    return repo


@pytest.fixture
def ledger():
    repo = AsyncMock(spec=AlertRepository)
    repo.has_recent.return_value = False
    repo.create_unless_recent.side_effect = _stored
    return repo


@pytest.fixture
def recipients():
    repo = AsyncMock(spec=RecipientRepository)
    repo.for_roles.return_value = [
        Recipient(user_id="7", email="manager@example.com", phone="+15550100"),
        Recipient(user_id="8", email=None),
    ]
    return repo


@pytest.fixture
def dispatcher():
    mock = AsyncMock(spec=NotificationDispatcher)
    mock.dispatch.return_value = [DeliveryResult(channel="slack", success=True)]
    return mock


@pytest.fixture
def service(metrics, clock, centers, rules, ledger, recipients, dispatcher):
    return AlertService(
        evaluator=RuleEvaluator(metrics, clock),
        gate=FrequencyGate(ledger, clock),
        centers=centers,
        rules=rules,
        ledger=ledger,
        recipients=recipients,
        dispatcher=dispatcher,
        clock=clock,
        dashboard_url="https://portal.example.com/dashboard",
    )


# ── Sweep ────────────────────────────────────────────────


class TestEvaluateAllCenters:
    """Sweep over every active center x enabled rule."""

    @pytest.mark.asyncio
    async def test_fires_records_and_dispatches(self, service, metrics, ledger, dispatcher):
        metrics.sales = 40

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.fired == 1
        assert summary.evaluated == 1
        assert summary.errors == 0

        alert = ledger.create_unless_recent.call_args.args[0]
        assert alert.center_id == "center_1"
        assert alert.alert_type == "low_sales"
        assert alert.message == "Austin BPO at 40/100"
        assert alert.channels_sent == ["slack", "email"]
        assert alert.recipients == ["manager@example.com"]
        assert alert.sent_at == datetime(2026, 3, 10, 13, 0, tzinfo=timezone.utc)

        channels, message, meta = dispatcher.dispatch.call_args.args
        assert channels == ["slack", "email"]
        assert message == "Austin BPO at 40/100"
        assert meta.center_name == "Austin BPO"
        assert meta.user_ids == ["7", "8"]
        assert meta.phone_numbers == ["+15550100"]
        assert meta.alert_id == alert.id
        assert meta.dashboard_url == "https://portal.example.com/dashboard"

    @pytest.mark.asyncio
    async def test_not_fired(self, service, metrics, ledger, dispatcher):
        metrics.sales = 80

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.evaluated == 1
        assert summary.fired == 0
        ledger.create_unless_recent.assert_not_awaited()
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_day_defaults_to_clock_date(self, service, metrics):
        metrics.sales = 80
        summary = await service.evaluate_all_centers()
        assert summary.date == BUSINESS_DAY

    @pytest.mark.asyncio
    async def test_every_pair_evaluated(self, service, centers, rules, metrics):
        centers.active_centers.return_value = [
            Center(id="a", name="A", daily_sales_target=100),
            Center(id="b", name="B", daily_sales_target=100),
        ]
        rules.active_rules.return_value = [
            make_rule("low_sales", 50),
            make_rule("high_dq", 15),
        ]
        metrics.sales = 80

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.centers == 2
        assert summary.rules == 2
        assert summary.evaluated == 4
        assert summary.fired == 0

    @pytest.mark.asyncio
    async def test_store_load_failure_propagates(self, service, centers):
        centers.active_centers.side_effect = ConnectionError("db down")
        with pytest.raises(ConnectionError):
            await service.evaluate_all_centers(BUSINESS_DAY)

    @pytest.mark.asyncio
    async def test_no_centers(self, service, centers, dispatcher):
        centers.active_centers.return_value = []
        summary = await service.evaluate_all_centers(BUSINESS_DAY)
        assert summary.evaluated == 0
        assert summary.to_dict()["alert_ids"] == []
        dispatcher.dispatch.assert_not_awaited()


class TestSuppression:
    @pytest.mark.asyncio
    async def test_recent_alert_suppresses(self, service, metrics, ledger, dispatcher, clock):
        metrics.sales = 40
        ledger.has_recent.return_value = True

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.suppressed == 1
        assert summary.fired == 0
        ledger.has_recent.assert_awaited_once_with(
            "rule_low_sales", "center_1", clock.now() - timedelta(hours=1),
        )
        ledger.create_unless_recent.assert_not_awaited()
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_concurrent_insert_counts_as_suppressed(
        self, service, metrics, ledger, dispatcher,
    ):
        metrics.sales = 40
        ledger.create_unless_recent.side_effect = None
        ledger.create_unless_recent.return_value = None

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.suppressed == 1
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_second_sweep_within_window_is_suppressed(
        self, service, metrics, ledger, dispatcher, clock,
    ):
        metrics.sales = 40
        first = await service.evaluate_all_centers(BUSINESS_DAY)
        assert first.fired == 1

        ledger.has_recent.return_value = True
        clock.advance(minutes=30)
        second = await service.evaluate_all_centers(BUSINESS_DAY)

        assert second.suppressed == 1
        assert dispatcher.dispatch.await_count == 1


class TestLedgerDedup:
    """Repeated sweeps against a ledger that keeps the rows it was given."""

    @pytest.fixture
    def stateful_service(
        self, metrics, clock, centers, rules, memory_ledger, recipients, dispatcher,
    ):
        return AlertService(
            evaluator=RuleEvaluator(metrics, clock),
            gate=FrequencyGate(memory_ledger, clock),
            centers=centers,
            rules=rules,
            ledger=memory_ledger,
            recipients=recipients,
            dispatcher=dispatcher,
            clock=clock,
        )

    @pytest.mark.asyncio
    async def test_two_sweeps_in_window_store_one_row(
        self, stateful_service, metrics, memory_ledger, dispatcher, clock,
    ):
        metrics.sales = 40

        first = await stateful_service.evaluate_all_centers(BUSINESS_DAY)
        clock.advance(minutes=30)
        second = await stateful_service.evaluate_all_centers(BUSINESS_DAY)

        assert first.fired == 1
        assert second.suppressed == 1
        assert len(memory_ledger.rows) == 1
        assert dispatcher.dispatch.await_count == 1

    @pytest.mark.asyncio
    async def test_fires_again_after_window(
        self, stateful_service, metrics, memory_ledger, clock,
    ):
        metrics.sales = 40

        await stateful_service.evaluate_all_centers(BUSINESS_DAY)
        clock.advance(minutes=30)
        await stateful_service.evaluate_all_centers(BUSINESS_DAY)
        clock.advance(minutes=61)
        third = await stateful_service.evaluate_all_centers(BUSINESS_DAY)

        assert third.fired == 1
        assert len(memory_ledger.rows) == 2
        assert memory_ledger.rows[1].sent_at - memory_ledger.rows[0].sent_at == timedelta(minutes=91)

    @pytest.mark.asyncio
    async def test_zero_sales_fires_once_per_window(
        self, stateful_service, metrics, rules, memory_ledger, clock,
    ):
        rules.active_rules.return_value = [make_rule("zero_sales", 0, "[Center] has no sales")]
        metrics.sales = 0

        # every five minutes from 13:00 through 14:55
        for _ in range(24):
            await stateful_service.evaluate_all_centers(BUSINESS_DAY)
            clock.advance(minutes=5)

        sent = [row.sent_at for row in memory_ledger.rows]
        assert [t.strftime("%H:%M") for t in sent] == ["13:00", "14:05"]
        assert all(row.alert_type == "zero_sales" for row in memory_ledger.rows)

    @pytest.mark.asyncio
    async def test_pairs_deduplicated_independently(
        self, stateful_service, metrics, center, centers, memory_ledger, clock,
    ):
        other = Center(id="center_2", name="Dallas BPO", daily_sales_target=100)
        centers.active_centers.return_value = [center, other]
        metrics.sales = 40

        await stateful_service.evaluate_all_centers(BUSINESS_DAY)
        clock.advance(minutes=10)
        await stateful_service.evaluate_all_centers(BUSINESS_DAY)

        assert sorted(row.center_id for row in memory_ledger.rows) == ["center_1", "center_2"]


class TestQuietHours:
    @pytest.mark.asyncio
    async def test_inside_window_skips_evaluation(self, service, rules, metrics):
        rules.active_rules.return_value = [
            make_rule("low_sales", 50, quiet_hours_start="12:00", quiet_hours_end="14:00"),
        ]
        metrics.sales = 0

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.skipped_quiet_hours == 1
        assert summary.evaluated == 0
        assert metrics.calls == []

    @pytest.mark.asyncio
    async def test_window_wrapping_midnight(self, metrics, centers, rules, ledger, recipients, dispatcher):
        rules.active_rules.return_value = [
            make_rule("low_sales", 50, quiet_hours_start="22:00", quiet_hours_end="07:00"),
        ]
        metrics.sales = 10
        clock = FixedClock.at_hour(BUSINESS_DAY, 23, 30)
        service = AlertService(
            RuleEvaluator(metrics, clock), FrequencyGate(ledger, clock),
            centers, rules, ledger, recipients, dispatcher, clock,
        )

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.skipped_quiet_hours == 1
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_outside_window_evaluates(self, service, rules, metrics):
        rules.active_rules.return_value = [
            make_rule("low_sales", 50, quiet_hours_start="22:00", quiet_hours_end="07:00"),
        ]
        metrics.sales = 40

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.skipped_quiet_hours == 0
        assert summary.fired == 1


class TestErrorIsolation:
    """A failure in one pair never stops the others."""

    @pytest.mark.asyncio
    async def test_pair_error_counted_and_sweep_continues(self, service, centers, ledger, clock):
        class FlakyProvider(FakeMetricsProvider):
            async def sales_volume(self, day, center_id):
                if center_id == "bad":
                    raise ConnectionError("metrics unavailable")
                return 40

        service._evaluator = RuleEvaluator(FlakyProvider(), clock)
        centers.active_centers.return_value = [
            Center(id="bad", name="Broken", daily_sales_target=100),
            Center(id="good", name="Working", daily_sales_target=100),
        ]

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.errors == 1
        assert summary.fired == 1
        assert summary.alerts[0].center_id == "good"

    @pytest.mark.asyncio
    async def test_insert_failure_sends_nothing(self, service, metrics, ledger, dispatcher):
        metrics.sales = 40
        ledger.create_unless_recent.side_effect = ConnectionError("insert failed")

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.errors == 1
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ledger_read_failure_sends_nothing(self, service, metrics, ledger, dispatcher):
        metrics.sales = 40
        ledger.has_recent.side_effect = ConnectionError("db down")

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.errors == 1
        dispatcher.dispatch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_dispatch_failure_keeps_ledger_row(self, service, metrics, ledger, dispatcher):
        metrics.sales = 40
        dispatcher.dispatch.side_effect = RuntimeError("transport exploded")

        summary = await service.evaluate_all_centers(BUSINESS_DAY)

        assert summary.fired == 1
        assert summary.errors == 0
        ledger.create_unless_recent.assert_awaited_once()


class TestCheckSingleCenter:
    @pytest.mark.asyncio
    async def test_evaluates_only_that_center(self, service, centers, metrics):
        metrics.sales = 40

        summary = await service.check_single_center("center_1", BUSINESS_DAY)

        assert summary.centers == 1
        assert summary.fired == 1
        centers.get_by_id.assert_awaited_once_with("center_1")
        centers.active_centers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_center_raises(self, service, centers):
        centers.get_by_id.return_value = None
        with pytest.raises(LookupError):
            await service.check_single_center("missing", BUSINESS_DAY)


# ── Ledger operations ────────────────────────────────────


class TestAcknowledge:
    @pytest.mark.asyncio
    async def test_first_acknowledgement_stored(self, service, ledger, clock):
        ledger.get_by_id.return_value = _make_alert()
        acked = _make_alert(acknowledged_by="ana", acknowledged_at=clock.now())
        ledger.acknowledge.return_value = acked

        result = await service.acknowledge("alert-1", "ana", "called the floor")

        assert result is acked
        ledger.acknowledge.assert_awaited_once_with(
            "alert-1", "ana",
            response_action="called the floor",
            acknowledged_at=clock.now(),
        )

    @pytest.mark.asyncio
    async def test_second_acknowledgement_is_no_op(self, service, ledger):
        first = datetime(2026, 3, 10, 13, 5, tzinfo=timezone.utc)
        existing = _make_alert(acknowledged_by="ana", acknowledged_at=first)
        ledger.get_by_id.return_value = existing

        result = await service.acknowledge("alert-1", "bob")

        assert result.acknowledged_by == "ana"
        assert result.acknowledged_at == first
        ledger.acknowledge.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_alert_raises(self, service, ledger):
        ledger.get_by_id.return_value = None
        with pytest.raises(LookupError):
            await service.acknowledge("missing", "ana")


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_alert_missing(self, service, ledger):
        ledger.get_by_id.return_value = None
        with pytest.raises(LookupError):
            await service.get_alert("missing")

    @pytest.mark.asyncio
    async def test_list_alerts_passes_filters(self, service, ledger):
        ledger.get_recent.return_value = [_make_alert()]

        alerts = await service.list_alerts(center_id="center_1", acknowledged=False, limit=10)

        assert len(alerts) == 1
        ledger.get_recent.assert_awaited_once_with(
            center_id="center_1",
            alert_type=None,
            acknowledged=False,
            limit=10,
            offset=0,
        )

    @pytest.mark.asyncio
    async def test_history_window(self, service, ledger, clock):
        ledger.get_recent.return_value = []

        await service.get_alert_history("center_1", days=3)

        ledger.get_recent.assert_awaited_once_with(
            center_id="center_1", since=clock.now() - timedelta(days=3), limit=500,
        )

    @pytest.mark.asyncio
    async def test_send_test_notification_skips_ledger(self, service, ledger, dispatcher):
        results = await service.send_test_notification(
            ["slack"], "hello", NotificationMetadata(priority="low"),
        )

        assert results[0].success is True
        ledger.create_unless_recent.assert_not_awaited()
