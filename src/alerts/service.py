"""Alert service orchestrating evaluation, suppression, persistence and delivery.

The only component that combines side effects: it reads centers and
rules, asks the ``RuleEvaluator`` whether each pair fires, consults the
``FrequencyGate``, writes the ledger row and hands the message to the
``NotificationDispatcher``. Trigger logic itself lives in the stateless
functions of ``triggers.py``.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from src.alerts.clock import Clock, hhmm, in_quiet_hours
from src.alerts.config import AlertConfig
from src.alerts.dispatcher import NotificationDispatcher
from src.alerts.evaluator import RuleEvaluator
from src.alerts.gate import FrequencyGate
from src.alerts.repository import AlertRepository, AlertRuleRepository, RecipientRepository
from src.alerts.schemas import (
    AlertRule,
    DeliveryResult,
    NotificationMetadata,
    PendingAlert,
    SentAlert,
)
from src.centers.repository import CenterRepository
from src.centers.schemas import Center
from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class EvaluationSummary:
    """Counts for one sweep, for logs and CLI/HTTP output."""

    date: date
    centers: int = 0
    rules: int = 0
    evaluated: int = 0
    fired: int = 0
    suppressed: int = 0
    skipped_quiet_hours: int = 0
    errors: int = 0
    alerts: list[SentAlert] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "centers": self.centers,
            "rules": self.rules,
            "evaluated": self.evaluated,
            "fired": self.fired,
            "suppressed": self.suppressed,
            "skipped_quiet_hours": self.skipped_quiet_hours,
            "errors": self.errors,
            "alert_ids": [a.id for a in self.alerts],
        }


class AlertService:
    """Runs the center x rule sweep and owns the alert ledger operations."""

    def __init__(
        self,
        evaluator: RuleEvaluator,
        gate: FrequencyGate,
        centers: CenterRepository,
        rules: AlertRuleRepository,
        ledger: AlertRepository,
        recipients: RecipientRepository,
        dispatcher: NotificationDispatcher,
        clock: Clock,
        config: AlertConfig | None = None,
        dashboard_url: str | None = None,
    ) -> None:
        self._evaluator = evaluator
        self._gate = gate
        self._centers = centers
        self._rules = rules
        self._ledger = ledger
        self._recipients = recipients
        self._dispatcher = dispatcher
        self._clock = clock
        self._config = config or AlertConfig()
        self._dashboard_url = dashboard_url

    async def evaluate_all_centers(self, day: date | None = None) -> EvaluationSummary:
        """Evaluate every active center against every enabled rule.

        Loading centers or rules may raise; once the sweep has started,
        a failure in one (rule, center) pair is logged and counted and
        the remaining pairs still run.

        Args:
            day: Business date to evaluate (defaults to today in the
                clock's timezone).

        Returns:
            Sweep counts.
        """
        day = day or self._clock.now().date()
        centers = await self._centers.active_centers()
        rules = await self._rules.active_rules()
        return await self._sweep(day, centers, rules)

    async def check_single_center(
        self,
        center_id: str,
        day: date | None = None,
    ) -> EvaluationSummary:
        """Run the same sweep for one center.

        Raises:
            LookupError: If the center does not exist.
        """
        day = day or self._clock.now().date()
        center = await self._centers.get_by_id(center_id)
        if center is None:
            raise LookupError(f"Center {center_id} not found")
        rules = await self._rules.active_rules()
        return await self._sweep(day, [center], rules)

    async def _sweep(
        self,
        day: date,
        centers: list[Center],
        rules: list[AlertRule],
    ) -> EvaluationSummary:
        summary = EvaluationSummary(date=day, centers=len(centers), rules=len(rules))
        started = time.monotonic()
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def run(center: Center, rule: AlertRule) -> tuple[str, SentAlert | None]:
            async with semaphore:
                return await self._process_pair(rule, center, day)

        outcomes = await asyncio.gather(
            *(run(center, rule) for center in centers for rule in rules)
        )

        for outcome, alert in outcomes:
            if outcome == "quiet":
                summary.skipped_quiet_hours += 1
                continue
            if outcome == "error":
                summary.errors += 1
                continue
            summary.evaluated += 1
            if outcome == "suppressed":
                summary.suppressed += 1
            elif outcome == "fired" and alert is not None:
                summary.fired += 1
                summary.alerts.append(alert)

        get_metrics().record_sweep(
            latency=time.monotonic() - started,
            errors=summary.errors,
            timestamp=self._clock.now().timestamp(),
        )
        logger.info(
            "Alert sweep for %s: %d centers x %d rules, %d evaluated, "
            "%d fired, %d suppressed, %d quiet, %d errors",
            day, summary.centers, summary.rules, summary.evaluated,
            summary.fired, summary.suppressed, summary.skipped_quiet_hours,
            summary.errors,
        )
        return summary

    async def _process_pair(
        self,
        rule: AlertRule,
        center: Center,
        day: date,
    ) -> tuple[str, SentAlert | None]:
        """Evaluate and, if it fires, trigger one pair.

        Returns:
            (outcome, alert) where outcome is one of ``quiet``,
            ``not_fired``, ``suppressed``, ``fired`` or ``error``.
        """
        metrics = get_metrics()

        if rule.has_quiet_hours and in_quiet_hours(
            hhmm(self._clock.now()), rule.quiet_hours_start, rule.quiet_hours_end,
        ):
            logger.debug("Rule %s in quiet hours, skipping %s", rule.name, center.name)
            metrics.record_evaluation(rule.trigger_type, "quiet")
            return "quiet", None

        try:
            pending = await self._evaluator.evaluate(rule, center, day)
            if pending is None:
                outcome, alert = "not_fired", None
            else:
                alert = await self._trigger(pending)
                outcome = "fired" if alert is not None else "suppressed"
        except Exception as e:
            logger.error(
                "Error evaluating rule %s for center %s: %s",
                rule.name, center.name, e,
            )
            metrics.record_evaluation(rule.trigger_type, "error")
            return "error", None

        metrics.record_evaluation(rule.trigger_type, outcome)
        return outcome, alert

    async def _trigger(self, pending: PendingAlert) -> SentAlert | None:
        """Gate, persist and dispatch a pending alert.

        The ledger row is written before any notification goes out; if
        the insert fails nothing is sent. Delivery failures after the
        insert are logged only.

        Returns:
            The stored alert, or None if it was suppressed.
        """
        rule, center = pending.rule, pending.center

        if await self._gate.should_suppress(rule, center):
            return None

        recipients = await self._recipients.for_roles(rule.recipient_roles)
        alert = SentAlert.from_pending(
            pending,
            recipients=[r.email for r in recipients if r.email],
            sent_at=self._clock.now(),
        )

        stored = await self._ledger.create_unless_recent(alert, self._gate.window_start())
        if stored is None:
            logger.info(
                "Alert for %s (rule %s) already recorded by a concurrent sweep",
                center.name, rule.name,
            )
            return None

        get_metrics().record_alert_sent(rule.trigger_type, rule.priority)
        logger.info(
            "Alert %s fired: %s for %s", stored.id, rule.trigger_type, center.name,
        )

        metadata = NotificationMetadata(
            center_name=center.name,
            priority=rule.priority,
            trigger_type=rule.trigger_type,
            recipients=[r.email for r in recipients if r.email],
            user_ids=[r.user_id for r in recipients],
            phone_numbers=[r.phone for r in recipients if r.phone],
            dashboard_url=self._dashboard_url,
            alert_id=stored.id,
        )
        try:
            await self._dispatcher.dispatch(rule.channels, pending.message, metadata)
        except Exception as e:
            get_metrics().sweep_errors.labels(stage="deliver").inc()
            logger.error("Notification dispatch failed for alert %s: %s", stored.id, e)

        return stored

    async def send_test_notification(
        self,
        channels: list[str],
        message: str,
        metadata: NotificationMetadata,
    ) -> list[DeliveryResult]:
        """Dispatch an ad-hoc message without touching the ledger."""
        return await self._dispatcher.dispatch(channels, message, metadata)

    async def acknowledge(
        self,
        alert_id: str,
        acknowledged_by: str | None,
        response_action: str | None = None,
    ) -> SentAlert:
        """Acknowledge an alert; later acknowledgements leave it unchanged.

        Raises:
            LookupError: If the alert does not exist.
        """
        before = await self._ledger.get_by_id(alert_id)
        if before is None:
            raise LookupError(f"Alert {alert_id} not found")
        if before.acknowledged:
            logger.info(
                "Alert %s already acknowledged by %s", alert_id, before.acknowledged_by,
            )
            return before

        alert = await self._ledger.acknowledge(
            alert_id,
            acknowledged_by,
            response_action=response_action,
            acknowledged_at=self._clock.now(),
        )
        if alert is None:
            raise LookupError(f"Alert {alert_id} not found")
        get_metrics().acknowledgements.inc()
        return alert

    async def get_alert(self, alert_id: str) -> SentAlert:
        alert = await self._ledger.get_by_id(alert_id)
        if alert is None:
            raise LookupError(f"Alert {alert_id} not found")
        return alert

    async def list_alerts(
        self,
        *,
        center_id: str | None = None,
        alert_type: str | None = None,
        acknowledged: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[SentAlert]:
        return await self._ledger.get_recent(
            center_id=center_id,
            alert_type=alert_type,
            acknowledged=acknowledged,
            limit=limit,
            offset=offset,
        )

    async def get_alert_history(self, center_id: str, days: int = 7) -> list[SentAlert]:
        """Ledger rows for a center sent in the last ``days`` days, newest first."""
        since = self._clock.now() - timedelta(days=days)
        return await self._ledger.get_recent(center_id=center_id, since=since, limit=500)
