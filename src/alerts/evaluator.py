"""Rule evaluator: fetches the metrics a rule needs and applies its trigger.

``RuleEvaluator.evaluate`` is pure apart from MetricsProvider reads; it
does not consult the ledger, persist anything or send notifications.
"""

import logging
from datetime import date

from src.alerts.clock import Clock
from src.alerts.config import AlertConfig
from src.alerts.schemas import AlertRule, PendingAlert
from src.alerts.triggers import (
    check_below_threshold_duration,
    check_high_dq,
    check_low_approval,
    check_low_sales,
    check_milestone,
    check_zero_sales,
)
from src.centers.schemas import Center
from src.kpis.provider import MetricsProvider

logger = logging.getLogger(__name__)


class RuleEvaluator:
    """Evaluates one (rule, center, date) triple."""

    def __init__(
        self,
        metrics: MetricsProvider,
        clock: Clock,
        config: AlertConfig | None = None,
    ) -> None:
        self._metrics = metrics
        self._clock = clock
        self._config = config or AlertConfig()

    async def evaluate(
        self,
        rule: AlertRule,
        center: Center,
        day: date,
    ) -> PendingAlert | None:
        """Decide whether ``rule`` currently holds for ``center`` on ``day``.

        Args:
            rule: Enabled alert rule.
            center: Active center.
            day: Business date whose metrics are read.

        Returns:
            PendingAlert with the substituted message, or None.

        Raises:
            Exception: Metric provider failures propagate to the caller.
        """
        now = self._clock.now()
        trigger = rule.trigger_type

        if trigger == "low_sales":
            sales = await self._metrics.sales_volume(day, center.id)
            return check_low_sales(rule, center, sales, now)

        if trigger == "zero_sales":
            sales = await self._metrics.sales_volume(day, center.id)
            return check_zero_sales(
                rule, center, sales, now, min_hour=self._config.zero_sales_min_hour,
            )

        if trigger == "high_dq":
            dq = await self._metrics.dq_percentage(day, center.id)
            if dq.percentage <= rule.condition_threshold:
                return None
            issues = await self._metrics.recent_dq_categories(
                day, center.id, limit=self._config.top_dq_issues,
            )
            return check_high_dq(
                rule, center, dq, issues, max_issues=self._config.top_dq_issues,
            )

        if trigger == "low_approval":
            approval = await self._metrics.approval_ratio(day, center.id)
            if approval.ratio >= rule.condition_threshold:
                return None
            underwriting = await self._metrics.underwriting_volume(day, center.id)
            return check_low_approval(rule, center, approval, underwriting)

        if trigger == "milestone":
            sales = await self._metrics.sales_volume(day, center.id)
            return check_milestone(
                rule,
                center,
                sales,
                ladder=sorted(self._config.milestone_ladder),
                band=self._config.milestone_band,
            )

        if trigger == "below_threshold_duration":
            sales = await self._metrics.sales_volume(day, center.id)
            return check_below_threshold_duration(rule, center, sales, now)

        logger.warning("No evaluator for trigger type %s (rule %s)", trigger, rule.id)
        return None
