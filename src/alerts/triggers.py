"""Stateless trigger functions for alert detection.

Each function checks one trigger type against already-fetched metric
values plus the current local time, and returns a PendingAlert if the
condition holds, or None otherwise. No I/O, no state: metric reads live in
RuleEvaluator, and suppression, persistence and delivery in AlertService.

Trigger types keep their own functions because their semantics differ:
zero_sales has a time-of-day gate, milestone fires on a band rather than
a threshold, below_threshold_duration scales the target by elapsed hours.
"""

import logging
from collections.abc import Sequence
from datetime import datetime

from src.alerts.clock import hours_remaining_in_day
from src.alerts.schemas import AlertRule, PendingAlert
from src.alerts.templates import build_message
from src.centers.schemas import Center
from src.kpis.schemas import ApprovalRatio, DQSummary

logger = logging.getLogger(__name__)

DEFAULT_MILESTONES: tuple[int, ...] = (75, 100, 125, 150)


def check_low_sales(
    rule: AlertRule,
    center: Center,
    sales: int,
    now: datetime,
) -> PendingAlert | None:
    """Fire when sales as a percentage of target is below the threshold.

    Args:
        rule: low_sales rule; threshold is a percent of the daily target.
        center: Center being evaluated.
        sales: Submitted sales so far today.
        now: Current local time (for ``[HoursRemaining]``).

    Returns:
        PendingAlert or None. Centers without a positive target never fire.
    """
    pct = center.achievement_pct(sales)
    if pct is None:
        logger.warning(
            "Center %s has no daily target, skipping %s", center.id, rule.trigger_type,
        )
        return None

    if pct >= rule.condition_threshold:
        return None

    hours_remaining = hours_remaining_in_day(now)
    message = build_message(rule.message_template, [
        ("[Center]", center.name),
        ("[SalesCount]", sales),
        ("[Target]", center.daily_sales_target),
        ("[HoursRemaining]", hours_remaining),
        ("[Percentage]", round(pct)),
    ])
    return PendingAlert(
        rule=rule,
        center=center,
        message=message,
        metadata={
            "sales": sales,
            "target": center.daily_sales_target,
            "percentage": round(pct, 2),
            "hours_remaining": hours_remaining,
        },
    )


def check_zero_sales(
    rule: AlertRule,
    center: Center,
    sales: int,
    now: datetime,
    min_hour: int = 12,
) -> PendingAlert | None:
    """Fire when a center has no sales at or after ``min_hour`` local time."""
    if sales != 0 or now.hour < min_hour:
        return None

    message = build_message(rule.message_template, [
        ("[Center]", center.name),
        ("[Time]", f"{now.hour}:00"),
    ])
    return PendingAlert(
        rule=rule,
        center=center,
        message=message,
        metadata={"sales": 0, "time": now.hour},
    )


def check_high_dq(
    rule: AlertRule,
    center: Center,
    dq: DQSummary,
    top_issues: Sequence[str],
    max_issues: int = 3,
) -> PendingAlert | None:
    """Fire when the DQ percentage is strictly above the threshold.

    Args:
        rule: high_dq rule; threshold is a DQ percentage.
        center: Center being evaluated.
        dq: Today's DQ summary.
        top_issues: Most recent DQ category names, newest first.
        max_issues: How many categories to list in the message.
    """
    if dq.percentage <= rule.condition_threshold:
        return None

    issues = ", ".join(top_issues[:max_issues]) or "Unknown"
    message = build_message(rule.message_template, [
        ("[Center]", center.name),
        ("[DQPercentage]", round(dq.percentage)),
        ("[DQCount]", dq.count),
        ("[TopIssues]", issues),
    ])
    return PendingAlert(
        rule=rule,
        center=center,
        message=message,
        metadata={
            "dq_percentage": dq.percentage,
            "dq_count": dq.count,
            "top_issues": issues,
        },
    )


def check_low_approval(
    rule: AlertRule,
    center: Center,
    approval: ApprovalRatio,
    underwriting: int,
) -> PendingAlert | None:
    """Fire when submissions / transfers falls below the threshold."""
    if approval.ratio >= rule.condition_threshold:
        return None

    message = build_message(rule.message_template, [
        ("[Center]", center.name),
        ("[ApprovalRatio]", round(approval.ratio)),
        ("[SubmissionCount]", approval.submissions),
        ("[UWCount]", underwriting),
    ])
    return PendingAlert(
        rule=rule,
        center=center,
        message=message,
        metadata={
            "approval_ratio": approval.ratio,
            "submissions": approval.submissions,
            "transfers": approval.transfers,
            "underwriting": underwriting,
        },
    )


def check_milestone(
    rule: AlertRule,
    center: Center,
    sales: int,
    ladder: Sequence[int] = DEFAULT_MILESTONES,
    band: float = 5.0,
) -> PendingAlert | None:
    """Fire for the first milestone whose band contains the achievement.

    A milestone ``m`` matches when ``m <= pct < m + band``. Only the first
    matching rung of the ladder fires in a single evaluation.
    """
    pct = center.achievement_pct(sales)
    if pct is None:
        logger.warning(
            "Center %s has no daily target, skipping %s", center.id, rule.trigger_type,
        )
        return None

    for milestone in ladder:
        if milestone <= pct < milestone + band:
            message = build_message(rule.message_template, [
                ("[Center]", center.name),
                ("[Milestone]", f"{milestone}%"),
                ("[SalesCount]", sales),
                ("[Target]", center.daily_sales_target),
                ("[Percentage]", round(pct)),
            ])
            return PendingAlert(
                rule=rule,
                center=center,
                message=message,
                metadata={
                    "sales": sales,
                    "target": center.daily_sales_target,
                    "milestone": milestone,
                    "percentage": round(pct, 2),
                },
            )

    return None


def check_below_threshold_duration(
    rule: AlertRule,
    center: Center,
    sales: int,
    now: datetime,
) -> PendingAlert | None:
    """Fire when sales trail the pro-rated target for the hours elapsed.

    The pro-rated target is ``daily_target / 24 * hour``; the rule fires
    when sales are below ``threshold`` percent of it.
    """
    proportional_target = center.daily_sales_target / 24 * now.hour
    if sales >= proportional_target * (rule.condition_threshold / 100):
        return None

    message = build_message(rule.message_template, [
        ("[Center]", center.name),
        ("[Hours]", now.hour),
        ("[SalesCount]", sales),
        ("[Target]", center.daily_sales_target),
    ])
    return PendingAlert(
        rule=rule,
        center=center,
        message=message,
        metadata={
            "sales": sales,
            "target": center.daily_sales_target,
            "proportional_target": round(proportional_target, 2),
            "hours": now.hour,
        },
    )
