"""Value objects for per-center daily KPIs."""

from dataclasses import dataclass


def ratio_pct(numerator: int, denominator: int) -> float:
    """Percentage rounded to two decimals; 0.0 when the denominator is 0."""
    if denominator <= 0:
        return 0.0
    return round(numerator / denominator * 100, 2)


@dataclass(frozen=True)
class DQSummary:
    """Disqualified deals for a center and day.

    Attributes:
        percentage: DQ items as a percentage of the day's transfers.
        count: Number of DQ items discovered that day.
    """

    percentage: float
    count: int


@dataclass(frozen=True)
class ApprovalRatio:
    """Submitted sales versus transfers for a center and day.

    Attributes:
        ratio: submissions / transfers * 100 (0.0 without transfers).
        submissions: Submitted sales.
        transfers: All deal flow entries for the day.
    """

    ratio: float
    submissions: int
    transfers: int
