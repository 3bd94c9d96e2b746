"""Sales KPIs read from the daily deal flow and DQ tables.

Components:
- DQSummary / ApprovalRatio: Value objects returned by the provider
- MetricsProvider: Abstract read interface used by the alert evaluator
- PostgresMetricsProvider: asyncpg implementation over the portal tables
"""

from src.kpis.provider import MetricsProvider, PostgresMetricsProvider
from src.kpis.schemas import ApprovalRatio, DQSummary

__all__ = [
    "ApprovalRatio",
    "DQSummary",
    "MetricsProvider",
    "PostgresMetricsProvider",
]
