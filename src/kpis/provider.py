"""Metrics provider: per-center KPI reads for alert evaluation.

Every method is a pure read for one ``(date, center_id)`` pair; results
are never cached between evaluations.

Counting rules (``daily_deal_flow``):
- sales: status 'Pending Approval' and call_result 'Submitted'
- underwriting: status 'Pending Approval' and call_result 'Underwriting'
- transfers: every entry for the day
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timezone

from src.kpis.schemas import ApprovalRatio, DQSummary, ratio_pct
from src.storage.database import Database

logger = logging.getLogger(__name__)

PENDING_APPROVAL = "Pending Approval"


class MetricsProvider(ABC):
    """Read interface the alert evaluator depends on."""

    @abstractmethod
    async def sales_volume(self, day: date, center_id: str) -> int:
        """Submitted sales for the day."""

    @abstractmethod
    async def underwriting_volume(self, day: date, center_id: str) -> int:
        """Deals sent to underwriting for the day."""

    @abstractmethod
    async def dq_percentage(self, day: date, center_id: str) -> DQSummary:
        """DQ count and percentage of transfers for the day."""

    @abstractmethod
    async def approval_ratio(self, day: date, center_id: str) -> ApprovalRatio:
        """Submissions versus transfers for the day."""

    @abstractmethod
    async def recent_dq_categories(
        self, day: date, center_id: str, limit: int = 3,
    ) -> list[str]:
        """Most recent DQ category names recorded since the start of the day."""


class PostgresMetricsProvider(MetricsProvider):
    """MetricsProvider backed by the portal's PostgreSQL tables."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def _count_deal_flow(
        self,
        day: date,
        center_id: str,
        call_result: str | None = None,
    ) -> int:
        conditions = ["date = $1", "center_id::text = $2"]
        params: list[object] = [day, center_id]

        if call_result is not None:
            conditions.append("status = $3")
            conditions.append("call_result = $4")
            params.extend([PENDING_APPROVAL, call_result])

        sql = f"SELECT COUNT(*) FROM daily_deal_flow WHERE {' AND '.join(conditions)}"
        count = await self._db.fetchval(sql, *params)
        return count or 0

    async def sales_volume(self, day: date, center_id: str) -> int:
        return await self._count_deal_flow(day, center_id, "Submitted")

    async def underwriting_volume(self, day: date, center_id: str) -> int:
        return await self._count_deal_flow(day, center_id, "Underwriting")

    async def transfer_count(self, day: date, center_id: str) -> int:
        return await self._count_deal_flow(day, center_id)

    async def dq_percentage(self, day: date, center_id: str) -> DQSummary:
        transfers = await self.transfer_count(day, center_id)
        if transfers == 0:
            return DQSummary(percentage=0.0, count=0)

        sql = """
            SELECT COUNT(*) FROM dq_items
            WHERE center_id::text = $1 AND discovered_date = $2
        """
        dq_count = await self._db.fetchval(sql, center_id, day) or 0
        return DQSummary(percentage=ratio_pct(dq_count, transfers), count=dq_count)

    async def approval_ratio(self, day: date, center_id: str) -> ApprovalRatio:
        transfers = await self.transfer_count(day, center_id)
        submissions = await self.sales_volume(day, center_id)
        return ApprovalRatio(
            ratio=ratio_pct(submissions, transfers),
            submissions=submissions,
            transfers=transfers,
        )

    async def recent_dq_categories(
        self, day: date, center_id: str, limit: int = 3,
    ) -> list[str]:
        since = datetime.combine(day, time.min, tzinfo=timezone.utc)
        sql = """
            SELECT dq_category FROM dq_items
            WHERE center_id::text = $1 AND created_at >= $2
            ORDER BY created_at DESC
            LIMIT $3
        """
        rows = await self._db.fetch(sql, center_id, since, limit)
        return [row["dq_category"] for row in rows if row["dq_category"]]
