"""Read-only repository over the ``centers`` table."""

import logging
from typing import Any

from src.centers.schemas import Center
from src.storage.database import Database

logger = logging.getLogger(__name__)


class CenterRepository:
    """Loads call centers for alert evaluation."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def active_centers(self) -> list[Center]:
        """Get all centers whose status flag is set.

        Returns:
            Active centers ordered by name.
        """
        sql = """
            SELECT id, center_name, daily_sales_target, region, location, status
            FROM centers
            WHERE status = TRUE
            ORDER BY center_name
        """
        rows = await self._db.fetch(sql)
        return [_row_to_center(row) for row in rows]

    async def get_by_id(self, center_id: str) -> Center | None:
        sql = """
            SELECT id, center_name, daily_sales_target, region, location, status
            FROM centers
            WHERE id::text = $1
        """
        row = await self._db.fetchrow(sql, center_id)
        if row is None:
            return None
        return _row_to_center(row)


def _row_to_center(row: Any) -> Center:
    """Convert an asyncpg Record to a Center."""
    return Center.from_dict(dict(row))
