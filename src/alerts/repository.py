"""Repositories for alert rules, recipients and the ``alerts_sent`` ledger.

Follows the same asyncpg pattern as the other repositories: SQL strings
with positional parameters, module-level row converters, and per-row
error isolation where batches are involved.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from src.alerts.schemas import AlertRule, Recipient, SentAlert
from src.alerts.templates import unresolved_tokens
from src.storage.database import Database

logger = logging.getLogger(__name__)


class AlertRuleRepository:
    """Read-only access to admin-managed alert rules."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def active_rules(self) -> list[AlertRule]:
        """Get all enabled rules.

        Rows that fail validation (unknown trigger type, bad quiet hours)
        are logged and skipped so one bad rule cannot stop a sweep. Rules
        whose template uses placeholders their trigger never fills are
        kept but logged as warnings.
        """
        sql = "SELECT * FROM alert_rules WHERE enabled = TRUE ORDER BY rule_name"
        rows = await self._db.fetch(sql)

        rules: list[AlertRule] = []
        for row in rows:
            try:
                rule = AlertRule.from_dict(dict(row))
            except (KeyError, ValueError) as e:
                logger.error("Skipping invalid alert rule %s: %s", row.get("id"), e)
                continue
            unresolved = unresolved_tokens(rule.message_template, rule.trigger_type)
            if unresolved:
                logger.warning(
                    "Alert rule %s template has tokens %s that %s alerts never fill",
                    rule.id, ", ".join(unresolved), rule.trigger_type,
                )
            rules.append(rule)
        return rules


class RecipientRepository:
    """Resolves the users who should receive a rule's alerts."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def for_roles(self, roles: list[str]) -> list[Recipient]:
        """Get users holding any of ``roles``.

        Args:
            roles: Role names from the rule's ``recipient_roles``.

        Returns:
            Matching users; empty when ``roles`` is empty.
        """
        if not roles:
            return []

        sql = """
            SELECT id, email, name, phone FROM users
            WHERE role && $1::text[]
            ORDER BY email
        """
        rows = await self._db.fetch(sql, roles)
        return [
            Recipient(
                user_id=str(row["id"]),
                email=row.get("email"),
                name=row.get("name"),
                phone=row.get("phone"),
            )
            for row in rows
        ]


class AlertRepository:
    """The append-only alert ledger.

    Rows are inserted by the alert trigger path and only the
    acknowledgement fields are ever updated.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    async def has_recent(self, rule_id: str, center_id: str, since: datetime) -> bool:
        """Check for a ledger row for the pair sent at or after ``since``."""
        sql = """
            SELECT EXISTS (
                SELECT 1 FROM alerts_sent
                WHERE rule_id::text = $1 AND center_id::text = $2 AND sent_at >= $3
            )
        """
        return bool(await self._db.fetchval(sql, rule_id, center_id, since))

    async def create(self, alert: SentAlert) -> SentAlert:
        """Insert a new ledger row.

        Args:
            alert: Alert to persist.

        Returns:
            The stored row.
        """
        async with self._db.acquire() as conn:
            row = await conn.fetchrow(_INSERT_SQL, *_insert_params(alert))
        return _row_to_alert(row)

    async def create_unless_recent(
        self,
        alert: SentAlert,
        since: datetime,
    ) -> SentAlert | None:
        """Insert ``alert`` unless the pair already has a row since ``since``.

        The check and the insert run in one transaction holding an advisory
        lock on ``(rule_id, center_id)``, so overlapping sweeps cannot both
        insert for the same pair.

        Returns:
            The stored row, or None if a recent row already existed.
        """
        lock_key = f"alerts_sent:{alert.rule_id}:{alert.center_id}"
        async with self._db.locked_transaction(lock_key) as conn:
            exists = await conn.fetchval(
                """
                SELECT EXISTS (
                    SELECT 1 FROM alerts_sent
                    WHERE rule_id::text = $1 AND center_id::text = $2 AND sent_at >= $3
                )
                """,
                alert.rule_id,
                alert.center_id,
                since,
            )
            if exists:
                return None
            row = await conn.fetchrow(_INSERT_SQL, *_insert_params(alert))
        return _row_to_alert(row)

    async def get_by_id(self, alert_id: str) -> SentAlert | None:
        sql = "SELECT * FROM alerts_sent WHERE id::text = $1"
        row = await self._db.fetchrow(sql, alert_id)
        if row is None:
            return None
        return _row_to_alert(row)

    async def get_recent(
        self,
        *,
        center_id: str | None = None,
        alert_type: str | None = None,
        acknowledged: bool | None = None,
        since: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[SentAlert]:
        """Get ledger rows with optional filtering, newest first.

        Args:
            center_id: Filter by center.
            alert_type: Filter by trigger type.
            acknowledged: Filter by acknowledgement status.
            since: Only rows sent at or after this instant.
            limit: Maximum rows to return.
            offset: Offset for pagination.
        """
        conditions: list[str] = []
        params: list[Any] = []
        param_idx = 1

        if center_id is not None:
            conditions.append(f"center_id::text = ${param_idx}")
            params.append(center_id)
            param_idx += 1

        if alert_type is not None:
            conditions.append(f"alert_type = ${param_idx}")
            params.append(alert_type)
            param_idx += 1

        if acknowledged is not None:
            op = "IS NOT NULL" if acknowledged else "IS NULL"
            conditions.append(f"acknowledged_at {op}")

        if since is not None:
            conditions.append(f"sent_at >= ${param_idx}")
            params.append(since)
            param_idx += 1

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        sql = f"""
            SELECT * FROM alerts_sent
            {where_clause}
            ORDER BY sent_at DESC
            LIMIT ${param_idx} OFFSET ${param_idx + 1}
        """
        params.extend([limit, offset])

        rows = await self._db.fetch(sql, *params)
        return [_row_to_alert(row) for row in rows]

    async def acknowledge(
        self,
        alert_id: str,
        acknowledged_by: str | None,
        response_action: str | None = None,
        acknowledged_at: datetime | None = None,
    ) -> SentAlert | None:
        """Acknowledge an alert; the first acknowledgement wins.

        A second call leaves ``acknowledged_by``, ``acknowledged_at`` and
        ``response_action`` untouched and returns the stored row.

        Returns:
            The alert after the call, or None if it does not exist.
        """
        sql = """
            UPDATE alerts_sent
            SET acknowledged_by = $2,
                acknowledged_at = $3,
                response_action = $4
            WHERE id::text = $1 AND acknowledged_at IS NULL
            RETURNING *
        """
        row = await self._db.fetchrow(
            sql,
            alert_id,
            acknowledged_by,
            acknowledged_at or datetime.now(timezone.utc),
            response_action,
        )
        if row is not None:
            return _row_to_alert(row)

        return await self.get_by_id(alert_id)


_INSERT_SQL = """
    INSERT INTO alerts_sent (
        id, rule_id, center_id, alert_type, message,
        channels_sent, recipients, sent_at, metadata
    ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
    RETURNING *
"""


def _insert_params(alert: SentAlert) -> tuple[Any, ...]:
    return (
        alert.id,
        alert.rule_id,
        alert.center_id,
        alert.alert_type,
        alert.message,
        list(alert.channels_sent),
        list(alert.recipients),
        alert.sent_at,
        alert.metadata,
    )


def _row_to_alert(row: Any) -> SentAlert:
    """Convert an asyncpg Record to a SentAlert."""
    return SentAlert.from_dict(dict(row))
