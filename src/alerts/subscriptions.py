"""Web Push subscription storage.

Browsers register subscriptions through the API; the push channel
reads the active ones per user and retires those the push service reports
as gone.
"""

import logging
from dataclasses import dataclass
from typing import Any

from src.storage.database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushSubscription:
    """A browser push endpoint with its encryption keys."""

    user_id: str
    endpoint: str
    p256dh: str
    auth: str

    def to_subscription_info(self) -> dict[str, Any]:
        """Shape expected by ``pywebpush.webpush``."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }


class PushSubscriptionRepository:
    """Registers, reads and retires rows of ``push_subscriptions``."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def active_for_user(self, user_id: str) -> list[PushSubscription]:
        sql = """
            SELECT user_id, endpoint, p256dh_key, auth_key
            FROM push_subscriptions
            WHERE user_id::text = $1 AND is_active = TRUE
        """
        rows = await self._db.fetch(sql, user_id)
        return [
            PushSubscription(
                user_id=str(row["user_id"]),
                endpoint=row["endpoint"],
                p256dh=row["p256dh_key"],
                auth=row["auth_key"],
            )
            for row in rows
        ]

    async def upsert(self, sub: PushSubscription, user_agent: str | None = None) -> bool:
        """Register a subscription, reactivating a known endpoint.

        A known endpoint keeps its original user and gets fresh keys.

        Returns:
            True if a new row was created, False if an existing one was updated.
        """
        sql = """
            INSERT INTO push_subscriptions (
                user_id, endpoint, p256dh_key, auth_key, user_agent, is_active
            ) VALUES ($1, $2, $3, $4, $5, TRUE)
            ON CONFLICT (endpoint) DO UPDATE SET
                p256dh_key = EXCLUDED.p256dh_key,
                auth_key = EXCLUDED.auth_key,
                is_active = TRUE,
                updated_at = NOW()
            RETURNING (xmax = 0) AS inserted
        """
        inserted = await self._db.fetchval(
            sql, sub.user_id, sub.endpoint, sub.p256dh, sub.auth, user_agent or "Unknown",
        )
        logger.info(
            "%s push subscription for user %s",
            "Created" if inserted else "Updated", sub.user_id,
        )
        return bool(inserted)

    async def deactivate(self, endpoint: str) -> None:
        """Mark an endpoint inactive on unsubscribe or after the push service rejected it."""
        await self._db.execute(
            "UPDATE push_subscriptions SET is_active = FALSE WHERE endpoint = $1",
            endpoint,
        )
        logger.info("Deactivated push subscription %s", endpoint)
