"""Frequency gate: at most one alert per (rule, center) per cooldown window.

The sweep runs every few minutes while a breached condition can persist
for hours; the gate consults the ledger so repeated firings collapse to
one notification per window.
"""

import logging
from datetime import datetime, timedelta

from src.alerts.clock import Clock
from src.alerts.config import AlertConfig
from src.alerts.repository import AlertRepository
from src.alerts.schemas import AlertRule
from src.centers.schemas import Center

logger = logging.getLogger(__name__)


class FrequencyGate:
    """Ledger-backed duplicate suppression."""

    def __init__(
        self,
        ledger: AlertRepository,
        clock: Clock,
        config: AlertConfig | None = None,
    ) -> None:
        self._ledger = ledger
        self._clock = clock
        self._config = config or AlertConfig()

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self._config.cooldown_minutes)

    def window_start(self) -> datetime:
        """Earliest ``sent_at`` that still counts as recent."""
        return self._clock.now() - self.cooldown

    async def should_suppress(self, rule: AlertRule, center: Center) -> bool:
        """Return True if the pair already alerted within the cooldown window.

        Ledger read failures propagate: without the ledger there is no
        auditable record, so the alert is not sent.
        """
        since = self.window_start()
        recent = await self._ledger.has_recent(rule.id, center.id, since)
        if recent:
            logger.info(
                "Alert for %s suppressed by frequency cap (rule %s, %d min)",
                center.name, rule.id, self._config.cooldown_minutes,
            )
        return recent
