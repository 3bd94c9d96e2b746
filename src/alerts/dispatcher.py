"""Notification dispatcher fanning one alert out across its channels.

Channels are independent: they are sent concurrently, a failure or
exception in one never affects another, and a mocked channel counts as
delivered. Failed (non-mocked) deliveries are retried with configured
delays; the final outcome per channel is returned to the caller.
"""

import asyncio
import logging
import time

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.alerts.channels import NotificationChannel
from src.alerts.schemas import DeliveryResult, NotificationMetadata
from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class NotificationConfig(BaseSettings):
    """Configuration for notification dispatch."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFICATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    retry_max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum send attempts per channel per alert",
    )
    retry_delays: list[float] = Field(
        default=[2.0, 10.0],
        description="Per-attempt delay in seconds before each retry",
    )


class NotificationDispatcher:
    """Routes a message to the requested channels by name."""

    def __init__(
        self,
        channels: list[NotificationChannel],
        config: NotificationConfig | None = None,
    ) -> None:
        self._config = config or NotificationConfig()
        self._channels: dict[str, NotificationChannel] = {ch.name: ch for ch in channels}

    @property
    def channels(self) -> dict[str, NotificationChannel]:
        """Registered channels keyed by name (for inspection/testing)."""
        return self._channels

    async def dispatch(
        self,
        channels: list[str],
        message: str,
        metadata: NotificationMetadata,
    ) -> list[DeliveryResult]:
        """Send ``message`` to every requested channel.

        Args:
            channels: Channel names, usually the rule's ``channels``.
            message: Alert text.
            metadata: Recipients and routing context.

        Returns:
            One result per requested channel, in request order. Unknown
            channel names yield a failed result rather than an error.
        """
        started = time.monotonic()
        results = await asyncio.gather(
            *(self._deliver(name, message, metadata) for name in channels)
        )
        get_metrics().delivery_latency.observe(time.monotonic() - started)

        self._record_delivery(metadata, results)
        return list(results)

    async def _deliver(
        self,
        name: str,
        message: str,
        metadata: NotificationMetadata,
    ) -> DeliveryResult:
        channel = self._channels.get(name)
        if channel is None:
            logger.warning("Unknown notification channel %r", name)
            return DeliveryResult(
                channel=name, success=False, error=f"Unknown channel: {name}",
            )
        return await self._send_with_retry(channel, message, metadata)

    async def _send_with_retry(
        self,
        channel: NotificationChannel,
        message: str,
        metadata: NotificationMetadata,
    ) -> DeliveryResult:
        """Attempt to send with configured retries.

        Exceptions raised by a channel are converted into failed results.
        Mocked results and failures marked not retryable are final on the
        first attempt.
        """
        delays = self._config.retry_delays
        max_attempts = self._config.retry_max_attempts
        result = DeliveryResult(channel=channel.name, success=False, error="not attempted")

        for attempt in range(max_attempts):
            try:
                result = await channel.send(message, metadata)
            except Exception as e:
                logger.warning(
                    "Channel %s send error (attempt %d): %s",
                    channel.name, attempt + 1, e,
                )
                result = DeliveryResult(channel=channel.name, success=False, error=str(e))

            if result.success:
                if attempt > 0:
                    logger.info(
                        "Alert %s delivered to %s on attempt %d",
                        metadata.alert_id, channel.name, attempt + 1,
                    )
                return result

            if not result.retryable:
                logger.warning(
                    "Channel %s failed without retry: %s", channel.name, result.error,
                )
                return result

            if attempt < max_attempts - 1 and delays:
                delay = delays[attempt] if attempt < len(delays) else delays[-1]
                await asyncio.sleep(delay)

        if max_attempts > 1:
            logger.warning(
                "All %d attempts exhausted for alert %s on channel %s",
                max_attempts, metadata.alert_id, channel.name,
            )
        return result

    def _record_delivery(
        self,
        metadata: NotificationMetadata,
        results: list[DeliveryResult],
    ) -> None:
        metrics = get_metrics()
        for r in results:
            metrics.record_delivery(r.channel, r.success, r.mocked)

        successes = [r.channel for r in results if r.success]
        failures = [r.channel for r in results if not r.success]

        if failures and not successes:
            logger.error(
                "Alert %s (%s) failed ALL channels: %s",
                metadata.alert_id, metadata.priority, failures,
            )
        elif failures:
            logger.warning(
                "Alert %s partial delivery: ok=%s failed=%s",
                metadata.alert_id, successes, failures,
            )
        else:
            logger.debug(
                "Alert %s delivered to all channels: %s",
                metadata.alert_id, successes,
            )
