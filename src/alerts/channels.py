"""Notification channel implementations for alert delivery.

Provides an ABC for notification channels plus concrete transports for
Slack (incoming webhooks), email (SMTP), Web Push (VAPID) and WhatsApp
(Twilio). Every transport checks its own configuration first: when it is
missing, the would-be message is logged and a successful ``mocked``
result is returned, so an unconfigured channel never blocks the alert
pipeline.

Transports report failures as ``DeliveryResult(success=False)`` values;
the dispatcher additionally converts any exception that escapes.
"""

import asyncio
import json
import logging
import smtplib
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import httpx
from pywebpush import WebPushException, webpush

from src.alerts.formatting import (
    build_email_html,
    build_push_payload,
    build_slack_payload,
    email_subject,
    strip_html,
)
from src.alerts.schemas import DeliveryResult, NotificationMetadata
from src.alerts.subscriptions import PushSubscriptionRepository
from src.config.settings import Settings

logger = logging.getLogger(__name__)

SLACK_DESTINATIONS = ("sales", "quality", "critical")

SLACK_ROUTES: dict[str, str] = {
    "zero_sales": "critical",
    "low_sales": "sales",
    "milestone": "sales",
    "below_threshold_duration": "sales",
    "high_dq": "quality",
    "low_approval": "quality",
}

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


def route_slack_channel(trigger_type: str | None, priority: str | None) -> str:
    """Pick the Slack destination for an alert.

    Sales managers and quality/compliance subscribe to different
    channels. Known trigger types map directly; otherwise critical
    priority goes to ``critical`` and everything else to ``sales``.
    """
    if trigger_type in SLACK_ROUTES:
        return SLACK_ROUTES[trigger_type]
    return "critical" if priority == "critical" else "sales"


def _mocked(channel: str, message: str, reason: str) -> DeliveryResult:
    logger.warning("%s not configured (%s); mocked delivery: %s", channel, reason, message)
    return DeliveryResult(channel=channel, success=True, mocked=True)


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name as used in rule ``channels`` (e.g. 'slack')."""

    @abstractmethod
    async def send(self, message: str, metadata: NotificationMetadata) -> DeliveryResult:
        """Deliver a message through this channel.

        Args:
            message: Alert text.
            metadata: Recipients, priority and routing context.

        Returns:
            Delivery outcome for this channel.
        """


class SlackChannel(NotificationChannel):
    """Posts Block Kit messages to one of three Slack incoming webhooks.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """

    def __init__(
        self,
        webhook_urls: dict[str, str | None],
        timeout: float = 10.0,
    ) -> None:
        self._webhook_urls = webhook_urls
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "slack"

    async def send(self, message: str, metadata: NotificationMetadata) -> DeliveryResult:
        destination = route_slack_channel(metadata.trigger_type, metadata.priority)
        url = self._webhook_urls.get(destination)
        if not url:
            result = _mocked(self.name, message, f"no webhook for '{destination}'")
            result.detail["destination"] = destination
            return result

        payload = build_slack_payload(message, metadata)
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=payload)
        except httpx.TimeoutException:
            logger.warning("Slack webhook timed out for %s", destination)
            return DeliveryResult(
                channel=self.name, success=False, error="timeout",
                detail={"destination": destination},
            )
        except httpx.HTTPError as e:
            logger.warning("Slack webhook failed for %s: %s", destination, e)
            return DeliveryResult(
                channel=self.name, success=False, error=str(e),
                detail={"destination": destination},
            )

        if not resp.is_success:
            logger.warning(
                "Slack webhook returned %d for %s", resp.status_code, destination,
            )
            return DeliveryResult(
                channel=self.name, success=False, error=f"HTTP {resp.status_code}",
                detail={"destination": destination},
            )

        logger.info("Slack message sent to %s channel", destination)
        return DeliveryResult(
            channel=self.name, success=True, detail={"destination": destination},
        )


class EmailChannel(NotificationChannel):
    """Sends multipart text/HTML email over SMTP.

    ``smtplib`` is blocking, so the send runs in a worker thread.
    """

    def __init__(
        self,
        host: str | None,
        port: int = 587,
        user: str | None = None,
        password: str | None = None,
        from_address: str | None = None,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._from_address = from_address or user
        self._use_tls = use_tls
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "email"

    @property
    def configured(self) -> bool:
        return bool(self._host and self._user and self._password)

    async def send(self, message: str, metadata: NotificationMetadata) -> DeliveryResult:
        if not self.configured:
            return _mocked(self.name, message, "SMTP credentials missing")

        if not metadata.recipients:
            return DeliveryResult(
                channel=self.name, success=False, error="No email recipients",
                retryable=False,
            )

        subject = email_subject(metadata)
        html_body = build_email_html(message, metadata)
        try:
            await asyncio.to_thread(
                self._send_sync, metadata.recipients, subject, html_body,
            )
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Email send failed: %s", e)
            return DeliveryResult(channel=self.name, success=False, error=str(e))

        logger.info("Email sent to %d recipients", len(metadata.recipients))
        return DeliveryResult(
            channel=self.name,
            success=True,
            detail={"recipients": len(metadata.recipients)},
        )

    def _send_sync(self, recipients: list[str], subject: str, html_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f'"Sales Alert Portal" <{self._from_address}>'
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(strip_html(html_body), "plain"))
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls()
            server.login(self._user, self._password)
            server.sendmail(self._from_address, recipients, msg.as_string())


class WebPushChannel(NotificationChannel):
    """Sends VAPID-signed Web Push notifications to every subscription of each user.

    Subscriptions answered with 404/410 are deactivated.
    """

    def __init__(
        self,
        subscriptions: PushSubscriptionRepository | None,
        vapid_private_key: str | None,
        vapid_public_key: str | None,
        vapid_subject: str = "mailto:admin@example.com",
    ) -> None:
        self._subscriptions = subscriptions
        self._private_key = vapid_private_key
        self._public_key = vapid_public_key
        self._subject = vapid_subject

    @property
    def name(self) -> str:
        return "push"

    @property
    def configured(self) -> bool:
        return bool(self._private_key and self._public_key and self._subscriptions)

    async def send(self, message: str, metadata: NotificationMetadata) -> DeliveryResult:
        if not self.configured:
            return _mocked(self.name, message, "VAPID keys missing")

        if not metadata.user_ids:
            return DeliveryResult(
                channel=self.name, success=False, error="No push recipients",
                retryable=False,
            )

        data = json.dumps(build_push_payload(message, metadata))
        sent = 0
        failed = 0

        for user_id in metadata.user_ids:
            for sub in await self._subscriptions.active_for_user(user_id):
                try:
                    await asyncio.to_thread(
                        webpush,
                        subscription_info=sub.to_subscription_info(),
                        data=data,
                        vapid_private_key=self._private_key,
                        vapid_claims={"sub": self._subject},
                    )
                    sent += 1
                except WebPushException as e:
                    failed += 1
                    status = e.response.status_code if e.response is not None else None
                    logger.warning("Push to %s failed (%s): %s", sub.endpoint, status, e)
                    if status in (404, 410):
                        await self._subscriptions.deactivate(sub.endpoint)

        logger.info("Push notifications sent: %d successful, %d failed", sent, failed)
        return DeliveryResult(
            channel=self.name,
            success=failed == 0,
            error=f"{failed} push deliveries failed" if failed else None,
            detail={"sent": sent, "failed": failed},
        )


class WhatsAppChannel(NotificationChannel):
    """Sends WhatsApp messages through the Twilio Messages REST API."""

    def __init__(
        self,
        account_sid: str | None,
        auth_token: str | None,
        from_number: str | None,
        timeout: float = 10.0,
    ) -> None:
        self._account_sid = account_sid
        self._auth_token = auth_token
        self._from_number = from_number
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "whatsapp"

    @property
    def configured(self) -> bool:
        return bool(self._account_sid and self._auth_token and self._from_number)

    async def send(self, message: str, metadata: NotificationMetadata) -> DeliveryResult:
        if not self.configured:
            return _mocked(self.name, message, "Twilio credentials missing")

        if not metadata.phone_numbers:
            return DeliveryResult(
                channel=self.name, success=False, error="No WhatsApp recipients",
                retryable=False,
            )

        url = f"{TWILIO_API_BASE}/Accounts/{self._account_sid}/Messages.json"
        sent = 0
        errors: list[str] = []

        async with httpx.AsyncClient(
            timeout=self._timeout,
            auth=(self._account_sid, self._auth_token),
        ) as client:
            for number in metadata.phone_numbers:
                try:
                    resp = await client.post(url, data={
                        "From": f"whatsapp:{self._from_number}",
                        "To": f"whatsapp:{number}",
                        "Body": message,
                    })
                except httpx.HTTPError as e:
                    errors.append(f"{number}: {e}")
                    continue
                if resp.is_success:
                    sent += 1
                else:
                    errors.append(f"{number}: HTTP {resp.status_code}")

        if errors:
            logger.warning("WhatsApp delivery errors: %s", errors)
        return DeliveryResult(
            channel=self.name,
            success=not errors,
            error="; ".join(errors) or None,
            detail={"sent": sent},
        )


def create_default_channels(
    settings: Settings,
    subscriptions: PushSubscriptionRepository | None = None,
) -> list[NotificationChannel]:
    """Build all four transports from application settings."""
    return [
        SlackChannel(webhook_urls={
            "sales": settings.slack_webhook_sales_alerts,
            "quality": settings.slack_webhook_quality_alerts,
            "critical": settings.slack_webhook_critical_alerts,
        }),
        EmailChannel(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_address=settings.email_from,
            use_tls=settings.smtp_use_tls,
        ),
        WebPushChannel(
            subscriptions=subscriptions,
            vapid_private_key=settings.vapid_private_key,
            vapid_public_key=settings.vapid_public_key,
            vapid_subject=settings.vapid_subject,
        ),
        WhatsAppChannel(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_whatsapp_number,
        ),
    ]
