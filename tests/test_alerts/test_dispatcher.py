"""Tests for NotificationDispatcher fan-out and retries."""

import asyncio
from unittest.mock import patch

import pytest

from src.alerts.channels import EmailChannel, NotificationChannel, SlackChannel
from src.alerts.dispatcher import NotificationConfig, NotificationDispatcher
from src.alerts.schemas import DeliveryResult, NotificationMetadata


class StubChannel(NotificationChannel):
    """Channel returning queued results (or raising queued exceptions)."""

    def __init__(self, name: str, *outcomes, delay: float = 0.0) -> None:
        self._name = name
        self._outcomes = list(outcomes) or [True]
        self._delay = delay
        self.calls = 0

    @property
    def name(self) -> str:
        return self._name

    async def send(self, message, metadata):
        self.calls += 1
        if self._delay:
            await asyncio.sleep(self._delay)
        outcome = self._outcomes[min(self.calls, len(self._outcomes)) - 1]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, DeliveryResult):
            return outcome
        return DeliveryResult(channel=self._name, success=outcome)


@pytest.fixture
def metadata():
    return NotificationMetadata(
        center_name="Austin BPO",
        priority="high",
        trigger_type="low_sales",
        recipients=["manager@example.com"],
        alert_id="alert-1",
    )


@pytest.fixture
def fast_config():
    return NotificationConfig(retry_max_attempts=2, retry_delays=[0.0])


class TestNotificationConfig:
    def test_defaults(self):
        config = NotificationConfig()
        assert config.retry_max_attempts == 2
        assert config.retry_delays == [2.0, 10.0]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_RETRY_MAX_ATTEMPTS", "4")
        assert NotificationConfig().retry_max_attempts == 4


class TestDispatch:
    @pytest.mark.asyncio
    async def test_one_result_per_channel_in_order(self, metadata, fast_config):
        dispatcher = NotificationDispatcher(
            [StubChannel("email", delay=0.01), StubChannel("slack")], fast_config,
        )

        results = await dispatcher.dispatch(["email", "slack"], "msg", metadata)

        assert [r.channel for r in results] == ["email", "slack"]
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_unconfigured_slack_is_mocked_success(self, metadata, fast_config):
        email = EmailChannel(
            host="smtp.example.com", user="alerts@example.com", password="secret",
        )
        dispatcher = NotificationDispatcher(
            [SlackChannel(webhook_urls={}), email], fast_config,
        )

        with patch("src.alerts.channels.smtplib.SMTP"):
            results = await dispatcher.dispatch(["slack", "email"], "msg", metadata)

        assert len(results) == 2
        assert results[0].success is True
        assert results[0].to_dict()["mocked"] is True
        assert results[1].success is True
        assert "mocked" not in results[1].to_dict()

    @pytest.mark.asyncio
    async def test_unknown_channel(self, metadata, fast_config):
        dispatcher = NotificationDispatcher([StubChannel("slack")], fast_config)

        results = await dispatcher.dispatch(["slack", "pager"], "msg", metadata)

        assert results[0].success is True
        assert results[1].success is False
        assert results[1].error == "Unknown channel: pager"

    @pytest.mark.asyncio
    async def test_exception_isolated_to_its_channel(self, metadata):
        broken = StubChannel("email", RuntimeError("smtp exploded"))
        slack = StubChannel("slack")
        dispatcher = NotificationDispatcher(
            [broken, slack], NotificationConfig(retry_max_attempts=1),
        )

        results = await dispatcher.dispatch(["email", "slack"], "msg", metadata)

        assert results[0].success is False
        assert results[0].error == "smtp exploded"
        assert results[1].success is True

    @pytest.mark.asyncio
    async def test_empty_channel_list(self, metadata):
        dispatcher = NotificationDispatcher([StubChannel("slack")])
        assert await dispatcher.dispatch([], "msg", metadata) == []

    def test_channels_keyed_by_name(self):
        dispatcher = NotificationDispatcher([StubChannel("slack"), StubChannel("push")])
        assert set(dispatcher.channels) == {"slack", "push"}


class TestRetry:
    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, metadata, fast_config):
        flaky = StubChannel("slack", False, True)
        dispatcher = NotificationDispatcher([flaky], fast_config)

        results = await dispatcher.dispatch(["slack"], "msg", metadata)

        assert results[0].success is True
        assert flaky.calls == 2

    @pytest.mark.asyncio
    async def test_attempts_capped(self, metadata):
        down = StubChannel("slack", False)
        dispatcher = NotificationDispatcher(
            [down], NotificationConfig(retry_max_attempts=3, retry_delays=[0.0]),
        )

        results = await dispatcher.dispatch(["slack"], "msg", metadata)

        assert results[0].success is False
        assert down.calls == 3

    @pytest.mark.asyncio
    async def test_mocked_result_not_retried(self, metadata, fast_config):
        mocked = StubChannel(
            "push", DeliveryResult(channel="push", success=True, mocked=True),
        )
        dispatcher = NotificationDispatcher([mocked], fast_config)

        results = await dispatcher.dispatch(["push"], "msg", metadata)

        assert results[0].mocked is True
        assert mocked.calls == 1

    @pytest.mark.asyncio
    async def test_non_retryable_failure_returned_on_first_attempt(self, metadata):
        empty = StubChannel(
            "email",
            DeliveryResult(
                channel="email", success=False, error="No email recipients",
                retryable=False,
            ),
        )
        dispatcher = NotificationDispatcher(
            [empty], NotificationConfig(retry_max_attempts=3, retry_delays=[60.0]),
        )

        results = await asyncio.wait_for(
            dispatcher.dispatch(["email"], "msg", metadata), timeout=5,
        )

        assert results[0].error == "No email recipients"
        assert empty.calls == 1

    @pytest.mark.asyncio
    async def test_missing_recipients_not_retried(self, fast_config):
        email = EmailChannel(
            host="smtp.example.com", user="alerts@example.com", password="secret",
        )
        dispatcher = NotificationDispatcher([email], fast_config)

        with patch("src.alerts.channels.smtplib.SMTP") as smtp_cls:
            results = await dispatcher.dispatch(["email"], "msg", NotificationMetadata())

        assert results[0].retryable is False
        assert "retryable" not in results[0].to_dict()
        smtp_cls.assert_not_called()
