"""Shared fixtures for API tests."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from src.alerts.schemas import SentAlert
from src.alerts.service import AlertService, EvaluationSummary
from src.alerts.subscriptions import PushSubscriptionRepository
from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import get_alert_service, get_database, get_push_subscriptions


def _make_alert(alert_id: str = "alert-1", **kwargs) -> SentAlert:
    """Helper to create a SentAlert with sensible defaults."""
    return SentAlert(
        id=alert_id,
        rule_id=kwargs.pop("rule_id", "rule_low_sales"),
        center_id=kwargs.pop("center_id", "center_1"),
        alert_type=kwargs.pop("alert_type", "low_sales"),
        message=kwargs.pop("message", "Austin BPO at 40/100"),
        channels_sent=kwargs.pop("channels_sent", ["slack", "email"]),
        recipients=kwargs.pop("recipients", ["manager@example.com"]),
        sent_at=kwargs.pop(
            "sent_at", datetime(2026, 3, 10, 13, 0, 0, tzinfo=timezone.utc)
        ),
        metadata=kwargs.pop("metadata", {"sales": 40, "priority": "high"}),
        **kwargs,
    )


def _make_summary(**kwargs) -> EvaluationSummary:
    """Helper to create an EvaluationSummary for a sweep."""
    return EvaluationSummary(
        date=kwargs.pop("date", date(2026, 3, 10)),
        centers=kwargs.pop("centers", 3),
        rules=kwargs.pop("rules", 2),
        evaluated=kwargs.pop("evaluated", 6),
        fired=kwargs.pop("fired", 1),
        alerts=kwargs.pop("alerts", [_make_alert()]),
        **kwargs,
    )


@pytest.fixture
def mock_alert_service():
    """Mock AlertService."""
    service = AsyncMock(spec=AlertService)
    service.list_alerts.return_value = []
    service.get_alert_history.return_value = []
    service.evaluate_all_centers.return_value = _make_summary()
    return service


@pytest.fixture
def mock_db():
    """Mock Database for /health."""
    db = AsyncMock()
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def mock_push_subscriptions():
    """Mock PushSubscriptionRepository."""
    repo = AsyncMock(spec=PushSubscriptionRepository)
    repo.upsert.return_value = True
    return repo


@pytest.fixture
def client(mock_alert_service, mock_db, mock_push_subscriptions):
    """FastAPI TestClient with dependency overrides."""
    app = create_app()

    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_alert_service] = lambda: mock_alert_service
    app.dependency_overrides[get_database] = lambda: mock_db
    app.dependency_overrides[get_push_subscriptions] = lambda: mock_push_subscriptions

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
