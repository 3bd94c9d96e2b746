"""
Dependency injection for FastAPI endpoints.
"""

from src.alerts.channels import create_default_channels
from src.alerts.clock import SystemClock
from src.alerts.config import AlertConfig
from src.alerts.dispatcher import NotificationConfig, NotificationDispatcher
from src.alerts.evaluator import RuleEvaluator
from src.alerts.gate import FrequencyGate
from src.alerts.repository import AlertRepository, AlertRuleRepository, RecipientRepository
from src.alerts.service import AlertService
from src.alerts.subscriptions import PushSubscriptionRepository
from src.centers.repository import CenterRepository
from src.config.settings import Settings, get_settings
from src.kpis.provider import PostgresMetricsProvider
from src.storage.database import Database

# Global service instances (initialized on first request)
_database: Database | None = None
_alert_service: AlertService | None = None


async def get_database() -> Database:
    """Get the shared database pool, connecting on first use."""
    global _database

    if _database is None:
        settings = get_settings()
        _database = Database(
            database_url=str(settings.database_url),
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        await _database.connect()

    return _database


def build_alert_service(database: Database, settings: Settings) -> AlertService:
    """Wire the alert engine against one database and settings object."""
    clock = SystemClock(settings.timezone)
    config = AlertConfig()
    ledger = AlertRepository(database)

    dispatcher = NotificationDispatcher(
        channels=create_default_channels(settings, PushSubscriptionRepository(database)),
        config=NotificationConfig(),
    )
    return AlertService(
        evaluator=RuleEvaluator(PostgresMetricsProvider(database), clock, config),
        gate=FrequencyGate(ledger, clock, config),
        centers=CenterRepository(database),
        rules=AlertRuleRepository(database),
        ledger=ledger,
        recipients=RecipientRepository(database),
        dispatcher=dispatcher,
        clock=clock,
        config=config,
        dashboard_url=settings.dashboard_url,
    )


async def get_alert_service() -> AlertService:
    """
    Get alert service instance.

    Creates a singleton service on the shared database pool.
    """
    global _alert_service

    if _alert_service is None:
        database = await get_database()
        _alert_service = build_alert_service(database, get_settings())

    return _alert_service


async def get_push_subscriptions() -> PushSubscriptionRepository:
    """Get the push subscription repository on the shared database pool."""
    return PushSubscriptionRepository(await get_database())


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _alert_service, _database

    _alert_service = None

    if _database is not None:
        await _database.close()
        _database = None
