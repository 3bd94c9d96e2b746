"""
Command-line interface for the sales alert engine.

Provides commands to run the alert sweep, inspect and acknowledge sent
alerts, send test notifications, serve the HTTP API and run diagnostic
checks.

Usage:
    sales-alerts evaluate               # Evaluate all centers now
    sales-alerts check-center <id>      # Evaluate one center
    sales-alerts test-notify -c slack   # Send a test notification
    sales-alerts alerts --center <id>   # List sent alerts
    sales-alerts ack <alert-id> --by me # Acknowledge an alert
    sales-alerts serve                  # Start the API server
    sales-alerts health                 # Check service health
"""

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator

import click

from src.alerts.schemas import (
    VALID_CHANNELS,
    VALID_PRIORITIES,
    VALID_TRIGGER_TYPES,
    NotificationMetadata,
)
from src.alerts.service import AlertService, EvaluationSummary
from src.config.settings import get_settings
from src.observability.logging import bind_context, get_logger, setup_logging
from src.observability.metrics import get_metrics


@asynccontextmanager
async def _service_session() -> AsyncIterator[AlertService]:
    """Connect to the database and yield a fully wired AlertService."""
    from src.api.dependencies import build_alert_service
    from src.storage.database import Database

    db = Database()
    await db.connect()
    try:
        yield build_alert_service(db, get_settings())
    finally:
        await db.close()


def _parse_date(value: Any) -> date | None:
    return value.date() if value is not None else None


def _echo_summary(summary: EvaluationSummary, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
        return

    click.echo(f"\nAlert sweep for {summary.date.isoformat()}")
    click.echo("-" * 40)
    click.echo(f"  Centers:             {summary.centers}")
    click.echo(f"  Rules:               {summary.rules}")
    click.echo(f"  Evaluated:           {summary.evaluated}")
    click.echo(f"  Fired:               {summary.fired}")
    click.echo(f"  Suppressed:          {summary.suppressed}")
    click.echo(f"  Skipped (quiet hrs): {summary.skipped_quiet_hours}")
    color = "red" if summary.errors else "green"
    click.echo(click.style(f"  Errors:              {summary.errors}", fg=color))
    for alert in summary.alerts:
        click.echo(f"  -> [{alert.alert_type}] {alert.message}")
    click.echo("-" * 40)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Sales Alerts - KPI threshold alerts for BPO call centers."""
    setup_logging(level="DEBUG" if debug else None)


@main.command()
@click.option("--date", "target_date", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Business date to evaluate (default: today)")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def evaluate(target_date: Any, as_json: bool) -> None:
    """Evaluate every active center against every enabled rule."""
    day = _parse_date(target_date)
    bind_context(command="evaluate")

    async def run() -> EvaluationSummary:
        async with _service_session() as service:
            return await service.evaluate_all_centers(day)

    summary = asyncio.run(run())
    _echo_summary(summary, as_json)
    if summary.errors:
        sys.exit(1)


@main.command("check-center")
@click.argument("center_id")
@click.option("--date", "target_date", default=None, type=click.DateTime(formats=["%Y-%m-%d"]),
              help="Business date to evaluate (default: today)")
@click.option("--json", "as_json", is_flag=True, help="Print the summary as JSON")
def check_center(center_id: str, target_date: Any, as_json: bool) -> None:
    """Evaluate all enabled rules for a single center."""
    day = _parse_date(target_date)
    bind_context(command="check-center", center_id=center_id)

    async def run() -> EvaluationSummary:
        async with _service_session() as service:
            return await service.check_single_center(center_id, day)

    try:
        summary = asyncio.run(run())
    except LookupError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(2)
    _echo_summary(summary, as_json)


@main.command("test-notify")
@click.option("--channel", "-c", "channels", multiple=True, required=True,
              type=click.Choice(sorted(VALID_CHANNELS)), help="Channel to send through (can repeat)")
@click.option("--message", "-m", default="Test alert from the Sales Alert Portal", help="Message text")
@click.option("--priority", default="low", type=click.Choice(sorted(VALID_PRIORITIES)))
@click.option("--trigger-type", default=None, type=click.Choice(sorted(VALID_TRIGGER_TYPES)),
              help="Trigger type used for Slack routing")
@click.option("--center-name", default=None, help="Title shown on the notification")
@click.option("--email", "emails", multiple=True, help="Email recipient (can repeat)")
@click.option("--user-id", "user_ids", multiple=True, help="Web Push user id (can repeat)")
@click.option("--phone", "phones", multiple=True, help="WhatsApp number (can repeat)")
def test_notify(
    channels: tuple[str, ...],
    message: str,
    priority: str,
    trigger_type: str | None,
    center_name: str | None,
    emails: tuple[str, ...],
    user_ids: tuple[str, ...],
    phones: tuple[str, ...],
) -> None:
    """Send a test notification without writing to the ledger."""
    metadata = NotificationMetadata(
        center_name=center_name,
        priority=priority,
        trigger_type=trigger_type,
        recipients=list(emails),
        user_ids=list(user_ids),
        phone_numbers=list(phones),
        dashboard_url=get_settings().dashboard_url,
    )

    async def run():
        async with _service_session() as service:
            return await service.send_test_notification(list(channels), message, metadata)

    results = asyncio.run(run())

    click.echo("\nDelivery Results:")
    click.echo("-" * 40)
    failed = False
    for r in results:
        if r.mocked:
            click.echo(click.style(f"  ~ {r.channel}: mocked (not configured)", fg="yellow"))
        elif r.success:
            click.echo(click.style(f"  ✓ {r.channel}: sent", fg="green"))
        else:
            failed = True
            click.echo(click.style(f"  ✗ {r.channel}: {r.error}", fg="red"))
    click.echo("-" * 40)
    if failed:
        sys.exit(1)


@main.command("alerts")
@click.option("--center", "center_id", default=None, help="Filter by center id")
@click.option("--type", "alert_type", default=None, type=click.Choice(sorted(VALID_TRIGGER_TYPES)),
              help="Filter by trigger type")
@click.option("--unacknowledged", is_flag=True, help="Only alerts nobody acknowledged")
@click.option("--days", default=None, type=int, help="History window for --center (days)")
@click.option("--limit", default=20, help="Maximum alerts to show")
def list_alerts(
    center_id: str | None,
    alert_type: str | None,
    unacknowledged: bool,
    days: int | None,
    limit: int,
) -> None:
    """List sent alerts, newest first."""

    async def run():
        async with _service_session() as service:
            if center_id and days:
                return await service.get_alert_history(center_id, days=days)
            return await service.list_alerts(
                center_id=center_id,
                alert_type=alert_type,
                acknowledged=False if unacknowledged else None,
                limit=limit,
            )

    alerts = asyncio.run(run())
    if not alerts:
        click.echo("No alerts found")
        return

    for a in alerts[:limit]:
        ack = f"ack by {a.acknowledged_by}" if a.acknowledged else "open"
        click.echo(
            f"{a.sent_at:%Y-%m-%d %H:%M}  {a.id}  [{a.alert_type}]  "
            f"center={a.center_id}  {ack}"
        )
        click.echo(f"    {a.message}")


@main.command("ack")
@click.argument("alert_id")
@click.option("--by", "acknowledged_by", required=True, help="Who is acknowledging")
@click.option("--action", "response_action", default=None, help="Action taken")
def ack(alert_id: str, acknowledged_by: str, response_action: str | None) -> None:
    """Acknowledge a sent alert (the first acknowledgement wins)."""

    async def run():
        async with _service_session() as service:
            return await service.acknowledge(alert_id, acknowledged_by, response_action)

    try:
        alert = asyncio.run(run())
    except LookupError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(2)

    if alert.acknowledged_by == acknowledged_by:
        click.echo(click.style(f"Alert {alert.id} acknowledged", fg="green"))
    else:
        click.echo(f"Alert {alert.id} was already acknowledged by {alert.acknowledged_by}")


@main.command()
def health() -> None:
    """Check health of the database and channel configuration."""
    logger = get_logger(__name__)

    async def check() -> dict[str, bool]:
        results: dict[str, bool] = {}

        try:
            from src.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        return results

    results = asyncio.run(check())

    settings = get_settings()
    results["slack_configured"] = settings.slack_configured
    results["smtp_configured"] = settings.smtp_configured
    results["push_configured"] = settings.push_configured
    results["whatsapp_configured"] = settings.whatsapp_configured

    click.echo("\nHealth Check Results:")
    click.echo("-" * 40)
    for name, status in results.items():
        icon = "✓" if status else "✗"
        color = "green" if status else ("red" if name == "postgres" else "yellow")
        click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
    click.echo("-" * 40)

    if results["postgres"]:
        click.echo(click.style("All core services healthy!", fg="green"))
        sys.exit(0)
    click.echo(click.style("Some services unhealthy!", fg="red"))
    sys.exit(1)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the alert API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
