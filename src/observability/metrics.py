"""
Prometheus metrics for monitoring the alert engine.

Defines and exposes metrics for:
- Rule evaluations and their outcomes
- Alerts fired and suppressed
- Notification deliveries per channel
- Sweep latency and errors

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the sales alert engine.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_evaluation("low_sales", "fired")
        metrics.record_delivery("slack", success=True, mocked=False)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        self.rule_evaluations = Counter(
            "sales_alerts_rule_evaluations_total",
            "Total (rule, center) evaluations",
            ["trigger_type", "outcome"],  # outcome: fired, not_fired, suppressed, quiet, error
        )

        self.alerts_sent = Counter(
            "sales_alerts_alerts_sent_total",
            "Total alerts written to the ledger",
            ["trigger_type", "priority"],
        )

        self.notifications = Counter(
            "sales_alerts_notifications_total",
            "Notification delivery attempts by outcome",
            ["channel", "status"],  # status: success, mocked, failed
        )

        self.acknowledgements = Counter(
            "sales_alerts_acknowledgements_total",
            "Total alerts acknowledged",
        )

        self.sweep_latency = Histogram(
            "sales_alerts_sweep_latency_seconds",
            "Time to evaluate all centers against all rules",
            buckets=LATENCY_BUCKETS,
        )

        self.delivery_latency = Histogram(
            "sales_alerts_delivery_latency_seconds",
            "Time to fan one alert out to its channels",
            buckets=LATENCY_BUCKETS,
        )

        self.sweep_errors = Counter(
            "sales_alerts_sweep_errors_total",
            "Errors isolated during a sweep",
            ["stage"],  # evaluate, deliver
        )

        self.last_sweep_timestamp = Gauge(
            "sales_alerts_last_sweep_timestamp_seconds",
            "Unix time of the last completed sweep",
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_evaluation(self, trigger_type: str, outcome: str) -> None:
        """
        Record the outcome of one rule evaluation.

        Args:
            trigger_type: Rule trigger type
            outcome: fired, not_fired, suppressed, quiet or error
        """
        self.rule_evaluations.labels(trigger_type=trigger_type, outcome=outcome).inc()

    def record_alert_sent(self, trigger_type: str, priority: str) -> None:
        self.alerts_sent.labels(trigger_type=trigger_type, priority=priority).inc()

    def record_delivery(self, channel: str, success: bool, mocked: bool = False) -> None:
        """
        Record one channel delivery result.

        Args:
            channel: Channel name
            success: Whether the channel reported success
            mocked: Whether the channel was unconfigured and only logged
        """
        if mocked:
            status = "mocked"
        else:
            status = "success" if success else "failed"
        self.notifications.labels(channel=channel, status=status).inc()

    def record_sweep(self, latency: float, errors: int, timestamp: float) -> None:
        """
        Record a completed sweep.

        Args:
            latency: Sweep duration in seconds
            errors: Number of isolated pair errors
            timestamp: Completion time (unix seconds)
        """
        self.sweep_latency.observe(latency)
        if errors:
            self.sweep_errors.labels(stage="evaluate").inc(errors)
        self.last_sweep_timestamp.set(timestamp)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
