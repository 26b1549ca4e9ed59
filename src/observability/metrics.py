"""
Prometheus metrics for the alert engine.

Covers rule evaluation outcomes, alert creation, notification delivery
and retries. Metrics are exposed via HTTP endpoint for Prometheus
scraping when ``start_server`` is called.
"""

import logging

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    REGISTRY,
    start_http_server,
)

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for channel send latency (in seconds)
SEND_LATENCY_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the alert engine.

    Usage:
        metrics = get_metrics()
        metrics.start_server()
        metrics.record_alert_created("LowStock", "Medium")
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        registry = registry or REGISTRY
        self._server_started = False

        self.alerts_created = Counter(
            "alert_engine_alerts_created_total",
            "Total alerts created",
            ["type", "severity"],
            registry=registry,
        )

        self.rule_evaluations = Counter(
            "alert_engine_rule_evaluations_total",
            "Rule evaluations by outcome",
            ["outcome"],  # triggered, not_triggered, cooldown, error
            registry=registry,
        )

        self.notifications = Counter(
            "alert_engine_notifications_total",
            "Notification send outcomes",
            ["type", "status"],  # status: sent, failed
            registry=registry,
        )

        self.notification_retries = Counter(
            "alert_engine_notification_retries_total",
            "Notification retry attempts",
            ["type"],
            registry=registry,
        )

        self.fanout_errors = Counter(
            "alert_engine_fanout_errors_total",
            "Unexpected channel errors during alert fan-out",
            ["channel_type"],
            registry=registry,
        )

        self.send_latency = Histogram(
            "alert_engine_send_latency_seconds",
            "Channel sender latency",
            ["type"],
            buckets=SEND_LATENCY_BUCKETS,
            registry=registry,
        )

    def start_server(self, port: int | None = None) -> None:
        """
        Start HTTP server for Prometheus scraping.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info("Metrics server started on port %d", port)

    def record_alert_created(self, alert_type: str, severity: str) -> None:
        """Record a newly created alert."""
        self.alerts_created.labels(type=alert_type, severity=severity).inc()

    def record_rule_evaluation(self, outcome: str) -> None:
        """
        Record the outcome of a single rule evaluation.

        Args:
            outcome: triggered, not_triggered, cooldown or error
        """
        self.rule_evaluations.labels(outcome=outcome).inc()

    def record_notification(
        self,
        notification_type: str,
        status: str,
        latency: float | None = None,
    ) -> None:
        """
        Record a notification send outcome.

        Args:
            notification_type: email, sms, push or slack
            status: sent or failed
            latency: Sender call duration in seconds
        """
        self.notifications.labels(type=notification_type, status=status).inc()
        if latency is not None and latency >= 0:
            self.send_latency.labels(type=notification_type).observe(latency)

    def record_retry(self, notification_type: str) -> None:
        """Record a notification retry attempt."""
        self.notification_retries.labels(type=notification_type).inc()

    def record_fanout_error(self, channel_type: str) -> None:
        """Record an exception raised by one channel during fan-out."""
        self.fanout_errors.labels(channel_type=channel_type).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
