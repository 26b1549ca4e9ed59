"""Observability layer - logging and metrics."""

from src.observability.logging import setup_logging, tenant_context
from src.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "tenant_context", "MetricsCollector", "get_metrics"]
