"""Alert engine: rule catalog, evaluation and alert lifecycle per site.

Components:
- AlertRule / Alert / MetricsSnapshot: Dataclasses for rules, alerts and input
- AlertType / AlertSeverity / AlertStatus / ComparisonOperator: Enums
- evaluate / EvaluationResult: Stateless rule evaluation
- DEFAULT_RULES: Catalog seeded into each site at initialization
- AlertConfig: Pydantic settings for evaluation and lifecycle defaults
- AlertService: Per-site orchestrator for lifecycle, queries and evaluation
"""

from src.alerts.config import AlertConfig
from src.alerts.evaluator import EvaluationResult, evaluate
from src.alerts.rules import DEFAULT_RULES
from src.alerts.schemas import (
    AcknowledgeAlertCommand,
    Alert,
    AlertRule,
    AlertSeverity,
    AlertStatus,
    AlertType,
    ComparisonOperator,
    CreateAlertCommand,
    DismissAlertCommand,
    MetricsSnapshot,
    ResolveAlertCommand,
    SnoozeAlertCommand,
)
from src.alerts.service import AlertService

__all__ = [
    "AcknowledgeAlertCommand",
    "Alert",
    "AlertConfig",
    "AlertRule",
    "AlertService",
    "AlertSeverity",
    "AlertStatus",
    "AlertType",
    "ComparisonOperator",
    "CreateAlertCommand",
    "DEFAULT_RULES",
    "DismissAlertCommand",
    "EvaluationResult",
    "MetricsSnapshot",
    "ResolveAlertCommand",
    "SnoozeAlertCommand",
    "evaluate",
]
