"""Schema definitions for alert rules, alerts and their commands.

Each site owns a catalog of ``AlertRule`` definitions and a list of
``Alert`` records. Alerts are never deleted: Resolved and Dismissed are
terminal statuses. Rules are linked to the alerts they produce only
through the ``ruleId`` entry in the alert's metadata.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from src.core.timeutil import from_iso, from_seconds, to_iso, to_seconds, utcnow


class AlertType(str, Enum):
    """Business conditions an alert can describe."""

    # Inventory
    LOW_STOCK = "LowStock"
    OUT_OF_STOCK = "OutOfStock"
    EXPIRY_RISK = "ExpiryRisk"
    NEGATIVE_STOCK = "NegativeStock"
    PAR_EXCEEDED = "ParExceeded"
    AGED_STOCK = "AgedStock"

    # Cost / GP
    GP_DROPPED = "GPDropped"
    HIGH_VARIANCE = "HighVariance"
    COST_SPIKE = "CostSpike"
    NEGATIVE_MARGIN = "NegativeMargin"

    # Supplier
    SUPPLIER_PRICE_SPIKE = "SupplierPriceSpike"
    DELIVERY_LATE = "DeliveryLate"
    INVOICE_DISCREPANCY = "InvoiceDiscrepancy"

    # Operational
    HIGH_WASTE = "HighWaste"
    HIGH_VOID_RATE = "HighVoidRate"
    HIGH_COMP_RATE = "HighCompRate"

    # System
    SYNC_ERROR = "SyncError"
    DATA_ANOMALY = "DataAnomaly"


class AlertSeverity(str, Enum):
    """Alert urgency. Total order: Low < Medium < High < Critical."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, AlertSeverity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, AlertSeverity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, AlertSeverity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, AlertSeverity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    AlertSeverity.LOW: 0,
    AlertSeverity.MEDIUM: 1,
    AlertSeverity.HIGH: 2,
    AlertSeverity.CRITICAL: 3,
}


class AlertStatus(str, Enum):
    """Alert lifecycle status."""

    ACTIVE = "Active"
    ACKNOWLEDGED = "Acknowledged"
    RESOLVED = "Resolved"
    SNOOZED = "Snoozed"
    DISMISSED = "Dismissed"


class ComparisonOperator(str, Enum):
    """How a rule compares its metric against the threshold."""

    GT = "GT"
    GTE = "GTE"
    LT = "LT"
    LTE = "LTE"
    EQ = "EQ"
    NEQ = "NEQ"
    CHANGED_BY = "ChangedBy"

    @classmethod
    def parse(cls, value: "str | ComparisonOperator") -> "ComparisonOperator":
        """Accept enum values, member names or symbols such as ``<=``."""
        if isinstance(value, ComparisonOperator):
            return value
        if value in _OPERATOR_SYMBOLS:
            return _OPERATOR_SYMBOLS[value]
        try:
            return cls(value)
        except ValueError:
            try:
                return cls[value.upper()]
            except KeyError:
                raise ValueError(f"Unknown comparison operator {value!r}") from None


_OPERATOR_SYMBOLS = {
    ">": ComparisonOperator.GT,
    ">=": ComparisonOperator.GTE,
    "<": ComparisonOperator.LT,
    "<=": ComparisonOperator.LTE,
    "==": ComparisonOperator.EQ,
    "!=": ComparisonOperator.NEQ,
}


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, floats and strings to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a decimal value: {value!r}") from None


@dataclass
class AlertRule:
    """A threshold rule evaluated against metrics snapshots.

    Attributes:
        rule_id: Stable identifier; upserts are keyed on it.
        type: Alert type produced when the rule triggers.
        metric: Primary metric name looked up in the snapshot.
        operator: Comparison to apply.
        threshold: Static threshold (or the delta bound for ChangedBy).
        secondary_metric: Baseline for ChangedBy, or a dynamic threshold
            that replaces ``threshold`` for every other operator.
        secondary_threshold: Stored with the rule; not used by evaluation.
        cooldown: Minimum time between two triggers of this rule.
    """

    rule_id: str
    type: AlertType
    name: str
    description: str
    metric: str
    operator: ComparisonOperator
    threshold: Decimal
    enabled: bool = True
    default_severity: AlertSeverity = AlertSeverity.MEDIUM
    secondary_metric: str | None = None
    secondary_threshold: Decimal | None = None
    cooldown: timedelta | None = None

    def __post_init__(self) -> None:
        self.type = AlertType(self.type)
        self.default_severity = AlertSeverity(self.default_severity)
        self.operator = ComparisonOperator.parse(self.operator)
        self.threshold = to_decimal(self.threshold)
        if self.secondary_threshold is not None:
            self.secondary_threshold = to_decimal(self.secondary_threshold)
        if self.operator == ComparisonOperator.CHANGED_BY and not self.secondary_metric:
            raise ValueError(
                f"Rule {self.rule_id!r}: ChangedBy requires a secondary_metric"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "rule_id": self.rule_id,
            "type": self.type.value,
            "name": self.name,
            "description": self.description,
            "enabled": self.enabled,
            "default_severity": self.default_severity.value,
            "metric": self.metric,
            "operator": self.operator.value,
            "threshold": str(self.threshold),
            "secondary_metric": self.secondary_metric,
            "secondary_threshold": (
                str(self.secondary_threshold)
                if self.secondary_threshold is not None else None
            ),
            "cooldown_seconds": to_seconds(self.cooldown),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AlertRule":
        return cls(
            rule_id=data["rule_id"],
            type=AlertType(data["type"]),
            name=data["name"],
            description=data.get("description", ""),
            enabled=data.get("enabled", True),
            default_severity=AlertSeverity(data.get("default_severity", "Medium")),
            metric=data["metric"],
            operator=ComparisonOperator.parse(data["operator"]),
            threshold=to_decimal(data["threshold"]),
            secondary_metric=data.get("secondary_metric"),
            secondary_threshold=data.get("secondary_threshold"),
            cooldown=from_seconds(data.get("cooldown_seconds")),
        )


@dataclass
class Alert:
    """A materialized alert owned by one site.

    Attributes:
        alert_id: UUID4 identifier.
        triggered_at: When the alert was created.
        status: Current lifecycle status.
        snoozed_until: End of the snooze window; once it passes the alert
            shows up as active again without any status change.
        metadata: String map with rule diagnostics and snapshot context.
    """

    org_id: str
    site_id: str
    type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    alert_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    entity_id: str | None = None
    entity_type: str | None = None
    triggered_at: datetime = field(default_factory=utcnow)
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged_at: datetime | None = None
    acknowledged_by: str | None = None
    resolved_at: datetime | None = None
    resolved_by: str | None = None
    resolution_notes: str | None = None
    snoozed_until: datetime | None = None
    dismissed_at: datetime | None = None
    dismissed_by: str | None = None
    dismiss_reason: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)

    def is_active_at(self, now: datetime) -> bool:
        """Active, or Snoozed with an elapsed snooze window."""
        if self.status == AlertStatus.ACTIVE:
            return True
        return (
            self.status == AlertStatus.SNOOZED
            and self.snoozed_until is not None
            and self.snoozed_until <= now
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "alert_id": self.alert_id,
            "org_id": self.org_id,
            "site_id": self.site_id,
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "message": self.message,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "triggered_at": to_iso(self.triggered_at),
            "status": self.status.value,
            "acknowledged_at": to_iso(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "resolved_at": to_iso(self.resolved_at),
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
            "snoozed_until": to_iso(self.snoozed_until),
            "dismissed_at": to_iso(self.dismissed_at),
            "dismissed_by": self.dismissed_by,
            "dismiss_reason": self.dismiss_reason,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Alert":
        """Create an Alert from a dictionary produced by ``to_dict``."""
        return cls(
            alert_id=data["alert_id"],
            org_id=data["org_id"],
            site_id=data["site_id"],
            type=AlertType(data["type"]),
            severity=AlertSeverity(data["severity"]),
            title=data["title"],
            message=data["message"],
            entity_id=data.get("entity_id"),
            entity_type=data.get("entity_type"),
            triggered_at=from_iso(data["triggered_at"]),
            status=AlertStatus(data.get("status", "Active")),
            acknowledged_at=from_iso(data.get("acknowledged_at")),
            acknowledged_by=data.get("acknowledged_by"),
            resolved_at=from_iso(data.get("resolved_at")),
            resolved_by=data.get("resolved_by"),
            resolution_notes=data.get("resolution_notes"),
            snoozed_until=from_iso(data.get("snoozed_until")),
            dismissed_at=from_iso(data.get("dismissed_at")),
            dismissed_by=data.get("dismissed_by"),
            dismiss_reason=data.get("dismiss_reason"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class MetricsSnapshot:
    """Point-in-time metrics for one entity, fed in by the scheduler.

    Metric values are coerced to Decimal so EQ/NEQ compare exactly.
    """

    entity_type: str
    metrics: dict[str, Decimal]
    entity_id: str | None = None
    entity_name: str | None = None
    context: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.metrics = {name: to_decimal(v) for name, v in self.metrics.items()}
        self.context = {k: str(v) for k, v in (self.context or {}).items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetricsSnapshot":
        return cls(
            entity_id=data.get("entity_id"),
            entity_type=data.get("entity_type", ""),
            entity_name=data.get("entity_name"),
            metrics=data.get("metrics", {}),
            context=data.get("context") or {},
        )


# ── Commands ─────────────────────────────────────────────


@dataclass
class CreateAlertCommand:
    type: AlertType
    severity: AlertSeverity
    title: str
    message: str
    entity_id: str | None = None
    entity_type: str | None = None
    metadata: dict[str, str] | None = None


@dataclass
class AcknowledgeAlertCommand:
    alert_id: str
    acknowledged_by: str


@dataclass
class ResolveAlertCommand:
    alert_id: str
    resolved_by: str
    resolution_notes: str | None = None


@dataclass
class SnoozeAlertCommand:
    alert_id: str
    snoozed_by: str
    duration: timedelta | None = None  # None uses AlertConfig.default_snooze_minutes


@dataclass
class DismissAlertCommand:
    alert_id: str
    dismissed_by: str
    reason: str | None = None
