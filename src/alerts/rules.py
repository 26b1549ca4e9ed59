"""Default rule catalog seeded into every site at initialization.

Rules can be changed afterwards per site through
``AlertService.update_rule``; these definitions are only the starting
point. Rule ids are fixed so upserts from configuration tooling land on
the seeded rule instead of adding a duplicate.
"""

from datetime import timedelta
from decimal import Decimal

from src.alerts.schemas import AlertRule, AlertSeverity, AlertType, ComparisonOperator

GP_DROPPED = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000001",
    type=AlertType.GP_DROPPED,
    name="GP% Drop",
    description="Gross profit percentage dropped more than 3 points vs last week",
    default_severity=AlertSeverity.HIGH,
    metric="GrossProfitPercent",
    operator=ComparisonOperator.CHANGED_BY,
    threshold=Decimal("-3.0"),
    secondary_metric="GrossProfitPercentLastWeek",
    cooldown=timedelta(hours=24),
)

HIGH_VARIANCE = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000002",
    type=AlertType.HIGH_VARIANCE,
    name="High Cost Variance",
    description="Actual vs theoretical cost variance exceeds 15%",
    default_severity=AlertSeverity.MEDIUM,
    metric="COGSVariancePercent",
    operator=ComparisonOperator.GT,
    threshold=Decimal("15.0"),
    cooldown=timedelta(hours=24),
)

# Threshold is unused while ReorderPoint is in the snapshot (dynamic threshold)
LOW_STOCK = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000003",
    type=AlertType.LOW_STOCK,
    name="Low Stock",
    description="Stock level below reorder point",
    default_severity=AlertSeverity.MEDIUM,
    metric="QuantityAvailable",
    operator=ComparisonOperator.LT,
    threshold=Decimal("0"),
    secondary_metric="ReorderPoint",
    cooldown=timedelta(hours=4),
)

OUT_OF_STOCK = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000004",
    type=AlertType.OUT_OF_STOCK,
    name="Out of Stock",
    description="Ingredient is out of stock",
    default_severity=AlertSeverity.HIGH,
    metric="QuantityAvailable",
    operator=ComparisonOperator.LTE,
    threshold=Decimal("0"),
    cooldown=timedelta(hours=1),
)

EXPIRY_RISK = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000005",
    type=AlertType.EXPIRY_RISK,
    name="Expiry Risk",
    description="Stock expiring within 3 days",
    default_severity=AlertSeverity.HIGH,
    metric="DaysUntilExpiry",
    operator=ComparisonOperator.LTE,
    threshold=Decimal("3"),
    cooldown=timedelta(hours=24),
)

SUPPLIER_PRICE_SPIKE = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000006",
    type=AlertType.SUPPLIER_PRICE_SPIKE,
    name="Supplier Price Spike",
    description="Supplier price increased more than 10% vs last invoice",
    default_severity=AlertSeverity.MEDIUM,
    metric="PriceChangePercent",
    operator=ComparisonOperator.GT,
    threshold=Decimal("10.0"),
    cooldown=timedelta(days=7),
)

NEGATIVE_STOCK = AlertRule(
    rule_id="00000001-0000-0000-0000-000000000007",
    type=AlertType.NEGATIVE_STOCK,
    name="Negative Stock",
    description="Stock quantity is negative (data issue)",
    default_severity=AlertSeverity.CRITICAL,
    metric="QuantityOnHand",
    operator=ComparisonOperator.LT,
    threshold=Decimal("0"),
    cooldown=timedelta(minutes=30),
)

DEFAULT_RULES: tuple[AlertRule, ...] = (
    GP_DROPPED,
    HIGH_VARIANCE,
    LOW_STOCK,
    OUT_OF_STOCK,
    EXPIRY_RISK,
    SUPPLIER_PRICE_SPIKE,
    NEGATIVE_STOCK,
)


def default_rules() -> list[AlertRule]:
    """Fresh copies of the default catalog, safe to mutate per site."""
    return [AlertRule.from_dict(rule.to_dict()) for rule in DEFAULT_RULES]
