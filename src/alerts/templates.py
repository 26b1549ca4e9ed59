"""Title/message templates for alerts created by rule evaluation.

One entry per alert type the catalog is expected to produce. Types
without an entry fall back to the rule's own name and description (or
the evaluator's message when the description is empty), so user-facing
text is never blank.
"""

from dataclasses import dataclass
from decimal import Decimal

from src.alerts.evaluator import EvaluationResult
from src.alerts.schemas import AlertRule, AlertType, MetricsSnapshot


@dataclass(frozen=True)
class AlertTemplate:
    title: str
    message: str


TEMPLATES: dict[AlertType, AlertTemplate] = {
    AlertType.LOW_STOCK: AlertTemplate(
        title="Low stock: {entity}",
        message="{entity} has {actual} available, below the reorder point of {threshold}",
    ),
    AlertType.OUT_OF_STOCK: AlertTemplate(
        title="Out of stock: {entity}",
        message="{entity} is out of stock ({actual} available)",
    ),
    AlertType.EXPIRY_RISK: AlertTemplate(
        title="Expiry risk: {entity}",
        message="{entity} expires in {actual} days",
    ),
    AlertType.NEGATIVE_STOCK: AlertTemplate(
        title="Negative stock: {entity}",
        message="{entity} shows {actual} on hand; check recent counts and transfers",
    ),
    AlertType.PAR_EXCEEDED: AlertTemplate(
        title="Par level exceeded: {entity}",
        message="{entity} stock of {actual} is above the par level of {threshold}",
    ),
    AlertType.AGED_STOCK: AlertTemplate(
        title="Aged stock: {entity}",
        message="{entity} has been held for {actual} days (limit {threshold})",
    ),
    AlertType.GP_DROPPED: AlertTemplate(
        title="GP% dropped: {entity}",
        message="Gross profit moved {actual} points vs last week (threshold {threshold})",
    ),
    AlertType.HIGH_VARIANCE: AlertTemplate(
        title="High cost variance: {entity}",
        message="Actual vs theoretical cost variance is {actual}% (threshold {threshold}%)",
    ),
    AlertType.COST_SPIKE: AlertTemplate(
        title="Cost spike: {entity}",
        message="{entity} cost changed by {actual}% (threshold {threshold}%)",
    ),
    AlertType.NEGATIVE_MARGIN: AlertTemplate(
        title="Negative margin: {entity}",
        message="{entity} is selling at a margin of {actual}%",
    ),
    AlertType.SUPPLIER_PRICE_SPIKE: AlertTemplate(
        title="Supplier price spike: {entity}",
        message="{entity} price rose {actual}% vs last invoice (threshold {threshold}%)",
    ),
    AlertType.DELIVERY_LATE: AlertTemplate(
        title="Late delivery: {entity}",
        message="Delivery from {entity} is {actual} hours late",
    ),
    AlertType.INVOICE_DISCREPANCY: AlertTemplate(
        title="Invoice discrepancy: {entity}",
        message="Invoice from {entity} differs from the order by {actual}",
    ),
    AlertType.HIGH_WASTE: AlertTemplate(
        title="High waste: {entity}",
        message="Waste is at {actual}% (threshold {threshold}%)",
    ),
    AlertType.HIGH_VOID_RATE: AlertTemplate(
        title="High void rate: {entity}",
        message="Void rate is {actual}% (threshold {threshold}%)",
    ),
    AlertType.HIGH_COMP_RATE: AlertTemplate(
        title="High comp rate: {entity}",
        message="Comp rate is {actual}% (threshold {threshold}%)",
    ),
}


def format_decimal(value: Decimal | None) -> str:
    """Render a decimal without exponent notation or trailing zeros."""
    if value is None:
        return ""
    normalized = value.normalize()
    if normalized == normalized.to_integral_value():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def render(
    rule: AlertRule,
    snapshot: MetricsSnapshot,
    result: EvaluationResult,
) -> tuple[str, str]:
    """Build the (title, message) pair for a triggered rule.

    Args:
        rule: Rule that triggered.
        snapshot: Snapshot it triggered on.
        result: Evaluator output.

    Returns:
        Title and message strings.
    """
    template = TEMPLATES.get(rule.type)
    if template is None:
        return rule.name, rule.description or result.message

    fields = {
        "entity": snapshot.entity_name or snapshot.entity_type or "Site",
        "actual": format_decimal(result.actual_value),
        "threshold": format_decimal(result.threshold_value),
        "metric": rule.metric,
    }
    return template.title.format(**fields), template.message.format(**fields)
