"""Stateless rule evaluation against a metrics snapshot.

``evaluate`` maps (rule, snapshot) to a trigger decision. No I/O, no
state: cooldowns, alert creation and persistence live in AlertService.
A missing metric is not an error; the rule simply does not trigger this
cycle and the result carries a diagnostic message.
"""

import operator as op
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from src.alerts.schemas import AlertRule, ComparisonOperator, MetricsSnapshot

_COMPARATORS: dict[ComparisonOperator, Callable[[Decimal, Decimal], bool]] = {
    ComparisonOperator.GT: op.gt,
    ComparisonOperator.GTE: op.ge,
    ComparisonOperator.LT: op.lt,
    ComparisonOperator.LTE: op.le,
    ComparisonOperator.EQ: op.eq,
    ComparisonOperator.NEQ: op.ne,
}

_SYMBOLS: dict[ComparisonOperator, str] = {
    ComparisonOperator.GT: ">",
    ComparisonOperator.GTE: ">=",
    ComparisonOperator.LT: "<",
    ComparisonOperator.LTE: "<=",
    ComparisonOperator.EQ: "==",
    ComparisonOperator.NEQ: "!=",
    ComparisonOperator.CHANGED_BY: "changed by",
}


@dataclass(frozen=True)
class EvaluationResult:
    """Outcome of evaluating one rule.

    Attributes:
        triggered: Whether the rule's condition holds.
        actual_value: Value compared (the delta for ChangedBy); None when
            the metric was missing.
        threshold_value: Bound it was compared against (the secondary
            metric when it acts as a dynamic threshold).
        message: Human-readable description or a diagnostic.
    """

    triggered: bool
    actual_value: Decimal | None
    threshold_value: Decimal | None
    message: str

    @property
    def metric_missing(self) -> bool:
        return self.actual_value is None


def compare(operator: ComparisonOperator, value: Decimal, threshold: Decimal) -> bool:
    """Apply a plain comparison operator.

    Strict inequalities for GT/LT and exact equality for EQ/NEQ (no
    tolerance).

    Raises:
        ValueError: For ChangedBy, which needs a baseline and has its own rule.
    """
    try:
        return _COMPARATORS[operator](value, threshold)
    except KeyError:
        raise ValueError(f"{operator.value} is not a plain comparison") from None


def changed_by(delta: Decimal, threshold: Decimal) -> bool:
    """Delta check whose direction follows the sign of the threshold.

    A negative threshold detects decreases (``delta <= threshold``); zero or
    positive detects increases (``delta >= threshold``).
    """
    if threshold < 0:
        return delta <= threshold
    return delta >= threshold


def evaluate(rule: AlertRule, snapshot: MetricsSnapshot) -> EvaluationResult:
    """Evaluate a rule against one snapshot.

    Args:
        rule: Rule to evaluate.
        snapshot: Metrics for a single entity.

    Returns:
        EvaluationResult with the trigger decision.
    """
    primary = snapshot.metrics.get(rule.metric)
    if primary is None:
        return EvaluationResult(
            triggered=False,
            actual_value=None,
            threshold_value=rule.threshold,
            message=f"Metric '{rule.metric}' not present in snapshot",
        )

    secondary = (
        snapshot.metrics.get(rule.secondary_metric)
        if rule.secondary_metric else None
    )

    if rule.operator == ComparisonOperator.CHANGED_BY:
        if secondary is None:
            return EvaluationResult(
                triggered=False,
                actual_value=primary,
                threshold_value=rule.threshold,
                message=(
                    f"Baseline metric '{rule.secondary_metric}' not present "
                    f"in snapshot"
                ),
            )
        delta = primary - secondary
        triggered = changed_by(delta, rule.threshold)
        direction = "dropped" if delta < 0 else "rose"
        return EvaluationResult(
            triggered=triggered,
            actual_value=delta,
            threshold_value=rule.threshold,
            message=(
                f"{rule.metric} {direction} by {abs(delta)} "
                f"({secondary} → {primary}), threshold {rule.threshold}"
            ),
        )

    # A present secondary metric is a dynamic threshold (e.g. a reorder point)
    threshold = secondary if secondary is not None else rule.threshold
    triggered = compare(rule.operator, primary, threshold)
    return EvaluationResult(
        triggered=triggered,
        actual_value=primary,
        threshold_value=threshold,
        message=(
            f"{rule.metric} is {primary} "
            f"({_SYMBOLS[rule.operator]} {threshold}: {'yes' if triggered else 'no'})"
        ),
    )


def operator_symbol(operator: ComparisonOperator) -> str:
    return _SYMBOLS[operator]
