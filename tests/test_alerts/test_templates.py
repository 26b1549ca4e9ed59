"""Tests for alert title/message rendering."""

from decimal import Decimal

from src.alerts.evaluator import EvaluationResult
from src.alerts.rules import LOW_STOCK
from src.alerts.schemas import AlertRule, AlertType, MetricsSnapshot
from src.alerts.templates import TEMPLATES, format_decimal, render


def _result(actual="5", threshold="8", message="stock is 5") -> EvaluationResult:
    return EvaluationResult(
        triggered=True,
        actual_value=Decimal(actual),
        threshold_value=Decimal(threshold),
        message=message,
    )


class TestFormatDecimal:
    def test_integral(self):
        assert format_decimal(Decimal("5.000")) == "5"

    def test_fraction_trailing_zeros(self):
        assert format_decimal(Decimal("2.50")) == "2.5"

    def test_no_exponent(self):
        assert format_decimal(Decimal("1E+2")) == "100"

    def test_none(self):
        assert format_decimal(None) == ""


class TestRender:
    def test_low_stock_includes_entity_name(self):
        snapshot = MetricsSnapshot(
            entity_type="Ingredient",
            entity_name="Ground Beef",
            metrics={"QuantityAvailable": 5},
        )
        title, message = render(LOW_STOCK, snapshot, _result())
        assert title == "Low stock: Ground Beef"
        assert "5" in message and "8" in message

    def test_entity_falls_back_to_entity_type(self):
        snapshot = MetricsSnapshot(entity_type="Ingredient", metrics={})
        title, _ = render(LOW_STOCK, snapshot, _result())
        assert title == "Low stock: Ingredient"

    def test_entity_falls_back_to_site(self):
        snapshot = MetricsSnapshot(entity_type="", metrics={})
        title, _ = render(LOW_STOCK, snapshot, _result())
        assert title == "Low stock: Site"

    def test_untemplated_type_uses_rule_text(self):
        assert AlertType.SYNC_ERROR not in TEMPLATES
        rule = AlertRule(
            rule_id="sync",
            type=AlertType.SYNC_ERROR,
            name="POS sync failing",
            description="Point of sale sync has failed repeatedly",
            metric="sync_failures",
            operator=">",
            threshold=3,
        )
        snapshot = MetricsSnapshot(entity_type="Site", metrics={"sync_failures": 5})
        title, message = render(rule, snapshot, _result())
        assert title == "POS sync failing"
        assert message == "Point of sale sync has failed repeatedly"

    def test_untemplated_type_without_description_uses_result(self):
        rule = AlertRule(
            rule_id="anomaly",
            type=AlertType.DATA_ANOMALY,
            name="Data anomaly",
            description="",
            metric="zscore",
            operator=">",
            threshold=3,
        )
        snapshot = MetricsSnapshot(entity_type="Site", metrics={"zscore": 5})
        _, message = render(rule, snapshot, _result(message="zscore is 5"))
        assert message == "zscore is 5"

    def test_every_template_formats(self):
        snapshot = MetricsSnapshot(entity_type="Ingredient", entity_name="Milk", metrics={})
        for alert_type in TEMPLATES:
            rule = AlertRule(
                rule_id=alert_type.value,
                type=alert_type,
                name=alert_type.value,
                description="",
                metric="m",
                operator=">",
                threshold=1,
            )
            title, message = render(rule, snapshot, _result())
            assert title and message
            assert "{" not in title + message
