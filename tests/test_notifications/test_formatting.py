"""Tests for alert → channel text rendering."""

from datetime import datetime, timezone

import pytest

from src.alerts.schemas import Alert, AlertSeverity, AlertType
from src.notifications.formatting import (
    email_body,
    email_subject,
    push_title,
    slack_text,
    sms_text,
)


@pytest.fixture
def alert():
    return Alert(
        org_id="org-1",
        site_id="site-<1>",
        type=AlertType.NEGATIVE_STOCK,
        severity=AlertSeverity.CRITICAL,
        title="Negative stock: Fish & Chips",
        message="Fish & Chips shows -2 on hand",
        triggered_at=datetime(2026, 2, 7, 12, 0, 0, tzinfo=timezone.utc),
        metadata={"actualValue": "-2", "note": "<script>"},
    )


def test_email_subject(alert):
    assert email_subject(alert) == "[Critical] Negative stock: Fish & Chips"


def test_email_body_is_escaped_html(alert):
    body = email_body(alert)
    assert body.startswith("<html>")
    assert "Fish &amp; Chips" in body
    assert "site-&lt;1&gt;" in body
    assert "note: &lt;script&gt;" in body
    assert "2026-02-07 12:00:00 UTC" in body


def test_email_body_without_metadata(alert):
    alert.metadata = {}
    assert "Details" not in email_body(alert)


def test_sms_text(alert):
    assert sms_text(alert) == (
        "[Critical] Negative stock: Fish & Chips: Fish & Chips shows -2 on hand"
    )


def test_push_title(alert):
    assert push_title(alert) == "[Critical] Negative stock: Fish & Chips"


@pytest.mark.parametrize("severity,emoji", [
    (AlertSeverity.CRITICAL, ":rotating_light:"),
    (AlertSeverity.HIGH, ":warning:"),
    (AlertSeverity.MEDIUM, ":large_yellow_circle:"),
    (AlertSeverity.LOW, ":information_source:"),
])
def test_slack_emoji(alert, severity, emoji):
    alert.severity = severity
    text = slack_text(alert)
    assert text.startswith(f"{emoji} *[{severity.value}] Negative stock")
    assert text.endswith("\nFish & Chips shows -2 on hand")
