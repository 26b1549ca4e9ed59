"""Render alerts into channel-specific notification text."""

import html

from src.alerts.schemas import Alert

SEVERITY_EMOJI = {
    "Critical": ":rotating_light:",
    "High": ":warning:",
    "Medium": ":large_yellow_circle:",
}


def severity_prefix(alert: Alert) -> str:
    return f"[{alert.severity.value}]"


def email_subject(alert: Alert) -> str:
    return f"{severity_prefix(alert)} {alert.title}"


def email_body(alert: Alert) -> str:
    """HTML body with severity, message, site, time and metadata details."""
    parts = [
        "<html>",
        "<body>",
        f"<h2>{html.escape(alert.title)}</h2>",
        f"<p><strong>Severity:</strong> {alert.severity.value}</p>",
        f"<p><strong>Message:</strong> {html.escape(alert.message)}</p>",
        f"<p><strong>Site:</strong> {html.escape(alert.site_id)}</p>",
        "<p><strong>Triggered At:</strong> "
        f"{alert.triggered_at:%Y-%m-%d %H:%M:%S} UTC</p>",
    ]
    if alert.metadata:
        details = "<br/>".join(
            f"{html.escape(k)}: {html.escape(v)}" for k, v in alert.metadata.items()
        )
        parts.append(f"<p><strong>Details:</strong><br/>{details}</p>")
    parts += ["</body>", "</html>"]
    return "\n".join(parts)


def sms_text(alert: Alert) -> str:
    return f"{severity_prefix(alert)} {alert.title}: {alert.message}"


def push_title(alert: Alert) -> str:
    return f"{severity_prefix(alert)} {alert.title}"


def slack_text(alert: Alert) -> str:
    """Slack mrkdwn: severity emoji, bold title line, then the message."""
    emoji = SEVERITY_EMOJI.get(alert.severity.value, ":information_source:")
    return f"{emoji} *{severity_prefix(alert)} {alert.title}*\n{alert.message}"
