"""Tests for channel senders."""

import smtplib
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from src.notifications.config import NotificationConfig
from src.notifications.schemas import NotificationType
from src.notifications.senders import (
    HttpPushSender,
    HttpSmsSender,
    SlackWebhookSender,
    SmtpEmailSender,
    build_senders,
)


def _mock_response(
    status_code: int = 200,
    json_body: dict | None = None,
    headers: dict | None = None,
) -> httpx.Response:
    """Create a mock httpx.Response."""
    return httpx.Response(
        status_code=status_code,
        json=json_body,
        headers=headers,
        request=httpx.Request("POST", "http://test"),
    )


def _patch_client(response=None, side_effect=None):
    """Patch httpx.AsyncClient in the senders module; returns (patcher, client)."""
    patcher = patch("src.notifications.senders.httpx.AsyncClient")
    mock_client_cls = patcher.start()
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_client.post.return_value = response
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)
    return patcher, mock_client


# ── SMS ─────────────────────────────────────────────────


class TestHttpSmsSender:
    @pytest.mark.asyncio
    async def test_successful_send(self):
        sender = HttpSmsSender(
            gateway_url="https://sms.example.com/send",
            api_key="secret",
            sender_id="KITCHEN",
        )
        patcher, client = _patch_client(_mock_response(200, {"id": "sms-123"}))
        try:
            result = await sender.send("+15550001", "SMS", "[High] Out of stock")
        finally:
            patcher.stop()

        assert result.success is True
        assert result.message_id == "sms-123"
        call = client.post.call_args
        assert call.args[0] == "https://sms.example.com/send"
        assert call.kwargs["json"] == {
            "to": "+15550001", "body": "[High] Out of stock", "from": "KITCHEN",
        }
        assert call.kwargs["headers"]["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        sender = HttpSmsSender(gateway_url="https://sms.example.com/send")
        patcher, _ = _patch_client(_mock_response(503))
        try:
            result = await sender.send("+15550001", "SMS", "hi")
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error_code == "503"

    @pytest.mark.asyncio
    async def test_timeout(self):
        sender = HttpSmsSender(gateway_url="https://sms.example.com/send", timeout=1.0)
        patcher, _ = _patch_client(side_effect=httpx.TimeoutException("timed out"))
        try:
            result = await sender.send("+15550001", "SMS", "hi")
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error_code == "timeout"

    @pytest.mark.asyncio
    async def test_transport_error(self):
        sender = HttpSmsSender(gateway_url="https://sms.example.com/send")
        patcher, _ = _patch_client(side_effect=httpx.ConnectError("refused"))
        try:
            result = await sender.send("+15550001", "SMS", "hi")
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error_code == "transport_error"

    def test_name(self):
        assert HttpSmsSender(gateway_url="https://sms.example.com").name == "sms"


# ── Push ────────────────────────────────────────────────


class TestHttpPushSender:
    @pytest.mark.asyncio
    async def test_payload(self):
        sender = HttpPushSender(gateway_url="https://push.example.com/send")
        patcher, client = _patch_client(_mock_response(200, {"id": "push-1"}))
        try:
            result = await sender.send(
                "device-token", "[Critical] Negative stock", "Check counts",
                data={"alertId": "a1"},
            )
        finally:
            patcher.stop()

        assert result.success is True
        payload = client.post.call_args.kwargs["json"]
        assert payload == {
            "token": "device-token",
            "title": "[Critical] Negative stock",
            "body": "Check counts",
            "data": {"alertId": "a1"},
        }

    @pytest.mark.asyncio
    async def test_non_json_body_has_no_message_id(self):
        sender = HttpPushSender(gateway_url="https://push.example.com/send")
        response = httpx.Response(
            status_code=202, text="accepted", request=httpx.Request("POST", "http://test"),
        )
        patcher, _ = _patch_client(response)
        try:
            result = await sender.send("device-token", "t", "b")
        finally:
            patcher.stop()

        assert result.success is True
        assert result.message_id is None


# ── Slack ───────────────────────────────────────────────


class TestSlackWebhookSender:
    @pytest.mark.asyncio
    async def test_successful_send(self):
        sender = SlackWebhookSender()
        patcher, client = _patch_client(
            _mock_response(200, headers={"x-slack-req-id": "req-9"}),
        )
        try:
            result = await sender.send(
                "https://hooks.slack.com/services/T/B/X", "#kitchen", "*Low stock*",
                channel="#kitchen", username="alerts", icon_emoji=None,
            )
        finally:
            patcher.stop()

        assert result.success is True
        assert result.message_id == "req-9"
        call = client.post.call_args
        assert call.args[0] == "https://hooks.slack.com/services/T/B/X"
        assert call.kwargs["json"] == {
            "text": "*Low stock*", "channel": "#kitchen", "username": "alerts",
        }

    @pytest.mark.asyncio
    async def test_non_200_response(self):
        sender = SlackWebhookSender()
        patcher, _ = _patch_client(_mock_response(403))
        try:
            result = await sender.send("https://hooks.slack.com/x", "default", "hi")
        finally:
            patcher.stop()

        assert result.success is False
        assert result.error_code == "403"


# ── Email ───────────────────────────────────────────────


class TestSmtpEmailSender:
    @pytest.mark.asyncio
    async def test_successful_send(self):
        sender = SmtpEmailSender(
            host="smtp.example.com",
            username="user",
            password="pass",
            from_address="alerts@example.com",
        )
        with patch("src.notifications.senders.smtplib.SMTP") as mock_smtp_cls:
            server = MagicMock()
            mock_smtp_cls.return_value.__enter__.return_value = server

            result = await sender.send("chef@example.com", "[High] Out of stock", "<p>hi</p>")

        assert result.success is True
        assert result.message_id and result.message_id.endswith("@example.com>")
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pass")
        from_addr, to_addrs, raw = server.sendmail.call_args.args
        assert from_addr == "alerts@example.com"
        assert to_addrs == ["chef@example.com"]
        assert "text/html" in raw

    @pytest.mark.asyncio
    async def test_plain_text_without_tls_or_login(self):
        sender = SmtpEmailSender(host="localhost", port=25, use_tls=False)
        with patch("src.notifications.senders.smtplib.SMTP") as mock_smtp_cls:
            server = MagicMock()
            mock_smtp_cls.return_value.__enter__.return_value = server

            result = await sender.send("chef@example.com", "s", "plain", is_html=False)

        assert result.success is True
        server.starttls.assert_not_called()
        server.login.assert_not_called()
        assert "text/plain" in server.sendmail.call_args.args[2]

    @pytest.mark.asyncio
    async def test_recipient_refused(self):
        sender = SmtpEmailSender(host="smtp.example.com", use_tls=False)
        with patch("src.notifications.senders.smtplib.SMTP") as mock_smtp_cls:
            server = MagicMock()
            server.sendmail.side_effect = smtplib.SMTPRecipientsRefused(
                {"chef@example.com": (550, b"no such user")}
            )
            mock_smtp_cls.return_value.__enter__.return_value = server

            result = await sender.send("chef@example.com", "s", "b")

        assert result.success is False
        assert result.error_code == "smtp_error"

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        sender = SmtpEmailSender(host="smtp.example.com")
        with patch(
            "src.notifications.senders.smtplib.SMTP",
            side_effect=ConnectionRefusedError("refused"),
        ):
            result = await sender.send("chef@example.com", "s", "b")

        assert result.success is False
        assert result.error_code == "smtp_error"


# ── build_senders ───────────────────────────────────────


class TestBuildSenders:
    def test_one_sender_per_type(self):
        senders = build_senders(NotificationConfig())

        assert set(senders) == set(NotificationType)
        assert isinstance(senders[NotificationType.EMAIL], SmtpEmailSender)
        assert isinstance(senders[NotificationType.SMS], HttpSmsSender)
        assert isinstance(senders[NotificationType.PUSH], HttpPushSender)
        assert isinstance(senders[NotificationType.SLACK], SlackWebhookSender)

    @pytest.mark.asyncio
    async def test_failures_for_one_webhook_do_not_block_another(self):
        sender = build_senders(NotificationConfig())[NotificationType.SLACK]
        patcher, client = _patch_client(
            side_effect=[_mock_response(404)] * 6 + [_mock_response(200)],
        )
        try:
            for _ in range(6):
                await sender.send("https://hooks.example.com/broken", "default", "x")
            result = await sender.send("https://hooks.example.com/good", "default", "y")
        finally:
            patcher.stop()

        assert result.success is True
        assert client.post.await_count == 7
        assert client.post.call_args.args[0] == "https://hooks.example.com/good"
