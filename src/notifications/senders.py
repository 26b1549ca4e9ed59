"""Channel senders for notification delivery.

Provides an ABC for senders plus concrete implementations for SMTP
email, an HTTP SMS gateway, an HTTP push gateway and Slack-compatible
incoming webhooks.

Senders report ordinary delivery failure through ``SendResult`` and do
not raise for it. Every call reaches the provider; nothing is
short-circuited based on earlier failures.
"""

import asyncio
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Any

import httpx

from src.notifications.config import NotificationConfig
from src.notifications.schemas import NotificationType, SendResult

logger = logging.getLogger(__name__)


class ChannelSender(ABC):
    """Abstract base for notification senders."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel identifier (e.g. 'email', 'slack')."""

    @abstractmethod
    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        **options: Any,
    ) -> SendResult:
        """Deliver one message.

        Args:
            recipient: Address, phone number, device token or webhook URL.
            subject: Subject/title (ignored by channels without one).
            body: Message body.
            **options: Channel-specific extras (``is_html``, ``data``,
                ``channel``, ``username``, ``icon_emoji``).

        Returns:
            SendResult describing the outcome.
        """


async def _post_json(
    url: str,
    payload: dict,
    *,
    headers: dict[str, str] | None = None,
    timeout: float,
    id_field: str | None = "id",
) -> SendResult:
    """POST JSON and translate the response into a SendResult.

    Creates a new ``httpx.AsyncClient`` per call (short-lived, no pooling).
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.post(url, json=payload, headers=headers or {})
    except httpx.TimeoutException:
        logger.warning("POST to %s timed out", url)
        return SendResult.failed("Request timed out", "timeout")
    except httpx.HTTPError as e:
        logger.warning("POST to %s failed: %s", url, e)
        return SendResult.failed(str(e) or type(e).__name__, "transport_error")

    if not resp.is_success:
        logger.warning("POST to %s returned %d", url, resp.status_code)
        return SendResult.failed(
            f"HTTP {resp.status_code}: {resp.text[:200]}",
            str(resp.status_code),
        )

    message_id = None
    if id_field:
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get(id_field) is not None:
            message_id = str(body[id_field])
    return SendResult.ok(message_id)


class SmtpEmailSender(ChannelSender):
    """Sends email over SMTP with STARTTLS.

    smtplib is blocking, so each send runs in a worker thread.
    """

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        from_address: str = "alerts@localhost",
        from_name: str = "Alert Engine",
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._from_address = from_address
        self._from_name = from_name
        self._use_tls = use_tls
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "email"

    def _build_message(
        self, recipient: str, subject: str, body: str, is_html: bool,
    ) -> MIMEText:
        msg = MIMEText(body, "html" if is_html else "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = formataddr((self._from_name, self._from_address))
        msg["To"] = recipient
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain=self._from_address.rpartition("@")[2] or None)
        return msg

    def _send_blocking(self, msg: MIMEText, recipient: str) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
            if self._use_tls:
                server.starttls(context=ssl.create_default_context())
            if self._username and self._password:
                server.login(self._username, self._password)
            server.sendmail(self._from_address, [recipient], msg.as_string())

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        **options: Any,
    ) -> SendResult:
        msg = self._build_message(recipient, subject, body, options.get("is_html", True))
        try:
            await asyncio.to_thread(self._send_blocking, msg, recipient)
        except smtplib.SMTPAuthenticationError as e:
            logger.warning("SMTP authentication failed for %s: %s", self._host, e)
            return SendResult.failed("SMTP authentication failed", str(e.smtp_code))
        except smtplib.SMTPResponseException as e:
            logger.warning("SMTP rejected mail to %s: %s", recipient, e)
            return SendResult.failed(str(e.smtp_error), str(e.smtp_code))
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("SMTP send to %s failed: %s", recipient, e)
            return SendResult.failed(str(e) or type(e).__name__, "smtp_error")
        return SendResult.ok(msg["Message-ID"])


class HttpSmsSender(ChannelSender):
    """Sends SMS through a JSON HTTP gateway (``{to, from, body}``)."""

    def __init__(
        self,
        gateway_url: str,
        api_key: str | None = None,
        sender_id: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._gateway_url = gateway_url
        self._api_key = api_key
        self._sender_id = sender_id
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "sms"

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        **options: Any,
    ) -> SendResult:
        payload: dict = {"to": recipient, "body": body}
        if self._sender_id:
            payload["from"] = self._sender_id
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return await _post_json(
            self._gateway_url, payload, headers=headers, timeout=self._timeout,
        )


class HttpPushSender(ChannelSender):
    """Sends push notifications through a JSON HTTP gateway."""

    def __init__(
        self,
        gateway_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._gateway_url = gateway_url
        self._api_key = api_key
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "push"

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        **options: Any,
    ) -> SendResult:
        payload = {
            "token": recipient,
            "title": subject,
            "body": body,
            "data": options.get("data") or {},
        }
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return await _post_json(
            self._gateway_url, payload, headers=headers, timeout=self._timeout,
        )


class SlackWebhookSender(ChannelSender):
    """Posts messages to a Slack (or Slack-compatible) incoming webhook.

    The recipient is the webhook URL. Slack answers ``ok`` with no id, so
    the request id header is used as the external message id when present.
    """

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "slack"

    async def send(
        self,
        recipient: str,
        subject: str,
        body: str,
        **options: Any,
    ) -> SendResult:
        payload: dict = {"text": body}
        for key in ("channel", "username", "icon_emoji"):
            if options.get(key):
                payload[key] = options[key]

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(recipient, json=payload)
        except httpx.TimeoutException:
            logger.warning("Slack webhook timed out")
            return SendResult.failed("Request timed out", "timeout")
        except httpx.HTTPError as e:
            logger.warning("Slack webhook failed: %s", e)
            return SendResult.failed(str(e) or type(e).__name__, "transport_error")

        if resp.is_success:
            return SendResult.ok(resp.headers.get("x-slack-req-id"))
        logger.warning("Slack webhook returned %d", resp.status_code)
        return SendResult.failed(
            f"HTTP {resp.status_code}: {resp.text[:200]}", str(resp.status_code),
        )


def build_senders(config: NotificationConfig) -> dict[NotificationType, ChannelSender]:
    """Create one sender per notification type from configuration.

    Senders hold no per-recipient state, so one instance per type is
    shared by every organization.

    Args:
        config: Notification settings with provider endpoints/credentials.

    Returns:
        Mapping of notification type to sender.
    """
    return {
        NotificationType.EMAIL: SmtpEmailSender(
            host=config.smtp_host,
            port=config.smtp_port,
            username=config.smtp_username,
            password=config.smtp_password,
            from_address=config.smtp_from_address,
            from_name=config.smtp_from_name,
            use_tls=config.smtp_use_tls,
            timeout=config.http_timeout,
        ),
        NotificationType.SMS: HttpSmsSender(
            gateway_url=config.sms_gateway_url,
            api_key=config.sms_api_key,
            sender_id=config.sms_sender_id,
            timeout=config.http_timeout,
        ),
        NotificationType.PUSH: HttpPushSender(
            gateway_url=config.push_gateway_url,
            api_key=config.push_api_key,
            timeout=config.http_timeout,
        ),
        NotificationType.SLACK: SlackWebhookSender(timeout=config.http_timeout),
    }
