"""Channel senders — chat webhook, SMTP email and generic webhook delivery."""

from __future__ import annotations

import abc
import asyncio
import hashlib
import hmac
import json
import smtplib
from email.message import EmailMessage
from email.utils import parseaddr

import aiohttp
import structlog

from src.channels.exceptions import (
    DeliveryError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from src.channels.formatters import (
    build_webhook_payload,
    render_chat_text,
    render_email,
)
from src.core.config import EmailConfig, WebhookConfig
from src.core.types import (
    Channel,
    ChannelType,
    ErrorKind,
    NotificationEvent,
    SendResult,
)

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Notify-Signature"


class ChannelSender(abc.ABC):
    """Base class for per-channel-type delivery.

    Subclasses implement ``_deliver`` and raise ``TransientDeliveryError`` or
    ``PermanentDeliveryError``; ``send`` turns that into a ``SendResult`` so
    callers never see exceptions for ordinary delivery failures.
    """

    channel_type: ChannelType

    async def send(self, channel: Channel, event: NotificationEvent) -> SendResult:
        try:
            await self._deliver(channel, event)
        except DeliveryError as exc:
            if exc.kind == ErrorKind.TRANSIENT:
                return SendResult.transient(str(exc))
            return SendResult.permanent(str(exc))
        return SendResult.success()

    @abc.abstractmethod
    async def _deliver(self, channel: Channel, event: NotificationEvent) -> None:
        """Perform one delivery attempt."""

    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


def _classify_status(status: int, body: str) -> DeliveryError:
    detail = f"HTTP {status}: {body[:200]}"
    if status == 429 or status >= 500:
        return TransientDeliveryError(detail)
    return PermanentDeliveryError(detail)


class _HttpSender(ChannelSender):
    """Shared aiohttp plumbing for senders that POST JSON."""

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def _post(
        self,
        url: str,
        body: bytes,
        headers: dict[str, str],
    ) -> None:
        if not url:
            raise PermanentDeliveryError("destination not configured")
        if not url.startswith(("http://", "https://")):
            raise PermanentDeliveryError("destination is not an http(s) URL")

        try:
            session = self._get_session()
            async with session.post(url, data=body, headers=headers) as resp:
                if 200 <= resp.status < 300:
                    return
                text = await resp.text()
                raise _classify_status(resp.status, text)
        except DeliveryError:
            raise
        except aiohttp.InvalidURL as exc:
            raise PermanentDeliveryError(f"invalid URL: {exc}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise TransientDeliveryError(f"{type(exc).__name__}: {exc}") from exc

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class ChatSender(_HttpSender):
    """Posts a markdown message to a Teams or Slack incoming webhook."""

    channel_type = ChannelType.CHAT

    async def _deliver(self, channel: Channel, event: NotificationEvent) -> None:
        payload = {"text": render_chat_text(event)}
        await self._post(
            channel.destination.get_secret_value(),
            json.dumps(payload).encode(),
            {"Content-Type": "application/json"},
        )


class WebhookSender(_HttpSender):
    """Posts the event as JSON, optionally HMAC-signed."""

    channel_type = ChannelType.WEBHOOK

    def __init__(self, config: WebhookConfig | None = None) -> None:
        super().__init__()
        self._config = config or WebhookConfig()

    def sign(self, body: bytes) -> str | None:
        secret = self._config.signing_secret.get_secret_value()
        if not secret:
            return None
        digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return f"sha256={digest}"

    async def _deliver(self, channel: Channel, event: NotificationEvent) -> None:
        body = json.dumps(build_webhook_payload(event), sort_keys=True).encode()
        headers = {"Content-Type": "application/json", **self._config.headers}
        signature = self.sign(body)
        if signature is not None:
            headers[SIGNATURE_HEADER] = signature
        await self._post(channel.destination.get_secret_value(), body, headers)


def parse_recipients(destination: str) -> list[str]:
    """Split a comma-separated recipient list; raise on malformed addresses."""
    recipients: list[str] = []
    for part in destination.split(","):
        part = part.strip()
        if not part:
            continue
        _, addr = parseaddr(part)
        if "@" not in addr or addr.startswith("@") or addr.endswith("@"):
            raise PermanentDeliveryError(f"malformed email address: {part!r}")
        recipients.append(addr)
    if not recipients:
        raise PermanentDeliveryError("destination not configured")
    return recipients


class EmailSender(ChannelSender):
    """Sends a plain-text email through the configured SMTP server.

    ``smtplib`` is blocking, so each attempt runs in a worker thread.
    """

    channel_type = ChannelType.EMAIL

    def __init__(self, config: EmailConfig | None = None, timeout_secs: float = 10.0) -> None:
        self._config = config or EmailConfig()
        self._timeout = timeout_secs

    def build_message(self, recipients: list[str], event: NotificationEvent) -> EmailMessage:
        subject, body = render_email(event)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self._config.from_address
        msg["To"] = ", ".join(recipients)
        msg.set_content(body)
        return msg

    async def _deliver(self, channel: Channel, event: NotificationEvent) -> None:
        if not self._config.smtp_host:
            raise PermanentDeliveryError("SMTP server not configured")
        recipients = parse_recipients(channel.destination.get_secret_value())
        msg = self.build_message(recipients, event)
        await asyncio.to_thread(self._send_blocking, msg, recipients)

    def _send_blocking(self, msg: EmailMessage, recipients: list[str]) -> None:
        cfg = self._config
        try:
            with smtplib.SMTP(cfg.smtp_host, cfg.smtp_port, timeout=self._timeout) as smtp:
                if cfg.use_starttls:
                    smtp.starttls()
                if cfg.username:
                    smtp.login(cfg.username, cfg.password.get_secret_value())
                smtp.send_message(msg, to_addrs=recipients)
        except (smtplib.SMTPAuthenticationError, smtplib.SMTPRecipientsRefused,
                smtplib.SMTPSenderRefused, smtplib.SMTPNotSupportedError) as exc:
            raise PermanentDeliveryError(f"{type(exc).__name__}: {exc}") from exc
        except smtplib.SMTPResponseException as exc:
            if 400 <= exc.smtp_code < 500:
                raise TransientDeliveryError(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}") from exc
            raise PermanentDeliveryError(f"SMTP {exc.smtp_code}: {exc.smtp_error!r}") from exc
        except smtplib.SMTPServerDisconnected as exc:
            raise TransientDeliveryError(f"SMTPServerDisconnected: {exc}") from exc
        except smtplib.SMTPException as exc:
            raise PermanentDeliveryError(f"{type(exc).__name__}: {exc}") from exc
        except OSError as exc:
            # Connection refused, DNS failure, socket timeout.
            raise TransientDeliveryError(f"{type(exc).__name__}: {exc}") from exc
