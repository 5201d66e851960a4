"""Channels: registry, per-type senders and message rendering."""

from src.channels.exceptions import (
    ChannelError,
    ChannelNotFoundError,
    DeliveryError,
    NotFoundError,
    PermanentDeliveryError,
    TransientDeliveryError,
)
from src.channels.formatters import (
    build_webhook_payload,
    render_chat_text,
    render_email,
)
from src.channels.registry import ChannelRegistry
from src.channels.senders import (
    ChannelSender,
    ChatSender,
    EmailSender,
    WebhookSender,
)

__all__ = [
    "ChannelError",
    "ChannelNotFoundError",
    "ChannelRegistry",
    "ChannelSender",
    "ChatSender",
    "DeliveryError",
    "EmailSender",
    "NotFoundError",
    "PermanentDeliveryError",
    "TransientDeliveryError",
    "WebhookSender",
    "build_webhook_payload",
    "render_chat_text",
    "render_email",
]
