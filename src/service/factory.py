"""Convenience factory for wiring the notification service."""

from __future__ import annotations

from src.channels.registry import ChannelRegistry
from src.channels.senders import ChannelSender, ChatSender, EmailSender, WebhookSender
from src.core.config import Settings, get_settings
from src.core.types import ChannelType
from src.history.store import HistoryStore
from src.routing.dispatcher import DeliveryDispatcher
from src.routing.rules import RuleEngine, rules_from_config
from src.service.notification_service import NotificationService


def build_senders(settings: Settings) -> dict[ChannelType, ChannelSender]:
    """One sender per channel type."""
    return {
        ChannelType.CHAT: ChatSender(),
        ChannelType.EMAIL: EmailSender(
            settings.email,
            timeout_secs=settings.dispatch.send_timeout_secs,
        ),
        ChannelType.WEBHOOK: WebhookSender(settings.webhook),
    }


def create_service(
    settings: Settings | None = None,
    senders: dict[ChannelType, ChannelSender] | None = None,
) -> NotificationService:
    """Build registry, rule engine, dispatcher and history from config.

    ``senders`` replaces the real network senders (tests, dry runs).
    Call ``await service.open()`` before use to load persisted history.
    """
    settings = settings or get_settings()

    registry = ChannelRegistry.from_config(settings.channels)
    rules = RuleEngine(rules_from_config(settings.routing.rules))
    dispatcher = DeliveryDispatcher(
        registry=registry,
        senders=senders if senders is not None else build_senders(settings),
        config=settings.dispatch,
    )
    history = HistoryStore(settings.history)

    return NotificationService(
        registry=registry,
        rules=rules,
        dispatcher=dispatcher,
        history=history,
        default_severity=settings.routing.default_severity,
        service_name=settings.server.service_name,
    )
