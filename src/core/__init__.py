"""Core module: config, types, logging."""

from src.core.config import Settings, get_settings, load_settings, reset_settings
from src.core.logging import setup_logging
from src.core.types import (
    Channel,
    ChannelType,
    DeliveryOutcome,
    DeliveryStatus,
    ErrorKind,
    EventSubmission,
    EventType,
    HistoryRecord,
    NotificationEvent,
    RoutingRule,
    SendResult,
    Severity,
)

__all__ = [
    "Channel",
    "ChannelType",
    "DeliveryOutcome",
    "DeliveryStatus",
    "ErrorKind",
    "EventSubmission",
    "EventType",
    "HistoryRecord",
    "NotificationEvent",
    "RoutingRule",
    "SendResult",
    "Settings",
    "Severity",
    "get_settings",
    "load_settings",
    "reset_settings",
    "setup_logging",
]
