"""Notification service: composition root and wiring."""

from src.service.exceptions import EventValidationError, ServiceError
from src.service.factory import build_senders, create_service
from src.service.notification_service import NotificationService

__all__ = [
    "EventValidationError",
    "NotificationService",
    "ServiceError",
    "build_senders",
    "create_service",
]
