"""Notification service exceptions."""

from __future__ import annotations


class ServiceError(Exception):
    """Base exception for notification service errors."""


class EventValidationError(ServiceError):
    """A submission was rejected before any dispatch.

    ``errors`` maps field names to human-readable messages.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        detail = "; ".join(f"{k}: {v}" for k, v in errors.items())
        super().__init__(f"invalid event: {detail}")
        self.errors = errors
