"""Exception hierarchy for channels and delivery."""

from __future__ import annotations

from src.core.types import ErrorKind


class ChannelError(Exception):
    """Base exception for channel errors."""


class NotFoundError(Exception):
    """A queried identifier does not exist."""


class ChannelNotFoundError(NotFoundError, ChannelError):
    """No channel is registered under the requested ID."""

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"unknown channel: {channel_id}")
        self.channel_id = channel_id


class DeliveryError(ChannelError):
    """A send attempt failed. ``kind`` decides whether it is retried."""

    kind: ErrorKind = ErrorKind.PERMANENT


class TransientDeliveryError(DeliveryError):
    """Network, timeout or server-side failure worth retrying."""

    kind = ErrorKind.TRANSIENT


class PermanentDeliveryError(DeliveryError):
    """Malformed destination or rejected request; retrying will not help."""

    kind = ErrorKind.PERMANENT
