"""ChannelRegistry — single source of truth for configured channels."""

from __future__ import annotations

import threading
from collections.abc import Iterable

import structlog

from src.channels.exceptions import ChannelNotFoundError
from src.core.config import ChannelConfig
from src.core.types import Channel

logger = structlog.get_logger(__name__)


class ChannelRegistry:
    """Holds every configured channel, enabled or not.

    Channels are frozen models; ``set_enabled`` swaps in an updated copy
    under a lock so readers only ever see whole channels.
    """

    def __init__(self, channels: Iterable[Channel] = ()) -> None:
        self._lock = threading.Lock()
        self._channels: dict[str, Channel] = {}
        for ch in channels:
            if ch.id in self._channels:
                raise ValueError(f"duplicate channel id: {ch.id}")
            self._channels[ch.id] = ch

    @classmethod
    def from_config(cls, configs: Iterable[ChannelConfig]) -> ChannelRegistry:
        return cls(
            Channel(
                id=c.id,
                type=c.type,
                destination=c.destination,
                enabled=c.enabled,
                description=c.description,
            )
            for c in configs
        )

    def list(self) -> list[Channel]:
        """All channels in declaration order."""
        with self._lock:
            return list(self._channels.values())

    def get(self, channel_id: str) -> Channel:
        with self._lock:
            try:
                return self._channels[channel_id]
            except KeyError:
                raise ChannelNotFoundError(channel_id) from None

    def __contains__(self, channel_id: object) -> bool:
        with self._lock:
            return channel_id in self._channels

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    @property
    def ids(self) -> list[str]:
        with self._lock:
            return list(self._channels)

    @property
    def enabled_count(self) -> int:
        with self._lock:
            return sum(1 for ch in self._channels.values() if ch.enabled)

    def set_enabled(self, channel_id: str, enabled: bool) -> Channel:
        """Enable or disable a channel; returns the updated channel."""
        with self._lock:
            current = self._channels.get(channel_id)
            if current is None:
                raise ChannelNotFoundError(channel_id)
            updated = current.model_copy(update={"enabled": enabled})
            self._channels[channel_id] = updated
        logger.info("channel_toggled", channel_id=channel_id, enabled=enabled)
        return updated
