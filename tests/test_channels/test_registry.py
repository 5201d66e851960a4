"""Tests for ChannelRegistry: lookup, ordering, enable/disable."""

from __future__ import annotations

import pytest

from src.channels.exceptions import ChannelNotFoundError, NotFoundError
from src.channels.registry import ChannelRegistry
from src.core.config import Settings
from src.core.types import Channel, ChannelType


def _registry() -> ChannelRegistry:
    return ChannelRegistry.from_config(Settings().channels)


class TestChannelRegistry:
    def test_from_config_preserves_order(self) -> None:
        reg = _registry()
        assert reg.ids == ["teams-alerts", "slack-devops", "email-admins", "webhook-audit"]
        assert [c.id for c in reg.list()] == reg.ids
        assert len(reg) == 4

    def test_get_known(self) -> None:
        ch = _registry().get("email-admins")
        assert ch.type == ChannelType.EMAIL
        assert ch.enabled is True

    def test_get_unknown_raises_not_found(self) -> None:
        with pytest.raises(ChannelNotFoundError) as exc_info:
            _registry().get("pagerduty")
        assert exc_info.value.channel_id == "pagerduty"
        assert isinstance(exc_info.value, NotFoundError)

    def test_contains(self) -> None:
        reg = _registry()
        assert "slack-devops" in reg
        assert "nope" not in reg

    def test_set_enabled_replaces_channel(self) -> None:
        reg = _registry()
        before = reg.get("slack-devops")
        updated = reg.set_enabled("slack-devops", False)
        assert updated.enabled is False
        assert reg.get("slack-devops").enabled is False
        # Earlier snapshots are unaffected.
        assert before.enabled is True
        assert reg.enabled_count == 3

    def test_set_enabled_keeps_position(self) -> None:
        reg = _registry()
        reg.set_enabled("teams-alerts", False)
        assert reg.ids[0] == "teams-alerts"

    def test_set_enabled_unknown_raises(self) -> None:
        with pytest.raises(ChannelNotFoundError):
            _registry().set_enabled("ghost", True)

    def test_list_is_a_copy(self) -> None:
        reg = _registry()
        channels = reg.list()
        channels.clear()
        assert len(reg) == 4

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicate channel id"):
            ChannelRegistry([
                Channel(id="a", type=ChannelType.CHAT),
                Channel(id="a", type=ChannelType.WEBHOOK),
            ])
