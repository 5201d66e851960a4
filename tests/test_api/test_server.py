"""Tests for the aiohttp HTTP surface."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from aiohttp.test_utils import TestClient, TestServer

from src.api.server import create_app
from src.channels.senders import ChannelSender
from src.core.config import DispatchConfig, HistoryConfig, Settings
from src.core.types import Channel, ChannelType, NotificationEvent, SendResult
from src.service.factory import create_service
from src.service.notification_service import NotificationService


# ── Helpers ─────────────────────────────────────────────────────


class FakeSender(ChannelSender):
    def __init__(self, channel_type: ChannelType, fail: set[str] | None = None) -> None:
        self.channel_type = channel_type
        self.fail = fail or set()

    async def send(self, channel: Channel, event: NotificationEvent) -> SendResult:
        if channel.id in self.fail:
            return SendResult.transient("HTTP 503: unavailable")
        return SendResult.success()

    async def _deliver(self, channel: Channel, event: NotificationEvent) -> None:
        return None


def _service(settings: Settings | None = None) -> NotificationService:
    return create_service(
        settings or Settings(),
        senders={t: FakeSender(t, fail={"webhook-audit"}) for t in ChannelType},
    )


def _sse_events(body: str) -> list[tuple[str, dict[str, object]]]:
    events = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.split("\n"))
        events.append((lines["event"], json.loads(lines["data"])))
    return events


@pytest.fixture
async def client() -> AsyncIterator[TestClient]:
    settings = Settings(dispatch=DispatchConfig(backoff_base_secs=0.001))
    async with TestClient(TestServer(create_app(_service(settings)))) as c:
        yield c


# ── Tests ───────────────────────────────────────────────────────


class TestHealth:
    async def test_health(self, client: TestClient) -> None:
        resp = await client.get("/health")
        assert resp.status == 200
        body = await resp.json()
        assert body["status"] == "healthy"
        assert body["channels"] == 4


class TestNotify:
    async def test_security_event(self, client: TestClient) -> None:
        resp = await client.post("/notify", json={
            "type": "security",
            "severity": "critical",
            "title": "Secret detected",
            "message": "AWS key committed",
        })
        assert resp.status == 200
        body = await resp.json()
        assert body["event"]["id"] == 1
        outcomes = {o["channel_id"]: o for o in body["outcomes"]}
        assert list(outcomes) == ["teams-alerts", "email-admins", "webhook-audit"]
        assert outcomes["teams-alerts"]["status"] == "delivered"
        assert outcomes["webhook-audit"]["status"] == "failed"
        assert outcomes["webhook-audit"]["error_kind"] == "transient"
        assert outcomes["webhook-audit"]["attempts"] == 3

    async def test_validation_error(self, client: TestClient) -> None:
        resp = await client.post("/notify", json={"type": "security"})
        assert resp.status == 400
        body = await resp.json()
        assert body["error"] == "validation failed"
        assert "title" in body["details"]

        history = await (await client.get("/history")).json()
        assert history == []

    async def test_invalid_json(self, client: TestClient) -> None:
        resp = await client.post("/notify", data=b"{nope", headers={"Content-Type": "application/json"})
        assert resp.status == 400
        assert (await resp.json())["error"] == "invalid JSON"

    async def test_non_object_body(self, client: TestClient) -> None:
        resp = await client.post("/notify", json=[1, 2])
        assert resp.status == 400

    async def test_store_failure_returns_503(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        settings = Settings(history=HistoryConfig(path=str(blocker / "h.jsonl")))
        async with TestClient(TestServer(create_app(_service(settings)))) as c:
            resp = await c.post("/notify", json={"type": "cost", "title": "t", "message": "m"})
            assert resp.status == 503


class TestChannels:
    async def test_list_redacts_destination(self, client: TestClient) -> None:
        resp = await client.get("/channels")
        body = await resp.json()
        assert [c["id"] for c in body] == [
            "teams-alerts",
            "slack-devops",
            "email-admins",
            "webhook-audit",
        ]
        assert "audit.example.com" not in json.dumps(body)

    async def test_toggle(self, client: TestClient) -> None:
        resp = await client.patch("/channels/slack-devops", json={"enabled": False})
        assert resp.status == 200
        assert (await resp.json())["enabled"] is False

        health = await (await client.get("/health")).json()
        assert health["enabled_channels"] == 3

    async def test_toggle_requires_bool(self, client: TestClient) -> None:
        resp = await client.patch("/channels/slack-devops", json={"enabled": "no"})
        assert resp.status == 400

    async def test_toggle_unknown(self, client: TestClient) -> None:
        resp = await client.patch("/channels/ghost", json={"enabled": True})
        assert resp.status == 404

    async def test_test_channel(self, client: TestClient) -> None:
        resp = await client.post("/channels/teams-alerts/test")
        assert resp.status == 200
        body = await resp.json()
        assert len(body["outcomes"]) == 1
        assert body["outcomes"][0]["status"] == "delivered"

    async def test_test_unknown_channel(self, client: TestClient) -> None:
        resp = await client.post("/channels/ghost/test")
        assert resp.status == 404


class TestRulesAndHistory:
    async def test_rules(self, client: TestClient) -> None:
        body = await (await client.get("/rules")).json()
        assert len(body) == 7
        assert body[0] == {
            "match_type": "deployment",
            "match_severity": "info",
            "channel_ids": ["slack-devops"],
        }

    async def test_history_pagination(self, client: TestClient) -> None:
        for _ in range(3):
            await client.post("/notify", json={"type": "drift", "title": "t", "message": "m"})

        body = await (await client.get("/history?limit=2")).json()
        assert [r["event"]["id"] for r in body] == [3, 2]

        body = await (await client.get("/history?limit=2&before=2")).json()
        assert [r["event"]["id"] for r in body] == [1]

    async def test_history_bad_limit(self, client: TestClient) -> None:
        resp = await client.get("/history?limit=abc")
        assert resp.status == 400


class TestAgent:
    async def test_streams_chunks_then_done(self, client: TestClient) -> None:
        resp = await client.post("/agent", json={
            "messages": [{"role": "user", "content": "channels"}],
        })
        assert resp.status == 200
        assert resp.headers["Content-Type"].startswith("text/event-stream")
        events = _sse_events(await resp.text())
        assert events[0][0] == "copilot_message"
        assert events[-1] == ("copilot_done", {})
        content = "".join(str(data.get("content", "")) for _, data in events)
        assert "## Notification Channels" in content

    async def test_empty_messages_shows_help(self, client: TestClient) -> None:
        resp = await client.post("/agent", json={"messages": []})
        content = "".join(str(d.get("content", "")) for _, d in _sse_events(await resp.text()))
        assert "Notification Manager Help" in content
