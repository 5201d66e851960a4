"""Tests for the send_event CLI: payload building and record rendering."""

from __future__ import annotations

import argparse
from collections.abc import Callable
from unittest.mock import patch

import httpx
import pytest

from scripts.send_event import build_payload, render_record, send

_RealAsyncClient = httpx.AsyncClient


def _args(**kw: object) -> argparse.Namespace:
    defaults: dict[str, object] = {
        "type": "security",
        "title": "Secret detected",
        "message": "",
        "severity": "",
        "resource": "",
        "environment": "",
        "url": "http://notify.test",
        "timeout": 5.0,
        "json": False,
    }
    defaults.update(kw)
    return argparse.Namespace(**defaults)


class TestBuildPayload:
    def test_minimal(self) -> None:
        assert build_payload(_args()) == {
            "type": "security",
            "title": "Secret detected",
            "message": "Secret detected",
        }

    def test_optional_fields(self) -> None:
        payload = build_payload(_args(severity="critical", resource="storage.tf", environment="prod"))
        assert payload["severity"] == "critical"
        assert payload["resource"] == "storage.tf"
        assert payload["environment"] == "prod"


class TestRenderRecord:
    def test_outcomes(self) -> None:
        record = {
            "event": {"id": 3, "type": "security", "severity": "critical", "title": "Secret"},
            "outcomes": [
                {"channel_id": "teams-alerts", "status": "delivered", "error": None, "note": ""},
                {"channel_id": "email-admins", "status": "failed", "error": "SMTP server not configured"},
            ],
        }
        text = render_record(record)
        lines = text.split("\n")
        assert lines[0] == "Event #3 [security/critical] Secret"
        assert "✅ teams-alerts" in lines[1]
        assert lines[2].endswith("failed: SMTP server not configured")

    def test_no_outcomes(self) -> None:
        record = {"event": {"id": 1, "type": "cost", "severity": "info", "title": "t"}, "outcomes": []}
        assert "(no routing rules matched)" in render_record(record)


def _client_factory(handler: Callable[[httpx.Request], httpx.Response]) -> Callable[..., httpx.AsyncClient]:
    def _make(**kw: object) -> httpx.AsyncClient:
        return _RealAsyncClient(transport=httpx.MockTransport(handler), **kw)  # type: ignore[arg-type]
    return _make


class TestSend:
    async def test_success_prints_record(self, capsys: pytest.CaptureFixture[str]) -> None:
        record = {
            "event": {"id": 1, "type": "security", "severity": "critical", "title": "Secret"},
            "outcomes": [{"channel_id": "teams-alerts", "status": "delivered"}],
        }

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/notify"
            return httpx.Response(200, json=record)

        with patch("scripts.send_event.httpx.AsyncClient", side_effect=_client_factory(handler)):
            code = await send(_args())

        assert code == 0
        assert "Event #1 [security/critical] Secret" in capsys.readouterr().out

    async def test_non_json_error_body(self, capsys: pytest.CaptureFixture[str]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        with patch("scripts.send_event.httpx.AsyncClient", side_effect=_client_factory(handler)):
            code = await send(_args())

        assert code == 1
        assert "HTTP 502: <html>Bad Gateway</html>" in capsys.readouterr().err

    async def test_validation_error_reported(self, capsys: pytest.CaptureFixture[str]) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": "validation failed"})

        with patch("scripts.send_event.httpx.AsyncClient", side_effect=_client_factory(handler)):
            code = await send(_args())

        assert code == 1
        assert "validation failed" in capsys.readouterr().err
