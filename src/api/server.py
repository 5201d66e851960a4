"""HTTP surface for the notification service, served with ``aiohttp``.

Exposes:
- ``GET   /health``               → service health
- ``POST  /notify``               → submit an event, returns the history record
- ``GET   /channels``             → configured channels (destinations redacted)
- ``PATCH /channels/{id}``        → ``{"enabled": bool}`` toggle
- ``POST  /channels/{id}/test``   → test notification to one channel
- ``GET   /rules``                → routing rules in priority order
- ``GET   /history``              → ``?limit=N&before=ID``, newest first
- ``POST  /agent``                → chat command agent (Server-Sent Events)
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from aiohttp import web

from src.api.agent import handle_prompt, last_user_message
from src.channels.exceptions import NotFoundError
from src.history.exceptions import StoreError
from src.service.exceptions import EventValidationError
from src.service.notification_service import NotificationService

logger = structlog.get_logger(__name__)

DEFAULT_HISTORY_LIMIT = 50
MAX_HISTORY_LIMIT = 1000


def _error(status: int, message: str, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


async def _read_json(request: web.Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise web.HTTPBadRequest(
            text=json.dumps({"error": "invalid JSON"}),
            content_type="application/json",
        ) from None


def _query_int(request: web.Request, name: str, default: int | None) -> int | None:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise web.HTTPBadRequest(
            text=json.dumps({"error": f"{name} must be an integer"}),
            content_type="application/json",
        ) from None


# ── Handlers ────────────────────────────────────────────────────


async def _handle_health(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    return web.json_response(service.health())


async def _handle_notify(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    payload = await _read_json(request)
    try:
        record = await service.submit(payload)
    except EventValidationError as exc:
        return _error(400, "validation failed", details=exc.errors)
    except StoreError as exc:
        logger.error("notify_store_failed", error=str(exc))
        return _error(503, "event could not be recorded", details=str(exc))
    return web.json_response(record.model_dump(mode="json"))


async def _handle_channels(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    return web.json_response([ch.model_dump(mode="json") for ch in service.list_channels()])


async def _handle_channel_patch(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    channel_id = request.match_info["channel_id"]
    payload = await _read_json(request)
    if not isinstance(payload, dict) or not isinstance(payload.get("enabled"), bool):
        return _error(400, "body must be {\"enabled\": true|false}")
    try:
        channel = service.set_channel_enabled(channel_id, payload["enabled"])
    except NotFoundError as exc:
        return _error(404, str(exc))
    return web.json_response(channel.model_dump(mode="json"))


async def _handle_channel_test(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    channel_id = request.match_info["channel_id"]
    try:
        record = await service.test(channel_id)
    except NotFoundError as exc:
        return _error(404, str(exc))
    except StoreError as exc:
        return _error(503, "event could not be recorded", details=str(exc))
    return web.json_response(record.model_dump(mode="json"))


async def _handle_rules(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    return web.json_response([r.model_dump(mode="json") for r in service.list_rules()])


async def _handle_history(request: web.Request) -> web.Response:
    service: NotificationService = request.app["service"]
    limit = _query_int(request, "limit", DEFAULT_HISTORY_LIMIT) or 0
    before = _query_int(request, "before", None)
    limit = max(0, min(limit, MAX_HISTORY_LIMIT))
    records = service.list_history(limit=limit, before=before)
    return web.json_response([r.model_dump(mode="json") for r in records])


async def _send_sse(resp: web.StreamResponse, event: str, data: dict[str, Any]) -> None:
    await resp.write(f"event: {event}\ndata: {json.dumps(data)}\n\n".encode())


async def _handle_agent(request: web.Request) -> web.StreamResponse:
    service: NotificationService = request.app["service"]
    payload = await _read_json(request)
    messages = payload.get("messages", []) if isinstance(payload, dict) else []
    if not isinstance(messages, list):
        return _error(400, "messages must be a list")

    text = last_user_message([m for m in messages if isinstance(m, dict)])
    try:
        chunks = await handle_prompt(service, text)
    except EventValidationError as exc:
        chunks = [f"⚠️ {exc}\n"]
    except StoreError as exc:
        chunks = [f"❌ {exc}\n"]

    resp = web.StreamResponse(
        headers={
            "Content-Type": "text/event-stream",
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )
    await resp.prepare(request)
    for chunk in chunks:
        await _send_sse(resp, "copilot_message", {"content": chunk})
    await _send_sse(resp, "copilot_done", {})
    await resp.write_eof()
    return resp


# ── App wiring ──────────────────────────────────────────────────


def create_app(service: NotificationService) -> web.Application:
    """Create the aiohttp web application."""
    app = web.Application()
    app["service"] = service
    app.router.add_get("/health", _handle_health)
    app.router.add_post("/notify", _handle_notify)
    app.router.add_get("/channels", _handle_channels)
    app.router.add_patch("/channels/{channel_id}", _handle_channel_patch)
    app.router.add_post("/channels/{channel_id}/test", _handle_channel_test)
    app.router.add_get("/rules", _handle_rules)
    app.router.add_get("/history", _handle_history)
    app.router.add_post("/agent", _handle_agent)
    return app


async def start_server(
    service: NotificationService,
    host: str = "0.0.0.0",
    port: int = 8089,
) -> web.AppRunner:
    """Start the HTTP server. Returns the runner for cleanup."""
    app = create_app(service)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("http_server_started", host=host, port=port)
    return runner
