"""Pure functions that render a NotificationEvent for each channel type."""

from __future__ import annotations

import datetime
from typing import Any

from src.core.types import EventType, NotificationEvent, Severity

_SEVERITY_ICONS: dict[Severity, str] = {
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
    Severity.ERROR: "❌",
    Severity.CRITICAL: "🚨",
}

_EVENT_ICONS: dict[EventType, str] = {
    EventType.DEPLOYMENT: "🚀",
    EventType.DRIFT: "🔄",
    EventType.POLICY: "📋",
    EventType.SECURITY: "🔒",
    EventType.COST: "💰",
}


def _format_time(ts: float) -> str:
    dt = datetime.datetime.fromtimestamp(ts, tz=datetime.UTC)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")


def _context_lines(event: NotificationEvent) -> list[tuple[str, str]]:
    lines: list[tuple[str, str]] = [
        ("Type", event.type.value),
        ("Severity", event.severity.value),
    ]
    if event.resource:
        lines.append(("Resource", event.resource))
    if event.environment:
        lines.append(("Environment", event.environment))
    lines.append(("Time", _format_time(event.timestamp)))
    return lines


def render_chat_text(event: NotificationEvent) -> str:
    """Markdown text accepted by Teams and Slack incoming webhooks."""
    icon = _SEVERITY_ICONS.get(event.severity, "")
    parts = [
        f"{icon} *[{event.severity.value.upper()}] {event.title}*",
        event.message,
    ]
    parts.extend(f"• {k}: {v}" for k, v in _context_lines(event))
    return "\n".join(parts)


def render_email(event: NotificationEvent) -> tuple[str, str]:
    """Return (subject, plain-text body)."""
    icon = _EVENT_ICONS.get(event.type, "")
    subject = f"{icon} [{event.severity.value.upper()}] {event.title}".strip()

    body_lines = [event.title, "", event.message, ""]
    body_lines.extend(f"{k}: {v}" for k, v in _context_lines(event))
    if event.data:
        body_lines.append("")
        body_lines.extend(f"{k}: {v}" for k, v in sorted(event.data.items()))
    body_lines.extend(["", f"Event ID: {event.id}"])
    return subject, "\n".join(body_lines) + "\n"


def build_webhook_payload(event: NotificationEvent) -> dict[str, Any]:
    """JSON body for generic webhooks."""
    return {
        "event_id": event.id,
        "type": event.type.value,
        "severity": event.severity.value,
        "title": event.title,
        "message": event.message,
        "resource": event.resource,
        "environment": event.environment,
        "timestamp": datetime.datetime.fromtimestamp(
            event.timestamp, tz=datetime.UTC,
        ).isoformat(),
        "data": event.data,
    }
