"""Chat-style command agent that answers operator prompts with markdown chunks.

Prompts are matched by keyword, first hit wins:

- ``channels`` / ``list``   → channel table
- ``history`` / ``recent``  → recent deliveries
- ``rules`` / ``routing``   → routing rule table
- ``test [channel]``        → test notification to one channel
- ``send`` / ``notify``     → submit an event built from keywords
- anything else             → help text
"""

from __future__ import annotations

import datetime
from collections.abc import Sequence
from typing import Any

from src.channels.exceptions import ChannelNotFoundError
from src.core.types import (
    Channel,
    DeliveryOutcome,
    DeliveryStatus,
    EventType,
    HistoryRecord,
    RoutingRule,
    Severity,
)
from src.service.notification_service import NotificationService

_STATUS_ICONS: dict[DeliveryStatus, str] = {
    DeliveryStatus.DELIVERED: "✅",
    DeliveryStatus.FAILED: "❌",
    DeliveryStatus.SKIPPED: "⚪",
}

# Keyword → channel id for ``test <keyword>``.
_TEST_TARGETS: dict[str, str] = {
    "teams": "teams-alerts",
    "email": "email-admins",
    "webhook": "webhook-audit",
    "slack": "slack-devops",
}
_DEFAULT_TEST_TARGET = "slack-devops"

HEADER = "📢 **Notification Manager Agent**\n\n"


def last_user_message(messages: Sequence[dict[str, Any]]) -> str:
    """Lower-cased content of the most recent ``user`` message."""
    for msg in reversed(messages):
        if msg.get("role") == "user":
            return str(msg.get("content", "")).lower()
    return ""


# ── Renderers ───────────────────────────────────────────────────


def render_channels(channels: Sequence[Channel]) -> list[str]:
    chunks = [
        "## Notification Channels\n\n",
        "| Channel | Type | Status |\n",
        "|---------|------|--------|\n",
    ]
    for ch in channels:
        status = "✅ Enabled" if ch.enabled else "⚪ Disabled"
        chunks.append(f"| {ch.id} | {ch.type.value} | {status} |\n")
    chunks.append("\n### Channel Types\n\n")
    chunks.append("- 💬 **chat:** Teams / Slack incoming webhooks\n")
    chunks.append("- 📧 **email:** SMTP notifications\n")
    chunks.append("- 🔗 **webhook:** Custom HTTP endpoints\n")
    return chunks


def render_rules(rules: Sequence[RoutingRule]) -> list[str]:
    chunks = [
        "## Routing Rules\n\n",
        "| Event Type | Severity | Channels |\n",
        "|------------|----------|----------|\n",
    ]
    for rule in rules:
        chunks.append(
            f"| {rule.match_type} | {rule.match_severity} "
            f"| {', '.join(rule.channel_ids)} |\n"
        )
    chunks.append("\n### Event Types\n\n")
    chunks.append("- 🚀 `deployment` - Deployment events\n")
    chunks.append("- 🔄 `drift` - Configuration drift\n")
    chunks.append("- 📋 `policy` - Policy violations\n")
    chunks.append("- 🔒 `security` - Security findings\n")
    chunks.append("- 💰 `cost` - Cost alerts\n")
    return chunks


def render_history(records: Sequence[HistoryRecord]) -> list[str]:
    chunks = ["## Recent Notifications\n\n"]
    if not records:
        chunks.append("No notifications sent yet.\n")
        return chunks
    chunks.append("| Time | Event | Channels | Status |\n")
    chunks.append("|------|-------|----------|--------|\n")
    for rec in records:
        when = datetime.datetime.fromtimestamp(rec.recorded_at, tz=datetime.UTC)
        channels = ", ".join(o.channel_id for o in rec.outcomes) or "-"
        chunks.append(
            f"| {when:%H:%M} | {rec.event.type.value} | {channels} "
            f"| {rec.delivered} sent, {rec.failed} failed, {rec.skipped} skipped |\n"
        )
    return chunks


def render_outcomes(outcomes: Sequence[DeliveryOutcome]) -> list[str]:
    chunks = ["### Results\n\n"]
    for o in outcomes:
        line = f"- {_STATUS_ICONS[o.status]} **{o.channel_id}:** {o.status.value}"
        if o.error:
            line += f" ({o.error})"
        elif o.note:
            line += f" ({o.note})"
        chunks.append(line + "\n")
    return chunks


def render_help() -> list[str]:
    return [
        "## Notification Manager Help\n\n",
        "**Commands:**\n",
        "- `channels` - List notification channels\n",
        "- `rules` - Show routing rules\n",
        "- `history` - Recent notifications\n",
        "- `test [channel]` - Send test notification\n",
        "- `send [type] [severity]` - Send notification\n\n",
        "**Examples:**\n",
        "- `test teams` - Test Teams notification\n",
        "- `send security critical` - Send security alert\n",
    ]


# ── Command handling ────────────────────────────────────────────


def parse_send(text: str) -> dict[str, Any]:
    """Build an event payload from ``send``/``notify`` keywords."""
    event_type = EventType.DEPLOYMENT
    for candidate in (EventType.SECURITY, EventType.DRIFT, EventType.POLICY, EventType.COST):
        if candidate.value in text:
            event_type = candidate
            break

    severity: Severity | None = None
    for candidate_sev in (Severity.CRITICAL, Severity.ERROR, Severity.WARNING, Severity.INFO):
        if candidate_sev.value in text:
            severity = candidate_sev
            break

    payload: dict[str, Any] = {
        "type": event_type.value,
        "title": f"{event_type.value.title()} Notification",
        "message": "Notification triggered via chat agent",
    }
    if severity is not None:
        payload["severity"] = severity.value
    return payload


def parse_test_target(text: str) -> str:
    for keyword, channel_id in _TEST_TARGETS.items():
        if keyword in text:
            return channel_id
    return _DEFAULT_TEST_TARGET


async def handle_prompt(service: NotificationService, text: str) -> list[str]:
    """Answer one prompt; returns markdown chunks in display order."""
    chunks = [HEADER]

    if "channels" in text or "list" in text:
        chunks.extend(render_channels(service.list_channels()))
    elif "history" in text or "recent" in text:
        chunks.extend(render_history(service.list_history(limit=10)))
    elif "rules" in text or "routing" in text:
        chunks.extend(render_rules(service.list_rules()))
    elif "test" in text:
        channel_id = parse_test_target(text)
        chunks.append("## 🧪 Test Notification\n\n")
        chunks.append(f"Sending test to **{channel_id}**...\n\n")
        try:
            record = await service.test(channel_id)
        except ChannelNotFoundError:
            chunks.append(f"⚠️ Channel **{channel_id}** is not configured.\n")
        else:
            chunks.extend(render_outcomes(record.outcomes))
    elif "send" in text or "notify" in text:
        payload = parse_send(text)
        chunks.append("## 📤 Send Notification\n\n")
        record = await service.submit(payload)
        chunks.append(f"**Event Type:** {record.event.type.value}\n")
        chunks.append(f"**Severity:** {record.event.severity.value}\n\n")
        if not record.outcomes:
            chunks.append("⚠️ No routing rules match this event.\n")
        else:
            targets = ", ".join(o.channel_id for o in record.outcomes)
            chunks.append(f"**Routing to:** {targets}\n\n")
            chunks.extend(render_outcomes(record.outcomes))
    else:
        chunks.extend(render_help())

    return chunks
