"""NotificationService — validate, route, dispatch and record events."""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from src.channels.registry import ChannelRegistry
from src.core.types import (
    Channel,
    EventSubmission,
    EventType,
    HistoryRecord,
    NotificationEvent,
    RoutingRule,
    Severity,
)
from src.history.store import HistoryStore
from src.routing.dispatcher import DeliveryDispatcher
from src.routing.rules import RuleEngine
from src.service.exceptions import EventValidationError

logger = structlog.get_logger(__name__)

TEST_EVENT_TITLE = "Test Notification"
TEST_EVENT_MESSAGE = "This is a test notification from the Notification Manager"


def _validation_errors(exc: ValidationError) -> dict[str, str]:
    errors: dict[str, str] = {}
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"]) or "event"
        errors.setdefault(field, err["msg"])
    return errors


class NotificationService:
    """Composition root for the routing-and-delivery pipeline.

    submission → validation/defaulting → rule match → fan-out →
    outcome aggregation → history append → returned record.

    Delivery failures are part of the returned record. Only validation
    (``EventValidationError``) and storage (``StoreError``) failures raise.
    """

    def __init__(
        self,
        registry: ChannelRegistry,
        rules: RuleEngine,
        dispatcher: DeliveryDispatcher,
        history: HistoryStore,
        default_severity: Mapping[EventType, Severity] | None = None,
        service_name: str = "notification-manager",
    ) -> None:
        self._registry = registry
        self._rules = rules
        self._dispatcher = dispatcher
        self._history = history
        self._default_severity: dict[EventType, Severity] = dict(default_severity or {})
        self._service_name = service_name
        self._started_at = time.time()
        self._submitted = 0

    @property
    def registry(self) -> ChannelRegistry:
        return self._registry

    @property
    def rules(self) -> RuleEngine:
        return self._rules

    @property
    def history(self) -> HistoryStore:
        return self._history

    # ── Submission ──────────────────────────────────────────────

    def validate(self, raw: Mapping[str, Any] | EventSubmission) -> NotificationEvent:
        """Validate a payload and build the immutable event (assigns the id)."""
        if isinstance(raw, EventSubmission):
            submission = raw
        else:
            if not isinstance(raw, Mapping):
                raise EventValidationError({"event": "payload must be an object"})
            try:
                submission = EventSubmission.model_validate(dict(raw))
            except ValidationError as exc:
                raise EventValidationError(_validation_errors(exc)) from None

        severity = submission.severity or self._default_severity.get(
            submission.type, Severity.INFO,
        )
        return NotificationEvent(
            id=self._history.next_event_id(),
            type=submission.type,
            severity=severity,
            title=submission.title,
            message=submission.message,
            resource=submission.resource,
            environment=submission.environment,
            data=submission.data,
            timestamp=time.time(),
        )

    async def submit(self, raw: Mapping[str, Any] | EventSubmission) -> HistoryRecord:
        event = self.validate(raw)
        channel_ids = self._rules.match(event.type, event.severity)
        logger.info(
            "event_submitted",
            event_id=event.id,
            type=event.type,
            severity=event.severity,
            channels=channel_ids,
        )
        return await self._deliver_and_record(event, channel_ids)

    async def test(self, channel_id: str) -> HistoryRecord:
        """Send a synthetic event to one channel, bypassing routing rules."""
        self._registry.get(channel_id)
        event = NotificationEvent(
            id=self._history.next_event_id(),
            type=EventType.DEPLOYMENT,
            severity=Severity.INFO,
            title=TEST_EVENT_TITLE,
            message=TEST_EVENT_MESSAGE,
            resource="test-resource",
            environment="dev",
            data={"test": True},
            timestamp=time.time(),
        )
        logger.info("test_notification", event_id=event.id, channel_id=channel_id)
        return await self._deliver_and_record(event, [channel_id])

    async def _deliver_and_record(
        self, event: NotificationEvent, channel_ids: list[str],
    ) -> HistoryRecord:
        outcomes = await self._dispatcher.dispatch(event, channel_ids)
        record = HistoryRecord(event=event, outcomes=tuple(outcomes), recorded_at=time.time())
        await self._history.append(record)
        self._submitted += 1
        logger.info(
            "event_recorded",
            event_id=event.id,
            delivered=record.delivered,
            failed=record.failed,
            skipped=record.skipped,
        )
        return record

    # ── Queries and administration ──────────────────────────────

    def list_channels(self) -> list[Channel]:
        return self._registry.list()

    def get_channel(self, channel_id: str) -> Channel:
        return self._registry.get(channel_id)

    def set_channel_enabled(self, channel_id: str, enabled: bool) -> Channel:
        return self._registry.set_enabled(channel_id, enabled)

    def list_rules(self) -> tuple[RoutingRule, ...]:
        return self._rules.rules

    def list_history(self, limit: int = 50, before: int | None = None) -> list[HistoryRecord]:
        return self._history.list(limit=limit, before=before)

    def health(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "service": self._service_name,
            "uptime_secs": round(time.time() - self._started_at, 3),
            "channels": len(self._registry),
            "enabled_channels": self._registry.enabled_count,
            "rules": len(self._rules.rules),
            "history_size": len(self._history),
            "events_processed": self._submitted,
        }

    # ── Lifecycle ───────────────────────────────────────────────

    async def open(self) -> None:
        await self._history.open()
        unknown = self._rules.unknown_channel_ids(self._registry.ids)
        if unknown:
            logger.warning("rules_reference_unknown_channels", channel_ids=unknown)

    async def close(self) -> None:
        await self._dispatcher.close()
