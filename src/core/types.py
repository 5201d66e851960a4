"""Domain types for notification routing: events, channels, rules, outcomes."""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

WILDCARD = "*"
ALL_SEVERITIES = "all"


class EventType(StrEnum):
    """Lifecycle event categories the service knows how to route."""

    DEPLOYMENT = "deployment"
    DRIFT = "drift"
    POLICY = "policy"
    SECURITY = "security"
    COST = "cost"


class Severity(StrEnum):
    """Event severity."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ChannelType(StrEnum):
    """Delivery mechanism of a channel."""

    CHAT = "chat"
    EMAIL = "email"
    WEBHOOK = "webhook"


class DeliveryStatus(StrEnum):
    """Per-channel result of a dispatch."""

    DELIVERED = "delivered"
    FAILED = "failed"
    SKIPPED = "skipped"


class ErrorKind(StrEnum):
    """Classification of a delivery failure."""

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    TIMEOUT = "timeout"


# ── Configuration snapshot types ────────────────────────────────


class Channel(BaseModel):
    """A configured delivery destination."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: ChannelType
    destination: SecretStr = SecretStr("")
    enabled: bool = True
    description: str = ""


class RoutingRule(BaseModel):
    """Maps (event type, severity) to an ordered list of channel IDs."""

    model_config = ConfigDict(frozen=True)

    match_type: EventType | Literal["*"] = WILDCARD
    match_severity: Severity | Literal["all"] = ALL_SEVERITIES
    channel_ids: tuple[str, ...] = ()

    @field_validator("match_severity", mode="before")
    @classmethod
    def _star_means_all(cls, v: Any) -> Any:
        if v == WILDCARD:
            return ALL_SEVERITIES
        return v

    def matches(self, event_type: EventType, severity: Severity) -> bool:
        type_ok = self.match_type == WILDCARD or self.match_type == event_type
        severity_ok = (
            self.match_severity == ALL_SEVERITIES or self.match_severity == severity
        )
        return type_ok and severity_ok


# ── Events and outcomes ─────────────────────────────────────────


class EventSubmission(BaseModel):
    """Inbound event payload before id/timestamp assignment."""

    type: EventType
    severity: Severity | None = None
    title: str
    message: str
    resource: str = ""
    environment: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("type", "severity", mode="before")
    @classmethod
    def _normalise_enum(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v

    @field_validator("title", "message")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class NotificationEvent(BaseModel):
    """A validated, immutable event accepted for routing."""

    model_config = ConfigDict(frozen=True)

    id: int
    type: EventType
    severity: Severity
    title: str
    message: str
    resource: str = ""
    environment: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: float = Field(default_factory=time.time)


class DeliveryOutcome(BaseModel):
    """Result of delivering one event to one channel."""

    model_config = ConfigDict(frozen=True)

    channel_id: str
    status: DeliveryStatus
    error: str | None = None
    error_kind: ErrorKind | None = None
    attempts: int = 0
    attempted_at: float = Field(default_factory=time.time)
    note: str = ""


class HistoryRecord(BaseModel):
    """An event paired with its complete set of delivery outcomes."""

    model_config = ConfigDict(frozen=True)

    event: NotificationEvent
    outcomes: tuple[DeliveryOutcome, ...] = ()
    recorded_at: float = Field(default_factory=time.time)

    def _count(self, status: DeliveryStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def delivered(self) -> int:
        return self._count(DeliveryStatus.DELIVERED)

    @property
    def failed(self) -> int:
        return self._count(DeliveryStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(DeliveryStatus.SKIPPED)


class SendResult(BaseModel):
    """Classified result of a single send attempt."""

    ok: bool
    error: str = ""
    kind: ErrorKind | None = None

    @classmethod
    def success(cls) -> SendResult:
        return cls(ok=True)

    @classmethod
    def transient(cls, error: str) -> SendResult:
        return cls(ok=False, error=error, kind=ErrorKind.TRANSIENT)

    @classmethod
    def permanent(cls, error: str) -> SendResult:
        return cls(ok=False, error=error, kind=ErrorKind.PERMANENT)

    @property
    def retryable(self) -> bool:
        return not self.ok and self.kind in (ErrorKind.TRANSIENT, ErrorKind.TIMEOUT)
