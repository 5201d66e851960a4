"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, SecretStr, model_validator

from src.core.types import ChannelType, EventType, Severity

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class ServerConfig(BaseModel):
    """HTTP listener configuration."""

    host: str = "0.0.0.0"
    port: int = 8089
    service_name: str = "notification-manager"


class ChannelConfig(BaseModel):
    """A single delivery channel declared in static configuration."""

    id: str
    type: ChannelType
    destination: SecretStr = SecretStr("")
    enabled: bool = True
    description: str = ""


class RoutingRuleConfig(BaseModel):
    """Routing rule as written in YAML (``"*"`` wildcards allowed)."""

    event_type: EventType | Literal["*"] = "*"
    severity: Severity | Literal["all", "*"] = "all"
    channels: list[str] = []


def _default_channels() -> list[ChannelConfig]:
    return [
        ChannelConfig(
            id="teams-alerts",
            type=ChannelType.CHAT,
            description="Microsoft Teams incoming webhook",
        ),
        ChannelConfig(
            id="slack-devops",
            type=ChannelType.CHAT,
            description="Slack incoming webhook",
        ),
        ChannelConfig(
            id="email-admins",
            type=ChannelType.EMAIL,
            description="Platform administrators mailing list",
        ),
        ChannelConfig(
            id="webhook-audit",
            type=ChannelType.WEBHOOK,
            destination=SecretStr("https://audit.example.com/events"),
            description="Audit log collector",
        ),
    ]


def _default_rules() -> list[RoutingRuleConfig]:
    return [
        RoutingRuleConfig(event_type="deployment", severity="info", channels=["slack-devops"]),
        RoutingRuleConfig(
            event_type="deployment",
            severity="error",
            channels=["teams-alerts", "slack-devops", "email-admins"],
        ),
        RoutingRuleConfig(event_type="drift", severity="*", channels=["teams-alerts", "slack-devops"]),
        RoutingRuleConfig(event_type="policy", severity="warning", channels=["slack-devops"]),
        RoutingRuleConfig(
            event_type="policy", severity="error", channels=["teams-alerts", "email-admins"],
        ),
        RoutingRuleConfig(
            event_type="security",
            severity="*",
            channels=["teams-alerts", "email-admins", "webhook-audit"],
        ),
        RoutingRuleConfig(event_type="cost", severity="warning", channels=["slack-devops"]),
    ]


def _default_severity() -> dict[EventType, Severity]:
    return {
        EventType.DEPLOYMENT: Severity.INFO,
        EventType.DRIFT: Severity.WARNING,
        EventType.POLICY: Severity.WARNING,
        EventType.SECURITY: Severity.CRITICAL,
        EventType.COST: Severity.WARNING,
    }


class RoutingConfig(BaseModel):
    """Routing rules (declaration order = priority) and severity defaults."""

    rules: list[RoutingRuleConfig] = _default_rules()
    default_severity: dict[EventType, Severity] = _default_severity()

    @model_validator(mode="after")
    def _fill_severity_table(self) -> RoutingConfig:
        # Partial tables in YAML inherit the built-in defaults.
        merged = _default_severity()
        merged.update(self.default_severity)
        self.default_severity = merged
        return self


class DispatchConfig(BaseModel):
    """Retry, backoff and timeout policy for channel delivery."""

    max_attempts: int = 3
    backoff_base_secs: float = 0.5
    backoff_multiplier: float = 2.0
    backoff_cap_secs: float = 10.0
    send_timeout_secs: float = 10.0
    timeout_secs: float = 30.0


class EmailConfig(BaseModel):
    """SMTP server used by email channels."""

    smtp_host: str = ""
    smtp_port: int = 587
    username: str = ""
    password: SecretStr = SecretStr("")
    use_starttls: bool = True
    from_address: str = "iac-notify@example.com"


class WebhookConfig(BaseModel):
    """Generic webhook delivery options."""

    signing_secret: SecretStr = SecretStr("")
    headers: dict[str, str] = {}


class HistoryConfig(BaseModel):
    """History retention: bounded size, optional age window, optional file."""

    max_records: int = 1000
    max_age_secs: float | None = None
    path: str = ""


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class Settings(BaseModel):
    """Root settings container."""

    server: ServerConfig = ServerConfig()
    channels: list[ChannelConfig] = _default_channels()
    routing: RoutingConfig = RoutingConfig()
    dispatch: DispatchConfig = DispatchConfig()
    email: EmailConfig = EmailConfig()
    webhook: WebhookConfig = WebhookConfig()
    history: HistoryConfig = HistoryConfig()
    logging: LoggingConfig = LoggingConfig()

    @model_validator(mode="after")
    def _unique_channel_ids(self) -> Settings:
        seen: set[str] = set()
        for ch in self.channels:
            if ch.id in seen:
                raise ValueError(f"duplicate channel id: {ch.id}")
            seen.add(ch.id)
        return self


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
