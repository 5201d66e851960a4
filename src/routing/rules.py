"""RuleEngine: maps (event type, severity) to the channels that receive it."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import structlog

from src.core.config import RoutingRuleConfig
from src.core.types import EventType, RoutingRule, Severity

logger = structlog.get_logger(__name__)


def rules_from_config(configs: Iterable[RoutingRuleConfig]) -> tuple[RoutingRule, ...]:
    """Convert YAML rule entries into frozen RoutingRule objects."""
    return tuple(
        RoutingRule(
            match_type=c.event_type,
            match_severity=c.severity,
            channel_ids=tuple(c.channels),
        )
        for c in configs
    )


class RuleEngine:
    """Union-of-matches router over an immutable rule snapshot.

    Every matching rule contributes its channels (no first-match-wins).
    Rules are evaluated in declaration order and the result keeps the
    first-seen order of each channel ID.
    """

    def __init__(self, rules: Sequence[RoutingRule] = ()) -> None:
        self._rules: tuple[RoutingRule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[RoutingRule, ...]:
        return self._rules

    def replace_rules(self, rules: Sequence[RoutingRule]) -> None:
        """Swap in a new rule snapshot as a single assignment."""
        self._rules = tuple(rules)
        logger.info("routing_rules_replaced", count=len(self._rules))

    def match(self, event_type: EventType, severity: Severity) -> list[str]:
        rules = self._rules
        seen: dict[str, None] = {}
        for rule in rules:
            if rule.matches(event_type, severity):
                for channel_id in rule.channel_ids:
                    seen.setdefault(channel_id, None)
        return list(seen)

    def unknown_channel_ids(self, known: Iterable[str]) -> list[str]:
        """Rule targets that are not registered channels."""
        known_set = set(known)
        missing: dict[str, None] = {}
        for rule in self._rules:
            for channel_id in rule.channel_ids:
                if channel_id not in known_set:
                    missing.setdefault(channel_id, None)
        return list(missing)
