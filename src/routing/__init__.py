"""Routing: rule matching and concurrent channel delivery."""

from src.routing.dispatcher import DeliveryDispatcher
from src.routing.rules import RuleEngine, rules_from_config

__all__ = [
    "DeliveryDispatcher",
    "RuleEngine",
    "rules_from_config",
]
