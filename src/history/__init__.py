"""History: append-only record of events and delivery outcomes."""

from src.history.exceptions import HistoryError, StoreError
from src.history.store import HistoryStore

__all__ = [
    "HistoryError",
    "HistoryStore",
    "StoreError",
]
