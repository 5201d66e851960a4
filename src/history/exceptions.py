"""History store exceptions."""

from __future__ import annotations


class HistoryError(Exception):
    """Base exception for history store errors."""


class StoreError(HistoryError):
    """A record could not be durably stored; the submission must fail."""
