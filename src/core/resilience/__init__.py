"""Resilience primitives: backoff policy shared by the retry loops."""

from core.resilience.backoff import BackoffPolicy

__all__ = ["BackoffPolicy"]
