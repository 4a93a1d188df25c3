"""Utility functions for the Harbor Operator."""

from .conditions import (
    get_condition,
    is_condition_true,
    mark_ready,
    mark_reconciling,
    mark_stalled,
    remove_condition,
    update_condition,
)
from .drift import parse_duration, requeue_after
from .errors import ReconcileError, sanitize_exception
from .events import emit_event
from .rate_limit import rate_limit_harbor, rate_limit_k8s
from .secrets import get_secret_value

__all__ = [
    "update_condition",
    "remove_condition",
    "get_condition",
    "is_condition_true",
    "mark_reconciling",
    "mark_ready",
    "mark_stalled",
    "parse_duration",
    "requeue_after",
    "ReconcileError",
    "sanitize_exception",
    "emit_event",
    "get_secret_value",
    "rate_limit_k8s",
    "rate_limit_harbor",
]
