"""Drift re-check interval handling.

``driftDetectionInterval`` uses Go duration syntax (``30s``, ``5m``,
``1h30m``) so manifests written for other Kubernetes tooling keep working.
"""

from __future__ import annotations

import re
from datetime import timedelta
from typing import Any

from .errors import InvalidSpecError

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION = re.compile(r"^[-+]?(?:(?:\d+(?:\.\d*)?|\.\d+)(?:ns|us|µs|ms|s|m|h))+$")


def parse_duration(value: Any) -> timedelta | None:
    """Parse a duration value into a timedelta.

    Accepts Go-style duration strings and plain numbers (seconds).
    ``None`` and the empty string mean "not configured".

    Raises:
        InvalidSpecError: If the value cannot be parsed
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise InvalidSpecError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)

    text = str(value).strip()
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    try:
        return timedelta(seconds=float(text))
    except ValueError:
        pass

    if not _DURATION.match(text):
        raise InvalidSpecError(f"invalid duration {value!r}")

    sign = -1.0 if text.startswith("-") else 1.0
    seconds = sum(float(amount) * _UNIT_SECONDS[unit] for amount, unit in _COMPONENT.findall(text))
    return timedelta(seconds=sign * seconds)


def requeue_after(interval: Any) -> timedelta | None:
    """Return the drift re-check delay for a configured interval.

    Returns:
        ``None`` when the interval is unset or zero, otherwise the delay

    Raises:
        InvalidSpecError: If the interval is negative or malformed
    """
    delay = parse_duration(interval)
    if delay is None or delay == timedelta(0):
        return None
    if delay < timedelta(0):
        raise InvalidSpecError(f"driftDetectionInterval must not be negative, got {interval!r}")
    return delay
