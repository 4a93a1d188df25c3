"""Utilities for managing Kubernetes conditions.

All condition types follow the abnormal-true polarity used by kstatus:

- ``Reconciling=True``: the controller is working on the resource.
- ``Stalled=True``: reconciliation hit an error.
- ``Ready=True``: the resource is fully reconciled.

The ``mark_*`` helpers keep the three mutually exclusive: each one sets its
own condition to True and removes the other two.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_READY,
    COND_RECONCILING,
    COND_STALLED,
    REASON_RECONCILED,
    REASON_RECONCILING,
)


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True" or "False")
        reason: Reason for the condition
        message: Human-readable message

    Returns:
        Updated list of conditions
    """
    now = _now()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def remove_condition(conditions: list[dict[str, Any]], condition_type: str) -> list[dict[str, Any]]:
    """Remove every condition of the given type, in place."""
    conditions[:] = [cond for cond in conditions if cond.get("type") != condition_type]
    return conditions


def get_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if any."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def is_condition_true(conditions: list[dict[str, Any]], condition_type: str) -> bool:
    """Return True if a condition of the given type exists with status "True"."""
    cond = get_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == "True"


def _conditions_of(status: dict[str, Any]) -> list[dict[str, Any]]:
    conditions = status.get("conditions")
    if conditions is None:
        conditions = []
        status["conditions"] = conditions
    return conditions


def mark_reconciling(status: dict[str, Any], generation: int, message: str = "Reconciling resource") -> None:
    """Set Reconciling=True and clear Ready and Stalled."""
    conditions = _conditions_of(status)
    update_condition(conditions, COND_RECONCILING, "True", REASON_RECONCILING, message)
    remove_condition(conditions, COND_STALLED)
    remove_condition(conditions, COND_READY)
    status["observedGeneration"] = generation


def mark_ready(status: dict[str, Any], generation: int, message: str = "Resource is ready") -> None:
    """Set Ready=True and clear Reconciling and Stalled."""
    conditions = _conditions_of(status)
    update_condition(conditions, COND_READY, "True", REASON_RECONCILED, message)
    remove_condition(conditions, COND_RECONCILING)
    remove_condition(conditions, COND_STALLED)
    status["observedGeneration"] = generation


def mark_stalled(status: dict[str, Any], generation: int, reason: str, message: str) -> None:
    """Set Stalled=True with the failure reason and clear Reconciling and Ready."""
    conditions = _conditions_of(status)
    update_condition(conditions, COND_STALLED, "True", reason, message)
    remove_condition(conditions, COND_RECONCILING)
    remove_condition(conditions, COND_READY)
    status["observedGeneration"] = generation
