"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_ADOPTED,
    EVENT_REASON_CONNECTION_VERIFIED,
    EVENT_REASON_CREATED,
    EVENT_REASON_DELETED,
    EVENT_REASON_DRIFT_DETECTED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_UPDATED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Full resource body (kopf needs apiVersion/kind/metadata to
            build the involved object reference)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_created(body: dict[str, Any], kind: str, remote_id: int) -> None:
    emit_event(body, EVENT_REASON_CREATED, f"Harbor {kind.lower()} {remote_id} created")


def emit_updated(body: dict[str, Any], kind: str, remote_id: int) -> None:
    emit_event(body, EVENT_REASON_UPDATED, f"Harbor {kind.lower()} {remote_id} updated")


def emit_deleted(body: dict[str, Any], kind: str, remote_id: int) -> None:
    emit_event(body, EVENT_REASON_DELETED, f"Harbor {kind.lower()} {remote_id} deleted")


def emit_adopted(body: dict[str, Any], kind: str, remote_id: int) -> None:
    emit_event(body, EVENT_REASON_ADOPTED, f"Adopted existing Harbor {kind.lower()} {remote_id}")


def emit_drift_detected(body: dict[str, Any], message: str) -> None:
    emit_event(body, EVENT_REASON_DRIFT_DETECTED, message, type_="Warning")


def emit_connection_verified(body: dict[str, Any], base_url: str) -> None:
    """Emit connection verified event."""
    emit_event(body, EVENT_REASON_CONNECTION_VERIFIED, f"Harbor at {base_url} is reachable")
