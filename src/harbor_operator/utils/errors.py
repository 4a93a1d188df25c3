"""Reconciliation error taxonomy and error sanitization utilities."""

from __future__ import annotations

import re

from ..constants import (
    REASON_ADOPTION_ERROR,
    REASON_BUILD_REQUEST_ERROR,
    REASON_CANCELLED,
    REASON_CONNECTION_FAILED,
    REASON_CREATE_ERROR,
    REASON_DELETE_ERROR,
    REASON_GET_ERROR,
    REASON_INVALID_SPEC,
    REASON_RECONCILE_ERROR,
    REASON_SECRET_ERROR,
    REASON_UPDATE_ERROR,
)


class ReconcileError(Exception):
    """Base class for errors that abort a reconciliation pass.

    ``reason`` is written to the Stalled condition.
    """

    reason = REASON_RECONCILE_ERROR


class ConnectionFailedError(ReconcileError):
    """The HarborConnection could not be resolved or Harbor could not be reached."""

    reason = REASON_CONNECTION_FAILED


class SecretError(ReconcileError):
    """A credential could not be read from its secret."""

    reason = REASON_SECRET_ERROR


class InvalidSpecError(ReconcileError):
    """The desired state is malformed."""

    reason = REASON_INVALID_SPEC


class AdoptionError(ReconcileError):
    reason = REASON_ADOPTION_ERROR


class BuildRequestError(ReconcileError):
    """The desired payload could not be built (e.g. an unknown registry name)."""

    reason = REASON_BUILD_REQUEST_ERROR


class CreateError(ReconcileError):
    reason = REASON_CREATE_ERROR


class UpdateError(ReconcileError):
    reason = REASON_UPDATE_ERROR


class DeleteError(ReconcileError):
    reason = REASON_DELETE_ERROR


class GetError(ReconcileError):
    reason = REASON_GET_ERROR


class ReconcileCancelled(ReconcileError):
    """The pass was stopped before it finished."""

    reason = REASON_CANCELLED


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(authorization[:\s]+basic)\s+[A-Za-z0-9+/=]+",
    r"(https?://)[^/\s:@]+:[^/\s@]+@",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "access_secret",
    "password",
    "secret",
    "credentials",
    "token",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1[REDACTED]", sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        # Replace field: value and "field":"value" patterns
        sanitized = re.sub(
            rf"(\"?{field}\"?)([:=\s]+)\"?([^\s,;\)\"}}]+)\"?",
            r"\1\2[REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message."""
    return sanitize_error_message(str(error))
