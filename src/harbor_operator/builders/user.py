"""Builder for user payloads."""

from __future__ import annotations

from typing import Any

from kubernetes import client

from ..constants import DEFAULT_PASSWORD_KEY
from ..services.harbor.models import UserProfileRequest, UserRequest
from ..utils.errors import InvalidSpecError
from .secret_refs import resolve_secret_ref


def validate_user_spec(spec: dict[str, Any]) -> None:
    """Validate a User spec.

    Raises:
        InvalidSpecError: If email is missing or both password sources are set
    """
    if not spec.get("email"):
        raise InvalidSpecError("email is required")
    if spec.get("password") and spec.get("passwordSecretRef"):
        raise InvalidSpecError("password and passwordSecretRef are mutually exclusive")


def resolve_password(spec: dict[str, Any], namespace: str, api: client.CoreV1Api) -> str | None:
    """Return the initial password from the spec or its secret reference."""
    if spec.get("passwordSecretRef"):
        return resolve_secret_ref(
            api,
            spec["passwordSecretRef"],
            default_namespace=namespace,
            default_key=DEFAULT_PASSWORD_KEY,
            field_name="passwordSecretRef",
        )
    return spec.get("password")


def build_user_request(spec: dict[str, Any], password: str | None = None) -> UserRequest:
    """Create a user request from a User spec with ``username`` defaulted."""
    return UserRequest(
        username=spec.get("username"),
        email=spec.get("email"),
        realname=spec.get("realname"),
        comment=spec.get("comment"),
        password=password,
    )


def build_user_profile_request(request: UserRequest) -> UserProfileRequest:
    return UserProfileRequest(
        email=request.email,
        realname=request.realname,
        comment=request.comment,
    )
