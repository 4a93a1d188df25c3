"""User handler."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.user import (
    build_user_profile_request,
    build_user_request,
    resolve_password,
    validate_user_spec,
)
from ..constants import API_GROUP_VERSION, KIND_USER, PLURAL_USER, STATUS_ID_USER
from ..services.harbor import HarborClient
from ..services.harbor.models import User, UserRequest
from .base import HarborResourceHandler, text_differs
from .shared import drift_loop, run_pass


class UserHandler(HarborResourceHandler):
    """Handler for User resources.

    The password is only sent when the user is created; later passes manage
    the profile fields (email, realname, comment).
    """

    kind = KIND_USER
    plural = PLURAL_USER
    id_field = STATUS_ID_USER
    name_field = "username"

    def validate(self, spec: dict[str, Any]) -> None:
        validate_user_spec(spec)

    def find_existing(self, harbor: HarborClient, body: dict[str, Any]) -> int | None:
        wanted = body["spec"]["username"]
        for user in harbor.list_users(username=wanted):
            if user.username.lower() == wanted.lower():
                return user.user_id
        return None

    def build_payload(self, harbor: HarborClient, body: dict[str, Any]) -> UserRequest:
        spec = body["spec"]
        password = None
        if not body["status"].get(self.id_field):
            password = resolve_password(spec, body["metadata"]["namespace"], self.core_api)
        return build_user_request(spec, password)

    def create_remote(self, harbor: HarborClient, body: dict[str, Any], desired: UserRequest) -> int:
        return harbor.create_user(desired)

    def get_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> User:
        return harbor.get_user(remote_id)

    def diff(self, desired: UserRequest, current: User) -> list[str]:
        return [
            field
            for field in ("email", "realname", "comment")
            if text_differs(getattr(desired, field), getattr(current, field))
        ]

    def update_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int, desired: UserRequest) -> None:
        harbor.update_user(remote_id, build_user_profile_request(desired))

    def delete_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> None:
        harbor.delete_user(remote_id)


# Create handler instance
_handler = UserHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_USER)
@kopf.on.update(API_GROUP_VERSION, KIND_USER)
@kopf.on.resume(API_GROUP_VERSION, KIND_USER)
def handle_user(name: str, namespace: str, **_: Any) -> None:
    """Handle User reconciliation."""
    run_pass(_handler, namespace, name)


@kopf.on.delete(API_GROUP_VERSION, KIND_USER)
def handle_user_delete(name: str, namespace: str, **_: Any) -> None:
    """Delete the Harbor user before the User is removed."""
    run_pass(_handler, namespace, name)


@kopf.daemon(API_GROUP_VERSION, KIND_USER, cancellation_timeout=10.0)
def watch_user_drift(name: str, namespace: str, spec: Any, stopped: kopf.DaemonStopped, **_: Any) -> None:
    """Re-check the User every driftDetectionInterval."""
    drift_loop(_handler, namespace, name, spec, stopped)
