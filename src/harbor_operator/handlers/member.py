"""Project member handler."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.member import (
    build_member_request,
    build_member_role_request,
    member_identity,
    validate_member_spec,
)
from ..constants import API_GROUP_VERSION, ENTITY_TYPE_USER, KIND_MEMBER, PLURAL_MEMBER, STATUS_ID_MEMBER
from ..services.harbor import HarborClient
from ..services.harbor.models import Member, MemberRequest
from .base import HarborResourceHandler
from .shared import drift_loop, run_pass


class MemberHandler(HarborResourceHandler):
    """Handler for Member resources.

    Members have no name of their own; they are identified inside their
    project by entity type (user or group) and entity name.
    """

    kind = KIND_MEMBER
    plural = PLURAL_MEMBER
    id_field = STATUS_ID_MEMBER
    name_field = None

    def validate(self, spec: dict[str, Any]) -> None:
        validate_member_spec(spec)

    def find_existing(self, harbor: HarborClient, body: dict[str, Any]) -> int | None:
        spec = body["spec"]
        entity_type, entity_name = member_identity(spec)
        if entity_type == ENTITY_TYPE_USER:
            entity_id = (spec.get("member_user") or {}).get("user_id")
        else:
            entity_id = (spec.get("member_group") or {}).get("id")

        for member in harbor.list_project_members(spec["projectRef"]):
            if member.entity_type != entity_type:
                continue
            if entity_name and member.entity_name.lower() == entity_name.lower():
                return member.id
            if not entity_name and entity_id and member.entity_id == entity_id:
                return member.id
        return None

    def build_payload(self, harbor: HarborClient, body: dict[str, Any]) -> MemberRequest:
        return build_member_request(body["spec"])

    def create_remote(self, harbor: HarborClient, body: dict[str, Any], desired: MemberRequest) -> int:
        return harbor.create_project_member(body["spec"]["projectRef"], desired)

    def get_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> Member:
        return harbor.get_project_member(body["spec"]["projectRef"], remote_id)

    def diff(self, desired: MemberRequest, current: Member) -> list[str]:
        return ["role_id"] if desired.role_id != current.role_id else []

    def update_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int, desired: MemberRequest) -> None:
        harbor.update_project_member(body["spec"]["projectRef"], remote_id, build_member_role_request(desired))

    def delete_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> None:
        harbor.delete_project_member(body["spec"]["projectRef"], remote_id)


# Create handler instance
_handler = MemberHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_MEMBER)
@kopf.on.update(API_GROUP_VERSION, KIND_MEMBER)
@kopf.on.resume(API_GROUP_VERSION, KIND_MEMBER)
def handle_member(name: str, namespace: str, **_: Any) -> None:
    """Handle Member reconciliation."""
    run_pass(_handler, namespace, name)


@kopf.on.delete(API_GROUP_VERSION, KIND_MEMBER)
def handle_member_delete(name: str, namespace: str, **_: Any) -> None:
    """Delete the Harbor member before the Member is removed."""
    run_pass(_handler, namespace, name)


@kopf.daemon(API_GROUP_VERSION, KIND_MEMBER, cancellation_timeout=10.0)
def watch_member_drift(name: str, namespace: str, spec: Any, stopped: kopf.DaemonStopped, **_: Any) -> None:
    drift_loop(_handler, namespace, name, spec, stopped)
