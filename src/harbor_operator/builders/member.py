"""Builder for project member payloads."""

from __future__ import annotations

from typing import Any

from ..constants import ENTITY_TYPE_GROUP, ENTITY_TYPE_USER, MEMBER_ROLES
from ..services.harbor.models import MemberGroup, MemberRequest, MemberRoleRequest, MemberUser
from ..utils.errors import InvalidSpecError


def role_id_for(role: str | None) -> int:
    """Map a role name to its Harbor role ID.

    Raises:
        InvalidSpecError: If the role is not known
    """
    role_id = MEMBER_ROLES.get((role or "").lower())
    if role_id is None:
        raise InvalidSpecError(
            f"unsupported role {role!r}, expected one of: {', '.join(MEMBER_ROLES)}"
        )
    return role_id


def validate_member_spec(spec: dict[str, Any]) -> None:
    """Validate a Member spec before any Harbor call is made.

    Raises:
        InvalidSpecError: If the project is missing, the role is unknown, or
            not exactly one of member_user / member_group is set
    """
    if not spec.get("projectRef"):
        raise InvalidSpecError("projectRef is required")

    user = spec.get("member_user")
    group = spec.get("member_group")
    if bool(user) == bool(group):
        raise InvalidSpecError("exactly one of member_user or member_group must be set")

    if user and not (user.get("username") or user.get("user_id")):
        raise InvalidSpecError("member_user requires username or user_id")
    if group and not (group.get("group_name") or group.get("id") or group.get("ldap_group_dn")):
        raise InvalidSpecError("member_group requires group_name, id or ldap_group_dn")

    role_id_for(spec.get("role"))


def ldap_group_name(dn: str) -> str:
    """Return the value of the leading RDN, e.g. ``devs`` for ``cn=devs,ou=groups``.

    Harbor imports LDAP groups under their naming attribute, which is what
    member listings show as ``entity_name``.
    """
    return dn.split(",", 1)[0].partition("=")[2].strip()


def member_identity(spec: dict[str, Any]) -> tuple[str, str]:
    """Return ``(entity_type, entity_name)`` as Harbor lists the member.

    A group given only by ``ldap_group_dn`` is named after the DN's leading
    RDN; one given by ``id`` has no name and is matched on entity ID.
    """
    user = spec.get("member_user")
    if user:
        return ENTITY_TYPE_USER, user.get("username") or ""
    group = spec.get("member_group") or {}
    if group.get("group_name"):
        return ENTITY_TYPE_GROUP, group["group_name"]
    if group.get("id") is None and group.get("ldap_group_dn"):
        return ENTITY_TYPE_GROUP, ldap_group_name(group["ldap_group_dn"])
    return ENTITY_TYPE_GROUP, ""


def build_member_request(spec: dict[str, Any]) -> MemberRequest:
    """Create a member request from a validated Member spec."""
    user = spec.get("member_user")
    group = spec.get("member_group")
    return MemberRequest(
        role_id=role_id_for(spec.get("role")),
        member_user=MemberUser(
            user_id=user.get("user_id"),
            username=user.get("username"),
        ) if user else None,
        member_group=MemberGroup(
            id=group.get("id"),
            group_name=group.get("group_name"),
            group_type=group.get("group_type"),
            ldap_group_dn=group.get("ldap_group_dn"),
        ) if group else None,
    )


def build_member_role_request(request: MemberRequest) -> MemberRoleRequest:
    return MemberRoleRequest(role_id=request.role_id)
