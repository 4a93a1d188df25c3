"""Models for Harbor API payloads and entities."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


def _drop_none(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_none(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_none(v) for v in value]
    return value


class Payload:
    """Mixin for request dataclasses serialized as JSON bodies."""

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict, omitting fields that are None."""
        return _drop_none(asdict(self))  # type: ignore[call-overload]


# Registries


@dataclass
class RegistryCredential(Payload):
    """Credential Harbor uses to reach a remote registry."""

    type: str | None = None
    access_key: str | None = None
    access_secret: str | None = None


@dataclass
class RegistryRequest(Payload):
    """Create/update payload for a registry endpoint."""

    url: str | None = None
    name: str | None = None
    description: str | None = None
    type: str | None = None
    insecure: bool = False
    credential: RegistryCredential | None = None


@dataclass
class Registry:
    """Registry endpoint as returned by Harbor."""

    id: int
    name: str = ""
    url: str = ""
    description: str = ""
    type: str = ""
    insecure: bool = False
    credential: RegistryCredential | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Registry":
        cred = data.get("credential")
        return cls(
            id=int(data.get("id") or 0),
            name=data.get("name") or "",
            url=data.get("url") or "",
            description=data.get("description") or "",
            type=data.get("type") or "",
            insecure=bool(data.get("insecure", False)),
            credential=RegistryCredential(
                type=cred.get("type"),
                access_key=cred.get("access_key"),
            ) if cred else None,
        )


# Projects

PROJECT_METADATA_FIELDS = (
    "public",
    "enable_content_trust",
    "enable_content_trust_cosign",
    "prevent_vul",
    "severity",
    "auto_scan",
    "auto_sbom_generation",
    "reuse_sys_cve_allowlist",
    "retention_id",
    "proxy_speed_kb",
)


def _metadata_value(value: Any) -> str | None:
    if value is None:
        return None
    # Harbor spells booleans "true"/"false"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass
class ProjectMetadata(Payload):
    """Project metadata flags. Harbor stores all of them as strings."""

    public: str | None = None
    enable_content_trust: str | None = None
    enable_content_trust_cosign: str | None = None
    prevent_vul: str | None = None
    severity: str | None = None
    auto_scan: str | None = None
    auto_sbom_generation: str | None = None
    reuse_sys_cve_allowlist: str | None = None
    retention_id: str | None = None
    proxy_speed_kb: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ProjectMetadata":
        data = data or {}
        return cls(**{name: _metadata_value(data.get(name)) for name in PROJECT_METADATA_FIELDS})


@dataclass
class CVEAllowlistItem(Payload):
    cve_id: str | None = None


@dataclass
class CVEAllowlist(Payload):
    """Project-level CVE allow-list."""

    id: int | None = None
    project_id: int | None = None
    expires_at: int | None = None
    items: list[CVEAllowlistItem] = field(default_factory=list)
    creation_time: str | None = None
    update_time: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CVEAllowlist":
        data = data or {}
        return cls(
            id=data.get("id"),
            project_id=data.get("project_id"),
            expires_at=data.get("expires_at"),
            items=[CVEAllowlistItem(cve_id=item.get("cve_id")) for item in data.get("items") or []],
            creation_time=data.get("creation_time"),
            update_time=data.get("update_time"),
        )


@dataclass
class ProjectRequest(Payload):
    """Create/update payload for a project."""

    project_name: str | None = None
    public: bool | None = None
    owner: str | None = None
    metadata: ProjectMetadata | None = None
    cve_allowlist: CVEAllowlist | None = None
    storage_limit: int | None = None
    registry_id: int | None = None


@dataclass
class Project:
    """Project as returned by Harbor."""

    project_id: int
    name: str = ""
    registry_id: int = 0
    owner_name: str = ""
    metadata: ProjectMetadata = field(default_factory=ProjectMetadata)
    cve_allowlist: CVEAllowlist = field(default_factory=CVEAllowlist)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            project_id=int(data.get("project_id") or 0),
            name=data.get("name") or "",
            registry_id=int(data.get("registry_id") or 0),
            owner_name=data.get("owner_name") or "",
            metadata=ProjectMetadata.from_dict(data.get("metadata")),
            cve_allowlist=CVEAllowlist.from_dict(data.get("cve_allowlist")),
        )


# Project members


@dataclass
class MemberUser(Payload):
    user_id: int | None = None
    username: str | None = None


@dataclass
class MemberGroup(Payload):
    id: int | None = None
    group_name: str | None = None
    group_type: int | None = None
    ldap_group_dn: str | None = None


@dataclass
class MemberRequest(Payload):
    """Create payload for a project member. Exactly one identity is set."""

    role_id: int
    member_user: MemberUser | None = None
    member_group: MemberGroup | None = None


@dataclass
class MemberRoleRequest(Payload):
    """Update payload for a project member; Harbor only allows changing the role."""

    role_id: int


@dataclass
class Member:
    """Project member as returned by Harbor."""

    id: int
    project_id: int = 0
    entity_name: str = ""
    role_name: str = ""
    role_id: int = 0
    entity_id: int = 0
    entity_type: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Member":
        return cls(
            id=int(data.get("id") or 0),
            project_id=int(data.get("project_id") or 0),
            entity_name=data.get("entity_name") or "",
            role_name=data.get("role_name") or "",
            role_id=int(data.get("role_id") or 0),
            entity_id=int(data.get("entity_id") or 0),
            entity_type=data.get("entity_type") or "",
        )


# Users


@dataclass
class UserRequest(Payload):
    """Create payload for a local Harbor user."""

    username: str | None = None
    email: str | None = None
    realname: str | None = None
    comment: str | None = None
    password: str | None = None


@dataclass
class UserProfileRequest(Payload):
    """Update payload for a user profile. Passwords are not updated here."""

    email: str | None = None
    realname: str | None = None
    comment: str | None = None


@dataclass
class User:
    """User as returned by Harbor."""

    user_id: int
    username: str = ""
    email: str = ""
    realname: str = ""
    comment: str = ""
    sysadmin_flag: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            user_id=int(data.get("user_id") or 0),
            username=data.get("username") or "",
            email=data.get("email") or "",
            realname=data.get("realname") or "",
            comment=data.get("comment") or "",
            sysadmin_flag=bool(data.get("sysadmin_flag", False)),
        )


@dataclass
class CurrentUser:
    user_id: int
    username: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CurrentUser":
        return cls(user_id=int(data.get("user_id") or 0), username=data.get("username") or "")
