"""Builder for project payloads."""

from __future__ import annotations

from typing import Any

import httpx

from ..services.harbor import HarborAPIError, HarborClient
from ..services.harbor.models import (
    PROJECT_METADATA_FIELDS,
    CVEAllowlist,
    CVEAllowlistItem,
    ProjectMetadata,
    ProjectRequest,
)
from ..utils.errors import BuildRequestError, InvalidSpecError


def validate_project_spec(spec: dict[str, Any]) -> None:
    """Validate a Project spec.

    Raises:
        InvalidSpecError: If the storage limit or metadata is malformed, or the
            two visibility flags disagree
    """
    storage_limit = spec.get("storageLimit")
    if storage_limit is not None:
        if isinstance(storage_limit, bool) or not isinstance(storage_limit, int) or storage_limit < 1:
            raise InvalidSpecError(f"storageLimit must be a positive integer, got {storage_limit!r}")

    unknown = set(spec.get("metadata") or {}) - set(PROJECT_METADATA_FIELDS)
    if unknown:
        raise InvalidSpecError(f"unknown project metadata keys: {', '.join(sorted(unknown))}")

    metadata_public = ProjectMetadata.from_dict(spec.get("metadata")).public
    if metadata_public is not None:
        if metadata_public.lower() not in ("true", "false"):
            raise InvalidSpecError(f"metadata.public must be \"true\" or \"false\", got {metadata_public!r}")
        if "public" in spec and (metadata_public.lower() == "true") != bool(spec["public"]):
            raise InvalidSpecError("public and metadata.public disagree")


def _format_metadata(spec: dict[str, Any], public: bool) -> ProjectMetadata:
    metadata = ProjectMetadata.from_dict(spec.get("metadata"))
    # Harbor keeps visibility in metadata.public; mirror the top-level flag
    if metadata.public is None:
        metadata.public = "true" if public else "false"
    else:
        metadata.public = metadata.public.lower()
    return metadata


def _format_cve_allowlist(allowlist: dict[str, Any] | None) -> CVEAllowlist | None:
    if not allowlist:
        return None
    return CVEAllowlist(
        id=allowlist.get("id"),
        project_id=allowlist.get("project_id"),
        expires_at=allowlist.get("expires_at"),
        items=[CVEAllowlistItem(cve_id=item.get("cve_id")) for item in allowlist.get("items") or []],
        creation_time=allowlist.get("creation_time"),
        update_time=allowlist.get("update_time"),
    )


def resolve_registry_id(harbor: HarborClient, registry_name: str) -> int:
    """Look up a registry ID by name (case-insensitive).

    Raises:
        BuildRequestError: If no registry matches or the lookup fails
    """
    try:
        registries = harbor.list_registries()
    except (HarborAPIError, httpx.HTTPError) as e:
        raise BuildRequestError(f"failed to list registries: {e}") from e

    for registry in registries:
        if registry.name.lower() == registry_name.lower():
            return registry.id
    raise BuildRequestError(f"registry {registry_name!r} not found in Harbor")


def build_project_request(spec: dict[str, Any], harbor: HarborClient) -> ProjectRequest:
    """Create a project request from a Project spec.

    Args:
        spec: Project spec with ``name`` already defaulted
        harbor: Harbor client used to resolve ``registryName``

    Returns:
        Project create/update payload
    """
    metadata = _format_metadata(spec, bool(spec.get("public", True)))
    # An explicit metadata.public decides visibility; keep the top-level flag in step
    public = metadata.public.lower() == "true"

    registry_id = None
    if spec.get("registryName"):
        registry_id = resolve_registry_id(harbor, spec["registryName"])

    return ProjectRequest(
        project_name=spec.get("name"),
        public=public,
        owner=spec.get("owner"),
        metadata=metadata,
        cve_allowlist=_format_cve_allowlist(spec.get("cveAllowlist")),
        storage_limit=spec.get("storageLimit"),
        registry_id=registry_id,
    )
