"""Project handler."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.project import build_project_request, validate_project_spec
from ..constants import API_GROUP_VERSION, KIND_PROJECT, PLURAL_PROJECT, STATUS_ID_PROJECT
from ..services.harbor import HarborClient
from ..services.harbor.models import PROJECT_METADATA_FIELDS, Project, ProjectRequest
from .base import HarborResourceHandler, text_differs
from .shared import drift_loop, run_pass


def _allowlist_differs(desired: ProjectRequest, current: Project) -> bool:
    want = desired.cve_allowlist
    if want is None:
        return False
    have = current.cve_allowlist
    # id and project_id are assigned by Harbor; only compare them when pinned
    if want.id is not None and want.id != have.id:
        return True
    if want.project_id is not None and want.project_id != have.project_id:
        return True
    if want.expires_at != have.expires_at:
        return True
    return [item.cve_id for item in want.items] != [item.cve_id for item in have.items]


def _visibility(desired: ProjectRequest) -> str:
    """Return the metadata.public value the request sends."""
    if desired.metadata and desired.metadata.public is not None:
        return desired.metadata.public
    return "true" if desired.public else "false"


class ProjectHandler(HarborResourceHandler):
    """Handler for Project resources."""

    kind = KIND_PROJECT
    plural = PLURAL_PROJECT
    id_field = STATUS_ID_PROJECT

    def validate(self, spec: dict[str, Any]) -> None:
        validate_project_spec(spec)

    def find_existing(self, harbor: HarborClient, body: dict[str, Any]) -> int | None:
        wanted = body["spec"]["name"]
        for project in harbor.list_projects(name=wanted):
            if project.name.lower() == wanted.lower():
                return project.project_id
        return None

    def build_payload(self, harbor: HarborClient, body: dict[str, Any]) -> ProjectRequest:
        return build_project_request(body["spec"], harbor)

    def create_remote(self, harbor: HarborClient, body: dict[str, Any], desired: ProjectRequest) -> int:
        return harbor.create_project(desired)

    def get_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> Project:
        return harbor.get_project(remote_id)

    def diff(self, desired: ProjectRequest, current: Project) -> list[str]:
        changed = []
        if text_differs(desired.project_name, current.name):
            changed.append("name")
        if text_differs(_visibility(desired), current.metadata.public, ignore_case=True):
            changed.append("public")
        if desired.owner and text_differs(desired.owner, current.owner_name, ignore_case=True):
            changed.append("owner")
        if (desired.registry_id or 0) != current.registry_id:
            changed.append("registry_id")
        # storage_limit is not part of the project GET response, so it is not compared
        for field in PROJECT_METADATA_FIELDS:
            if field == "public":
                continue
            want = getattr(desired.metadata, field) if desired.metadata else None
            if want is not None and want != getattr(current.metadata, field):
                changed.append(f"metadata.{field}")
        if _allowlist_differs(desired, current):
            changed.append("cve_allowlist")
        return changed

    def update_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int, desired: ProjectRequest) -> None:
        harbor.update_project(remote_id, desired)

    def delete_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> None:
        harbor.delete_project(remote_id)


# Create handler instance
_handler = ProjectHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_PROJECT)
@kopf.on.update(API_GROUP_VERSION, KIND_PROJECT)
@kopf.on.resume(API_GROUP_VERSION, KIND_PROJECT)
def handle_project(name: str, namespace: str, **_: Any) -> None:
    """Handle Project reconciliation."""
    run_pass(_handler, namespace, name)


@kopf.on.delete(API_GROUP_VERSION, KIND_PROJECT)
def handle_project_delete(name: str, namespace: str, **_: Any) -> None:
    """Delete the Harbor project before the Project is removed."""
    run_pass(_handler, namespace, name)


@kopf.daemon(API_GROUP_VERSION, KIND_PROJECT, cancellation_timeout=10.0)
def watch_project_drift(name: str, namespace: str, spec: Any, stopped: kopf.DaemonStopped, **_: Any) -> None:
    """Re-check the Project every driftDetectionInterval."""
    drift_loop(_handler, namespace, name, spec, stopped)
