"""Registry endpoint handler."""

from __future__ import annotations

from typing import Any

import kopf

from ..builders.registry import build_registry_request
from ..constants import API_GROUP_VERSION, KIND_REGISTRY, PLURAL_REGISTRY, STATUS_ID_REGISTRY
from ..services.harbor import HarborClient
from ..services.harbor.models import Registry, RegistryRequest
from ..utils.errors import InvalidSpecError
from .base import HarborResourceHandler, text_differs
from .shared import drift_loop, run_pass


class RegistryHandler(HarborResourceHandler):
    """Handler for Registry resources (Harbor replication endpoints)."""

    kind = KIND_REGISTRY
    plural = PLURAL_REGISTRY
    id_field = STATUS_ID_REGISTRY

    def validate(self, spec: dict[str, Any]) -> None:
        if not spec.get("url"):
            raise InvalidSpecError("url is required")
        if not spec.get("type"):
            raise InvalidSpecError("type is required")
        credential = spec.get("credential")
        if credential and not (credential.get("accessSecretRef") or {}).get("name"):
            raise InvalidSpecError("credential.accessSecretRef.name is required")

    def find_existing(self, harbor: HarborClient, body: dict[str, Any]) -> int | None:
        wanted = body["spec"]["name"].lower()
        for registry in harbor.list_registries():
            if registry.name.lower() == wanted:
                return registry.id
        return None

    def build_payload(self, harbor: HarborClient, body: dict[str, Any]) -> RegistryRequest:
        return build_registry_request(body["spec"], body["metadata"]["namespace"], self.core_api)

    def create_remote(self, harbor: HarborClient, body: dict[str, Any], desired: RegistryRequest) -> int:
        return harbor.create_registry(desired)

    def get_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> Registry:
        return harbor.get_registry(remote_id)

    def diff(self, desired: RegistryRequest, current: Registry) -> list[str]:
        changed = []
        if text_differs(desired.url, current.url):
            changed.append("url")
        if text_differs(desired.name, current.name):
            changed.append("name")
        if text_differs(desired.description, current.description):
            changed.append("description")
        if text_differs(desired.type, current.type, ignore_case=True):
            changed.append("type")
        if desired.insecure != current.insecure:
            changed.append("insecure")
        # Harbor never returns the secret, only type and access key can be compared
        if desired.credential is not None:
            cred = current.credential
            if cred is None or text_differs(desired.credential.type, cred.type, ignore_case=True):
                changed.append("credential.type")
            if cred is None or text_differs(desired.credential.access_key, cred.access_key):
                changed.append("credential.access_key")
        return changed

    def update_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int, desired: RegistryRequest) -> None:
        harbor.update_registry(remote_id, desired)

    def delete_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> None:
        harbor.delete_registry(remote_id)


# Create handler instance
_handler = RegistryHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_REGISTRY)
@kopf.on.update(API_GROUP_VERSION, KIND_REGISTRY)
@kopf.on.resume(API_GROUP_VERSION, KIND_REGISTRY)
def handle_registry(name: str, namespace: str, **_: Any) -> None:
    """Handle Registry reconciliation."""
    run_pass(_handler, namespace, name)


@kopf.on.delete(API_GROUP_VERSION, KIND_REGISTRY)
def handle_registry_delete(name: str, namespace: str, **_: Any) -> None:
    """Delete the Harbor registry before the Registry is removed."""
    run_pass(_handler, namespace, name)


@kopf.daemon(API_GROUP_VERSION, KIND_REGISTRY, cancellation_timeout=10.0)
def watch_registry_drift(name: str, namespace: str, spec: Any, stopped: kopf.DaemonStopped, **_: Any) -> None:
    """Re-check the Registry every driftDetectionInterval."""
    drift_loop(_handler, namespace, name, spec, stopped)
