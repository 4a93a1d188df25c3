"""Builder for registry endpoint payloads."""

from __future__ import annotations

from typing import Any

from kubernetes import client

from ..constants import DEFAULT_ACCESS_SECRET_KEY
from ..services.harbor.models import RegistryCredential, RegistryRequest
from .secret_refs import resolve_secret_ref


def build_registry_request(
    spec: dict[str, Any],
    namespace: str,
    api: client.CoreV1Api,
) -> RegistryRequest:
    """Create a registry request from a Registry spec.

    Args:
        spec: Registry spec with ``name`` already defaulted
        namespace: Namespace of the Registry object, default for the secret
        api: Kubernetes CoreV1Api client

    Returns:
        Registry create/update payload

    Raises:
        SecretError: If the credential secret cannot be read
    """
    credential = None
    cred_spec = spec.get("credential")
    if cred_spec:
        credential = RegistryCredential(
            type=cred_spec.get("type") or "basic",
            access_key=cred_spec.get("accessKey"),
            access_secret=resolve_secret_ref(
                api,
                cred_spec.get("accessSecretRef"),
                default_namespace=namespace,
                default_key=DEFAULT_ACCESS_SECRET_KEY,
                field_name="credential.accessSecretRef",
            ),
        )

    return RegistryRequest(
        url=spec.get("url"),
        name=spec.get("name"),
        description=spec.get("description"),
        type=spec.get("type"),
        insecure=bool(spec.get("insecure", False)),
        credential=credential,
    )
