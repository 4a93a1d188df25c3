"""Resolution of secret references embedded in resource specs."""

from __future__ import annotations

from typing import Any

from kubernetes import client

from ..utils.errors import SecretError
from ..utils.secrets import get_secret_value


def resolve_secret_ref(
    api: client.CoreV1Api,
    ref: dict[str, Any] | None,
    default_namespace: str,
    default_key: str,
    field_name: str,
) -> str:
    """Read the value a ``{name, namespace?, key?}`` reference points to.

    Args:
        api: Kubernetes CoreV1Api client
        ref: Secret reference from the spec
        default_namespace: Namespace used when the reference omits one
        default_key: Key used when the reference omits one
        field_name: Spec field name, used in error messages

    Raises:
        SecretError: If the reference is incomplete or the value cannot be read
    """
    if not ref or not ref.get("name"):
        raise SecretError(f"{field_name}.name is required")

    namespace = ref.get("namespace") or default_namespace
    key = ref.get("key") or default_key
    try:
        return get_secret_value(api, namespace, ref["name"], key)
    except ValueError as e:
        raise SecretError(str(e)) from e
    except client.exceptions.ApiException as e:
        raise SecretError(f"failed to read secret {namespace}/{ref['name']}: {e.reason}") from e
