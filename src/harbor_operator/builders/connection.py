"""Builder for Harbor client instances."""

from __future__ import annotations

import os
from typing import Any
from urllib.parse import urlparse

import httpx
from kubernetes import client

from ..constants import DEFAULT_ACCESS_SECRET_KEY
from ..services.harbor import HarborClient
from .secret_refs import resolve_secret_ref

_REQUEST_TIMEOUT_SECONDS = float(os.getenv("HARBOR_REQUEST_TIMEOUT_SECONDS", "30"))


def validate_base_url(base_url: str | None) -> str:
    """Return the base URL if it carries a scheme and host.

    Raises:
        ValueError: If the URL is empty or has no protocol scheme
    """
    if not base_url:
        raise ValueError("baseURL is required")
    parsed = urlparse(base_url)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"baseURL {base_url} is missing a protocol scheme")
    return base_url


def get_connection_credentials(
    connection: dict[str, Any],
    api: client.CoreV1Api,
) -> tuple[str | None, str | None]:
    """Resolve the basic-auth credentials of a HarborConnection.

    Returns ``(None, None)`` when the connection has no credentials.
    The secret namespace defaults to the connection's namespace.

    Raises:
        SecretError: If the secret or key cannot be read
    """
    credentials = connection.get("spec", {}).get("credentials")
    if not credentials:
        return None, None

    password = resolve_secret_ref(
        api,
        credentials.get("accessSecretRef"),
        default_namespace=connection.get("metadata", {}).get("namespace", "default"),
        default_key=DEFAULT_ACCESS_SECRET_KEY,
        field_name="credentials.accessSecretRef",
    )
    return credentials.get("accessKey"), password


def create_harbor_client_from_connection(
    connection: dict[str, Any],
    api: client.CoreV1Api,
    stopped: Any = None,
    transport: httpx.BaseTransport | None = None,
) -> HarborClient:
    """Create a Harbor client from a HarborConnection object.

    Args:
        connection: HarborConnection body
        api: Kubernetes CoreV1Api client used to read the credential secret
        stopped: Optional cancellation flag threaded into every request
        transport: Optional httpx transport override

    Returns:
        Configured Harbor client

    Raises:
        ValueError: If the base URL is invalid
        SecretError: If credentials cannot be resolved
    """
    base_url = validate_base_url(connection.get("spec", {}).get("baseURL"))
    username, password = get_connection_credentials(connection, api)
    return HarborClient(
        base_url,
        username=username,
        password=password,
        timeout=_REQUEST_TIMEOUT_SECONDS,
        stopped=stopped,
        transport=transport,
    )
