"""Shared fixtures: an in-memory object store and a scripted Harbor."""

from __future__ import annotations

import base64
import copy
import json
from typing import Any
from unittest.mock import Mock, patch

import httpx
import pytest

from harbor_operator.constants import API_GROUP_VERSION, FINALIZER, PLURAL_CONNECTION

NAMESPACE = "default"
HARBOR_URL = "https://harbor.example.com"


class FakeStore:
    """In-memory desired-state store recording every write."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.status_patches: list[dict[str, Any]] = []
        self.finalizer_patches: list[list[str]] = []

    def add(self, plural: str, body: dict[str, Any]) -> dict[str, Any]:
        meta = body["metadata"]
        self.objects[(plural, meta["namespace"], meta["name"])] = body
        return body

    def get(self, plural: str, namespace: str, name: str) -> dict[str, Any] | None:
        obj = self.objects.get((plural, namespace, name))
        return copy.deepcopy(obj) if obj is not None else None

    def patch_status(self, plural: str, namespace: str, name: str, status: dict[str, Any]) -> None:
        self.status_patches.append(copy.deepcopy(status))
        self.objects[(plural, namespace, name)]["status"] = copy.deepcopy(status)

    def patch_finalizers(self, plural: str, namespace: str, name: str, finalizers: list[str]) -> None:
        self.finalizer_patches.append(list(finalizers))
        self.objects[(plural, namespace, name)]["metadata"]["finalizers"] = list(finalizers)

    def status_of(self, plural: str, name: str, namespace: str = NAMESPACE) -> dict[str, Any]:
        return self.objects[(plural, namespace, name)].get("status", {})

    def finalizers_of(self, plural: str, name: str, namespace: str = NAMESPACE) -> list[str]:
        return self.objects[(plural, namespace, name)]["metadata"].get("finalizers", [])


class HarborStub:
    """Scripted Harbor API served through ``httpx.MockTransport``.

    Routes are keyed by method and path (query strings are ignored); unknown
    routes answer 404 like Harbor does for missing entities.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], tuple[int, Any, dict[str, str], str | None]] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        headers: dict[str, str] | None = None,
        text: str | None = None,
    ) -> None:
        self.routes[(method, "/api/v2.0" + path)] = (status, json, headers or {}, text)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, request.url.path, body))
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"errors": [{"code": "NOT_FOUND", "message": "not found"}]})
        status, payload, headers, text = route
        if text is not None:
            return httpx.Response(status, text=text, headers=headers)
        return httpx.Response(status, json=payload, headers=headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def mutations(self) -> list[tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] in ("POST", "PUT", "DELETE")]


def make_body(
    kind: str,
    name: str,
    spec: dict[str, Any],
    status: dict[str, Any] | None = None,
    finalizers: list[str] | None = None,
    generation: int = 1,
    deleting: bool = False,
) -> dict[str, Any]:
    """Build a custom resource body as the Kubernetes API returns it."""
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": NAMESPACE,
        "uid": f"uid-{name}",
        "generation": generation,
        "finalizers": list(finalizers if finalizers is not None else [FINALIZER]),
    }
    if deleting:
        metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": kind,
        "metadata": metadata,
        "spec": spec,
        "status": status or {},
    }


def secret_with(**data: str) -> Mock:
    secret = Mock()
    secret.data = {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()}
    return secret


@pytest.fixture(autouse=True)
def mock_kopf_event():
    """kopf.event needs a running operator; record calls instead."""
    with patch("harbor_operator.utils.events.kopf.event") as mock_event:
        yield mock_event


@pytest.fixture(autouse=True)
def no_rate_limit():
    with patch("harbor_operator.utils.rate_limit._HARBOR_RATE_LIMIT_PER_SECOND", 0.0), patch(
        "harbor_operator.utils.rate_limit._K8S_RATE_LIMIT_PER_SECOND", 0.0
    ):
        yield


@pytest.fixture
def store() -> FakeStore:
    fake = FakeStore()
    fake.add(
        PLURAL_CONNECTION,
        make_body(
            "HarborConnection",
            "harbor",
            {
                "baseURL": HARBOR_URL,
                "credentials": {"type": "basic", "accessKey": "admin", "accessSecretRef": {"name": "harbor-admin"}},
            },
            finalizers=[],
        ),
    )
    return fake


@pytest.fixture
def core_api() -> Mock:
    api = Mock()
    api.read_namespaced_secret.return_value = secret_with(access_secret="Harbor12345", password="Initial123")
    return api


@pytest.fixture
def harbor() -> HarborStub:
    return HarborStub()
