"""Harbor v2.0 REST API client implementation."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from ... import metrics
from ...constants import HARBOR_API_PREFIX, HARBOR_PAGE_SIZE
from ...utils.errors import ReconcileCancelled
from ...utils.rate_limit import rate_limit_harbor
from .models import (
    CurrentUser,
    Member,
    MemberRequest,
    MemberRoleRequest,
    Payload,
    Project,
    ProjectRequest,
    Registry,
    RegistryRequest,
    User,
    UserProfileRequest,
    UserRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class HarborAPIError(Exception):
    """A non-2xx response from Harbor."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"harbor API {status_code} - {message}")


def _is_status(error: BaseException | None, status_code: int) -> bool:
    return isinstance(error, HarborAPIError) and error.status_code == status_code


def is_not_found(error: BaseException | None) -> bool:
    return _is_status(error, 404)


def is_conflict(error: BaseException | None) -> bool:
    return _is_status(error, 409)


def is_forbidden(error: BaseException | None) -> bool:
    return _is_status(error, 403)


def _decode(response: httpx.Response, expected: type = dict) -> Any:
    """Decode a JSON response body of the expected shape.

    A 2xx answer that is not JSON (a proxy login page, say) is reported as a
    ``HarborAPIError`` like any other bad response.
    """
    try:
        body = response.json()
    except ValueError as e:
        raise HarborAPIError(response.status_code, f"invalid JSON response: {e}") from e
    if body is None and expected is list:
        return []
    if not isinstance(body, expected):
        raise HarborAPIError(
            response.status_code, f"invalid JSON response: expected {expected.__name__}, got {type(body).__name__}"
        )
    return body


def _extract_created_id(response: httpx.Response) -> int:
    """Return the ID of a created entity.

    Harbor answers ``201 Created`` with a ``Location`` header whose last path
    segment is the new ID; a few endpoints return the entity inline instead.
    """
    location = response.headers.get("Location")
    if location:
        segment = location.rstrip("/").rsplit("/", 1)[-1]
        try:
            return int(segment)
        except ValueError as e:
            raise HarborAPIError(response.status_code, f"parse Location {location!r}: {e}") from e

    if response.content:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("id"), int):
            return body["id"]

    raise HarborAPIError(response.status_code, "no Location header")


class HarborClient:
    """Minimal Harbor client: one HTTP request per call, no retries.

    Retrying is left to the reconciliation loop, so a failed call always
    surfaces as an exception (``HarborAPIError`` for non-2xx responses,
    ``httpx.HTTPError`` for transport failures).
    """

    def __init__(
        self,
        base_url: str,
        username: str | None = None,
        password: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        stopped: Any = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the Harbor client.

        Args:
            base_url: Harbor base URL, e.g. ``https://harbor.example.com``
            username: Basic-auth user; when None requests are sent anonymously
            password: Basic-auth password
            timeout: Wall-clock timeout for a single request in seconds
            stopped: Cancellation flag exposing ``is_set()``; checked before
                every request
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.stopped = stopped
        self._auth = httpx.BasicAuth(username, password or "") if username else None
        self._http = httpx.Client(
            base_url=self.base_url + HARBOR_API_PREFIX,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "HarborClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # Transport

    @rate_limit_harbor
    def _send(
        self,
        method: str,
        path: str,
        operation: str,
        payload: Payload | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        if self.stopped is not None and self.stopped.is_set():
            raise ReconcileCancelled(f"{operation} cancelled before request was sent")

        start_time = time.time()
        try:
            response = self._http.request(
                method,
                path,
                json=payload.to_dict() if payload is not None else None,
                params=params,
                headers=headers,
                auth=self._auth if authenticated else None,
            )
        except httpx.HTTPError:
            metrics.api_call_total.labels(api_type="harbor", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="harbor", operation=operation).observe(duration)

        if response.is_success:
            metrics.api_call_total.labels(api_type="harbor", operation=operation, result="success").inc()
        else:
            metrics.api_call_total.labels(api_type="harbor", operation=operation, result="error").inc()
        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    def _do(self, method: str, path: str, operation: str, **kwargs: Any) -> httpx.Response:
        response = self._send(method, path, operation, **kwargs)
        if not response.is_success:
            raise HarborAPIError(response.status_code, response.text.strip())
        return response

    def _list(
        self,
        path: str,
        operation: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """GET every page of a collection, following ``Link: rel="next"``."""
        items: list[dict[str, Any]] = []
        page = 1
        while True:
            page_params = {**(params or {}), "page": page, "page_size": HARBOR_PAGE_SIZE}
            response = self._do("GET", path, operation, params=page_params, headers=headers)
            items.extend(_decode(response, list))
            if "next" not in response.links:
                return items
            page += 1

    # Connectivity

    def ping(self) -> None:
        """Check Harbor is reachable without credentials.

        Harbor may answer 401 on hardened installations; that still proves
        the API is up.
        """
        response = self._send("GET", "/ping", "ping", authenticated=False)
        if response.status_code not in (200, 401):
            raise HarborAPIError(response.status_code, response.text.strip())

    def get_current_user(self) -> CurrentUser:
        return CurrentUser.from_dict(_decode(self._do("GET", "/users/current", "get_current_user")))

    # Registries

    def list_registries(self) -> list[Registry]:
        return [Registry.from_dict(r) for r in self._list("/registries", "list_registries")]

    def get_registry(self, registry_id: int) -> Registry:
        return Registry.from_dict(_decode(self._do("GET", f"/registries/{registry_id}", "get_registry")))

    def create_registry(self, request: RegistryRequest) -> int:
        return _extract_created_id(self._do("POST", "/registries", "create_registry", payload=request))

    def update_registry(self, registry_id: int, request: RegistryRequest) -> None:
        self._do("PUT", f"/registries/{registry_id}", "update_registry", payload=request)

    def delete_registry(self, registry_id: int) -> None:
        self._do("DELETE", f"/registries/{registry_id}", "delete_registry")

    # Projects

    def list_projects(self, name: str | None = None) -> list[Project]:
        params = {"name": name} if name else None
        return [Project.from_dict(p) for p in self._list("/projects", "list_projects", params=params)]

    def get_project(self, project_id: int) -> Project:
        return Project.from_dict(_decode(self._do("GET", f"/projects/{project_id}", "get_project")))

    def create_project(self, request: ProjectRequest) -> int:
        return _extract_created_id(self._do("POST", "/projects", "create_project", payload=request))

    def update_project(self, project_id: int, request: ProjectRequest) -> None:
        self._do("PUT", f"/projects/{project_id}", "update_project", payload=request)

    def delete_project(self, project_id: int) -> None:
        self._do("DELETE", f"/projects/{project_id}", "delete_project")

    # Project members; the project is addressed by name

    @staticmethod
    def _members_path(project: str) -> str:
        return f"/projects/{quote(project, safe='')}/members"

    _BY_NAME = {"X-Is-Resource-Name": "true"}

    def list_project_members(self, project: str) -> list[Member]:
        items = self._list(self._members_path(project), "list_project_members", headers=self._BY_NAME)
        return [Member.from_dict(m) for m in items]

    def get_project_member(self, project: str, member_id: int) -> Member:
        response = self._do(
            "GET", f"{self._members_path(project)}/{member_id}", "get_project_member", headers=self._BY_NAME
        )
        return Member.from_dict(_decode(response))

    def create_project_member(self, project: str, request: MemberRequest) -> int:
        response = self._do(
            "POST", self._members_path(project), "create_project_member", payload=request, headers=self._BY_NAME
        )
        return _extract_created_id(response)

    def update_project_member(self, project: str, member_id: int, request: MemberRoleRequest) -> None:
        self._do(
            "PUT",
            f"{self._members_path(project)}/{member_id}",
            "update_project_member",
            payload=request,
            headers=self._BY_NAME,
        )

    def delete_project_member(self, project: str, member_id: int) -> None:
        self._do(
            "DELETE", f"{self._members_path(project)}/{member_id}", "delete_project_member", headers=self._BY_NAME
        )

    # Users

    def list_users(self, username: str | None = None) -> list[User]:
        params = {"q": f"username={username}"} if username else None
        return [User.from_dict(u) for u in self._list("/users", "list_users", params=params)]

    def get_user(self, user_id: int) -> User:
        return User.from_dict(_decode(self._do("GET", f"/users/{user_id}", "get_user")))

    def create_user(self, request: UserRequest) -> int:
        return _extract_created_id(self._do("POST", "/users", "create_user", payload=request))

    def update_user(self, user_id: int, request: UserProfileRequest) -> None:
        self._do("PUT", f"/users/{user_id}", "update_user", payload=request)

    def delete_user(self, user_id: int) -> None:
        self._do("DELETE", f"/users/{user_id}", "delete_user")
