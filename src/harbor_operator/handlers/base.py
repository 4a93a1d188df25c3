"""Base handler classes shared by all CRD handlers.

``HarborResourceHandler`` implements the reconciliation pass once; each kind
supplies a handful of hooks (validation, adoption lookup, payload building,
diffing and the remote CRUD calls).
"""

from __future__ import annotations

import copy
import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Iterator, Protocol

import httpx
from kubernetes import client

from .. import metrics
from ..builders.connection import create_harbor_client_from_connection
from ..constants import CONTROLLER_NAME, COND_READY, FINALIZER, PLURAL_CONNECTION, REASON_RECONCILE_ERROR
from ..logging import log_resource_event
from ..services.harbor import HarborAPIError, HarborClient, is_not_found
from ..tracing import trace_span
from ..utils.conditions import is_condition_true, mark_ready, mark_reconciling, mark_stalled
from ..utils.drift import requeue_after
from ..utils.errors import (
    AdoptionError,
    BuildRequestError,
    ConnectionFailedError,
    CreateError,
    DeleteError,
    GetError,
    InvalidSpecError,
    ReconcileError,
    UpdateError,
    sanitize_exception,
)
from ..utils.events import (
    emit_adopted,
    emit_created,
    emit_deleted,
    emit_drift_detected,
    emit_reconcile_failed,
    emit_reconcile_started,
    emit_updated,
)

# Failures of a single Harbor call
REMOTE_ERRORS = (HarborAPIError, httpx.HTTPError)


def text_differs(desired: str | None, current: str | None, ignore_case: bool = False) -> bool:
    """Compare two optional strings, treating None as empty."""
    want, have = desired or "", current or ""
    if ignore_case:
        return want.lower() != have.lower()
    return want != have


@dataclass
class ReconcileResult:
    """Outcome of a successful pass.

    ``requeue`` asks for an immediate re-run; ``requeue_after`` is the drift
    re-check delay, None when drift detection is off. ``finalized`` means
    the object is gone or about to be, so no further passes will follow.
    """

    requeue: bool = False
    requeue_after: timedelta | None = None
    finalized: bool = False


class ObjectStore(Protocol):
    """Desired-state store the handlers read from and persist status to."""

    def get(self, plural: str, namespace: str, name: str) -> dict[str, Any] | None:
        ...

    def patch_status(self, plural: str, namespace: str, name: str, status: dict[str, Any]) -> None:
        ...

    def patch_finalizers(self, plural: str, namespace: str, name: str, finalizers: list[str]) -> None:
        ...


class BaseHandler:
    """Base class for all CRD handlers with common functionality."""

    plural: str = ""

    def __init__(
        self,
        kind: str,
        store: ObjectStore | None = None,
        core_api: client.CoreV1Api | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind (e.g., "Registry", "Project")
            store: Desired-state store; the Kubernetes API when None
            core_api: CoreV1Api used to read secrets; created lazily when None
            transport: Optional httpx transport for Harbor clients
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)
        self._store = store
        self._core_api = core_api
        self.transport = transport

    @property
    def store(self) -> ObjectStore:
        if self._store is None:
            from .shared import KubernetesObjectStore

            self._store = KubernetesObjectStore()
        return self._store

    @property
    def core_api(self) -> client.CoreV1Api:
        if self._core_api is None:
            from .shared import get_core_v1_client

            self._core_api = get_core_v1_client()
        return self._core_api

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()
        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__
        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def persist_status(self, body: dict[str, Any]) -> None:
        meta = body["metadata"]
        self.store.patch_status(self.plural, meta["namespace"], meta["name"], body["status"])

    def fail(self, body: dict[str, Any], error: Exception) -> None:
        """Record Stalled with the error's reason and persist it.

        Errors outside the ReconcileError taxonomy are recorded with the
        generic ReconcileError reason.

        A failure to persist is logged; the original error is what the
        caller re-raises.
        """
        meta = body["metadata"]
        reason = error.reason if isinstance(error, ReconcileError) else REASON_RECONCILE_ERROR
        mark_stalled(body["status"], meta.get("generation", 0), reason, sanitize_exception(error))
        try:
            self.persist_status(body)
        except client.exceptions.ApiException as persist_error:
            self.log_error(meta, "Failed to persist Stalled condition", error=persist_error)

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], ReconcileResult],
    ) -> ReconcileResult:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: Resource body (events need apiVersion/kind/metadata)
            reconcile_fn: Function to execute for reconciliation
        """
        meta = body["metadata"]
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
            return result
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            reason = getattr(e, "reason", "ReconciliationFailed")
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            metrics.resource_status_total.labels(kind=self.kind, status="stalled").inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason=reason)
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)


class HarborResourceHandler(BaseHandler):
    """Reconciles one kind of Harbor entity.

    Subclasses set ``kind``, ``plural``, ``id_field`` and ``name_field`` and
    implement the hooks below. Every pass works on a private deep copy of
    the stored object; only status and finalizers are written back.
    """

    kind: str = ""
    id_field: str = ""
    # Spec field holding the Harbor-facing name, defaulted to metadata.name
    name_field: str | None = "name"

    def __init__(
        self,
        store: ObjectStore | None = None,
        core_api: client.CoreV1Api | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        super().__init__(self.kind, store=store, core_api=core_api, transport=transport)

    # Hooks

    def validate(self, spec: dict[str, Any]) -> None:
        """Raise InvalidSpecError for malformed specs. No Harbor calls allowed."""

    def find_existing(self, harbor: HarborClient, body: dict[str, Any]) -> int | None:
        """Return the ID of an existing remote entity matching the spec, if any."""
        raise NotImplementedError

    def build_payload(self, harbor: HarborClient, body: dict[str, Any]) -> Any:
        raise NotImplementedError

    def create_remote(self, harbor: HarborClient, body: dict[str, Any], desired: Any) -> int:
        raise NotImplementedError

    def get_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> Any:
        raise NotImplementedError

    def diff(self, desired: Any, current: Any) -> list[str]:
        """Return the names of fields where ``current`` differs from ``desired``."""
        raise NotImplementedError

    def update_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int, desired: Any) -> None:
        raise NotImplementedError

    def delete_remote(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> None:
        raise NotImplementedError

    # Pass

    def reconcile(self, namespace: str, name: str, stopped: Any = None) -> ReconcileResult:
        """Run one reconciliation pass for the named object.

        Args:
            namespace: Object namespace
            name: Object name
            stopped: Optional cancellation flag (``is_set()``) checked before
                every Harbor request

        Returns:
            The pass outcome

        Raises:
            ReconcileError: After Stalled has been recorded
        """
        obj = self.store.get(self.plural, namespace, name)
        if obj is None:
            self.logger.info(f"{self.kind} {namespace}/{name} not found; it may have been deleted")
            return ReconcileResult(finalized=True)

        body = copy.deepcopy(obj)
        body.setdefault("spec", {})
        body.setdefault("status", {})
        return self.reconcile_with_metrics(body, lambda: self._reconcile(body, stopped))

    def _reconcile(self, body: dict[str, Any], stopped: Any) -> ReconcileResult:
        meta = body["metadata"]
        with trace_span(
            f"reconcile_{self.kind.lower()}",
            kind=self.kind,
            attributes={"resource.namespace": meta.get("namespace"), "resource.name": meta.get("name")},
        ):
            if meta.get("deletionTimestamp"):
                return self._reconcile_delete(body, stopped)
            return self._reconcile_normal(body, stopped)

    def _reconcile_normal(self, body: dict[str, Any], stopped: Any) -> ReconcileResult:
        meta = body["metadata"]
        spec = body["spec"]
        status = body["status"]
        generation = meta.get("generation", 0)
        # Ready at the generation we are about to process means nothing in
        # the spec changed, so any difference found below is drift
        converged_before = (
            status.get("observedGeneration") == generation
            and is_condition_true(status.get("conditions") or [], COND_READY)
        )

        if FINALIZER not in meta.get("finalizers", []):
            self.add_finalizer(body)

        mark_reconciling(status, generation)
        self.persist_status(body)

        try:
            if not spec.get("harborConnectionRef"):
                raise InvalidSpecError("harborConnectionRef is required")
            self.validate(spec)
            interval = requeue_after(spec.get("driftDetectionInterval"))

            self.default_name(body)

            with self.connect(body, stopped) as harbor:
                if not status.get(self.id_field) and spec.get("allowTakeover"):
                    self._adopt(harbor, body)

                desired = self._build(harbor, body)

                remote_id = status.get(self.id_field)
                if not remote_id:
                    self._create(harbor, body, desired)
                else:
                    current = self._get(harbor, body, remote_id)
                    if current is None:
                        status[self.id_field] = 0
                        self.persist_status(body)
                        self.log_warning(
                            meta,
                            f"Harbor {self.kind.lower()} {remote_id} no longer exists, re-running to recreate it",
                            event="remote_missing",
                            reason="NotFound",
                        )
                        return ReconcileResult(requeue=True)
                    self._converge(harbor, body, remote_id, desired, current, converged_before)
        except Exception as e:
            self.fail(body, e)
            raise

        mark_ready(status, generation)
        self.persist_status(body)
        metrics.resource_status_total.labels(kind=self.kind, status="ready").inc()
        return ReconcileResult(requeue_after=interval)

    def _reconcile_delete(self, body: dict[str, Any], stopped: Any) -> ReconcileResult:
        meta = body["metadata"]
        if FINALIZER not in meta.get("finalizers", []):
            return ReconcileResult(finalized=True)

        remote_id = body["status"].get(self.id_field)
        if remote_id:
            try:
                with self.connect(body, stopped) as harbor:
                    self._delete(harbor, body, remote_id)
            except Exception as e:
                self.fail(body, e)
                raise
        else:
            self.log_info(meta, "No Harbor entity recorded, nothing to clean up", event="delete", reason="Skipped")

        self.remove_finalizer(body)
        return ReconcileResult(finalized=True)

    # Steps

    def add_finalizer(self, body: dict[str, Any]) -> None:
        """Install the finalizer and persist it before anything is created."""
        meta = body["metadata"]
        finalizers = list(meta.get("finalizers") or [])
        finalizers.append(FINALIZER)
        self.store.patch_finalizers(self.plural, meta["namespace"], meta["name"], finalizers)
        meta["finalizers"] = finalizers

    def remove_finalizer(self, body: dict[str, Any]) -> None:
        meta = body["metadata"]
        finalizers = [f for f in meta.get("finalizers") or [] if f != FINALIZER]
        self.store.patch_finalizers(self.plural, meta["namespace"], meta["name"], finalizers)
        meta["finalizers"] = finalizers

    def default_name(self, body: dict[str, Any]) -> None:
        """Default the Harbor-facing name to metadata.name for this pass only."""
        if self.name_field and not body["spec"].get(self.name_field):
            body["spec"][self.name_field] = body["metadata"]["name"]

    def get_connection(self, body: dict[str, Any]) -> dict[str, Any]:
        """Fetch the referenced HarborConnection from the object's namespace.

        Raises:
            ConnectionFailedError: If the connection does not exist or cannot be read
        """
        namespace = body["metadata"]["namespace"]
        ref = body["spec"].get("harborConnectionRef")
        try:
            connection = self.store.get(PLURAL_CONNECTION, namespace, ref)
        except client.exceptions.ApiException as e:
            raise ConnectionFailedError(f"failed to get HarborConnection {namespace}/{ref}: {e.reason}") from e
        if connection is None:
            raise ConnectionFailedError(f"HarborConnection {namespace}/{ref} not found")
        return connection

    @contextmanager
    def connect(self, body: dict[str, Any], stopped: Any) -> Iterator[HarborClient]:
        """Resolve the connection and its credentials into a Harbor client.

        The connection is looked up on every pass so credential rotation is
        picked up without restarts.
        """
        connection = self.get_connection(body)
        try:
            harbor = create_harbor_client_from_connection(
                connection, self.core_api, stopped=stopped, transport=self.transport
            )
        except ValueError as e:
            raise ConnectionFailedError(str(e)) from e
        with harbor:
            yield harbor

    def _adopt(self, harbor: HarborClient, body: dict[str, Any]) -> None:
        meta = body["metadata"]
        with trace_span("adopt", kind=self.kind):
            try:
                existing_id = self.find_existing(harbor, body)
            except REMOTE_ERRORS as e:
                raise AdoptionError(f"failed to look up existing {self.kind.lower()}: {e}") from e

        if existing_id is None:
            return

        body["status"][self.id_field] = existing_id
        self.persist_status(body)
        metrics.adoptions_total.labels(kind=self.kind).inc()
        emit_adopted(body, self.kind, existing_id)
        self.log_info(
            meta,
            f"Adopted existing Harbor {self.kind.lower()}",
            event="adopt",
            reason="Adopted",
            harbor_id=existing_id,
        )

    def _build(self, harbor: HarborClient, body: dict[str, Any]) -> Any:
        try:
            return self.build_payload(harbor, body)
        except REMOTE_ERRORS as e:
            raise BuildRequestError(str(e)) from e

    def _create(self, harbor: HarborClient, body: dict[str, Any], desired: Any) -> None:
        with trace_span("create", kind=self.kind):
            try:
                new_id = self.create_remote(harbor, body, desired)
            except REMOTE_ERRORS as e:
                metrics.remote_operations_total.labels(kind=self.kind, operation="create", result="error").inc()
                raise CreateError(f"failed to create {self.kind.lower()}: {e}") from e

        metrics.remote_operations_total.labels(kind=self.kind, operation="create", result="success").inc()
        body["status"][self.id_field] = new_id
        self.persist_status(body)
        emit_created(body, self.kind, new_id)
        self.log_info(
            body["metadata"], f"Created Harbor {self.kind.lower()}", event="create", reason="Created", harbor_id=new_id
        )

    def _get(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> Any:
        """Fetch the remote entity, or None if Harbor no longer has it."""
        try:
            return self.get_remote(harbor, body, remote_id)
        except REMOTE_ERRORS as e:
            if is_not_found(e):
                return None
            raise GetError(f"failed to get {self.kind.lower()} {remote_id}: {e}") from e

    def _converge(
        self,
        harbor: HarborClient,
        body: dict[str, Any],
        remote_id: int,
        desired: Any,
        current: Any,
        converged_before: bool,
    ) -> None:
        meta = body["metadata"]
        changed = self.diff(desired, current)
        if not changed:
            return

        fields = ", ".join(changed)
        if converged_before:
            metrics.drift_detected_total.labels(kind=self.kind).inc()
            emit_drift_detected(body, f"Harbor {self.kind.lower()} {remote_id} drifted: {fields}")

        with trace_span("update", kind=self.kind):
            try:
                self.update_remote(harbor, body, remote_id, desired)
            except REMOTE_ERRORS as e:
                metrics.remote_operations_total.labels(kind=self.kind, operation="update", result="error").inc()
                raise UpdateError(f"failed to update {self.kind.lower()} {remote_id}: {e}") from e

        metrics.remote_operations_total.labels(kind=self.kind, operation="update", result="success").inc()
        emit_updated(body, self.kind, remote_id)
        self.log_info(
            meta,
            f"Updated Harbor {self.kind.lower()}",
            event="update",
            reason="Updated",
            harbor_id=remote_id,
            changed_fields=changed,
        )

    def _delete(self, harbor: HarborClient, body: dict[str, Any], remote_id: int) -> None:
        meta = body["metadata"]
        with trace_span("delete", kind=self.kind):
            try:
                self.delete_remote(harbor, body, remote_id)
            except REMOTE_ERRORS as e:
                if not is_not_found(e):
                    metrics.remote_operations_total.labels(kind=self.kind, operation="delete", result="error").inc()
                    raise DeleteError(f"failed to delete {self.kind.lower()} {remote_id}: {e}") from e
                self.log_info(
                    meta, f"Harbor {self.kind.lower()} already gone", event="delete", reason="NotFound", harbor_id=remote_id
                )
                return

        metrics.remote_operations_total.labels(kind=self.kind, operation="delete", result="success").inc()
        emit_deleted(body, self.kind, remote_id)
        self.log_info(
            meta, f"Deleted Harbor {self.kind.lower()}", event="delete", reason="Deleted", harbor_id=remote_id
        )
