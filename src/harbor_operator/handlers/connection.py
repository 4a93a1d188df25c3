"""HarborConnection handler: a read-only connectivity probe."""

from __future__ import annotations

import copy
from typing import Any

import kopf

from .. import metrics
from ..builders.connection import create_harbor_client_from_connection, validate_base_url
from ..constants import API_GROUP_VERSION, COND_READY, KIND_CONNECTION, PLURAL_CONNECTION
from ..tracing import trace_span
from ..utils.conditions import is_condition_true, mark_ready, mark_reconciling
from ..utils.drift import requeue_after
from ..utils.errors import ConnectionFailedError, InvalidSpecError
from ..utils.events import emit_connection_verified
from .base import REMOTE_ERRORS, BaseHandler, ReconcileResult
from .shared import drift_loop, run_pass


class ConnectionHandler(BaseHandler):
    """Handler for HarborConnection resources.

    Verifies Harbor is reachable: an anonymous ping without credentials, or
    fetching the current user with them. Only conditions are written; there
    is no finalizer and nothing is ever changed in Harbor.
    """

    plural = PLURAL_CONNECTION

    def __init__(self, **kwargs: Any):
        super().__init__(KIND_CONNECTION, **kwargs)

    def reconcile(self, namespace: str, name: str, stopped: Any = None) -> ReconcileResult:
        obj = self.store.get(self.plural, namespace, name)
        if obj is None:
            self.logger.info(f"{self.kind} {namespace}/{name} not found; it may have been deleted")
            return ReconcileResult(finalized=True)

        body = copy.deepcopy(obj)
        body.setdefault("spec", {})
        body.setdefault("status", {})
        if body["metadata"].get("deletionTimestamp"):
            return ReconcileResult(finalized=True)
        return self.reconcile_with_metrics(body, lambda: self._reconcile(body, stopped))

    def _reconcile(self, body: dict[str, Any], stopped: Any) -> ReconcileResult:
        meta = body["metadata"]
        spec = body["spec"]
        status = body["status"]
        generation = meta.get("generation", 0)
        was_ready = is_condition_true(status.get("conditions") or [], COND_READY)

        mark_reconciling(status, generation)
        self.persist_status(body)

        try:
            interval = requeue_after(spec.get("driftDetectionInterval"))
            try:
                validate_base_url(spec.get("baseURL"))
            except ValueError as e:
                raise InvalidSpecError(str(e)) from e

            with trace_span("check_connection", kind=self.kind, attributes={"harbor.url": spec["baseURL"]}):
                with create_harbor_client_from_connection(
                    body, self.core_api, stopped=stopped, transport=self.transport
                ) as harbor:
                    try:
                        if spec.get("credentials"):
                            user = harbor.get_current_user()
                            self.log_info(meta, "Authenticated to Harbor", reason="Authenticated", username=user.username)
                        else:
                            harbor.ping()
                    except REMOTE_ERRORS as e:
                        raise ConnectionFailedError(f"Harbor at {spec['baseURL']} is not reachable: {e}") from e
        except Exception as e:
            metrics.connection_checks_total.labels(connection=meta["name"], status="failed").inc()
            self.fail(body, e)
            raise

        metrics.connection_checks_total.labels(connection=meta["name"], status="connected").inc()
        mark_ready(status, generation, "Harbor is reachable")
        self.persist_status(body)
        metrics.resource_status_total.labels(kind=self.kind, status="ready").inc()
        if not was_ready:
            emit_connection_verified(body, spec["baseURL"])
        return ReconcileResult(requeue_after=interval)


# Create handler instance
_handler = ConnectionHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_CONNECTION)
@kopf.on.update(API_GROUP_VERSION, KIND_CONNECTION)
@kopf.on.resume(API_GROUP_VERSION, KIND_CONNECTION)
def handle_connection(name: str, namespace: str, **_: Any) -> None:
    """Handle HarborConnection reconciliation."""
    run_pass(_handler, namespace, name)


@kopf.daemon(API_GROUP_VERSION, KIND_CONNECTION, cancellation_timeout=10.0)
def watch_connection(name: str, namespace: str, spec: Any, stopped: kopf.DaemonStopped, **_: Any) -> None:
    """Re-probe Harbor every driftDetectionInterval."""
    drift_loop(_handler, namespace, name, spec, stopped)
