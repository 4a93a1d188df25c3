"""Shared utilities for handlers: Kubernetes access and kopf plumbing."""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Any

import kopf
from kubernetes import client, config

from .. import metrics
from ..constants import API_GROUP, API_VERSION
from ..utils.drift import requeue_after
from ..utils.errors import InvalidSpecError, ReconcileError, sanitize_exception
from ..utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)

DRIFT_IDLE_POLL_SECONDS = float(os.getenv("DRIFT_IDLE_POLL_SECONDS", "60"))


def _load_kube_config() -> None:
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client."""
    _load_kube_config()
    return client.CustomObjectsApi()


def get_core_v1_client() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client, used for secrets."""
    _load_kube_config()
    return client.CoreV1Api()


class KubernetesObjectStore:
    """Desired-state store backed by the Kubernetes custom objects API."""

    def __init__(self, api: client.CustomObjectsApi | None = None) -> None:
        self.api = api or get_k8s_client()

    def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(group=API_GROUP, version=API_VERSION, **kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except client.exceptions.ApiException as e:
            result_label = "not_found" if e.status == 404 else "error"
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result=result_label).inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self, plural: str, namespace: str, name: str) -> dict[str, Any] | None:
        """Fetch an object, or None if it does not exist."""
        try:
            return self._call(
                f"get_{plural}",
                self.api.get_namespaced_custom_object,
                namespace=namespace,
                plural=plural,
                name=name,
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise

    def patch_status(self, plural: str, namespace: str, name: str, status: dict[str, Any]) -> None:
        self._call(
            f"patch_{plural}_status",
            self.api.patch_namespaced_custom_object_status,
            namespace=namespace,
            plural=plural,
            name=name,
            body={"status": status},
        )

    def patch_finalizers(self, plural: str, namespace: str, name: str, finalizers: list[str]) -> None:
        self._call(
            f"patch_{plural}_finalizers",
            self.api.patch_namespaced_custom_object,
            namespace=namespace,
            plural=plural,
            name=name,
            body={"metadata": {"finalizers": finalizers}},
        )


# Passes for one object must not overlap. kopf serializes its own handlers
# per object but the drift daemon runs beside them.
_pass_locks: dict[tuple[str, str, str], threading.Lock] = {}
_pass_locks_guard = threading.Lock()


def _lock_for(plural: str, namespace: str, name: str) -> threading.Lock:
    key = (plural, namespace, name)
    with _pass_locks_guard:
        lock = _pass_locks.get(key)
        if lock is None:
            lock = _pass_locks[key] = threading.Lock()
        return lock


def serialized_pass(handler: Any, namespace: str, name: str, stopped: Any = None) -> Any:
    """Run one reconciliation pass while holding the object's lock.

    The lock is dropped once the pass reports the object finalized.
    """
    key = (handler.plural, namespace, name)
    with _lock_for(*key):
        result = handler.reconcile(namespace, name, stopped=stopped)
    if result.finalized:
        with _pass_locks_guard:
            _pass_locks.pop(key, None)
    return result


def run_pass(handler: Any, namespace: str, name: str) -> None:
    """Run a pass on behalf of a kopf event handler.

    Raises:
        kopf.PermanentError: If the spec is invalid; kopf will not retry
        kopf.TemporaryError: If the pass asked to be re-run right away
    """
    try:
        result = serialized_pass(handler, namespace, name)
    except InvalidSpecError as e:
        raise kopf.PermanentError(sanitize_exception(e)) from e

    if result.requeue:
        raise kopf.TemporaryError("Harbor entity is gone, re-running to recreate it", delay=1)


def drift_loop(handler: Any, namespace: str, name: str, spec: Any, stopped: Any) -> None:
    """Periodically re-run passes so out-of-band changes in Harbor are repaired.

    ``spec`` is kopf's live view of the object, so interval changes take
    effect on the next iteration. Without an interval the loop idles.
    """
    rerun = False
    while not stopped:
        if not rerun:
            try:
                interval = requeue_after(spec.get("driftDetectionInterval"))
            except InvalidSpecError:
                interval = None
            if interval is None:
                stopped.wait(DRIFT_IDLE_POLL_SECONDS)
                continue
            if stopped.wait(interval.total_seconds()):
                break

        try:
            result = serialized_pass(handler, namespace, name, stopped=stopped)
        except ReconcileError as e:
            logger.warning(f"Drift check for {handler.kind} {namespace}/{name} failed: {sanitize_exception(e)}")
            rerun = False
            continue
        rerun = result.requeue
