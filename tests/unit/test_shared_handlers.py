"""Tests for shared handler utilities and kopf wiring."""

from __future__ import annotations

from unittest.mock import Mock, patch

import kopf
import pytest
from kubernetes import client

from harbor_operator.constants import API_GROUP, API_VERSION
from harbor_operator.handlers import member, project, registry, user
from harbor_operator.handlers.base import ReconcileResult
from harbor_operator.handlers.shared import (
    DRIFT_IDLE_POLL_SECONDS,
    KubernetesObjectStore,
    _pass_locks,
    drift_loop,
    run_pass,
    serialized_pass,
)
from harbor_operator.utils.errors import CreateError, InvalidSpecError


class FakeStopped:
    """Stand-in for kopf.DaemonStopped that trips after ``limit`` waits."""

    def __init__(self, limit: int):
        self.limit = limit
        self.waits: list[float] = []
        self.flag = False

    def wait(self, timeout: float) -> bool:
        self.waits.append(timeout)
        if len(self.waits) >= self.limit:
            self.flag = True
        return self.flag

    def is_set(self) -> bool:
        return self.flag

    def __bool__(self) -> bool:
        return self.flag


def _handler(**kwargs):
    handler = Mock(plural="projects", kind="Project")
    handler.reconcile.configure_mock(**kwargs)
    return handler


class TestKubernetesObjectStore:
    """Test cases for KubernetesObjectStore."""

    def test_get(self):
        """Test objects are read from the custom objects API."""
        api = Mock()
        api.get_namespaced_custom_object.return_value = {"metadata": {"name": "team-a"}}

        obj = KubernetesObjectStore(api).get("projects", "default", "team-a")

        assert obj == {"metadata": {"name": "team-a"}}
        api.get_namespaced_custom_object.assert_called_once_with(
            group=API_GROUP, version=API_VERSION, namespace="default", plural="projects", name="team-a"
        )

    def test_get_not_found(self):
        """Test a missing object is None."""
        api = Mock()
        api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=404)

        assert KubernetesObjectStore(api).get("projects", "default", "team-a") is None

    def test_get_error_propagates(self):
        """Test other API errors are raised."""
        api = Mock()
        api.get_namespaced_custom_object.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            KubernetesObjectStore(api).get("projects", "default", "team-a")

    def test_patch_status(self):
        """Test status goes through the status subresource."""
        api = Mock()

        KubernetesObjectStore(api).patch_status("projects", "default", "team-a", {"harborProjectID": 42})

        api.patch_namespaced_custom_object_status.assert_called_once_with(
            group=API_GROUP,
            version=API_VERSION,
            namespace="default",
            plural="projects",
            name="team-a",
            body={"status": {"harborProjectID": 42}},
        )

    @patch("harbor_operator.handlers.shared.metrics")
    def test_patch_finalizers(self, mock_metrics):
        """Test finalizers are merge-patched into metadata and the call is counted."""
        api = Mock()

        KubernetesObjectStore(api).patch_finalizers("projects", "default", "team-a", ["harbor.operator/finalizer"])

        assert api.patch_namespaced_custom_object.call_args.kwargs["body"] == {
            "metadata": {"finalizers": ["harbor.operator/finalizer"]}
        }
        mock_metrics.api_call_total.labels.assert_called_with(
            api_type="k8s", operation="patch_projects_finalizers", result="success"
        )


class TestRunPass:
    """Test cases for run_pass."""

    def test_success(self):
        """Test a clean pass returns nothing to kopf."""
        handler = _handler(return_value=ReconcileResult())

        assert run_pass(handler, "default", "team-a") is None
        handler.reconcile.assert_called_once_with("default", "team-a", stopped=None)

    def test_invalid_spec_is_permanent(self):
        """Test kopf does not retry invalid specs."""
        handler = _handler(side_effect=InvalidSpecError("storageLimit must be a positive integer"))

        with pytest.raises(kopf.PermanentError, match="storageLimit"):
            run_pass(handler, "default", "team-a")

    def test_requeue_is_temporary(self):
        """Test a requeue request becomes an immediate retry."""
        handler = _handler(return_value=ReconcileResult(requeue=True))

        with pytest.raises(kopf.TemporaryError) as excinfo:
            run_pass(handler, "default", "team-a")

        assert excinfo.value.delay == 1

    def test_other_errors_propagate(self):
        """Test transient failures are left to kopf's backoff."""
        handler = _handler(side_effect=CreateError("boom"))

        with pytest.raises(CreateError):
            run_pass(handler, "default", "team-a")


class TestSerializedPass:
    """Test cases for serialized_pass."""

    def test_passes_stop_flag(self):
        """Test the cancellation flag reaches the handler."""
        handler = _handler(return_value=ReconcileResult())
        stopped = FakeStopped(limit=1)

        serialized_pass(handler, "default", "team-a", stopped=stopped)

        handler.reconcile.assert_called_once_with("default", "team-a", stopped=stopped)

    def test_lock_kept_while_object_lives(self):
        """Test the lock stays registered between passes."""
        handler = _handler(return_value=ReconcileResult())

        serialized_pass(handler, "default", "kept")

        assert ("projects", "default", "kept") in _pass_locks
        _pass_locks.pop(("projects", "default", "kept"))

    def test_lock_dropped_once_finalized(self):
        """Test the lock is forgotten after the object's last pass."""
        handler = _handler(return_value=ReconcileResult(finalized=True))

        serialized_pass(handler, "default", "gone")

        assert ("projects", "default", "gone") not in _pass_locks


class TestDriftLoop:
    """Test cases for drift_loop."""

    def test_runs_every_interval(self):
        """Test a pass runs after each interval until stopped."""
        handler = _handler(return_value=ReconcileResult())
        stopped = FakeStopped(limit=3)

        drift_loop(handler, "default", "team-a", {"driftDetectionInterval": "30s"}, stopped)

        assert stopped.waits == [30.0, 30.0, 30.0]
        assert handler.reconcile.call_count == 2

    def test_idle_without_interval(self):
        """Test no pass runs when drift detection is off."""
        handler = _handler(return_value=ReconcileResult())
        stopped = FakeStopped(limit=2)

        drift_loop(handler, "default", "team-a", {}, stopped)

        assert stopped.waits == [DRIFT_IDLE_POLL_SECONDS, DRIFT_IDLE_POLL_SECONDS]
        handler.reconcile.assert_not_called()

    def test_invalid_interval_idles(self):
        """Test a malformed interval is left to the event handlers to report."""
        handler = _handler(return_value=ReconcileResult())
        stopped = FakeStopped(limit=1)

        drift_loop(handler, "default", "team-a", {"driftDetectionInterval": "-1m"}, stopped)

        handler.reconcile.assert_not_called()

    def test_requeue_runs_immediately(self):
        """Test a requeue skips the wait."""
        handler = _handler(side_effect=[ReconcileResult(requeue=True), ReconcileResult()])
        stopped = FakeStopped(limit=2)

        drift_loop(handler, "default", "team-a", {"driftDetectionInterval": "30s"}, stopped)

        assert handler.reconcile.call_count == 2
        assert len(stopped.waits) == 2

    def test_errors_do_not_stop_the_loop(self):
        """Test failed passes are logged and retried next interval."""
        handler = _handler(side_effect=[CreateError("boom"), ReconcileResult()])
        stopped = FakeStopped(limit=3)

        drift_loop(handler, "default", "team-a", {"driftDetectionInterval": "30s"}, stopped)

        assert handler.reconcile.call_count == 2


class TestKopfWiring:
    """The kopf entry points delegate to the module handlers."""

    @pytest.mark.parametrize(
        "module,create_fn,delete_fn",
        [
            (registry, "handle_registry", "handle_registry_delete"),
            (project, "handle_project", "handle_project_delete"),
            (member, "handle_member", "handle_member_delete"),
            (user, "handle_user", "handle_user_delete"),
        ],
    )
    def test_handlers_run_pass(self, module, create_fn, delete_fn):
        """Test create/update/resume and delete handlers run a pass."""
        with patch.object(module, "run_pass") as mock_run_pass:
            getattr(module, create_fn)(name="x", namespace="default", spec={}, body={})
            getattr(module, delete_fn)(name="x", namespace="default", spec={}, body={})

        assert mock_run_pass.call_count == 2
        mock_run_pass.assert_called_with(module._handler, "default", "x")
