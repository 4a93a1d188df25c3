"""Tests for the HarborConnection handler."""

from __future__ import annotations

from datetime import timedelta

import pytest

from harbor_operator.constants import COND_READY, COND_STALLED, PLURAL_CONNECTION
from harbor_operator.handlers.connection import ConnectionHandler
from harbor_operator.handlers.base import ReconcileResult
from harbor_operator.utils.conditions import get_condition, is_condition_true
from harbor_operator.utils.errors import ConnectionFailedError, InvalidSpecError

from .conftest import HARBOR_URL, make_body


@pytest.fixture
def handler(store, core_api, harbor):
    return ConnectionHandler(store=store, core_api=core_api, transport=harbor.transport)


def _reasons(mock_event):
    return [call.kwargs["reason"] for call in mock_event.call_args_list]


class TestConnectionHandler:
    """Test cases for ConnectionHandler.reconcile."""

    def test_authenticated_probe(self, handler, store, harbor, mock_kopf_event):
        """Test credentials are verified against the current user endpoint."""
        harbor.add("GET", "/users/current", json={"user_id": 1, "username": "admin"})

        result = handler.reconcile("default", "harbor")

        assert result == ReconcileResult()
        assert [call[1] for call in harbor.calls] == ["/api/v2.0/users/current"]
        assert harbor.requests[0].headers["Authorization"].startswith("Basic ")
        status = store.status_of(PLURAL_CONNECTION, "harbor")
        assert is_condition_true(status["conditions"], COND_READY)
        assert "ConnectionVerified" in _reasons(mock_kopf_event)

    def test_anonymous_probe(self, handler, store, harbor):
        """Test connections without credentials only ping."""
        store.add(PLURAL_CONNECTION, make_body("HarborConnection", "anon", {"baseURL": HARBOR_URL}, finalizers=[]))
        harbor.add("GET", "/ping")

        handler.reconcile("default", "anon")

        assert harbor.calls[0][:2] == ("GET", "/api/v2.0/ping")
        assert "Authorization" not in harbor.requests[0].headers

    def test_verified_event_only_on_transition(self, handler, store, harbor, mock_kopf_event):
        """Test ConnectionVerified is not repeated while the connection stays Ready."""
        harbor.add("GET", "/users/current", json={"user_id": 1, "username": "admin"})

        handler.reconcile("default", "harbor")
        handler.reconcile("default", "harbor")

        assert _reasons(mock_kopf_event).count("ConnectionVerified") == 1

    def test_bad_credentials(self, handler, store, harbor):
        """Test a rejected login stalls with ConnectionFailed."""
        harbor.add("GET", "/users/current", 401, json={"errors": [{"code": "UNAUTHORIZED"}]})

        with pytest.raises(ConnectionFailedError):
            handler.reconcile("default", "harbor")

        status = store.status_of(PLURAL_CONNECTION, "harbor")
        assert get_condition(status["conditions"], COND_STALLED)["reason"] == "ConnectionFailed"

    def test_invalid_base_url(self, handler, store, harbor):
        """Test a URL without scheme is an invalid spec and nothing is sent."""
        store.add(PLURAL_CONNECTION, make_body("HarborConnection", "broken", {"baseURL": "harbor.example.com"}, finalizers=[]))

        with pytest.raises(InvalidSpecError):
            handler.reconcile("default", "broken")

        assert harbor.calls == []

    def test_never_installs_finalizer(self, handler, store, harbor):
        """Test the connection is observed only."""
        harbor.add("GET", "/users/current", json={"user_id": 1, "username": "admin"})

        handler.reconcile("default", "harbor")

        assert store.finalizer_patches == []

    def test_drift_interval(self, handler, store, harbor):
        """Test the re-probe interval is returned."""
        store.objects[(PLURAL_CONNECTION, "default", "harbor")]["spec"]["driftDetectionInterval"] = "1m"
        harbor.add("GET", "/users/current", json={"user_id": 1, "username": "admin"})

        assert handler.reconcile("default", "harbor").requeue_after == timedelta(minutes=1)

    def test_deleting_connection_ignored(self, handler, store, harbor):
        """Test a connection being deleted is not probed."""
        store.add(
            PLURAL_CONNECTION,
            make_body("HarborConnection", "old", {"baseURL": HARBOR_URL}, finalizers=[], deleting=True),
        )

        assert handler.reconcile("default", "old") == ReconcileResult(finalized=True)
        assert harbor.calls == []
        assert store.status_patches == []
