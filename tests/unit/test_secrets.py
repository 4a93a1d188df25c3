"""Tests for Kubernetes secrets utilities."""

from __future__ import annotations

import base64
from unittest.mock import Mock

import pytest
from kubernetes import client

from harbor_operator.builders.secret_refs import resolve_secret_ref
from harbor_operator.utils.errors import SecretError
from harbor_operator.utils.secrets import get_secret_value


class TestGetSecretValue:
    """Test cases for get_secret_value function."""

    def test_get_secret_value_success(self):
        """Test successfully getting a secret value."""
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"access_secret": base64.b64encode(b"Harbor12345").decode("utf-8")}
        mock_api.read_namespaced_secret.return_value = mock_secret

        result = get_secret_value(mock_api, "default", "harbor-admin", "access_secret")

        assert result == "Harbor12345"
        mock_api.read_namespaced_secret.assert_called_once_with(name="harbor-admin", namespace="default")

    def test_get_secret_value_bytes(self):
        """Test getting secret value that's already bytes."""
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"password": b"Initial123"}
        mock_api.read_namespaced_secret.return_value = mock_secret

        assert get_secret_value(mock_api, "default", "user-pw", "password") == "Initial123"

    def test_get_secret_value_plain_string(self):
        """Test a value that is not base64 is returned as-is."""
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"password": "not base64!"}
        mock_api.read_namespaced_secret.return_value = mock_secret

        assert get_secret_value(mock_api, "default", "user-pw", "password") == "not base64!"

    def test_get_secret_value_key_not_found(self):
        """Test error when key not found in secret."""
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {"other-key": "value"}
        mock_api.read_namespaced_secret.return_value = mock_secret

        with pytest.raises(ValueError, match="Key 'password' not found"):
            get_secret_value(mock_api, "default", "user-pw", "password")

    def test_get_secret_value_secret_not_found(self):
        """Test error when secret not found."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=404)

        with pytest.raises(ValueError, match="Secret 'user-pw' not found"):
            get_secret_value(mock_api, "default", "user-pw", "password")

    def test_get_secret_value_api_error(self):
        """Test other API errors propagate."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=500)

        with pytest.raises(client.exceptions.ApiException):
            get_secret_value(mock_api, "default", "user-pw", "password")


class TestResolveSecretRef:
    """Test cases for resolve_secret_ref."""

    def _api(self, **data):
        mock_api = Mock()
        mock_secret = Mock()
        mock_secret.data = {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()}
        mock_api.read_namespaced_secret.return_value = mock_secret
        return mock_api

    def test_defaults_namespace_and_key(self):
        """Test the object namespace and default key are used when omitted."""
        mock_api = self._api(access_secret="s3cr3t")

        value = resolve_secret_ref(mock_api, {"name": "creds"}, "team-a", "access_secret", "credential.accessSecretRef")

        assert value == "s3cr3t"
        mock_api.read_namespaced_secret.assert_called_once_with(name="creds", namespace="team-a")

    def test_explicit_namespace_and_key(self):
        """Test explicit namespace and key win over the defaults."""
        mock_api = self._api(token="abc")

        value = resolve_secret_ref(
            mock_api,
            {"name": "creds", "namespace": "shared", "key": "token"},
            "team-a",
            "access_secret",
            "credential.accessSecretRef",
        )

        assert value == "abc"
        mock_api.read_namespaced_secret.assert_called_once_with(name="creds", namespace="shared")

    def test_missing_name(self):
        """Test a reference without a name is a SecretError."""
        with pytest.raises(SecretError, match="passwordSecretRef.name is required"):
            resolve_secret_ref(Mock(), {}, "default", "password", "passwordSecretRef")

    def test_missing_key_becomes_secret_error(self):
        """Test a missing key surfaces as SecretError."""
        mock_api = self._api(other="x")

        with pytest.raises(SecretError, match="Key 'password' not found"):
            resolve_secret_ref(mock_api, {"name": "pw"}, "default", "password", "passwordSecretRef")

    def test_api_failure_becomes_secret_error(self):
        """Test unexpected API errors surface as SecretError."""
        mock_api = Mock()
        mock_api.read_namespaced_secret.side_effect = client.exceptions.ApiException(status=403, reason="Forbidden")

        with pytest.raises(SecretError, match="Forbidden"):
            resolve_secret_ref(mock_api, {"name": "pw"}, "default", "password", "passwordSecretRef")
