"""Tests for health check endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from harbor_operator import metrics  # noqa: F401  registers the collectors
from harbor_operator.health import create_combined_wsgi_app, start_health_server


def _environ(path: str) -> dict:
    return {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": path,
        "SCRIPT_NAME": "",
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8080",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "QUERY_STRING": "",
        "wsgi.url_scheme": "http",
    }


class TestCombinedWsgiApp:
    """Test cases for create_combined_wsgi_app."""

    def test_healthz(self):
        """Test /healthz answers ok."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/healthz"), start_response))

        assert b'"status":"ok"' in body
        assert "200" in start_response.call_args[0][0]

    def test_readyz(self):
        """Test /readyz answers ready."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/readyz"), start_response))

        assert b'"status":"ready"' in body

    def test_metrics_delegated_to_prometheus(self):
        """Test other paths are served by the prometheus app."""
        app = create_combined_wsgi_app()
        start_response = MagicMock()

        body = b"".join(app(_environ("/metrics"), start_response))

        assert b"harbor_operator_reconcile_total" in body
        assert "200" in start_response.call_args[0][0]


class TestStartHealthServer:
    """Test cases for start_health_server."""

    @patch("harbor_operator.health.threading.Thread")
    @patch("harbor_operator.health.make_server")
    def test_serves_from_daemon_thread(self, mock_make_server, mock_thread):
        """Test the server runs on a daemon thread."""
        server = start_health_server(9090)

        assert server is mock_make_server.return_value
        assert mock_make_server.call_args[0][1] == 9090
        mock_thread.assert_called_once_with(target=server.serve_forever, daemon=True)
        mock_thread.return_value.start.assert_called_once()
