"""Main entry point for the Harbor Operator.

Run with ``kopf run -m harbor_operator.main`` or ``python -m harbor_operator``.
"""

from __future__ import annotations

import os
from typing import Any

import kopf

from . import handlers  # noqa: F401  (registers the kopf handlers)
from . import health
from . import logging as structured_logging
from .tracing import initialize_tracing


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    initialize_tracing()

    # Use annotations for kopf's own bookkeeping so status stays ours
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = 0
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = int(os.getenv("MAX_WORKERS", "4"))

    # Exponential backoff for Kubernetes API errors: 1s, 2s, 4s, ... 60s
    settings.networking.error_backoffs = [1, 2, 4, 8, 16, 32, 60]

    # Metrics HTTP server with health check endpoints
    health.start_health_server(int(os.getenv("METRICS_PORT", "8080")))
