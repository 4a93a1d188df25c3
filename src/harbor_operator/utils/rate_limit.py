"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration, a value <= 0 disables the limiter
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_HARBOR_RATE_LIMIT_PER_SECOND = float(os.getenv("HARBOR_RATE_LIMIT_PER_SECOND", "10.0"))

# Track last call times; kopf runs sync handlers in a thread pool
_last_call_time: dict[str, float] = {"k8s": 0.0, "harbor": 0.0}
_lock = threading.Lock()


def _wait_for_slot(api_type: str, per_second: float) -> None:
    if per_second <= 0:
        return
    min_interval = 1.0 / per_second
    with _lock:
        time_since_last_call = time.time() - _last_call_time[api_type]
        if time_since_last_call < min_interval:
            metrics.rate_limit_hits_total.labels(api_type=api_type).inc()
            time.sleep(min_interval - time_since_last_call)
        _last_call_time[api_type] = time.time()


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Enforces a minimum interval between calls to prevent overwhelming
    the Kubernetes API server.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _wait_for_slot("k8s", _K8S_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_harbor(func: _F) -> _F:
    """Decorator to rate limit Harbor API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _wait_for_slot("harbor", _HARBOR_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore
