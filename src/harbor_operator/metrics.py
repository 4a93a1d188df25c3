"""Prometheus metrics for the Harbor Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "harbor_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "harbor_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "harbor_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "harbor_operator_resource_status_total",
    "Resource status observations",
    ["kind", "status"],
)

# Harbor entity operations (create, update, delete)
remote_operations_total = Counter(
    "harbor_operator_remote_operations_total",
    "Total number of Harbor entity mutations",
    ["kind", "operation", "result"],
)

drift_detected_total = Counter(
    "harbor_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind"],
)

adoptions_total = Counter(
    "harbor_operator_adoptions_total",
    "Total number of existing Harbor entities adopted",
    ["kind"],
)

connection_checks_total = Counter(
    "harbor_operator_connection_checks_total",
    "HarborConnection connectivity check results",
    ["connection", "status"],
)

# API call metrics
api_call_total = Counter(
    "harbor_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "harbor_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "harbor_operator_rate_limit_hits_total",
    "Total number of times a call was delayed by the client-side rate limiter",
    ["api_type"],
)
