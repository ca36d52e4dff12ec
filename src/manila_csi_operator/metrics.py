"""Prometheus metrics for the Manila CSI Driver Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "manila_csi_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "manila_csi_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

error_total = Counter(
    "manila_csi_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "manila_csi_operator_resource_status_total",
    "Resource status observations after a reconciliation",
    ["kind", "status"],
)

# Managed object operations
managed_object_operations_total = Counter(
    "manila_csi_operator_managed_object_operations_total",
    "Total number of operations on managed objects",
    ["kind", "operation"],
)

# Manila inventory metrics
share_types_discovered = Gauge(
    "manila_csi_operator_share_types_discovered",
    "Number of Manila share types found during the last reconciliation",
)

# API call metrics
api_call_total = Counter(
    "manila_csi_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "manila_csi_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "manila_csi_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
