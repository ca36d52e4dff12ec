"""Utility functions for the Manila CSI Driver Operator."""

from .conditions import (
    set_credentials_available_condition,
    set_manila_available_condition,
    set_ready_condition,
    update_condition,
)
from .context import (
    get_context_dict,
    get_correlation_id,
    set_correlation_id,
    with_correlation_id,
)
from .events import emit_event
from .rate_limit import backoff_delay, call_with_rate_limit_retry, rate_limit_k8s, rate_limit_openstack
from .secrets import get_secret_value, read_secret_data

__all__ = [
    "update_condition",
    "set_ready_condition",
    "set_credentials_available_condition",
    "set_manila_available_condition",
    "emit_event",
    "get_secret_value",
    "read_secret_data",
    "rate_limit_k8s",
    "rate_limit_openstack",
    "call_with_rate_limit_retry",
    "backoff_delay",
    "set_correlation_id",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
