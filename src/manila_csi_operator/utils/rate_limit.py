"""Rate limiting and backoff utilities for API calls."""

from __future__ import annotations

import os
import random
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from kubernetes.client.exceptions import ApiException

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_OPENSTACK_RATE_LIMIT_PER_SECOND = float(os.getenv("OPENSTACK_RATE_LIMIT_PER_SECOND", "5.0"))

# Retry backoff configuration
_MIN_RETRY_DELAY = float(os.getenv("MIN_RETRY_DELAY_SECONDS", "1.0"))
_MAX_RETRY_DELAY = float(os.getenv("MAX_RETRY_DELAY_SECONDS", "60.0"))
_RETRY_BACKOFF = float(os.getenv("RETRY_BACKOFF", "2.0"))
_BACKOFF_JITTER = 0.1

# Track last call times
_k8s_last_call_time: float = 0.0
_openstack_last_call_time: float = 0.0
_lock = threading.Lock()


def _throttle(last_call_time: float, rate_per_second: float) -> float:
    """Sleep until the minimum interval since the last call has passed."""
    min_interval = 1.0 / rate_per_second
    time_since_last_call = time.time() - last_call_time
    if time_since_last_call < min_interval:
        time.sleep(min_interval - time_since_last_call)
    return time.time()


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _k8s_last_call_time
        with _lock:
            _k8s_last_call_time = _throttle(_k8s_last_call_time, _K8S_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_openstack(func: _F) -> _F:
    """Decorator to rate limit OpenStack API calls."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _openstack_last_call_time
        with _lock:
            _openstack_last_call_time = _throttle(_openstack_last_call_time, _OPENSTACK_RATE_LIMIT_PER_SECOND)
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def is_rate_limit_error(e: BaseException) -> bool:
    """Check if an API exception is a Kubernetes rate limit error."""
    if not isinstance(e, ApiException):
        return False
    # Kubernetes API rate limit errors typically return 429 or 503
    return e.status == 429 or (e.status == 503 and "rate limit" in str(e).lower())


def call_with_rate_limit_retry(func: Callable[[], Any], max_retries: int = 3) -> Any:
    """Invoke func, retrying with exponential sleep on Kubernetes rate limit errors.

    Args:
        func: Zero-argument callable performing the API call
        max_retries: Maximum number of retries after a rate limit error

    Returns:
        Whatever func returns
    """
    attempt = 0
    while True:
        try:
            return func()
        except ApiException as e:
            if not is_rate_limit_error(e) or attempt >= max_retries:
                raise
            metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
            # Exponential backoff: 1s, 2s, 4s
            time.sleep(2 ** attempt)
            attempt += 1


def backoff_delay(retry: int) -> float:
    """Compute the requeue delay for a failed reconcile pass.

    Exponential backoff: 1s, 2s, 4s, 8s, ... capped at the maximum, with 10% jitter.

    Args:
        retry: Number of retries already performed for the current change

    Returns:
        Delay in seconds
    """
    delay = min(_MAX_RETRY_DELAY, _MIN_RETRY_DELAY * (_RETRY_BACKOFF ** max(retry, 0)))
    jitter = delay * _BACKOFF_JITTER * random.random()
    return min(_MAX_RETRY_DELAY, delay + jitter)
