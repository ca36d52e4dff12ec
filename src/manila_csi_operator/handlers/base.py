"""Base handler class with functionality shared by all reconcile handlers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import kopf

from .. import metrics
from ..constants import CONTROLLER_NAME, FINALIZER
from ..logging import log_resource_event
from ..services.openstack.models import Cloud, ShareType
from ..services.store.base import ObjectStore
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started

_T = TypeVar("_T")


@dataclass
class PassContext:
    """State shared by the steps of one reconcile pass.

    Nothing in here outlives the pass; every pass starts from what the store returns.
    """

    instance: dict[str, Any]
    store: ObjectStore
    cloud: Cloud | None = None
    ca_cert: str | None = None
    share_types: list[ShareType] = field(default_factory=list)


class BaseHandler:
    """Base class for reconcile handlers with logging, finalizer and metrics helpers."""

    def __init__(self, kind: str):
        """Initialize base handler.

        Args:
            kind: The Kubernetes resource kind the handler reconciles (e.g., "ManilaDriver")
        """
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        """Extract common resource context from metadata.

        Args:
            meta: Kubernetes resource metadata

        Returns:
            Dictionary with resource context fields
        """
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace") or "",
            "uid": meta.get("uid", "unknown"),
        }

    def _log(self, level: int, meta: dict[str, Any], message: str, event: str, reason: str, **kwargs: Any) -> None:
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def log_info(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "info",
        reason: str = "Info",
        **kwargs: Any,
    ) -> None:
        """Log an info-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            event: Event type (default: "info")
            reason: Reason for the event (default: "Info")
            **kwargs: Additional fields to include in the log
        """
        self._log(logging.INFO, meta, message, event, reason, **kwargs)

    def log_warning(
        self,
        meta: dict[str, Any],
        message: str,
        event: str = "warning",
        reason: str = "Warning",
        **kwargs: Any,
    ) -> None:
        """Log a warning-level structured log message."""
        self._log(logging.WARNING, meta, message, event, reason, **kwargs)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: BaseException | None = None,
        event: str = "error",
        reason: str = "Error",
        **kwargs: Any,
    ) -> None:
        """Log an error-level structured log message.

        Args:
            meta: Kubernetes resource metadata
            message: Log message
            error: Optional exception to include sanitized error details
            event: Event type (default: "error")
            reason: Reason for the event (default: "Error")
            **kwargs: Additional fields to include in the log
        """
        log_data = kwargs.copy()

        if error is not None:
            log_data["error"] = sanitize_exception(error)
            log_data["error_type"] = type(error).__name__

        self._log(logging.ERROR, meta, message, event, reason, **log_data)

    def ensure_finalizer(self, body: dict[str, Any]) -> bool:
        """Add the finalizer to the body's metadata.

        Returns:
            True if the finalizer was missing and has been added
        """
        metadata = body.setdefault("metadata", {})
        finalizers = list(metadata.get("finalizers") or [])
        if FINALIZER in finalizers:
            return False
        finalizers.append(FINALIZER)
        metadata["finalizers"] = finalizers
        return True

    def remove_finalizer(self, body: dict[str, Any]) -> bool:
        """Remove the finalizer from the body's metadata.

        Returns:
            True if the finalizer was present and has been removed
        """
        metadata = body.setdefault("metadata", {})
        finalizers = list(metadata.get("finalizers") or [])
        if FINALIZER not in finalizers:
            return False
        finalizers.remove(FINALIZER)
        metadata["finalizers"] = finalizers
        return True

    def reconcile_with_metrics(
        self,
        body: dict[str, Any],
        reconcile_fn: Callable[[], _T],
    ) -> _T:
        """Execute reconciliation with metrics and error handling.

        Args:
            body: Body of the reconciled resource
            reconcile_fn: Function to execute for reconciliation

        Returns:
            Whatever reconcile_fn returns
        """
        meta = body.get("metadata", {})
        emit_reconcile_started(body)
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        start_time = time.time()
        try:
            result = reconcile_fn()
            metrics.reconcile_total.labels(kind=self.kind, result="success").inc()
            return result
        except (kopf.PermanentError, kopf.TemporaryError):
            # Already classified and reported by the reconcile function
            raise
        except Exception as e:
            sanitized_error = sanitize_exception(e)
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitized_error}")
            metrics.reconcile_total.labels(kind=self.kind, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(duration)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Update resource status with common fields.

        Args:
            patch: Kopf patch object
            meta: Kubernetes resource metadata
            ready: Whether the resource is ready
            status_data: Additional status data to include
        """
        status_update = {
            "observedGeneration": meta.get("generation", 0),
            **(status_data or {}),
        }

        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()

        patch.status.update(status_update)
