"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CREDENTIALS_PENDING,
    EVENT_REASON_FINALIZED,
    EVENT_REASON_INVALID_CONFIGURATION,
    EVENT_REASON_MANILA_UNAVAILABLE,
    EVENT_REASON_OBJECT_CREATED,
    EVENT_REASON_OBJECT_DELETED,
    EVENT_REASON_OBJECT_UPDATED,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_RECONCILE_STARTED,
    EVENT_REASON_RECONCILE_SUCCEEDED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Body of the object the event is attached to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def describe_object(obj: dict[str, Any]) -> str:
    """Render a short human readable reference to an object."""
    metadata = obj.get("metadata", {})
    namespace = metadata.get("namespace")
    name = metadata.get("name", "unknown")
    ref = f"{namespace}/{name}" if namespace else name
    return f"{obj.get('kind', 'Object')} {ref}"


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_succeeded(body: dict[str, Any]) -> None:
    """Emit reconcile succeeded event."""
    emit_event(body, EVENT_REASON_RECONCILE_SUCCEEDED, "Reconciliation succeeded")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_invalid_configuration(body: dict[str, Any], message: str) -> None:
    """Emit an event for a declaration that cannot be reconciled."""
    emit_event(body, EVENT_REASON_INVALID_CONFIGURATION, message, type_="Warning")


def emit_object_created(body: dict[str, Any], obj: dict[str, Any]) -> None:
    """Emit managed object created event."""
    emit_event(body, EVENT_REASON_OBJECT_CREATED, f"{describe_object(obj)} created")


def emit_object_updated(body: dict[str, Any], obj: dict[str, Any]) -> None:
    """Emit managed object updated event."""
    emit_event(body, EVENT_REASON_OBJECT_UPDATED, f"{describe_object(obj)} updated")


def emit_object_deleted(body: dict[str, Any], obj: dict[str, Any]) -> None:
    """Emit managed object deleted event."""
    emit_event(body, EVENT_REASON_OBJECT_DELETED, f"{describe_object(obj)} deleted")


def emit_credentials_pending(body: dict[str, Any], message: str) -> None:
    """Emit credentials pending event."""
    emit_event(body, EVENT_REASON_CREDENTIALS_PENDING, message)


def emit_manila_unavailable(body: dict[str, Any]) -> None:
    """Emit Manila unavailable event."""
    emit_event(
        body,
        EVENT_REASON_MANILA_UNAVAILABLE,
        "OpenStack Manila is not available in the cloud",
        type_="Warning",
    )


def emit_finalized(body: dict[str, Any]) -> None:
    """Emit finalization completed event."""
    emit_event(body, EVENT_REASON_FINALIZED, "All managed objects were removed")
