"""Create-or-update-if-changed convergence of a single managed object.

Every desired object is stamped with a canonical JSON snapshot of itself under
the last-applied annotation. On the next pass the snapshot stored on the live
object is compared structurally with the freshly computed one, so the operator
only writes when its own desired configuration changed.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from enum import Enum
from typing import Any

from . import metrics
from .constants import ANNOTATION_LAST_APPLIED
from .kinds import ManagedKind, object_identity
from .services.store.base import ObjectStore
from .utils.errors import is_not_found

logger = logging.getLogger(__name__)

# Metadata fields owned by the API server
_SERVER_METADATA_FIELDS = (
    "resourceVersion",
    "uid",
    "generation",
    "creationTimestamp",
    "deletionTimestamp",
    "deletionGracePeriodSeconds",
    "managedFields",
    "selfLink",
)


class ConvergeResult(str, Enum):
    """What converge() did to the object."""

    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def canonical_configuration(obj: dict[str, Any]) -> str:
    """Serialize the desired configuration of an object canonically.

    The last-applied annotation itself, the status, and server-populated
    metadata are excluded; keys are sorted and separators are compact.
    """
    snapshot = copy.deepcopy(obj)
    snapshot.pop("status", None)
    metadata = snapshot.get("metadata", {})
    for field in _SERVER_METADATA_FIELDS:
        metadata.pop(field, None)
    annotations = metadata.get("annotations")
    if annotations is not None:
        annotations.pop(ANNOTATION_LAST_APPLIED, None)
        if not annotations:
            metadata.pop("annotations")
    if snapshot.get("kind") == "Secret":
        # Secret values are recorded as digests only
        for field in ("data", "stringData"):
            if field in snapshot:
                snapshot[field] = {
                    key: "sha256:" + hashlib.sha256(str(value).encode("utf-8")).hexdigest()
                    for key, value in (snapshot[field] or {}).items()
                }
    return json.dumps(snapshot, sort_keys=True, separators=(",", ":"))


def set_last_applied_annotation(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of obj carrying its canonical last-applied annotation."""
    annotated = copy.deepcopy(obj)
    configuration = canonical_configuration(annotated)
    metadata = annotated.setdefault("metadata", {})
    annotations = metadata.get("annotations") or {}
    annotations[ANNOTATION_LAST_APPLIED] = configuration
    metadata["annotations"] = annotations
    return annotated


def get_last_applied_annotation(obj: dict[str, Any]) -> str | None:
    """Return the last-applied annotation of obj, if any."""
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return annotations.get(ANNOTATION_LAST_APPLIED)


def last_applied_equal(current: dict[str, Any], desired: dict[str, Any]) -> bool:
    """Compare the last-applied annotations of two object snapshots.

    The comparison is structural: key order and whitespace are irrelevant.
    A missing or unparsable annotation on either side never matches.
    """
    current_annotation = get_last_applied_annotation(current)
    desired_annotation = get_last_applied_annotation(desired)
    if current_annotation is None or desired_annotation is None:
        return False
    try:
        return json.loads(current_annotation) == json.loads(desired_annotation)
    except ValueError:
        return False


def converge(store: ObjectStore, desired: dict[str, Any]) -> ConvergeResult:
    """Drive the stored object towards the desired body.

    Issues at most one write. Store errors other than not-found on the
    initial fetch are raised unchanged.

    Args:
        store: Object store holding the live object
        desired: Full desired body of the object

    Returns:
        Whether the object was created, updated, or left unchanged
    """
    kind = ManagedKind.for_object(desired)
    name, namespace = object_identity(desired)
    desired = set_last_applied_annotation(desired)

    try:
        found = store.get(kind.value, name, namespace)
    except Exception as e:
        if not is_not_found(e):
            raise
        logger.info(f"Creating {kind.value.kind} {_ref(name, namespace)}")
        store.create(desired)
        metrics.managed_object_operations_total.labels(kind=kind.value.kind, operation="create").inc()
        return ConvergeResult.CREATED

    if last_applied_equal(found, desired):
        logger.debug(f"Skip reconcile: {kind.value.kind} {_ref(name, namespace)} is up to date")
        metrics.managed_object_operations_total.labels(kind=kind.value.kind, operation="unchanged").inc()
        return ConvergeResult.UNCHANGED

    resource_version = (found.get("metadata") or {}).get("resourceVersion")
    if resource_version:
        desired["metadata"]["resourceVersion"] = resource_version

    logger.info(f"Updating {kind.value.kind} {_ref(name, namespace)} with new changes")
    store.update(desired)
    metrics.managed_object_operations_total.labels(kind=kind.value.kind, operation="update").inc()
    return ConvergeResult.UPDATED


def _ref(name: str, namespace: str | None) -> str:
    return f"{namespace}/{name}" if namespace else name
