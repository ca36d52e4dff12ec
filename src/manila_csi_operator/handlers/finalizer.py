"""Ordered teardown of the managed objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from .. import metrics
from ..constants import DRIVER_NAMESPACE, KIND_MANILA_DRIVER
from ..kinds import ManagedKind, object_identity
from ..services.store.base import ObjectStore
from ..utils.errors import is_not_found
from ..utils.events import emit_object_deleted
from .base import BaseHandler
from .resources import ResourceHandler, StorageClassHandler


@dataclass(frozen=True)
class DeleteTarget:
    """Objects removed by one finalization step.

    Either a single object (name set) or every object of the kind matching
    a label selector.
    """

    kind: ManagedKind
    name: str | None = None
    namespace: str | None = None
    label_selector: str | None = None

    def resolve(self, store: ObjectStore) -> list[tuple[str, str | None]]:
        """Return the identities to delete."""
        if self.name is not None:
            return [(self.name, self.namespace)]
        try:
            items = store.list(self.kind.value, label_selector=self.label_selector)
        except Exception as e:
            if not is_not_found(e):
                raise
            return []
        return [object_identity(item) for item in items]


def deletion_targets(handlers: Sequence[ResourceHandler]) -> list[DeleteTarget]:
    """Derive the teardown order from the ordered resource handlers.

    Objects are deleted in reverse creation order. Objects living in the
    driver namespace are left to the namespace deletion, which comes last.
    """
    targets = []
    for handler in reversed(handlers):
        if isinstance(handler, StorageClassHandler):
            targets.append(DeleteTarget(ManagedKind.STORAGE_CLASS, label_selector=handler.label_selector))
            continue
        for managed in reversed(handler.objects):
            if managed.cascaded or managed.kind is ManagedKind.NAMESPACE:
                continue
            targets.append(DeleteTarget(managed.kind, managed.name, managed.namespace))
    targets.append(DeleteTarget(ManagedKind.NAMESPACE, DRIVER_NAMESPACE))
    return targets


class FinalizationOrchestrator(BaseHandler):
    """Deletes every managed object, tolerating objects that are already gone."""

    def __init__(self, targets: Sequence[DeleteTarget]):
        super().__init__(KIND_MANILA_DRIVER)
        self.targets = tuple(targets)

    def finalize(self, store: ObjectStore, instance: dict[str, Any]) -> None:
        """Delete all managed objects in order.

        Safe to re-run from any partial state.

        Raises:
            Exception: The first store error other than not-found, unchanged
        """
        meta = instance.get("metadata", {})
        for target in self.targets:
            for name, namespace in target.resolve(store):
                try:
                    store.delete(target.kind.value, name, namespace)
                except Exception as e:
                    if not is_not_found(e):
                        raise
                    continue
                metrics.managed_object_operations_total.labels(kind=target.kind.value.kind, operation="delete").inc()
                deleted = {"kind": target.kind.value.kind, "metadata": {"name": name, "namespace": namespace}}
                emit_object_deleted(instance, deleted)
                self.log_info(
                    meta,
                    f"{target.kind.value.kind} {name} deleted",
                    event="delete",
                    reason="Deleted",
                    object_kind=target.kind.value.kind,
                    object_name=name,
                    object_namespace=namespace,
                )
