"""Resource handlers converging groups of managed objects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Sequence

from ..builders.common import owner_reference
from ..constants import DRIVER_NAMESPACE, KIND_MANILA_DRIVER
from ..convergence import ConvergeResult, converge
from ..kinds import ManagedKind, object_identity
from ..tracing import trace_span
from ..utils.events import emit_object_created, emit_object_updated
from .base import BaseHandler, PassContext


@dataclass(frozen=True)
class ManagedObject:
    """A managed object with a fixed identity and a template builder.

    Attributes:
        kind: Kind of the object
        name: Fixed object name
        namespace: Fixed namespace, None for cluster-scoped kinds
        build: Builds the desired body for a pass
    """

    kind: ManagedKind
    name: str
    namespace: str | None
    build: Callable[[PassContext], dict[str, Any]]

    def desired(self, ctx: PassContext) -> dict[str, Any]:
        """Build the desired body and check it carries the declared identity."""
        body = self.build(ctx)
        if ManagedKind.for_object(body) is not self.kind or object_identity(body) != (self.name, self.namespace):
            raise ValueError(
                f"template for {self.kind.value.kind} {self.name} produced "
                f"{body.get('kind')} {object_identity(body)}"
            )
        return body

    @property
    def cascaded(self) -> bool:
        """Whether deleting the driver namespace also deletes this object."""
        return self.kind is not ManagedKind.NAMESPACE and self.namespace == DRIVER_NAMESPACE


class ResourceHandler(BaseHandler):
    """Converges an ordered set of managed objects, stopping at the first error."""

    def __init__(self, name: str, objects: Sequence[ManagedObject]):
        super().__init__(KIND_MANILA_DRIVER)
        self.name = name
        self.objects = tuple(objects)

    def desired_objects(self, ctx: PassContext) -> list[dict[str, Any]]:
        """Build the desired bodies of every object in the set."""
        return [managed.desired(ctx) for managed in self.objects]

    def apply(self, ctx: PassContext) -> list[ConvergeResult]:
        """Converge every object of the set in order.

        Args:
            ctx: State of the running pass

        Returns:
            Convergence result per object

        Raises:
            Exception: The first store error, unchanged
        """
        instance = ctx.instance
        meta = instance.get("metadata", {})
        results = []
        for desired in self.desired_objects(ctx):
            if meta.get("uid"):
                desired.setdefault("metadata", {})["ownerReferences"] = [owner_reference(instance)]
            name, namespace = object_identity(desired)
            with trace_span(
                "reconcile.converge",
                attributes={"object.kind": desired.get("kind", ""), "object.name": name},
            ):
                result = converge(ctx.store, desired)
            if result is ConvergeResult.CREATED:
                emit_object_created(instance, desired)
            elif result is ConvergeResult.UPDATED:
                emit_object_updated(instance, desired)
            if result is not ConvergeResult.UNCHANGED:
                self.log_info(
                    meta,
                    f"{desired.get('kind')} {name} {result.value}",
                    event="converge",
                    reason=result.value.capitalize(),
                    object_kind=desired.get("kind"),
                    object_name=name,
                    object_namespace=namespace,
                )
            results.append(result)
        return results


class StorageClassHandler(ResourceHandler):
    """Converges one storage class per share type found by the inventory gate."""

    def __init__(self, build: Callable[[Any], dict[str, Any]], label_selector: str):
        super().__init__("storage-classes", ())
        self.build = build
        self.label_selector = label_selector

    def desired_objects(self, ctx: PassContext) -> list[dict[str, Any]]:
        return [self.build(share_type) for share_type in ctx.share_types]
