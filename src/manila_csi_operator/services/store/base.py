"""Object store interface."""

from __future__ import annotations

from typing import Any, Protocol

from ...kinds import ResourceKind


class ObjectStore(Protocol):
    """Protocol defining the object store operations the operator relies on.

    All failures are raised as ``kubernetes.client.exceptions.ApiException``;
    a missing object is reported with status 404.
    """

    def get(self, kind: ResourceKind, name: str, namespace: str | None = None) -> dict[str, Any]:
        """Fetch a single object."""
        ...

    def list(self, kind: ResourceKind, label_selector: str | None = None) -> list[dict[str, Any]]:
        """List objects of a kind across all namespaces."""
        ...

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object from its full body."""
        ...

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an existing object with the given body."""
        ...

    def delete(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        """Delete a single object."""
        ...
