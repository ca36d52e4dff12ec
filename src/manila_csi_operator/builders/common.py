"""Helpers shared by the object builders."""

from __future__ import annotations

from typing import Any

from ..constants import APP_MANILA_CSI, LABEL_APP, LABEL_COMPONENT


def component_labels(component: str, app: str = APP_MANILA_CSI) -> dict[str, str]:
    """Labels identifying one component of the driver."""
    return {LABEL_APP: app, LABEL_COMPONENT: component}


def object_meta(
    name: str,
    namespace: str | None = None,
    labels: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build the metadata of a managed object."""
    meta: dict[str, Any] = {"name": name}
    if namespace is not None:
        meta["namespace"] = namespace
    if labels:
        meta["labels"] = dict(labels)
    return meta


def policy_rule(api_groups: list[str], resources: list[str], verbs: list[str]) -> dict[str, Any]:
    """Build an RBAC policy rule."""
    return {"apiGroups": api_groups, "resources": resources, "verbs": verbs}


def service_account_subject(name: str, namespace: str) -> dict[str, str]:
    """Build an RBAC subject for a service account."""
    return {"kind": "ServiceAccount", "name": name, "namespace": namespace}


def owner_reference(owner: dict[str, Any]) -> dict[str, Any]:
    """Build a controller owner reference pointing at owner."""
    metadata = owner.get("metadata", {})
    return {
        "apiVersion": owner["apiVersion"],
        "kind": owner["kind"],
        "name": metadata["name"],
        "uid": metadata["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }
