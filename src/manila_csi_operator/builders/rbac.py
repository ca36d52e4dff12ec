"""Builders for the RBAC objects of the node and controller plugins."""

from __future__ import annotations

from typing import Any

from ..constants import APP_NFS_CSI, DRIVER_NAMESPACE
from .common import component_labels, object_meta, policy_rule, service_account_subject

RBAC_API_GROUP = "rbac.authorization.k8s.io"

CONTROLLER_PLUGIN_NAME = "openstack-manila-csi-controllerplugin"
NODE_PLUGIN_NAME = "openstack-manila-csi-nodeplugin"
NFS_NODE_PLUGIN_NAME = "csi-nodeplugin-nfsplugin"

CONTROLLER_PLUGIN_LABELS = component_labels("controllerplugin")
NODE_PLUGIN_LABELS = component_labels("nodeplugin")
NFS_NODE_PLUGIN_LABELS = component_labels("nodeplugin", app=APP_NFS_CSI)


def build_service_account(name: str, labels: dict[str, str]) -> dict[str, Any]:
    """Build a service account in the driver namespace."""
    return {
        "apiVersion": "v1",
        "kind": "ServiceAccount",
        "metadata": object_meta(name, DRIVER_NAMESPACE, labels),
    }


def build_cluster_role(name: str, labels: dict[str, str], rules: list[dict[str, Any]]) -> dict[str, Any]:
    """Build a cluster role."""
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": "ClusterRole",
        "metadata": object_meta(name, labels=labels),
        "rules": rules,
    }


def build_cluster_role_binding(name: str, labels: dict[str, str]) -> dict[str, Any]:
    """Bind the cluster role of the same name to the service account of the same name."""
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": "ClusterRoleBinding",
        "metadata": object_meta(name, labels=labels),
        "subjects": [service_account_subject(name, DRIVER_NAMESPACE)],
        "roleRef": {"kind": "ClusterRole", "name": name, "apiGroup": RBAC_API_GROUP},
    }


def build_role(name: str, labels: dict[str, str], rules: list[dict[str, Any]]) -> dict[str, Any]:
    """Build a role in the driver namespace."""
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": "Role",
        "metadata": object_meta(name, DRIVER_NAMESPACE, labels),
        "rules": rules,
    }


def build_role_binding(name: str, labels: dict[str, str]) -> dict[str, Any]:
    """Bind the role of the same name to the service account of the same name."""
    return {
        "apiVersion": f"{RBAC_API_GROUP}/v1",
        "kind": "RoleBinding",
        "metadata": object_meta(name, DRIVER_NAMESPACE, labels),
        "subjects": [service_account_subject(name, DRIVER_NAMESPACE)],
        "roleRef": {"kind": "Role", "name": name, "apiGroup": RBAC_API_GROUP},
    }


CONTROLLER_PLUGIN_CLUSTER_RULES = [
    policy_rule([""], ["nodes"], ["get", "list", "watch"]),
    policy_rule([""], ["secrets"], ["get", "list"]),
    policy_rule([""], ["persistentvolumes"], ["get", "list", "watch", "create", "delete"]),
    policy_rule([""], ["persistentvolumeclaims"], ["get", "list", "watch", "update"]),
    policy_rule([""], ["events"], ["list", "watch", "create", "update", "patch"]),
    policy_rule(["storage.k8s.io"], ["storageclasses"], ["get", "list", "watch"]),
    policy_rule(["storage.k8s.io"], ["csinodes"], ["get", "list", "watch"]),
    policy_rule(["snapshot.storage.k8s.io"], ["volumesnapshotclasses"], ["get", "list", "watch"]),
    policy_rule(
        ["snapshot.storage.k8s.io"],
        ["volumesnapshotcontents"],
        ["create", "get", "list", "watch", "update", "delete"],
    ),
    policy_rule(["snapshot.storage.k8s.io"], ["volumesnapshotcontents/status"], ["update"]),
    policy_rule(["snapshot.storage.k8s.io"], ["volumesnapshots"], ["get", "list", "watch", "update"]),
    policy_rule(["snapshot.storage.k8s.io"], ["volumesnapshots/status"], ["update"]),
    policy_rule(
        ["apiextensions.k8s.io"],
        ["customresourcedefinitions"],
        ["create", "list", "watch", "delete", "get", "update"],
    ),
]

CONTROLLER_PLUGIN_NAMESPACED_RULES = [
    policy_rule([""], ["endpoints"], ["get", "watch", "list", "delete", "update", "create"]),
    policy_rule([""], ["configmaps"], ["get", "list", "watch", "create", "delete"]),
]

NODE_PLUGIN_CLUSTER_RULES = [
    policy_rule([""], ["configmaps"], ["get", "list"]),
    policy_rule([""], ["nodes"], ["get", "list", "update"]),
    policy_rule([""], ["namespaces"], ["get", "list"]),
    policy_rule([""], ["persistentvolumes"], ["get", "list", "watch", "update"]),
    policy_rule(["storage.k8s.io"], ["volumeattachments"], ["get", "list", "watch", "update"]),
]

NFS_NODE_PLUGIN_CLUSTER_RULES = [
    policy_rule([""], ["persistentvolumes"], ["get", "list", "watch", "update"]),
    policy_rule([""], ["secrets"], ["get", "list"]),
    policy_rule([""], ["nodes"], ["get", "list", "watch", "update"]),
    policy_rule(["storage.k8s.io"], ["volumeattachments"], ["get", "list", "watch", "update"]),
]
