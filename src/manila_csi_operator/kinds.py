"""Kinds of Kubernetes objects handled by the operator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from .constants import API_GROUP_VERSION, KIND_MANILA_DRIVER


@dataclass(frozen=True)
class ResourceKind:
    """An API resource identified by apiVersion and kind."""

    api_version: str
    kind: str
    namespaced: bool

    def __str__(self) -> str:
        return f"{self.kind}.{self.api_version}"


MANILA_DRIVER = ResourceKind(API_GROUP_VERSION, KIND_MANILA_DRIVER, namespaced=False)


class ManagedKind(Enum):
    """Closed set of object kinds the operator creates and maintains."""

    NAMESPACE = ResourceKind("v1", "Namespace", namespaced=False)
    CONFIG_MAP = ResourceKind("v1", "ConfigMap", namespaced=True)
    SECRET = ResourceKind("v1", "Secret", namespaced=True)
    SERVICE_ACCOUNT = ResourceKind("v1", "ServiceAccount", namespaced=True)
    CLUSTER_ROLE = ResourceKind("rbac.authorization.k8s.io/v1", "ClusterRole", namespaced=False)
    CLUSTER_ROLE_BINDING = ResourceKind("rbac.authorization.k8s.io/v1", "ClusterRoleBinding", namespaced=False)
    ROLE = ResourceKind("rbac.authorization.k8s.io/v1", "Role", namespaced=True)
    ROLE_BINDING = ResourceKind("rbac.authorization.k8s.io/v1", "RoleBinding", namespaced=True)
    DAEMON_SET = ResourceKind("apps/v1", "DaemonSet", namespaced=True)
    DEPLOYMENT = ResourceKind("apps/v1", "Deployment", namespaced=True)
    CSI_DRIVER = ResourceKind("storage.k8s.io/v1", "CSIDriver", namespaced=False)
    STORAGE_CLASS = ResourceKind("storage.k8s.io/v1", "StorageClass", namespaced=False)
    CREDENTIALS_REQUEST = ResourceKind("cloudcredential.openshift.io/v1", "CredentialsRequest", namespaced=True)
    SECURITY_CONTEXT_CONSTRAINTS = ResourceKind(
        "security.openshift.io/v1", "SecurityContextConstraints", namespaced=False
    )

    @classmethod
    def for_object(cls, obj: dict[str, Any]) -> ManagedKind:
        """Look up the managed kind of an object body.

        Raises:
            ValueError: If the object is not of a managed kind
        """
        for member in cls:
            if member.value.api_version == obj.get("apiVersion") and member.value.kind == obj.get("kind"):
                return member
        raise ValueError(f"{obj.get('kind')}.{obj.get('apiVersion')} is not a managed kind")


def object_identity(obj: dict[str, Any]) -> tuple[str, str | None]:
    """Return the (name, namespace) identity of an object body."""
    metadata = obj.get("metadata", {})
    return metadata["name"], metadata.get("namespace")
