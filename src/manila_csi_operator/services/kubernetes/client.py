"""Kubernetes object store backed by the dynamic client."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client, config, dynamic
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic.exceptions import ResourceNotFoundError

from ... import metrics
from ...constants import FIELD_MANAGER
from ...kinds import ResourceKind
from ...utils.rate_limit import call_with_rate_limit_retry, rate_limit_k8s

logger = logging.getLogger(__name__)


def get_api_client() -> client.ApiClient:
    """Load in-cluster configuration, falling back to the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()
    return client.ApiClient()


class KubernetesStore:
    """Object store implementation talking to the Kubernetes API server."""

    def __init__(self, api_client: client.ApiClient | None = None) -> None:
        """Initialize the store.

        Args:
            api_client: Configured API client, loaded from the environment when omitted
        """
        self._dynamic = dynamic.DynamicClient(api_client or get_api_client())

    def _resource(self, kind: ResourceKind) -> Any:
        try:
            return self._dynamic.resources.get(api_version=kind.api_version, kind=kind.kind)
        except ResourceNotFoundError as e:
            # A kind the API server does not serve cannot hold any object
            raise ApiException(status=404, reason=f"{kind} is not served by the API server") from e

    def _call(self, operation: str, func: Callable[[], Any]) -> Any:
        start_time = time.time()
        try:
            result = call_with_rate_limit_retry(rate_limit_k8s(func))
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except ApiException as e:
            result = "not_found" if e.status == 404 else "error"
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result=result).inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def get(self, kind: ResourceKind, name: str, namespace: str | None = None) -> dict[str, Any]:
        """Fetch a single object."""
        resource = self._resource(kind)
        obj = self._call("get", lambda: resource.get(name=name, namespace=namespace))
        return obj.to_dict()

    def list(self, kind: ResourceKind, label_selector: str | None = None) -> list[dict[str, Any]]:
        """List objects of a kind across all namespaces."""
        resource = self._resource(kind)
        result = self._call("list", lambda: resource.get(label_selector=label_selector))
        return result.to_dict().get("items") or []

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object from its full body."""
        resource = self._resource(self._kind_of(obj))
        namespace = obj["metadata"].get("namespace")
        created = self._call(
            "create",
            lambda: resource.create(body=obj, namespace=namespace, field_manager=FIELD_MANAGER),
        )
        return created.to_dict()

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an existing object with the given body."""
        resource = self._resource(self._kind_of(obj))
        namespace = obj["metadata"].get("namespace")
        updated = self._call(
            "update",
            lambda: resource.replace(body=obj, namespace=namespace, field_manager=FIELD_MANAGER),
        )
        return updated.to_dict()

    def delete(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        """Delete a single object, letting the garbage collector remove dependents."""
        resource = self._resource(kind)
        self._call(
            "delete",
            lambda: resource.delete(name=name, namespace=namespace, propagation_policy="Background"),
        )

    @staticmethod
    def _kind_of(obj: dict[str, Any]) -> ResourceKind:
        return ResourceKind(obj["apiVersion"], obj["kind"], namespaced=bool(obj.get("metadata", {}).get("namespace")))
