"""Shared fixtures: an in-memory object store and ManilaDriver bodies."""

from __future__ import annotations

import base64
import copy
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from kubernetes.client.exceptions import ApiException

from manila_csi_operator.constants import (
    API_GROUP_VERSION,
    CLOUDS_SECRET_KEY,
    DRIVER_NAMESPACE,
    INSTALLER_SECRET_NAME,
    KIND_MANILA_DRIVER,
    MANILA_DRIVER_CR_NAME,
)
from manila_csi_operator.kinds import ResourceKind
from manila_csi_operator.services.openstack.models import ShareType

CLOUDS_YAML = """
clouds:
  openstack:
    auth:
      auth_url: https://keystone.example.com:5000/v3
      username: manila
      password: s3cr3t
      project_name: storage
      user_domain_name: Default
      project_domain_name: Default
    region_name: RegionOne
    interface: public
    identity_api_version: 3
"""


class FakeStore:
    """In-memory object store recording every call it receives."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str, str | None], dict[str, Any]] = {}
        self.calls: list[tuple[str, str, str | None, str | None]] = []
        self.failures: dict[tuple[str, str], Exception] = {}
        self._version = 0

    @staticmethod
    def _key(api_version: str, kind: str, name: str, namespace: str | None) -> tuple[str, str, str, str | None]:
        return (api_version, kind, name, namespace or None)

    def _obj_key(self, obj: dict[str, Any]) -> tuple[str, str, str, str | None]:
        metadata = obj["metadata"]
        return self._key(obj["apiVersion"], obj["kind"], metadata["name"], metadata.get("namespace"))

    def _record(self, operation: str, kind: str, name: str | None, namespace: str | None) -> None:
        self.calls.append((operation, kind, name, namespace))
        error = self.failures.get((operation, kind))
        if error is not None:
            raise error

    def _stamp(self, obj: dict[str, Any]) -> dict[str, Any]:
        self._version += 1
        stored = copy.deepcopy(obj)
        metadata = stored.setdefault("metadata", {})
        metadata["resourceVersion"] = str(self._version)
        metadata.setdefault("uid", f"uid-{self._version}")
        return stored

    def add(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Seed an object without recording a call."""
        stored = self._stamp(obj)
        self.objects[self._obj_key(stored)] = stored
        return copy.deepcopy(stored)

    def find(self, api_version: str, kind: str, name: str, namespace: str | None = None) -> dict[str, Any] | None:
        return self.objects.get(self._key(api_version, kind, name, namespace))

    def fail(self, operation: str, kind: str, error: Exception) -> None:
        """Make every call of operation on kind raise error."""
        self.failures[(operation, kind)] = error

    def count(self, operation: str, kind: str | None = None) -> int:
        return sum(1 for call in self.calls if call[0] == operation and (kind is None or call[1] == kind))

    def writes(self) -> list[tuple[str, str, str | None, str | None]]:
        return [call for call in self.calls if call[0] in ("create", "update", "delete")]

    # ObjectStore protocol

    def get(self, kind: ResourceKind, name: str, namespace: str | None = None) -> dict[str, Any]:
        self._record("get", kind.kind, name, namespace)
        obj = self.objects.get(self._key(kind.api_version, kind.kind, name, namespace))
        if obj is None:
            raise ApiException(status=404, reason="Not Found")
        return copy.deepcopy(obj)

    def list(self, kind: ResourceKind, label_selector: str | None = None) -> list[dict[str, Any]]:
        self._record("list", kind.kind, None, None)
        wanted = dict(term.split("=", 1) for term in label_selector.split(",")) if label_selector else {}
        items = []
        for (api_version, kind_name, _, _), obj in self.objects.items():
            if (api_version, kind_name) != (kind.api_version, kind.kind):
                continue
            labels = obj["metadata"].get("labels") or {}
            if all(labels.get(key) == value for key, value in wanted.items()):
                items.append(copy.deepcopy(obj))
        return items

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        key = self._obj_key(obj)
        self._record("create", obj["kind"], key[2], key[3])
        if key in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        stored = self._stamp(obj)
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        key = self._obj_key(obj)
        self._record("update", obj["kind"], key[2], key[3])
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        stored = self._stamp(obj)
        self.objects[key] = stored
        return copy.deepcopy(stored)

    def delete(self, kind: ResourceKind, name: str, namespace: str | None = None) -> None:
        self._record("delete", kind.kind, name, namespace)
        key = self._key(kind.api_version, kind.kind, name, namespace)
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        del self.objects[key]


def manila_driver_body(name: str = MANILA_DRIVER_CR_NAME, **metadata: Any) -> dict[str, Any]:
    """Build a ManilaDriver body."""
    return {
        "apiVersion": API_GROUP_VERSION,
        "kind": KIND_MANILA_DRIVER,
        "metadata": {"name": name, "generation": 1, **metadata},
        "spec": {},
    }


def installer_secret_body(document: str = CLOUDS_YAML) -> dict[str, Any]:
    """Build the installer credentials secret holding a clouds document."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": INSTALLER_SECRET_NAME, "namespace": DRIVER_NAMESPACE},
        "data": {CLOUDS_SECRET_KEY: base64.b64encode(document.encode("utf-8")).decode("utf-8")},
    }


def manila_client_factory(share_types: list[ShareType] | None = None, error: Exception | None = None) -> MagicMock:
    """Build a factory returning a mocked Manila client context manager."""
    client = MagicMock()
    client.__enter__.return_value = client
    if error is not None:
        client.list_share_types.side_effect = error
    else:
        client.list_share_types.return_value = list(share_types or [])
    return MagicMock(return_value=client)


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture(autouse=True)
def kopf_events():
    """Capture Kubernetes events instead of posting them."""
    with patch("manila_csi_operator.utils.events.kopf.event") as mock_event:
        yield mock_event
