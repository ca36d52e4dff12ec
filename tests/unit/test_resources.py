"""Tests for the resource handlers."""

from __future__ import annotations

import pytest
from conftest import manila_driver_body
from kubernetes.client.exceptions import ApiException

from manila_csi_operator.builders.storage import STORAGE_CLASS_LABEL_SELECTOR, build_storage_class
from manila_csi_operator.convergence import ConvergeResult
from manila_csi_operator.handlers.base import PassContext
from manila_csi_operator.handlers.resources import ManagedObject, ResourceHandler, StorageClassHandler
from manila_csi_operator.kinds import ManagedKind
from manila_csi_operator.services.openstack.models import ShareType


def service_account(name: str, namespace: str = "openshift-manila-csi-driver") -> dict:
    return {"apiVersion": "v1", "kind": "ServiceAccount", "metadata": {"name": name, "namespace": namespace}}


def managed(name: str, namespace: str = "openshift-manila-csi-driver", build=None) -> ManagedObject:
    return ManagedObject(
        ManagedKind.SERVICE_ACCOUNT,
        name,
        namespace,
        build or (lambda ctx: service_account(name, namespace)),
    )


class TestManagedObject:
    """Test cases for ManagedObject."""

    def test_identity_mismatch_rejected(self, store):
        """Test that a template must build the declared identity."""
        obj = managed("a", build=lambda ctx: service_account("b"))

        with pytest.raises(ValueError):
            obj.desired(PassContext(instance=manila_driver_body(), store=store))

    def test_cascaded(self):
        """Test which objects disappear with the driver namespace."""
        assert managed("a").cascaded
        assert not managed("a", namespace="elsewhere").cascaded


class TestResourceHandler:
    """Test cases for ResourceHandler.apply()."""

    def test_apply_converges_in_order(self, store, kopf_events):
        """Test that objects are converged in order and reported."""
        handler = ResourceHandler("accounts", [managed("a"), managed("b")])
        ctx = PassContext(instance=manila_driver_body(uid="u"), store=store)

        assert handler.apply(ctx) == [ConvergeResult.CREATED, ConvergeResult.CREATED]
        assert [call[2] for call in store.calls if call[0] == "create"] == ["a", "b"]
        assert [call.kwargs["reason"] for call in kopf_events.call_args_list] == ["ObjectCreated", "ObjectCreated"]

    def test_unchanged_objects_are_silent(self, store, kopf_events):
        """Test that converged objects produce no events."""
        handler = ResourceHandler("accounts", [managed("a")])
        ctx = PassContext(instance=manila_driver_body(uid="u"), store=store)
        handler.apply(ctx)
        kopf_events.reset_mock()

        assert handler.apply(ctx) == [ConvergeResult.UNCHANGED]
        kopf_events.assert_not_called()

    def test_fail_fast(self, store):
        """Test that the first error stops the remaining objects."""
        store.fail("create", "ServiceAccount", ApiException(status=500, reason="boom"))
        handler = ResourceHandler("accounts", [managed("a"), managed("b")])

        with pytest.raises(ApiException):
            handler.apply(PassContext(instance=manila_driver_body(uid="u"), store=store))

        assert store.count("create") == 1

    def test_owner_reference_requires_uid(self, store):
        """Test that objects are only owned by a persisted declaration."""
        handler = ResourceHandler("accounts", [managed("a")])

        handler.apply(PassContext(instance=manila_driver_body(), store=store))

        stored = store.find("v1", "ServiceAccount", "a", "openshift-manila-csi-driver")
        assert "ownerReferences" not in stored["metadata"]


class TestStorageClassHandler:
    """Test cases for StorageClassHandler."""

    def test_one_storage_class_per_share_type(self, store):
        handler = StorageClassHandler(build_storage_class, STORAGE_CLASS_LABEL_SELECTOR)
        ctx = PassContext(instance=manila_driver_body(uid="u"), store=store)
        ctx.share_types = [ShareType("default"), ShareType("fast")]

        handler.apply(ctx)

        assert store.count("create", "StorageClass") == 2

    def test_no_share_types(self, store):
        handler = StorageClassHandler(build_storage_class, STORAGE_CLASS_LABEL_SELECTOR)

        assert handler.apply(PassContext(instance=manila_driver_body(uid="u"), store=store)) == []
