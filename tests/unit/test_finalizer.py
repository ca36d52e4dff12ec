"""Tests for the ordered teardown of managed objects."""

from __future__ import annotations

import pytest
from conftest import manila_driver_body
from kubernetes.client.exceptions import ApiException

from manila_csi_operator.builders.storage import STORAGE_CLASS_LABEL_SELECTOR
from manila_csi_operator.constants import DRIVER_NAMESPACE
from manila_csi_operator.controller import default_resource_handlers
from manila_csi_operator.handlers.finalizer import DeleteTarget, FinalizationOrchestrator, deletion_targets
from manila_csi_operator.kinds import ManagedKind


def storage_class(name: str, app: str = "openstack-manila-csi") -> dict:
    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "StorageClass",
        "metadata": {"name": name, "labels": {"app": app}},
    }


class TestDeletionTargets:
    """Test cases for the derived teardown order."""

    def test_namespace_is_last(self):
        """Test that the namespace is deleted after everything else."""
        targets = deletion_targets(default_resource_handlers())
        assert targets[-1] == DeleteTarget(ManagedKind.NAMESPACE, DRIVER_NAMESPACE)
        assert sum(1 for target in targets if target.kind is ManagedKind.NAMESPACE) == 1

    def test_namespaced_objects_are_left_to_the_namespace(self):
        """Test that objects in the driver namespace are not deleted one by one."""
        targets = deletion_targets(default_resource_handlers())
        assert all(target.namespace != DRIVER_NAMESPACE for target in targets)

    def test_reverse_creation_order(self):
        """Test that later created objects are deleted first."""
        kinds = [target.kind for target in deletion_targets(default_resource_handlers())]
        assert kinds.index(ManagedKind.CSI_DRIVER) < kinds.index(ManagedKind.SECURITY_CONTEXT_CONSTRAINTS)
        assert kinds.index(ManagedKind.SECURITY_CONTEXT_CONSTRAINTS) < kinds.index(ManagedKind.STORAGE_CLASS)
        assert kinds.index(ManagedKind.STORAGE_CLASS) < kinds.index(ManagedKind.CREDENTIALS_REQUEST)
        assert kinds.count(ManagedKind.CLUSTER_ROLE) == 3
        assert kinds.count(ManagedKind.CLUSTER_ROLE_BINDING) == 3

    def test_storage_classes_selected_by_label(self):
        """Test that storage classes are removed through their label."""
        targets = deletion_targets(default_resource_handlers())
        selected = [target for target in targets if target.kind is ManagedKind.STORAGE_CLASS]
        assert selected == [DeleteTarget(ManagedKind.STORAGE_CLASS, label_selector=STORAGE_CLASS_LABEL_SELECTOR)]


class TestFinalizationOrchestrator:
    """Test cases for FinalizationOrchestrator.finalize()."""

    def test_finalize_twice_succeeds(self, store):
        """Test that a second run over an already clean cluster succeeds."""
        orchestrator = FinalizationOrchestrator(deletion_targets(default_resource_handlers()))
        store.add(storage_class("csi-manila-default"))
        instance = manila_driver_body(uid="u")

        orchestrator.finalize(store, instance)
        orchestrator.finalize(store, instance)

        assert store.find("storage.k8s.io/v1", "StorageClass", "csi-manila-default") is None

    def test_only_labelled_storage_classes_are_deleted(self, store):
        """Test that storage classes of other provisioners survive."""
        store.add(storage_class("csi-manila-default"))
        store.add(storage_class("standard", app="other"))
        orchestrator = FinalizationOrchestrator(
            [DeleteTarget(ManagedKind.STORAGE_CLASS, label_selector=STORAGE_CLASS_LABEL_SELECTOR)]
        )

        orchestrator.finalize(store, manila_driver_body(uid="u"))

        assert store.find("storage.k8s.io/v1", "StorageClass", "csi-manila-default") is None
        assert store.find("storage.k8s.io/v1", "StorageClass", "standard") is not None

    def test_emits_event_per_deleted_object(self, store, kopf_events):
        """Test that only actual deletions are reported."""
        store.add(storage_class("csi-manila-default"))
        orchestrator = FinalizationOrchestrator(deletion_targets(default_resource_handlers()))

        orchestrator.finalize(store, manila_driver_body(uid="u"))

        messages = [call.kwargs["message"] for call in kopf_events.call_args_list]
        assert messages == ["StorageClass csi-manila-default deleted"]

    def test_stops_at_first_error(self, store):
        """Test that a delete failure other than not-found stops the teardown."""
        store.fail("delete", "SecurityContextConstraints", ApiException(status=403, reason="Forbidden"))
        orchestrator = FinalizationOrchestrator(deletion_targets(default_resource_handlers()))

        with pytest.raises(ApiException):
            orchestrator.finalize(store, manila_driver_body(uid="u"))

        assert store.count("delete", "Namespace") == 0

    def test_unserved_kind_is_tolerated(self, store):
        """Test that a label listing of an unserved kind counts as nothing to delete."""
        store.fail("list", "StorageClass", ApiException(status=404, reason="Not Found"))
        orchestrator = FinalizationOrchestrator(
            [DeleteTarget(ManagedKind.STORAGE_CLASS, label_selector=STORAGE_CLASS_LABEL_SELECTOR)]
        )

        orchestrator.finalize(store, manila_driver_body(uid="u"))

        assert store.count("delete") == 0
