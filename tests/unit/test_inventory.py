"""Tests for the inventory gate and the CA certificate projection."""

from __future__ import annotations

import pytest
from conftest import installer_secret_body, manila_client_factory, manila_driver_body
from kubernetes.client.exceptions import ApiException

from manila_csi_operator.constants import DRIVER_NAMESPACE
from manila_csi_operator.handlers.base import PassContext
from manila_csi_operator.handlers.inventory import CACertHandler, InventoryGate
from manila_csi_operator.services.openstack.models import ShareType
from manila_csi_operator.utils.errors import CloudConfigError, CredentialsNotAvailable, ManilaUnavailable


def context(store) -> PassContext:
    return PassContext(instance=manila_driver_body(uid="u"), store=store)


def ca_config_map(namespace: str, name: str, key: str, value: str) -> dict:
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": {key: value},
    }


class TestInventoryGate:
    """Test cases for InventoryGate."""

    def test_missing_secret_raises_credentials_not_available(self, store):
        """Test that an absent credentials secret is a distinguished condition."""
        gate = InventoryGate(client_factory=manila_client_factory())

        with pytest.raises(CredentialsNotAvailable):
            gate.load_credentials(context(store))

    def test_secret_read_error_propagates(self, store):
        """Test that other read errors are not mistaken for absence."""
        store.fail("get", "Secret", ApiException(status=500, reason="boom"))
        gate = InventoryGate(client_factory=manila_client_factory())

        with pytest.raises(ApiException):
            gate.load_credentials(context(store))

    def test_loads_configured_cloud(self, store):
        """Test that the configured cloud entry is selected."""
        store.add(installer_secret_body())
        gate = InventoryGate(client_factory=manila_client_factory(), cloud_name="openstack")
        ctx = context(store)

        cloud = gate.load_credentials(ctx)

        assert cloud.auth["username"] == "manila"
        assert cloud.region_name == "RegionOne"
        assert ctx.ca_cert is None

    def test_unknown_cloud_name(self, store):
        """Test that a missing cloud entry is a configuration error."""
        store.add(installer_secret_body())
        gate = InventoryGate(client_factory=manila_client_factory(), cloud_name="elsewhere")

        with pytest.raises(CloudConfigError):
            gate.load_credentials(context(store))

    def test_reads_projected_ca(self, store):
        """Test that the projected CA certificate is handed to the client."""
        store.add(installer_secret_body())
        store.add(ca_config_map(DRIVER_NAMESPACE, "manila-csi-ca-cert", "ca-cert.pem", "PEM"))
        factory = manila_client_factory([ShareType("default")])
        gate = InventoryGate(client_factory=factory)

        gate.list_share_types(context(store))

        assert factory.call_args.kwargs["ca_cert"] == "PEM"

    def test_list_share_types(self, store):
        """Test that share types are listed and kept on the pass context."""
        store.add(installer_secret_body())
        gate = InventoryGate(client_factory=manila_client_factory([ShareType("default"), ShareType("fast")]))
        ctx = context(store)

        share_types = gate.list_share_types(ctx)

        assert [share_type.name for share_type in share_types] == ["default", "fast"]
        assert ctx.share_types == share_types

    def test_closes_client(self, store):
        """Test that the client is used as a context manager."""
        store.add(installer_secret_body())
        factory = manila_client_factory([])
        gate = InventoryGate(client_factory=factory)

        gate.list_share_types(context(store))

        factory.return_value.__exit__.assert_called_once()

    def test_manila_unavailable_propagates(self, store):
        """Test that service absence reaches the controller unchanged."""
        store.add(installer_secret_body())
        gate = InventoryGate(client_factory=manila_client_factory(error=ManilaUnavailable("absent")))

        with pytest.raises(ManilaUnavailable):
            gate.list_share_types(context(store))


class TestCACertHandler:
    """Test cases for the CA certificate projection."""

    def test_skipped_without_source(self, store):
        """Test that nothing is converged without a custom CA bundle."""
        assert CACertHandler().apply(context(store)) == []
        assert store.writes() == []

    def test_projects_bundle(self, store):
        """Test that the bundle is copied into the driver namespace."""
        store.add(ca_config_map("openshift-config", "cloud-provider-config", "ca-bundle.pem", "PEM"))
        ctx = context(store)

        CACertHandler().apply(ctx)

        projected = store.find("v1", "ConfigMap", "manila-csi-ca-cert", DRIVER_NAMESPACE)
        assert projected["data"] == {"ca-cert.pem": "PEM"}
        assert ctx.ca_cert == "PEM"

    def test_empty_bundle_is_ignored(self, store):
        """Test that an empty CA key counts as no custom CA."""
        store.add(ca_config_map("openshift-config", "cloud-provider-config", "ca-bundle.pem", ""))

        assert CACertHandler().apply(context(store)) == []
