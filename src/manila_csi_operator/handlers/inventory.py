"""Cloud credentials, CA certificate and Manila share type inventory."""

from __future__ import annotations

import os
from typing import Any, Callable

from .. import metrics
from ..builders.cluster import build_ca_cert_config_map
from ..constants import (
    CA_CERT_CONFIG_MAP_NAME,
    CA_CERT_KEY,
    CLOUD_PROVIDER_CA_KEY,
    CLOUD_PROVIDER_CONFIG_NAME,
    CLOUDS_SECRET_KEY,
    DRIVER_NAMESPACE,
    INSTALLER_SECRET_NAME,
    KIND_MANILA_DRIVER,
    OPENSHIFT_CONFIG_NAMESPACE,
)
from ..kinds import ManagedKind
from ..services.openstack.client import ManilaClient
from ..services.openstack.models import Cloud, ShareType
from ..services.store.base import ObjectStore
from ..utils.errors import CredentialsNotAvailable, is_not_found
from ..utils.secrets import get_secret_value
from .base import BaseHandler, PassContext
from .resources import ManagedObject, ResourceHandler

OPENSTACK_CLOUD_NAME = os.getenv("OPENSTACK_CLOUD_NAME", "openstack")


def _read_config_map_value(store: ObjectStore, namespace: str, name: str, key: str) -> str | None:
    """Return one value of a ConfigMap, or None if the map or the key is missing."""
    try:
        config_map = store.get(ManagedKind.CONFIG_MAP.value, name, namespace)
    except Exception as e:
        if not is_not_found(e):
            raise
        return None
    value = (config_map.get("data") or {}).get(key)
    return value or None


class CACertHandler(ResourceHandler):
    """Projects the user supplied cloud CA bundle into the driver namespace.

    Nothing is converged when the cluster has no custom CA bundle.
    """

    def __init__(self) -> None:
        super().__init__(
            "ca-cert",
            (
                ManagedObject(
                    ManagedKind.CONFIG_MAP,
                    CA_CERT_CONFIG_MAP_NAME,
                    DRIVER_NAMESPACE,
                    lambda ctx: build_ca_cert_config_map(ctx.ca_cert or ""),
                ),
            ),
        )

    def desired_objects(self, ctx: PassContext) -> list[dict[str, Any]]:
        ca_cert = _read_config_map_value(
            ctx.store, OPENSHIFT_CONFIG_NAMESPACE, CLOUD_PROVIDER_CONFIG_NAME, CLOUD_PROVIDER_CA_KEY
        )
        if ca_cert is None:
            self.log_info(ctx.instance.get("metadata", {}), "No custom CA bundle configured", event="skip", reason="NoCABundle")
            return []
        ctx.ca_cert = ca_cert
        return super().desired_objects(ctx)


class InventoryGate(BaseHandler):
    """Resolves the cloud credentials and lists the Manila share types.

    The gate is read-only towards the cluster. Its two steps bracket the
    driver credentials secret: credentials are loaded first, share types are
    listed once the secret derived from them is in place.
    """

    def __init__(
        self,
        client_factory: Callable[..., ManilaClient] = ManilaClient,
        cloud_name: str | None = None,
    ):
        """Initialize the inventory gate.

        Args:
            client_factory: Builds the Manila client from a cloud and an optional CA certificate
            cloud_name: Entry of the clouds document to use (default: OPENSTACK_CLOUD_NAME)
        """
        super().__init__(KIND_MANILA_DRIVER)
        self.client_factory = client_factory
        self.cloud_name = cloud_name or OPENSTACK_CLOUD_NAME

    def load_credentials(self, ctx: PassContext) -> Cloud:
        """Read the installer credentials and the projected CA certificate.

        Raises:
            CredentialsNotAvailable: If the credentials secret does not exist yet
            CloudConfigError: If the clouds document lacks the configured cloud
        """
        try:
            document = get_secret_value(ctx.store, DRIVER_NAMESPACE, INSTALLER_SECRET_NAME, CLOUDS_SECRET_KEY)
        except Exception as e:
            if not is_not_found(e):
                raise
            raise CredentialsNotAvailable(
                f"secret {DRIVER_NAMESPACE}/{INSTALLER_SECRET_NAME} does not exist yet"
            ) from e

        ctx.cloud = Cloud.from_clouds_yaml(document, self.cloud_name)
        ctx.ca_cert = _read_config_map_value(ctx.store, DRIVER_NAMESPACE, CA_CERT_CONFIG_MAP_NAME, CA_CERT_KEY)
        return ctx.cloud

    def list_share_types(self, ctx: PassContext) -> list[ShareType]:
        """Authenticate against the cloud and list its share types.

        Raises:
            CredentialsNotAvailable: If the credentials secret does not exist yet
            ManilaUnavailable: If the cloud does not offer the Manila service
        """
        cloud = ctx.cloud if ctx.cloud is not None else self.load_credentials(ctx)
        with self.client_factory(cloud, ca_cert=ctx.ca_cert) as client:
            share_types = client.list_share_types()

        metrics.share_types_discovered.set(len(share_types))
        self.log_info(
            ctx.instance.get("metadata", {}),
            f"Found {len(share_types)} Manila share types",
            event="inventory",
            reason="ShareTypesListed",
            share_types=[share_type.name for share_type in share_types],
        )
        ctx.share_types = share_types
        return share_types
