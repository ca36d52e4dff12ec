"""Builders for the driver namespace, CA certificate and credentials objects."""

from __future__ import annotations

from typing import Any

from ..constants import (
    APP_MANILA_CSI,
    CA_CERT_CONFIG_MAP_NAME,
    CA_CERT_KEY,
    CA_CERT_MOUNT_PATH,
    CLOUD_CREDENTIAL_OPERATOR_NAMESPACE,
    CREDENTIALS_REQUEST_NAME,
    DRIVER_NAMESPACE,
    DRIVER_SECRET_NAME,
    INSTALLER_SECRET_NAME,
    LABEL_APP,
)
from ..services.openstack.models import Cloud
from ..utils.secrets import encode_secret_data
from .common import object_meta

# clouds.yaml auth keys mapped to the keys read by the Manila CSI plugin
_DRIVER_SECRET_AUTH_KEYS = {
    "auth_url": "os-authURL",
    "username": "os-userName",
    "user_id": "os-userID",
    "password": "os-password",
    "project_name": "os-projectName",
    "project_id": "os-projectID",
    "domain_name": "os-domainName",
    "domain_id": "os-domainID",
    "user_domain_name": "os-userDomainName",
    "user_domain_id": "os-userDomainID",
    "project_domain_name": "os-projectDomainName",
    "project_domain_id": "os-projectDomainID",
    "application_credential_id": "os-applicationCredentialID",
    "application_credential_name": "os-applicationCredentialName",
    "application_credential_secret": "os-applicationCredentialSecret",
}


def build_namespace() -> dict[str, Any]:
    """Build the driver namespace."""
    return {
        "apiVersion": "v1",
        "kind": "Namespace",
        "metadata": {
            "name": DRIVER_NAMESPACE,
            "labels": {
                LABEL_APP: APP_MANILA_CSI,
                "openshift.io/cluster-monitoring": "true",
            },
            "annotations": {"openshift.io/node-selector": ""},
        },
    }


def build_ca_cert_config_map(ca_cert: str) -> dict[str, Any]:
    """Build the ConfigMap projecting the cloud CA certificate into the driver namespace."""
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": object_meta(CA_CERT_CONFIG_MAP_NAME, DRIVER_NAMESPACE, {LABEL_APP: APP_MANILA_CSI}),
        "data": {CA_CERT_KEY: ca_cert},
    }


def build_credentials_request() -> dict[str, Any]:
    """Build the CredentialsRequest asking for OpenStack credentials in the driver namespace."""
    return {
        "apiVersion": "cloudcredential.openshift.io/v1",
        "kind": "CredentialsRequest",
        "metadata": object_meta(
            CREDENTIALS_REQUEST_NAME,
            CLOUD_CREDENTIAL_OPERATOR_NAMESPACE,
            {LABEL_APP: APP_MANILA_CSI},
        ),
        "spec": {
            "secretRef": {"name": INSTALLER_SECRET_NAME, "namespace": DRIVER_NAMESPACE},
            "providerSpec": {
                "apiVersion": "cloudcredential.openshift.io/v1",
                "kind": "OpenStackProviderSpec",
            },
        },
    }


def build_driver_credentials_secret(cloud: Cloud, has_ca_cert: bool = False) -> dict[str, Any]:
    """Build the secret holding the credentials the Manila CSI plugin authenticates with."""
    values = {
        secret_key: str(cloud.auth[auth_key])
        for auth_key, secret_key in _DRIVER_SECRET_AUTH_KEYS.items()
        if cloud.auth.get(auth_key)
    }
    if cloud.region_name:
        values["os-region"] = cloud.region_name
    if has_ca_cert:
        values["os-certAuthorityPath"] = f"{CA_CERT_MOUNT_PATH}/{CA_CERT_KEY}"

    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": object_meta(DRIVER_SECRET_NAME, DRIVER_NAMESPACE, {LABEL_APP: APP_MANILA_CSI}),
        "type": "Opaque",
        "data": encode_secret_data(values),
    }
