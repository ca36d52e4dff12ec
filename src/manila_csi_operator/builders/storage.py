"""Builder for the storage classes derived from Manila share types."""

from __future__ import annotations

import hashlib
import re
from typing import Any

from ..constants import (
    APP_MANILA_CSI,
    DRIVER_NAMESPACE,
    DRIVER_SECRET_NAME,
    LABEL_APP,
    MANILA_CSI_DRIVER_NAME,
    STORAGE_CLASS_PREFIX,
)
from ..services.openstack.models import ShareType
from .common import object_meta

STORAGE_CLASS_LABEL_SELECTOR = f"{LABEL_APP}={APP_MANILA_CSI}"

# Lower-case alphanumerics and dashes, alphanumeric at both ends
_VALID_NAME = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?")
_MAX_NAME_LENGTH = 253


def storage_class_name(share_type_name: str) -> str:
    """Derive the storage class name for a share type.

    A share type name that is already a valid object name is used as is.
    Any other name is lower-cased, stripped of disallowed characters and
    suffixed with a digest of the original name, so distinct share types
    never share a storage class.
    """
    if _VALID_NAME.fullmatch(share_type_name) and len(STORAGE_CLASS_PREFIX + share_type_name) <= _MAX_NAME_LENGTH:
        return f"{STORAGE_CLASS_PREFIX}{share_type_name}"

    digest = hashlib.sha256(share_type_name.encode("utf-8")).hexdigest()[:8]
    limit = _MAX_NAME_LENGTH - len(STORAGE_CLASS_PREFIX) - len(digest) - 1
    sanitized = re.sub(r"[^a-z0-9]+", "-", share_type_name.lower())[:limit].strip("-")
    if not sanitized:
        return f"{STORAGE_CLASS_PREFIX}{digest}"
    return f"{STORAGE_CLASS_PREFIX}{sanitized}-{digest}"


def build_storage_class(share_type: ShareType) -> dict[str, Any]:
    """Build the storage class provisioning shares of the given share type."""
    return {
        "apiVersion": "storage.k8s.io/v1",
        "kind": "StorageClass",
        "metadata": object_meta(storage_class_name(share_type.name), labels={LABEL_APP: APP_MANILA_CSI}),
        "provisioner": MANILA_CSI_DRIVER_NAME,
        "reclaimPolicy": "Delete",
        "volumeBindingMode": "Immediate",
        "parameters": {
            "type": share_type.name,
            "csi.storage.k8s.io/provisioner-secret-name": DRIVER_SECRET_NAME,
            "csi.storage.k8s.io/provisioner-secret-namespace": DRIVER_NAMESPACE,
            "csi.storage.k8s.io/node-stage-secret-name": DRIVER_SECRET_NAME,
            "csi.storage.k8s.io/node-stage-secret-namespace": DRIVER_NAMESPACE,
            "csi.storage.k8s.io/node-publish-secret-name": DRIVER_SECRET_NAME,
            "csi.storage.k8s.io/node-publish-secret-namespace": DRIVER_NAMESPACE,
        },
    }
