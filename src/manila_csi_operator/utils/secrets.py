"""Utilities for reading and building Kubernetes secrets."""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any

from ..kinds import ManagedKind

if TYPE_CHECKING:
    from ..services.store.base import ObjectStore


def decode_secret_data(data: dict[str, Any] | None) -> dict[str, str]:
    """Decode the base64 encoded data of a Kubernetes secret.

    Args:
        data: The ``data`` field of a secret

    Returns:
        Dictionary of decoded values
    """
    result = {}
    for key, value in (data or {}).items():
        if isinstance(value, str):
            try:
                result[key] = base64.b64decode(value, validate=True).decode("utf-8")
            except (ValueError, UnicodeDecodeError):
                # Value was already decoded
                result[key] = value
        else:
            result[key] = value.decode("utf-8")
    return result


def encode_secret_data(data: dict[str, str]) -> dict[str, str]:
    """Base64 encode values for the ``data`` field of a secret."""
    return {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()}


def read_secret_data(
    store: ObjectStore,
    namespace: str,
    secret_name: str,
) -> dict[str, str]:
    """Read all data from a Kubernetes secret.

    Args:
        store: Object store used to read the secret
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        Dictionary of secret data (decoded)

    Raises:
        kubernetes.client.exceptions.ApiException: If the secret cannot be read,
            including status 404 when it does not exist
    """
    secret = store.get(ManagedKind.SECRET.value, secret_name, namespace)
    return decode_secret_data(secret.get("data"))


def get_secret_value(
    store: ObjectStore,
    namespace: str,
    secret_name: str,
    key: str,
) -> str:
    """Get a single value from a Kubernetes secret.

    Raises:
        KeyError: If the key is not present in the secret
    """
    data = read_secret_data(store, namespace, secret_name)
    if key not in data:
        raise KeyError(f"Key '{key}' not found in secret '{secret_name}'")
    return data[key]
