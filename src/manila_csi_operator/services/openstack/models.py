"""Models for OpenStack operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

from ...utils.errors import CloudConfigError


@dataclass
class Cloud:
    """A single cloud entry of a clouds.yaml document."""

    auth: dict[str, Any]
    auth_type: str = "password"
    region_name: str | None = None
    interface: str = "public"
    identity_api_version: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Cloud:
        """Build a cloud from its clouds.yaml mapping."""
        auth = data.get("auth")
        if not isinstance(auth, dict) or not auth.get("auth_url"):
            raise CloudConfigError("cloud entry does not define auth.auth_url")
        return cls(
            auth=dict(auth),
            auth_type=data.get("auth_type") or "password",
            region_name=data.get("region_name"),
            interface=data.get("interface") or "public",
            identity_api_version=str(data["identity_api_version"]) if data.get("identity_api_version") else None,
        )

    @classmethod
    def from_clouds_yaml(cls, document: str, cloud_name: str) -> Cloud:
        """Select a cloud from a clouds.yaml document.

        Args:
            document: YAML (or JSON) clouds document
            cloud_name: Name of the entry under ``clouds``

        Raises:
            CloudConfigError: If the document cannot be parsed or lacks the cloud
        """
        try:
            content = yaml.safe_load(document)
        except yaml.YAMLError as e:
            raise CloudConfigError(f"failed to parse clouds document: {e}") from e

        clouds = content.get("clouds") if isinstance(content, dict) else None
        if not isinstance(clouds, dict) or cloud_name not in clouds:
            raise CloudConfigError(f"cloud '{cloud_name}' not found in clouds document")
        return cls.from_dict(clouds[cloud_name] or {})


@dataclass
class ShareType:
    """A Manila share type."""

    name: str
    id: str | None = None
    extra_specs: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> ShareType:
        """Build a share type from a Manila API representation."""
        return cls(
            name=data["name"],
            id=data.get("id"),
            extra_specs=dict(data.get("extra_specs") or {}),
        )
