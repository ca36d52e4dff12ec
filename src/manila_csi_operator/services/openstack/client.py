"""OpenStack Manila client implementation."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from typing import Any, Callable

import certifi
from keystoneauth1 import exceptions as ks_exceptions
from keystoneauth1 import loading
from keystoneauth1 import session as ks_session

from ... import metrics
from ...tracing import trace_span
from ...utils.errors import ManilaUnavailable
from ...utils.rate_limit import rate_limit_openstack
from .models import Cloud, ShareType

logger = logging.getLogger(__name__)

MANILA_SERVICE_TYPE = "sharev2"
MANILA_API_VERSION = "2.0"


class ManilaClient:
    """Client listing Manila share types of an OpenStack cloud."""

    def __init__(
        self,
        cloud: Cloud,
        ca_cert: str | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the Manila client.

        Args:
            cloud: Cloud entry holding the Keystone credentials
            ca_cert: Optional PEM encoded CA certificate trusted in addition to the system bundle
            timeout: Request timeout in seconds
        """
        self.cloud = cloud
        self.ca_cert = ca_cert
        self.timeout = timeout
        self._session: ks_session.Session | None = None
        self._ca_file: str | None = None

    def __enter__(self) -> ManilaClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release the session and remove the temporary CA bundle."""
        self._session = None
        if self._ca_file is not None:
            try:
                os.unlink(self._ca_file)
            except FileNotFoundError:
                pass
            self._ca_file = None

    def _verify(self) -> str | bool:
        """Return the TLS verification setting for the session."""
        if not self.ca_cert:
            return True
        if self._ca_file is None:
            with open(certifi.where(), encoding="utf-8") as system_bundle:
                bundle = system_bundle.read()
            with tempfile.NamedTemporaryFile(
                "w", suffix=".pem", prefix="manila-ca-", delete=False, encoding="utf-8"
            ) as ca_file:
                ca_file.write(bundle.rstrip("\n") + "\n" + self.ca_cert.strip() + "\n")
                self._ca_file = ca_file.name
        return self._ca_file

    def _call(self, operation: str, func: Callable[[], Any]) -> Any:
        start_time = time.time()
        try:
            with trace_span(f"openstack.{operation}", attributes={"openstack.region": self.cloud.region_name or ""}):
                result = rate_limit_openstack(func)()
            metrics.api_call_total.labels(api_type="openstack", operation=operation, result="success").inc()
            return result
        except Exception:
            metrics.api_call_total.labels(api_type="openstack", operation=operation, result="error").inc()
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="openstack", operation=operation).observe(duration)

    def authenticate(self) -> ks_session.Session:
        """Authenticate against Keystone and keep the resulting session.

        Returns:
            Authenticated keystoneauth session

        Raises:
            keystoneauth1.exceptions.ClientException: If authentication fails
        """
        loader = loading.get_plugin_loader(self.cloud.auth_type)
        options = {
            opt.dest: self.cloud.auth[opt.dest]
            for opt in loader.get_options()
            if opt.dest in self.cloud.auth
        }
        plugin = loader.load_from_options(**options)
        session = ks_session.Session(auth=plugin, verify=self._verify(), timeout=self.timeout)
        self._call("authenticate", session.get_token)
        self._session = session
        return session

    def list_share_types(self) -> list[ShareType]:
        """List all share types, following pagination links.

        Returns:
            List of share types

        Raises:
            ManilaUnavailable: If the cloud has no Manila endpoint
            keystoneauth1.exceptions.ClientException: On any other API failure
        """
        session = self._session or self.authenticate()
        endpoint_filter = {
            "service_type": MANILA_SERVICE_TYPE,
            "interface": self.cloud.interface,
            "region_name": self.cloud.region_name,
        }
        headers = {"X-OpenStack-Manila-API-Version": MANILA_API_VERSION}

        share_types: list[ShareType] = []
        try:
            response = self._call(
                "list_share_types",
                lambda: session.get("/types", endpoint_filter=endpoint_filter, headers=headers),
            )
        except (ks_exceptions.EndpointNotFound, ks_exceptions.NotFound) as e:
            raise ManilaUnavailable(f"Manila service is not available: {e}") from e

        # Only the first request tells whether Manila is present
        while True:
            body = response.json()
            share_types.extend(ShareType.from_api(item) for item in body.get("share_types", []))
            next_url = _next_link(body)
            if next_url is None:
                break
            response = self._call("list_share_types", lambda: session.get(next_url, headers=headers))

        logger.debug(f"Found {len(share_types)} Manila share types")
        return share_types


def _next_link(body: dict[str, Any]) -> str | None:
    """Return the href of the next page, if the listing is paginated."""
    for key, links in body.items():
        if not key.endswith("_links") or not isinstance(links, list):
            continue
        for link in links:
            if link.get("rel") == "next" and link.get("href"):
                return link["href"]
    return None
