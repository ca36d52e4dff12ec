"""Tests for the OpenStack models and the Manila client."""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import pytest
from keystoneauth1 import exceptions as ks_exceptions

from manila_csi_operator.services.openstack.client import ManilaClient
from manila_csi_operator.services.openstack.models import Cloud, ShareType
from manila_csi_operator.utils.errors import CloudConfigError, ManilaUnavailable

CLOUD = Cloud(
    auth={"auth_url": "https://keystone:5000/v3", "username": "manila", "password": "s3cr3t", "project_name": "p"},
    region_name="RegionOne",
)


class TestCloud:
    """Test cases for Cloud parsing."""

    def test_from_clouds_yaml(self):
        document = "clouds:\n  openstack:\n    auth:\n      auth_url: https://k/v3\n    region_name: R1\n"

        cloud = Cloud.from_clouds_yaml(document, "openstack")

        assert cloud.auth == {"auth_url": "https://k/v3"}
        assert cloud.region_name == "R1"
        assert cloud.auth_type == "password"
        assert cloud.interface == "public"

    def test_from_json_document(self):
        cloud = Cloud.from_clouds_yaml('{"clouds": {"openstack": {"auth": {"auth_url": "https://k/v3"}}}}', "openstack")
        assert cloud.auth["auth_url"] == "https://k/v3"

    @pytest.mark.parametrize(
        "document",
        [
            "clouds: [unterminated",
            "something: else",
            "clouds:\n  other:\n    auth:\n      auth_url: https://k/v3\n",
            "clouds:\n  openstack:\n    region_name: R1\n",
        ],
    )
    def test_invalid_documents(self, document):
        with pytest.raises(CloudConfigError):
            Cloud.from_clouds_yaml(document, "openstack")


class TestShareType:
    """Test cases for ShareType."""

    def test_from_api(self):
        share_type = ShareType.from_api({"id": "1", "name": "default", "extra_specs": {"driver_handles_share_servers": "False"}})
        assert share_type == ShareType("default", "1", {"driver_handles_share_servers": "False"})


def response(body):
    mock = MagicMock()
    mock.json.return_value = body
    return mock


@pytest.fixture
def keystone():
    """Mock the keystoneauth plugin loading and session."""
    options = []
    for dest in ("auth_url", "username", "password", "project_name", "user_domain_name"):
        option = MagicMock()
        option.dest = dest
        options.append(option)
    loader = MagicMock()
    loader.get_options.return_value = options
    with patch("manila_csi_operator.services.openstack.client.loading.get_plugin_loader", return_value=loader), patch(
        "manila_csi_operator.services.openstack.client.ks_session.Session"
    ) as session_cls, patch("manila_csi_operator.services.openstack.client.rate_limit_openstack", lambda func: func):
        yield loader, session_cls


class TestManilaClient:
    """Test cases for ManilaClient."""

    def test_authenticate_passes_known_options(self, keystone):
        """Test that only options the auth plugin understands are passed."""
        loader, session_cls = keystone
        cloud = Cloud(auth={**CLOUD.auth, "unknown_option": "x"})

        ManilaClient(cloud).authenticate()

        loader.load_from_options.assert_called_once_with(
            auth_url="https://keystone:5000/v3", username="manila", password="s3cr3t", project_name="p"
        )
        session_cls.return_value.get_token.assert_called_once()
        assert session_cls.call_args.kwargs["verify"] is True

    def test_list_share_types_follows_pages(self, keystone):
        """Test that paginated listings are followed."""
        _, session_cls = keystone
        session = session_cls.return_value
        session.get.side_effect = [
            response(
                {
                    "share_types": [{"id": "1", "name": "default"}],
                    "share_types_links": [{"rel": "next", "href": "https://manila/v2/types?marker=1"}],
                }
            ),
            response({"share_types": [{"id": "2", "name": "fast"}]}),
        ]

        with ManilaClient(CLOUD) as client:
            share_types = client.list_share_types()

        assert [share_type.name for share_type in share_types] == ["default", "fast"]
        first_call = session.get.call_args_list[0]
        assert first_call.args == ("/types",)
        assert first_call.kwargs["endpoint_filter"] == {
            "service_type": "sharev2",
            "interface": "public",
            "region_name": "RegionOne",
        }
        assert session.get.call_args_list[1].args == ("https://manila/v2/types?marker=1",)

    @pytest.mark.parametrize("error", [ks_exceptions.EndpointNotFound(), ks_exceptions.NotFound()])
    def test_missing_service(self, keystone, error):
        """Test that a cloud without Manila is reported as unavailable."""
        _, session_cls = keystone
        session_cls.return_value.get.side_effect = error

        with pytest.raises(ManilaUnavailable):
            ManilaClient(CLOUD).list_share_types()

    def test_missing_later_page_is_an_error(self, keystone):
        """Test that a 404 while following pagination is not taken for a missing service."""
        _, session_cls = keystone
        session_cls.return_value.get.side_effect = [
            response(
                {
                    "share_types": [{"id": "1", "name": "default"}],
                    "share_types_links": [{"rel": "next", "href": "https://manila/v2/types?marker=1"}],
                }
            ),
            ks_exceptions.NotFound(),
        ]

        with pytest.raises(ks_exceptions.NotFound):
            ManilaClient(CLOUD).list_share_types()

    def test_other_errors_propagate(self, keystone):
        """Test that authentication failures are not mistaken for absence."""
        _, session_cls = keystone
        session_cls.return_value.get_token.side_effect = ks_exceptions.Unauthorized()

        with pytest.raises(ks_exceptions.Unauthorized):
            ManilaClient(CLOUD).list_share_types()

    def test_custom_ca_bundle(self, keystone):
        """Test that a custom CA is layered onto the system bundle and cleaned up."""
        _, session_cls = keystone
        client = ManilaClient(CLOUD, ca_cert="-----BEGIN CERTIFICATE-----\nabc\n-----END CERTIFICATE-----")

        client.authenticate()
        bundle_path = session_cls.call_args.kwargs["verify"]
        with open(bundle_path, encoding="utf-8") as bundle:
            content = bundle.read()
        client.close()

        assert content.rstrip().endswith("-----END CERTIFICATE-----")
        assert "abc" in content
        assert not os.path.exists(bundle_path)
