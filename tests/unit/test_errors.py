"""Tests for error types and sanitization utilities."""

from __future__ import annotations

from kubernetes.client.exceptions import ApiException

from manila_csi_operator.utils.errors import (
    InvalidDeclaration,
    InvalidDeclarationName,
    SingletonViolation,
    is_not_found,
    sanitize_dict,
    sanitize_error_message,
    sanitize_exception,
)


class TestIsNotFound:
    """Test cases for is_not_found."""

    def test_404(self):
        assert is_not_found(ApiException(status=404, reason="Not Found"))

    def test_other_status(self):
        assert not is_not_found(ApiException(status=500, reason="Internal Server Error"))

    def test_other_exception(self):
        assert not is_not_found(KeyError("404"))


class TestExceptionHierarchy:
    """Test cases for the declaration errors."""

    def test_declaration_errors_share_base(self):
        assert issubclass(SingletonViolation, InvalidDeclaration)
        assert issubclass(InvalidDeclarationName, InvalidDeclaration)


class TestSanitizeErrorMessage:
    """Test cases for sanitize_error_message."""

    def test_password_redacted(self):
        """Test that passwords are removed."""
        result = sanitize_error_message("login failed with password=hunter2 for user manila")
        assert "hunter2" not in result
        assert "[REDACTED]" in result
        assert "user manila" in result

    def test_token_redacted(self):
        """Test that Keystone tokens are removed."""
        result = sanitize_error_message("request rejected, X-Auth-Token: gAAAAABk-abc_123")
        assert "gAAAAABk-abc_123" not in result

    def test_auth_url_redacted(self):
        """Test that the identity endpoint is removed."""
        result = sanitize_error_message("auth_url: https://keystone.internal:5000/v3 unreachable")
        assert "keystone.internal" not in result
        assert "unreachable" in result

    def test_application_credential_secret_redacted(self):
        """Test that application credential secrets are removed."""
        result = sanitize_error_message("application_credential_secret=abcdef")
        assert "abcdef" not in result

    def test_plain_message_unchanged(self):
        """Test that harmless messages pass through."""
        assert sanitize_error_message("connection refused") == "connection refused"


class TestSanitizeException:
    """Test cases for sanitize_exception."""

    def test_uses_message(self):
        assert "hunter2" not in sanitize_exception(RuntimeError("password: hunter2"))


class TestSanitizeDict:
    """Test cases for sanitize_dict."""

    def test_nested_fields_redacted(self):
        """Test that sensitive keys are redacted at any depth."""
        data = {"auth": {"username": "manila", "password": "hunter2"}, "region_name": "RegionOne"}

        result = sanitize_dict(data)

        assert result["auth"]["password"] == "[REDACTED]"
        assert result["auth"]["username"] == "manila"
        assert result["region_name"] == "RegionOne"

    def test_additional_keys(self):
        """Test that callers can redact extra keys."""
        assert sanitize_dict({"os-userName": "manila"}, {"username"})["os-userName"] == "[REDACTED]"
