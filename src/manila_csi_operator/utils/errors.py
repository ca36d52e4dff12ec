"""Error types and sanitization utilities."""

import re
from typing import Any

from kubernetes.client.exceptions import ApiException


class CredentialsNotAvailable(Exception):
    """The OpenStack credentials secret has not been created yet."""


class ManilaUnavailable(Exception):
    """The Manila service is not present in the OpenStack cloud."""


class CloudConfigError(Exception):
    """The clouds.yaml document could not be used to reach OpenStack."""


class InvalidDeclaration(Exception):
    """The ManilaDriver declaration cannot be reconciled and must be fixed by a user."""


class SingletonViolation(InvalidDeclaration):
    """More than one ManilaDriver exists in the cluster."""


class InvalidDeclarationName(InvalidDeclaration):
    """The ManilaDriver does not carry the required name."""


def is_not_found(error: BaseException) -> bool:
    """Return True if the error is a Kubernetes API not-found error."""
    return isinstance(error, ApiException) and error.status == 404


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"auth[_\s]?url[:\s]+(https?://[^\s,;\)]+)",
    r"project[_\s]?id[:\s]+([a-f0-9]{32})",
    r"user[_\s]?id[:\s]+([a-f0-9]{32})",
    r"X-Auth-Token[:\s]+([A-Za-z0-9_\-]+)",
    r"application[_\s]?credential[_\s]?id[:\s]+([a-f0-9]{32})",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "password",
    "application_credential_secret",
    "secret",
    "credentials",
    "token",
    "os-password",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, lambda m: m.group(0).replace(m.group(1), "[REDACTED]"), sanitized, flags=re.IGNORECASE)

    for field in SENSITIVE_FIELDS:
        sanitized = re.sub(
            rf"{re.escape(field)}[:=\s]+([^\s,;\)]+)",
            rf"{field}: [REDACTED]",
            sanitized,
            flags=re.IGNORECASE,
        )

    return sanitized


def sanitize_exception(error: BaseException) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    if sensitive_keys is None:
        sensitive_keys = set()

    all_sensitive = SENSITIVE_FIELDS | sensitive_keys
    sanitized = {}

    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in all_sensitive):
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
