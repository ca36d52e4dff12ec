"""Structured logging configuration for the Manila CSI Driver Operator."""

import json
import logging
import sys
from typing import Any

from .utils.context import get_context_dict
from .utils.errors import sanitize_dict


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Configure JSON lines on stdout for the operator and kopf."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log one event of a reconciled resource as a single JSON object.

    Extra keyword arguments are merged in along with the correlation id of
    the running pass. Credential fields and credential-looking values are
    redacted before the line is written.
    """
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(get_context_dict(kwargs))
    logger.log(level, json.dumps(sanitize_dict(log_data), default=str))
