"""Main entry point for the Manila CSI Driver Operator."""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from . import tracing
from .handlers import maniladriver  # noqa: F401

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    # Set up structured JSON logging
    structured_logging.setup_structured_logging()
    tracing.initialize_tracing()

    # Use AnnotationsProgressStorage to avoid conflicts with status updates
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.INFO
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    # Start metrics HTTP server with health check endpoints
    metrics_port = int(os.getenv("METRICS_PORT", "8080"))
    health.start_server(metrics_port)
    health.set_ready()
    logger.info(f"Operator started, serving metrics and health checks on port {metrics_port}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Report not ready while the operator stops."""
    health.set_ready(False)


def main() -> None:
    """Run the operator against the whole cluster."""
    kopf.run(clusterwide=True)


if __name__ == "__main__":
    main()
