"""Health check and metrics endpoints for the operator."""

import threading
from typing import Any

from prometheus_client import make_wsgi_app
from werkzeug.serving import make_server
from werkzeug.wrappers import Response

_ready = threading.Event()


def set_ready(ready: bool = True) -> None:
    """Mark the operator as ready (or not) to serve."""
    if ready:
        _ready.set()
    else:
        _ready.clear()


def is_ready() -> bool:
    """Whether startup has completed."""
    return _ready.is_set()


def create_combined_wsgi_app() -> Any:
    """Create a WSGI app that combines metrics and health check endpoints.

    Returns:
        Combined WSGI application
    """
    metrics_app = make_wsgi_app()

    def combined_app(environ: dict[str, Any], start_response: Any) -> list[bytes]:
        """WSGI app that routes /healthz and /readyz, delegates /metrics to prometheus."""
        path = environ.get("PATH_INFO", "")

        if path == "/healthz":
            response = Response('{"status":"ok"}', mimetype="application/json", status=200)
            return response(environ, start_response)
        elif path == "/readyz":
            if is_ready():
                response = Response('{"status":"ready"}', mimetype="application/json", status=200)
            else:
                response = Response('{"status":"starting"}', mimetype="application/json", status=503)
            return response(environ, start_response)
        else:
            # Delegate all other paths (including /metrics) to prometheus app
            return metrics_app(environ, start_response)

    return combined_app


def start_server(port: int) -> Any:
    """Serve the combined app on port from a daemon thread.

    Returns:
        The running werkzeug server
    """
    server = make_server("", port, create_combined_wsgi_app(), threaded=True)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    return server
