"""Standalone HTTP server exposing the prediction endpoint at ``/predict``."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable, Iterable
from socketserver import ThreadingMixIn
from typing import Any
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

from churnagent.handler import create_app
from churnagent.storage import StorageError, init_clients

log = logging.getLogger(__name__)

DEFAULT_PORT = 8080
PREDICT_PATH = "/predict"
_NOT_FOUND = b"404 page not found\n"


class _ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class _LoggingRequestHandler(WSGIRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        log.info("%s - %s", self.address_string(), format % args)


def _route(app: Callable[..., Iterable[bytes]]) -> Callable[..., Iterable[bytes]]:
    def dispatch(environ: dict[str, Any], start_response: Callable[..., Any]) -> Iterable[bytes]:
        if environ.get("PATH_INFO", "") == PREDICT_PATH:
            return app(environ, start_response)
        start_response(
            "404 Not Found",
            [
                ("Content-Type", "text/plain; charset=utf-8"),
                ("Content-Length", str(len(_NOT_FOUND))),
            ],
        )
        return [_NOT_FOUND]

    return dispatch


def build_server(
    host: str, port: int, app: Callable[..., Iterable[bytes]]
) -> WSGIServer:
    """Bind a threaded server that routes ``/predict`` to ``app`` and 404s the rest."""
    return make_server(
        host,
        port,
        _route(app),
        server_class=_ThreadingWSGIServer,
        handler_class=_LoggingRequestHandler,
    )


def main(argv: list[str] | None = None) -> int:
    """Check the configuration, then serve the prediction endpoint until interrupted."""
    parser = argparse.ArgumentParser(
        prog="churnagent", description="Serve the churn prediction API."
    )
    parser.add_argument("--host", default="", help="address to bind (default: all)")
    parser.add_argument(
        "--port", type=int, default=DEFAULT_PORT, help=f"port to bind (default: {DEFAULT_PORT})"
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    log.info("Initializing standalone server...")
    try:
        client = init_clients()
    except StorageError as exc:
        log.error("Server initialization failed: %s", exc)
        return 1

    app = create_app(lambda: client)
    try:
        server = build_server(args.host, args.port, app)
    except OSError as exc:
        log.error("Failed to start standalone server: %s", exc)
        return 1

    with server:
        log.info("Starting standalone API server on port %d...", server.server_address[1])
        log.info("API endpoint available at %s (POST)", PREDICT_PATH)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            log.info("Shutting down.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())