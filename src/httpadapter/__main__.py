"""
=============================================================================
HTTPADAPTER CLI ENTRY POINT
=============================================================================

Runs a small demo application through the adapter, handy for poking at the
error policy and the hijack protocol with curl or netcat.

=============================================================================
USAGE
=============================================================================

    # Run with defaults (localhost:8080)
    python -m httpadapter

    # Custom port, all interfaces
    python -m httpadapter --host 0.0.0.0 --port 3000

    # Verbose transport logging
    python -m httpadapter --log-level DEBUG

=============================================================================
DEMO ROUTES
=============================================================================

    GET /          200 "Hello from httpadapter!"
    GET /echo      200 with the request headers, one per line
    GET /hijack    raw bytes written by a takeover; the adapter writes nothing
    GET /error     handler raises; the error policy answers 500
    GET /none      handler returns None; the error policy answers 500
    anything else  404

Environment variables (HTTPADAPTER_*) are read first; flags override them.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import AdapterConfig
from .http import Request, Response
from .middleware import Pipeline, create_middleware
from .server import run


async def _write_raw_greeting(reader, writer):
    writer.write(
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: text/plain\r\n"
        b"Connection: close\r\n"
        b"\r\n"
        b"This connection was hijacked.\n"
    )
    await writer.drain()
    writer.close()


def demo_handler(request: Request):
    """Answer the demo routes."""
    if request.path == "/":
        return Response.ok("Hello from httpadapter!\n")

    if request.path == "/echo":
        lines = [f"{name}: {value}" for name, value in request.headers.items()]
        return Response.ok("\n".join(lines) + "\n")

    if request.path == "/hijack":
        request.hijack(_write_raw_greeting)

    if request.path == "/error":
        raise RuntimeError("The /error route always fails")

    if request.path == "/none":
        return None

    return Response.not_found()


def build_app():
    """The demo handler wrapped in a header-adding middleware."""
    tag = create_middleware(
        response_handler=lambda response: response.change(
            headers={"X-Powered-By": "httpadapter"}
        )
    )
    return Pipeline().add_middleware(tag).add_handler(demo_handler)


def main():
    """
    Main CLI entry point.

    - --host, -H: Server host
    - --port, -p: Server port
    - --backlog: Accept backlog
    - --server-name: Default Server header
    - --log-level, -l: Logging verbosity
    - --version, -v: Show version
    """
    parser = argparse.ArgumentParser(
        description="Serve the httpadapter demo application",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m httpadapter                      # Run with defaults
  python -m httpadapter --port 3000          # Custom port
  python -m httpadapter --host 0.0.0.0       # Listen on all interfaces
  python -m httpadapter -l DEBUG             # Verbose logging
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Host to bind to (default: 127.0.0.1, use 0.0.0.0 for containers)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on (default: 8080)"
    )

    parser.add_argument(
        "--backlog",
        type=int,
        default=None,
        help="Accept backlog (default: 100)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # RESPONSE / DIAGNOSTICS ARGUMENTS
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--server-name",
        default=None,
        help="Value of the default Server header"
    )

    parser.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: INFO)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"httpadapter {__version__}"
    )

    args = parser.parse_args()

    # =========================================================================
    # CREATE CONFIGURATION
    # =========================================================================
    # Environment first, then CLI overrides

    config = AdapterConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.backlog is not None:
        config.backlog = args.backlog
    if args.server_name is not None:
        config.server_name = args.server_name
    if args.log_level is not None:
        config.log_level = args.log_level

    # =========================================================================
    # RUN SERVER
    # =========================================================================
    # This blocks until Ctrl+C is pressed

    try:
        run(build_app(), config)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
