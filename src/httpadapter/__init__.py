"""
=============================================================================
HTTPADAPTER - HTTP Adapter and Middleware Composition Layer
=============================================================================

Bridges an HTTP transport to plain ``Request -> Response`` handlers, and
composes handlers out of reusable middleware.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTPADAPTER ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   socket ──► RawRequest ──► Request ──► Pipeline ──► Handler        │
    │                                                         │            │
    │   socket ◄── RawResponse ◄──────────── Response ◄───────┘            │
    │                                                                      │
    │   or, after request.hijack(takeover):                               │
    │                                                                      │
    │   socket ──────────────────────────► takeover(reader, writer)       │
    │                                                                      │
    │   Failures at any step ──► ErrorType ──► error handler ──► 500      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpadapter/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpadapter)
    ├── server.py            # serve(), serve_requests(), run()
    ├── config.py            # AdapterConfig dataclass
    ├── util.py              # sync/async helpers
    ├── core/
    │   ├── adapter.py       # request adapter, dispatch, response writer
    │   ├── errors.py        # ErrorType and the default error handler
    │   ├── trace.py         # trace folding for diagnostics
    │   └── transport.py     # HTTP/1.x on asyncio streams (httptools)
    ├── http/
    │   ├── request.py       # Request
    │   ├── response.py      # Response
    │   ├── hijack.py        # hijack protocol
    │   ├── message.py       # shared message behaviour
    │   ├── body.py          # consume-once bodies
    │   ├── headers.py       # header folding and normalization
    │   └── status_codes.py  # status enums
    └── middleware/
        └── base.py          # Pipeline, create_middleware, BaseMiddleware

=============================================================================
QUICK START
=============================================================================

    from httpadapter import Pipeline, Response, create_middleware, run

    def hello(request):
        return Response.ok(f"Hello from {request.path}")

    add_header = create_middleware(
        response_handler=lambda r: r.change(headers={"X-Hello": "1"})
    )

    run(Pipeline().add_middleware(add_header).add_handler(hello))

=============================================================================
"""

__version__ = "1.0.0"

from .config import AdapterConfig
from .core import (
    ErrorLogger,
    ErrorType,
    HijackedResponseError,
    RawRequest,
    RawResponse,
    RequestServer,
    TraceFilter,
    handle_request,
    log_error,
)
from .http import (
    BodyConsumedError,
    HijackError,
    HijackException,
    Request,
    Response,
)
from .middleware import (
    BaseMiddleware,
    Handler,
    Middleware,
    Pipeline,
    create_middleware,
    function_middleware,
)
from .server import run, serve, serve_requests

__all__ = [
    "AdapterConfig",
    "BaseMiddleware",
    "BodyConsumedError",
    "ErrorLogger",
    "ErrorType",
    "Handler",
    "HijackError",
    "HijackException",
    "HijackedResponseError",
    "Middleware",
    "Pipeline",
    "RawRequest",
    "RawResponse",
    "Request",
    "RequestServer",
    "Response",
    "TraceFilter",
    "create_middleware",
    "function_middleware",
    "handle_request",
    "log_error",
    "run",
    "serve",
    "serve_requests",
    "__version__",
]
