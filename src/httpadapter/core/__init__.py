"""
=============================================================================
ADAPTER CORE
=============================================================================

Everything between the wire and a Handler:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   transport.py   sockets, HTTP/1.x parsing and framing               │
    │        │                                                             │
    │        ▼                                                             │
    │   adapter.py     RawRequest ──► Request ──► Handler ──► RawResponse  │
    │        │                                                             │
    │        ▼                                                             │
    │   errors.py      ErrorType, default error handler                    │
    │   trace.py       frame folding for diagnostics                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .adapter import (
    CONNECTION_INFO_KEY,
    HijackedResponseError,
    from_raw_request,
    handle_request,
    write_response,
)
from .errors import ErrorHandler, ErrorLogger, ErrorType, catch_top_level_errors, log_error
from .trace import TraceFilter
from .transport import (
    HTTPConnection,
    RawBody,
    RawRequest,
    RawResponse,
    RequestServer,
    ResponseStateError,
)

__all__ = [
    "CONNECTION_INFO_KEY",
    "ErrorHandler",
    "ErrorLogger",
    "ErrorType",
    "HTTPConnection",
    "HijackedResponseError",
    "RawBody",
    "RawRequest",
    "RawResponse",
    "RequestServer",
    "ResponseStateError",
    "TraceFilter",
    "catch_top_level_errors",
    "from_raw_request",
    "handle_request",
    "log_error",
    "write_response",
]
