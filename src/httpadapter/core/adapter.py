"""
=============================================================================
REQUEST ADAPTER, DISPATCH AND RESPONSE WRITER
=============================================================================

Connects one transport exchange (RawRequest + RawResponse) to a Handler.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    DISPATCH STATES                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Adapting ──── fails ──────────────► ERROR_PARSING_REQUEST ──┐     │
    │      │                                                         │     │
    │      ▼                                                         │     │
    │   Dispatching                                                  │     │
    │      ├── returns Response ──────────────────────────────────► Writing
    │      ├── returns None ──── hijacked? ── yes ──► Hijacking     │     │
    │      │                          └────── no ──► NULL_RESPONSE ─┤     │
    │      ├── HijackException ─ hijacked? ── yes ──► Hijacking     │     │
    │      │                          └────── no ──► CAUGHT_INVALID_│     │
    │      │                                        HIJACK_EXCEPTION┤     │
    │      └── raises ──────────────────────► ERROR_THROWN_BY_HANDLER     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every response-needed failure goes to the error handler, and whatever it
returns is written (a bare 500 if it returns None). A hijacked request is
never written to: the socket belongs to the takeover callback.

=============================================================================
"""

import asyncio
import functools
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Set

from ..config import DEFAULT_SERVER_NAME
from ..http.headers import fold_headers
from ..http.hijack import HijackException, Takeover
from ..http.request import Request
from ..http.response import Response, format_http_date
from ..middleware.base import Handler
from ..util import resolve
from .errors import ErrorHandler, ErrorType, log_error
from .trace import Trace
from .transport import RawRequest, RawResponse


logger = logging.getLogger(__name__)

CONNECTION_INFO_KEY = "httpadapter.connection_info"

# Running takeover coroutines of hijacked requests.
_takeovers: Set["asyncio.Future[Any]"] = set()


class HijackedResponseError(RuntimeError):
    """A handler hijacked its request and then returned a response anyway."""

    def __init__(self, request: Request, response: Response):
        lines = [
            f"Got a response for hijacked request {request.method} "
            f"{request.requested_uri}:",
            str(response.status_code),
        ]
        lines.extend(
            f"{name}: {value}" for name, value in response.headers.items()
        )
        super().__init__("\n".join(lines))
        self.request = request
        self.response = response


# =============================================================================
# REQUEST ADAPTER
# =============================================================================

def _takeover_done(report: ErrorHandler, task: "asyncio.Future[Any]") -> None:
    _takeovers.discard(task)
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        report(ErrorType.ASYNCHRONOUS_ERROR, error, error.__traceback__)


def from_raw_request(
    raw: RawRequest,
    *,
    error_handler: Optional[ErrorHandler] = None,
) -> Request:
    """
    Build the abstract Request for a transport request.

    Repeated headers are folded into one comma-joined value. The body
    stream is passed through untouched. Hijacking the result detaches the
    socket without writing a status line, then calls the takeover with the
    (reader, writer) pair; an awaitable takeover runs as its own task and
    its failure is reported as ASYNCHRONOUS_ERROR.

    Raises:
        ValueError: If the target and Host header don't form a valid URI.
    """
    report = error_handler or log_error

    def on_hijack(takeover: Takeover) -> None:
        reader, writer = raw.response.detach_socket(write_headers=False)
        result = takeover(reader, writer)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            _takeovers.add(task)
            task.add_done_callback(functools.partial(_takeover_done, report))

    return Request(
        raw.method,
        raw.requested_uri,
        protocol_version=raw.protocol_version,
        headers=fold_headers(raw.headers),
        body=raw.body,
        context={CONNECTION_INFO_KEY: raw.connection_info},
        on_hijack=on_hijack,
    )


# =============================================================================
# DISPATCH
# =============================================================================

def _recover(
    report: ErrorHandler,
    error_type: ErrorType,
    error: Optional[BaseException] = None,
    trace: Trace = None,
) -> Response:
    if error is not None and trace is None:
        trace = error.__traceback__
    response = report(error_type, error, trace)
    if response is None:
        response = Response.internal_server_error()
    return response


async def handle_request(
    raw: RawRequest,
    handler: Handler,
    *,
    error_handler: Optional[ErrorHandler] = None,
    server_name: str = DEFAULT_SERVER_NAME,
) -> None:
    """
    Run one exchange: adapt, dispatch to ``handler``, write the result.

    Raises:
        HijackedResponseError: If the handler returned a response for a
            request it hijacked.
        Exception: Whatever ``write_response`` raises.
    """
    report = error_handler or log_error

    # ─── Adapting ───
    try:
        request = from_raw_request(raw, error_handler=report)
    except Exception as error:
        logger.debug(f"Could not adapt {raw!r}: {error}")
        response = _recover(report, ErrorType.ERROR_PARSING_REQUEST, error)
        await write_response(response, raw.response, server_name)
        return

    # ─── Dispatching ───
    try:
        response = await resolve(handler(request))
    except HijackException as error:
        if request.hijacked:
            return
        response = _recover(report, ErrorType.CAUGHT_INVALID_HIJACK_EXCEPTION, error)
    except Exception as error:
        if raw.response.detached:
            report(ErrorType.ERROR_THROWN_BY_HANDLER, error, error.__traceback__)
            return
        response = _recover(report, ErrorType.ERROR_THROWN_BY_HANDLER, error)
    else:
        if response is None:
            if request.hijacked:
                return
            response = _recover(report, ErrorType.NULL_RESPONSE)
        elif not isinstance(response, Response):
            error = TypeError(
                f"Handler returned {type(response).__name__}, expected a Response."
            )
            if raw.response.detached:
                report(ErrorType.ERROR_THROWN_BY_HANDLER, error)
                return
            response = _recover(report, ErrorType.ERROR_THROWN_BY_HANDLER, error)
        elif request.hijacked or raw.response.detached:
            raise HijackedResponseError(request, response)

    # ─── Writing ───
    await write_response(response, raw.response, server_name)


# =============================================================================
# RESPONSE WRITER
# =============================================================================

async def write_response(
    response: Response,
    raw_response: RawResponse,
    server_name: str = DEFAULT_SERVER_NAME,
) -> None:
    """
    Serialize ``response`` through the transport and close it.

    Header values of None are skipped. Server and Date are added only when
    the response doesn't name them, so a None value suppresses them.
    """
    raw_response.status_code = response.status_code

    for name, value in response.headers.items():
        if value is None:
            continue
        raw_response.headers.add(name, value)

    if "Server" not in response.headers:
        raw_response.headers["Server"] = server_name
    if "Date" not in response.headers:
        raw_response.headers["Date"] = format_http_date(datetime.now(timezone.utc))

    await raw_response.add_stream(response.read())
    await raw_response.close()
