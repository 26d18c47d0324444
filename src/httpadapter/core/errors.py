"""
=============================================================================
ERROR CLASSIFICATION AND DIAGNOSTICS
=============================================================================

Every failure the adapter sees is tagged with an ErrorType before it is
handed to the error handler:

    ┌──────────────────────────────────┬──────────┬───────────────────────┐
    │ ErrorType                        │ response │ raised when           │
    ├──────────────────────────────────┼──────────┼───────────────────────┤
    │ ASYNCHRONOUS_ERROR               │    no    │ outside any request's │
    │                                  │          │ completion chain      │
    │ ERROR_PARSING_REQUEST            │   yes    │ adapting raw request  │
    │ CAUGHT_INVALID_HIJACK_EXCEPTION  │   yes    │ HijackException, but  │
    │                                  │          │ never hijacked        │
    │ ERROR_THROWN_BY_HANDLER          │   yes    │ handler raised        │
    │ NULL_RESPONSE                    │   yes    │ handler returned None │
    └──────────────────────────────────┴──────────┴───────────────────────┘

An error handler has the shape

    (error_type, error=None, trace=None) -> Optional[Response]

The default, ``log_error``, writes one diagnostic block per failure to the
``httpadapter.errors`` logger and returns an empty 500 whenever the
ErrorType needs a response:

    ERROR - 2026-10-17 14:03:11.204518
    Error thrown by handler
    boom
      File "app/handlers.py", line 12, in list_users
        raise ValueError("boom")
      ... 4 frames folded (last: adapter.py in handle_request)

With no logging configured Python's last-resort handler prints these
blocks to stderr.

=============================================================================
"""

import asyncio
import logging
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

from ..http.response import Response
from .trace import Trace, TraceFilter


class ErrorType(Enum):
    """Closed classification of adapter failures."""

    ASYNCHRONOUS_ERROR = ("Asynchronous error", False)
    ERROR_PARSING_REQUEST = ("Error parsing request", True)
    CAUGHT_INVALID_HIJACK_EXCEPTION = (
        "Caught HijackException, but the request wasn't hijacked.",
        True,
    )
    ERROR_THROWN_BY_HANDLER = ("Error thrown by handler", True)
    NULL_RESPONSE = ("null response from handler.", True)

    def __init__(self, description: str, response_needed: bool):
        self.description = description
        self.response_needed = response_needed

    def __str__(self) -> str:
        return f'ErrorType: "{self.description}"'


ErrorHandler = Callable[
    [ErrorType, Optional[BaseException], Trace],
    Optional[Response],
]


class ErrorLogger:
    """
    The default error handler.

    Args:
        logger: Diagnostic sink; defaults to the ``httpadapter.errors``
            logger.
        trace_filter: Decides which frames are folded out of traces.
    """

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        trace_filter: Optional[TraceFilter] = None,
    ):
        self.logger = logger or logging.getLogger("httpadapter.errors")
        self.trace_filter = trace_filter or TraceFilter()

    def format(
        self,
        error_type: ErrorType,
        error: Optional[BaseException] = None,
        trace: Trace = None,
    ) -> str:
        """Build the diagnostic block for one failure."""
        lines = [f"ERROR - {datetime.now()}", error_type.description]
        if error is not None:
            if trace is None:
                trace = error.__traceback__
            lines.append(str(error) or type(error).__name__)
            rendered = self.trace_filter.format(trace)
            if rendered:
                lines.append(rendered)
        return "\n".join(lines)

    def __call__(
        self,
        error_type: ErrorType,
        error: Optional[BaseException] = None,
        trace: Trace = None,
    ) -> Optional[Response]:
        self.logger.error(self.format(error_type, error, trace))
        if error_type.response_needed:
            return Response.internal_server_error()
        return None


log_error = ErrorLogger()


def catch_top_level_errors(
    loop: asyncio.AbstractEventLoop,
    on_error: Callable[[BaseException], Any],
) -> Optional[Callable[..., Any]]:
    """
    Route exceptions nobody retrieved on ``loop`` to ``on_error``.

    Covers tasks that fail after the code that started them moved on, such
    as a hijack takeover. Loop messages without an exception still go to
    the previous handler. Returns the previous handler so it can be
    restored.
    """
    previous = loop.get_exception_handler()

    def handle(loop: asyncio.AbstractEventLoop, context: dict) -> None:
        error = context.get("exception")
        if error is None:
            if previous is not None:
                previous(loop, context)
            else:
                loop.default_exception_handler(context)
            return
        on_error(error)

    loop.set_exception_handler(handle)
    return previous
