"""
=============================================================================
HTTP MESSAGE MODEL
=============================================================================

Transport-agnostic Request and Response values plus the hijack protocol.

    Request   immutable, body readable once, hijackable once
    Response  immutable, body readable once (by the response writer)

=============================================================================
"""

from .body import Body, BodyConsumedError
from .headers import fold_headers, normalize_headers, update_headers
from .hijack import HijackError, HijackException, HijackState, OnHijack
from .message import Message
from .request import Request
from .response import Response, format_http_date
from .status_codes import HTTPStatus, allows_body, reason_phrase

__all__ = [
    "Body",
    "BodyConsumedError",
    "HTTPStatus",
    "HijackError",
    "HijackException",
    "HijackState",
    "Message",
    "OnHijack",
    "Request",
    "Response",
    "allows_body",
    "fold_headers",
    "format_http_date",
    "normalize_headers",
    "reason_phrase",
    "update_headers",
]
