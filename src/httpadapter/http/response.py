"""
=============================================================================
ABSTRACT HTTP RESPONSE
=============================================================================

The value a Handler returns. The response writer in ``core.adapter`` turns
it into wire bytes through the transport.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    RESPONSE LIFECYCLE                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Handler returns        write_response()         Transport sends  │
    │   Response      ─────►   status, headers, ─────►  status line,     │
    │                          default Server/Date      headers, body    │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Headers given as None are kept in the collection but never written, which
also suppresses the writer's default for that name:

    Response.ok("hi", headers={"Server": None})   # no Server header at all

=============================================================================
"""

from datetime import datetime
from typing import Any, Mapping, Optional, Union

from yarl import URL

from .body import Body
from .headers import HeadersInit, normalize_headers, update_headers
from .message import Message
from .status_codes import HTTPStatus, allows_body


class Response(Message):
    """
    An HTTP response produced by a Handler.

    Args:
        status_code: Integer status, at least 100.
        body: None, str, bytes, an iterable or async iterable of bytes.
        headers: Header mapping or (name, value) pairs. None values are
            kept and skipped by the writer.
        context: Extra data for middleware.
        encoding: Used to encode a str body.
    """

    def __init__(
        self,
        status_code: int,
        *,
        body: Any = None,
        headers: HeadersInit = None,
        context: Optional[Mapping[str, Any]] = None,
        encoding: str = "utf-8",
    ):
        if status_code < 100:
            raise ValueError(f"Invalid status code: {status_code}.")

        body_obj = body if isinstance(body, Body) else Body(body, encoding)
        normalized = normalize_headers(headers)

        defaults = {}
        if (
            body_obj.content_length is not None
            and "Content-Length" not in normalized
            and allows_body(status_code)
        ):
            defaults["Content-Length"] = str(body_obj.content_length)
        if isinstance(body, str) and "Content-Type" not in normalized:
            defaults["Content-Type"] = f"text/plain; charset={encoding}"

        super().__init__(
            body_obj,
            headers=update_headers(normalized, defaults),
            context=context,
            encoding=encoding,
        )
        self._status_code = int(status_code)

    @property
    def status_code(self) -> int:
        return self._status_code

    def change(
        self,
        *,
        headers: HeadersInit = None,
        context: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> "Response":
        """
        Create a copy with updated headers, context or body.

        Unlike a Request, a None header value is stored (it means "do not
        write this header").
        """
        merged_context = dict(self.context)
        merged_context.update(context or {})
        merged_headers = update_headers(self.headers, headers)
        if body is not None:
            # A new body invalidates the old length.
            merged_headers = normalize_headers(
                (name, value)
                for name, value in merged_headers.items()
                if name.lower() != "content-length"
            )
        return Response(
            self._status_code,
            body=self._body if body is None else body,
            headers=merged_headers,
            context=merged_context,
            encoding=self._encoding,
        )

    def __repr__(self) -> str:
        return f"<Response {self._status_code}>"

    # =========================================================================
    # CONVENIENCE CONSTRUCTORS
    # =========================================================================
    #
    #     return Response.ok("Hello")
    #     return Response.not_found()
    #     return Response.found("/login")
    #
    # =========================================================================

    @classmethod
    def ok(cls, body: Any = None, **kwargs: Any) -> "Response":
        """200 OK."""
        return cls(HTTPStatus.OK, body=body, **kwargs)

    @classmethod
    def moved_permanently(cls, location: Union[str, URL], body: Any = None, **kwargs: Any) -> "Response":
        """301 Moved Permanently, pointing at ``location``."""
        return cls._redirect(HTTPStatus.MOVED_PERMANENTLY, location, body, **kwargs)

    @classmethod
    def found(cls, location: Union[str, URL], body: Any = None, **kwargs: Any) -> "Response":
        """302 Found, pointing at ``location``."""
        return cls._redirect(HTTPStatus.FOUND, location, body, **kwargs)

    @classmethod
    def see_other(cls, location: Union[str, URL], body: Any = None, **kwargs: Any) -> "Response":
        """303 See Other, pointing at ``location``."""
        return cls._redirect(HTTPStatus.SEE_OTHER, location, body, **kwargs)

    @classmethod
    def not_modified(cls, headers: HeadersInit = None, context: Optional[Mapping[str, Any]] = None) -> "Response":
        """304 Not Modified. Never carries a body."""
        return cls(HTTPStatus.NOT_MODIFIED, headers=headers, context=context)

    @classmethod
    def forbidden(cls, body: Any = None, **kwargs: Any) -> "Response":
        """403 Forbidden; the body defaults to "Forbidden"."""
        return cls(HTTPStatus.FORBIDDEN, body="Forbidden" if body is None else body, **kwargs)

    @classmethod
    def not_found(cls, body: Any = None, **kwargs: Any) -> "Response":
        """404 Not Found; the body defaults to "Not Found"."""
        return cls(HTTPStatus.NOT_FOUND, body="Not Found" if body is None else body, **kwargs)

    @classmethod
    def internal_server_error(cls, body: Any = None, **kwargs: Any) -> "Response":
        """
        500 Internal Server Error.

        With no body this is the fallback response written after a failure:
        an empty body, so nothing about the failure reaches the client.
        """
        return cls(HTTPStatus.INTERNAL_SERVER_ERROR, body=body, **kwargs)

    @classmethod
    def _redirect(cls, status: int, location: Union[str, URL], body: Any, **kwargs: Any) -> "Response":
        headers = update_headers(normalize_headers(kwargs.pop("headers", None)), {"Location": str(location)})
        return cls(status, body=body, headers=headers, **kwargs)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    Args:
        dt: Datetime to format (should be UTC).
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
