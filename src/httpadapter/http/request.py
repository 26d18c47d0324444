"""
=============================================================================
ABSTRACT HTTP REQUEST
=============================================================================

The transport-agnostic request handed to every Handler.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST ANATOMY                                  │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   method            "GET"                                           │
    │   requested_uri     http://localhost:8080/api/users?page=1          │
    │   url               /api/users?page=1                               │
    │   protocol_version  "1.1"                                           │
    │   headers           {"Host": "localhost:8080", ...}  (one value)    │
    │   body              async byte stream, readable once                │
    │   context           read-only data from adapters and middleware     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A Request never changes after construction. ``change()`` returns a new
Request that shares the body and the hijack state of the original, so a
middleware can add headers or context without breaking the consume-once
and hijack-once guarantees.

=============================================================================
"""

from typing import Any, Mapping, NoReturn, Optional, Union

from yarl import URL

from .headers import HeadersInit, normalize_headers, update_headers
from .hijack import HijackCallback, HijackError, HijackException, OnHijack, Takeover
from .message import Message


class Request(Message):
    """
    An HTTP request to be processed by a Handler.

    Args:
        method: Request method, e.g. "GET".
        requested_uri: Absolute URI the client asked for.
        protocol_version: HTTP version without the "HTTP/" prefix.
        headers: Header mapping or (name, value) pairs.
        body: None, str, bytes, an iterable or async iterable of bytes.
        context: Extra data for middleware.
        on_hijack: Adapter callback enabling ``hijack()``.
    """

    def __init__(
        self,
        method: str,
        requested_uri: Union[str, URL],
        *,
        protocol_version: str = "1.1",
        headers: HeadersInit = None,
        body: Any = None,
        context: Optional[Mapping[str, Any]] = None,
        on_hijack: Union[HijackCallback, OnHijack, None] = None,
        encoding: str = "utf-8",
    ):
        uri = requested_uri if isinstance(requested_uri, URL) else URL(requested_uri)
        if not uri.is_absolute():
            raise ValueError(f'requested_uri must be an absolute URI, was "{uri}".')
        if not method:
            raise ValueError("method cannot be empty")

        super().__init__(
            body,
            headers=update_headers(normalize_headers(None), headers, drop_none=True),
            context=context,
            encoding=encoding,
        )
        self._method = method
        self._requested_uri = uri
        self._protocol_version = protocol_version

        if on_hijack is None or isinstance(on_hijack, OnHijack):
            self._on_hijack = on_hijack
        else:
            self._on_hijack = OnHijack(on_hijack)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def method(self) -> str:
        return self._method

    @property
    def requested_uri(self) -> URL:
        return self._requested_uri

    @property
    def url(self) -> URL:
        """The requested URI relative to the server root (path + query)."""
        return self._requested_uri.relative()

    @property
    def path(self) -> str:
        return self._requested_uri.path

    @property
    def protocol_version(self) -> str:
        return self._protocol_version

    @property
    def can_hijack(self) -> bool:
        """True if ``hijack()`` may still be called on this request."""
        return self._on_hijack is not None and not self._on_hijack.hijacked

    @property
    def hijacked(self) -> bool:
        """True once any copy of this request has been hijacked."""
        return self._on_hijack is not None and self._on_hijack.hijacked

    # =========================================================================
    # BODY
    # =========================================================================

    def read(self):
        """
        Return the body stream.

        Raises:
            HijackError: If the request has been hijacked.
            BodyConsumedError: If the body was already read.
        """
        if self.hijacked:
            raise HijackError("Can't read the body of a hijacked request.")
        return super().read()

    # =========================================================================
    # HIJACKING
    # =========================================================================

    def hijack(self, takeover: Takeover) -> NoReturn:
        """
        Take control of the underlying connection.

        ``takeover`` is called with the connection's (reader, writer) pair;
        it may be a coroutine function. This method always finishes by
        raising HijackException, which must propagate to the adapter.

        Raises:
            HijackError: If the request can't be hijacked or already was.
            HijackException: After the connection was handed over.
        """
        if self._on_hijack is None:
            raise HijackError("This request can't be hijacked.")
        self._on_hijack.run(takeover)
        raise HijackException()

    # =========================================================================
    # COPYING
    # =========================================================================

    def change(
        self,
        *,
        headers: HeadersInit = None,
        context: Optional[Mapping[str, Any]] = None,
        body: Any = None,
    ) -> "Request":
        """
        Create a copy with updated headers, context or body.

        Headers and context are merged into the existing ones; a header
        value of None removes that header. The copy shares the hijack state
        and, unless ``body`` is given, the body of this request.
        """
        merged_context = dict(self.context)
        merged_context.update(context or {})
        return Request(
            self._method,
            self._requested_uri,
            protocol_version=self._protocol_version,
            headers=update_headers(self.headers, headers, drop_none=True),
            body=self._body if body is None else body,
            context=merged_context,
            on_hijack=self._on_hijack,
            encoding=self._encoding,
        )

    def __repr__(self) -> str:
        return f"<Request {self._method} {self._requested_uri}>"
