"""
Shared behaviour of Request and Response.
"""

from types import MappingProxyType
from typing import Any, AsyncIterator, Mapping, Optional

from multidict import CIMultiDictProxy

from .body import Body, collect


class Message:
    """
    Base class for immutable HTTP messages.

    Holds the headers, an extensible ``context`` mapping that middleware can
    use to pass data along, and the consume-once body.
    """

    def __init__(
        self,
        body: Any,
        *,
        headers: "CIMultiDictProxy[Any]",
        context: Optional[Mapping[str, Any]] = None,
        encoding: str = "utf-8",
    ):
        self._body = body if isinstance(body, Body) else Body(body, encoding)
        self._headers = headers
        self._context = MappingProxyType(dict(context or {}))
        self._encoding = encoding

    @property
    def headers(self) -> "CIMultiDictProxy[Any]":
        """Case-insensitive, read-only header collection."""
        return self._headers

    @property
    def context(self) -> Mapping[str, Any]:
        """Read-only extra data attached by adapters and middleware."""
        return self._context

    @property
    def content_length(self) -> Optional[int]:
        """Value of the Content-Length header, or the known body size."""
        value = self._headers.get("Content-Length")
        if value is not None:
            return int(value)
        return self._body.content_length

    @property
    def encoding(self) -> str:
        return self._encoding

    def read(self) -> AsyncIterator[bytes]:
        """Return the body as an async stream of byte chunks (once only)."""
        return self._body.read()

    async def read_bytes(self) -> bytes:
        """Read the whole body into memory."""
        return await collect(self.read())

    async def read_text(self, encoding: Optional[str] = None) -> str:
        """Read the whole body and decode it."""
        data = await self.read_bytes()
        return data.decode(encoding or self._encoding)
