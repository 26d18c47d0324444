"""
Consume-once message bodies.

A body wraps whatever the caller supplied (nothing, text, bytes, a list of
chunks or an async stream) behind a single async byte stream that may be
read exactly once.
"""

import collections.abc
from typing import Any, AsyncIterable, AsyncIterator, Optional

from ..util import iterate_sync


class BodyConsumedError(RuntimeError):
    """Raised when a message body is read a second time."""


async def _empty() -> AsyncIterator[bytes]:
    return
    yield  # pragma: no cover


class Body:
    """
    The byte stream of a Request or Response.

    Attributes:
        content_length: Size in bytes when known up front, otherwise None.
    """

    def __init__(self, body: Any = None, encoding: str = "utf-8"):
        self.content_length: Optional[int] = None
        self._consumed = False

        if body is None:
            self.content_length = 0
            self._stream: AsyncIterator[bytes] = _empty()
        elif isinstance(body, str):
            data = body.encode(encoding)
            self.content_length = len(data)
            self._stream = iterate_sync([data] if data else [])
        elif isinstance(body, (bytes, bytearray, memoryview)):
            data = bytes(body)
            self.content_length = len(data)
            self._stream = iterate_sync([data] if data else [])
        elif isinstance(body, collections.abc.AsyncIterable):
            self._stream = body.__aiter__()
        elif isinstance(body, collections.abc.Iterable):
            self._stream = iterate_sync(body)
        else:
            raise TypeError(
                f"Body must be str, bytes, an iterable or an async iterable "
                f"of bytes; got {type(body).__name__}."
            )

    @property
    def consumed(self) -> bool:
        return self._consumed

    def read(self) -> AsyncIterator[bytes]:
        """
        Return the body stream.

        Raises:
            BodyConsumedError: If the stream was already handed out.
        """
        if self._consumed:
            raise BodyConsumedError(
                "The body has already been read; a body can only be read once."
            )
        self._consumed = True
        return self._stream


async def collect(stream: AsyncIterable[bytes]) -> bytes:
    """Drain a byte stream into a single bytes object."""
    parts = bytearray()
    async for chunk in stream:
        parts.extend(chunk)
    return bytes(parts)
