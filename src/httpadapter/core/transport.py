"""
=============================================================================
HTTP/1.x TRANSPORT ON ASYNCIO STREAMS
=============================================================================

The wire side of the adapter: a small HTTP/1.x server that parses requests
with httptools and hands them out as RawRequest objects, each carrying the
RawResponse used to answer it.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    TRANSPORT OBJECTS                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   RequestServer        listening socket, async iterable of          │
    │        │               RawRequest                                   │
    │        ▼                                                             │
    │   HTTPConnection       one per TCP connection; parses bytes,        │
    │        │               publishes one request at a time              │
    │        ▼                                                             │
    │   RawRequest           method, target, multi-valued headers,        │
    │        │               streaming RawBody                            │
    │        ▼                                                             │
    │   RawResponse          status, headers, body framing, or a          │
    │                        detached socket for hijacked requests        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
RESPONSE FRAMING
=============================================================================

The status line and headers are sent lazily, on the first body write or on
close, so a handler can still change them until then. The body framing is
picked at that moment:

    HEAD request or status without body   ──►  headers only
    Content-Length header present         ──►  exactly that many bytes
    HTTP/1.1 client                       ──►  Transfer-Encoding: chunked
    HTTP/1.0 client                       ──►  body until the socket closes

=============================================================================
KEEP-ALIVE
=============================================================================

A connection publishes its next request only once the previous response is
closed, so requests on one connection are answered strictly in order even
when a client pipelines them. A detached (hijacked) connection is never
touched by the transport again.

=============================================================================
"""

import asyncio
import logging
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, Dict, List, Optional, Tuple

import httptools
from multidict import CIMultiDict
from yarl import URL

from ..config import AdapterConfig
from ..http.status_codes import allows_body, reason_phrase


logger = logging.getLogger(__name__)


_EOF = object()

_INVALID_HOST_CHARS = frozenset(" \t\r\n/?#@\\")


class ResponseStateError(RuntimeError):
    """Raised when a RawResponse is used in a state that forbids it."""


# =============================================================================
# REQUEST BODY
# =============================================================================

class RawBody:
    """
    Streaming request body fed by the connection's parser.

    Iterating yields the chunks in arrival order and stops at the end of
    the message. A transport failure while the body is still arriving is
    raised from the iterator.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._complete = False
        self._finished = False

    @property
    def complete(self) -> bool:
        """True once the parser saw the end of the body (or it failed)."""
        return self._complete

    def feed_data(self, data: bytes) -> None:
        if data:
            self._queue.put_nowait(bytes(data))

    def feed_eof(self) -> None:
        if not self._complete:
            self._complete = True
            self._queue.put_nowait(_EOF)

    def set_exception(self, error: BaseException) -> None:
        if not self._complete:
            self._complete = True
            self._queue.put_nowait(error)

    def __aiter__(self) -> "RawBody":
        return self

    async def __anext__(self) -> bytes:
        if self._finished:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _EOF:
            self._finished = True
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            self._finished = True
            raise item
        return item


# =============================================================================
# RESPONSE
# =============================================================================

class RawResponse:
    """
    The outbound half of one request/response exchange.

    Set ``status_code`` and ``headers``, then ``write()`` / ``add_stream()``
    the body and ``close()``. Alternatively ``detach_socket()`` hands the
    underlying streams to the caller and ends the transport's involvement.

    Args:
        writer: Stream writer of the connection.
        reader: Stream reader of the connection, returned on detach.
        protocol_version: HTTP version of the request ("1.0" or "1.1").
        method: Request method; HEAD responses never carry a body.
        keep_alive: Whether the connection may serve another request.
        on_detach: Called synchronously when the socket is detached.
    """

    def __init__(
        self,
        writer: Any,
        *,
        reader: Any = None,
        protocol_version: str = "1.1",
        method: str = "GET",
        keep_alive: bool = True,
        on_detach: Optional[Callable[[], None]] = None,
    ):
        self.status_code = 200
        self.reason_phrase: Optional[str] = None
        self.headers: CIMultiDict[str] = CIMultiDict()

        self._writer = writer
        self._reader = reader
        self._protocol_version = protocol_version
        self._method = method.upper()
        self._keep_alive = keep_alive
        self._on_detach = on_detach

        self._headers_sent = False
        self._closed = False
        self._detached = False
        self._finished = asyncio.Event()

        # Body framing, decided when the head is sent.
        self._chunked = False
        self._send_body = True
        self._remaining: Optional[int] = None

    # ─────────────────────────────────────────────────────────────────────
    # STATE
    # ─────────────────────────────────────────────────────────────────────

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    @property
    def finished(self) -> bool:
        """True once the response was closed, aborted or detached."""
        return self._finished.is_set()

    @property
    def keep_alive(self) -> bool:
        """Whether the connection can carry another request afterwards."""
        return self._keep_alive and not self._detached

    def disallow_keep_alive(self) -> None:
        """Close the connection once this response is done."""
        self._keep_alive = False

    async def wait_finished(self) -> None:
        await self._finished.wait()

    def _check_open(self) -> None:
        if self._detached:
            raise ResponseStateError("The socket of this response was detached.")
        if self._closed:
            raise ResponseStateError("The response is already closed.")

    # ─────────────────────────────────────────────────────────────────────
    # HEAD
    # ─────────────────────────────────────────────────────────────────────

    def _prepare_framing(self) -> None:
        connection = self.headers.get("Connection", "")
        if "close" in connection.lower():
            self._keep_alive = False

        if self._method == "HEAD" or not allows_body(self.status_code):
            self._send_body = False
            self.headers.popall("Transfer-Encoding", None)
            return

        length = self.headers.get("Content-Length")
        if length is not None:
            self._remaining = int(length)
            self.headers.popall("Transfer-Encoding", None)
        elif self._protocol_version == "1.1":
            self._chunked = True
            self.headers["Transfer-Encoding"] = "chunked"
        else:
            # HTTP/1.0 without a length: the end of the body is the end of
            # the connection.
            self._keep_alive = False

    def _head_bytes(self, headers: "CIMultiDict[str]") -> bytes:
        reason = self.reason_phrase or reason_phrase(self.status_code)
        lines = [f"HTTP/1.1 {self.status_code} {reason}"]
        for name, value in headers.items():
            value = str(value)
            if "\r" in value or "\n" in value:
                raise ValueError(f"Invalid value for header {name!r}.")
            lines.append(f"{name}: {value}")
        return ("\r\n".join(lines) + "\r\n\r\n").encode("latin-1")

    def _send_head(self) -> None:
        self._prepare_framing()
        if not self._keep_alive:
            self.headers["Connection"] = "close"
        elif self._protocol_version == "1.0":
            self.headers["Connection"] = "keep-alive"
        self._writer.write(self._head_bytes(self.headers))
        self._headers_sent = True

    # ─────────────────────────────────────────────────────────────────────
    # BODY
    # ─────────────────────────────────────────────────────────────────────

    async def write(self, data: bytes) -> None:
        """
        Send a body chunk, sending the head first if needed.

        Raises:
            ResponseStateError: After ``close()`` or ``detach_socket()``.
        """
        self._check_open()
        if not self._headers_sent:
            self._send_head()
        if not data or not self._send_body:
            return

        data = bytes(data)
        if self._remaining is not None:
            if len(data) > self._remaining:
                raise ResponseStateError(
                    f"Body is longer than the Content-Length "
                    f"({self.headers['Content-Length']})."
                )
            self._remaining -= len(data)
            self._writer.write(data)
        elif self._chunked:
            self._writer.write(b"%x\r\n%b\r\n" % (len(data), data))
        else:
            self._writer.write(data)
        await self._writer.drain()

    async def add_stream(self, stream: AsyncIterator[bytes]) -> None:
        """Write every chunk of ``stream``."""
        async for chunk in stream:
            await self.write(chunk)

    async def close(self) -> None:
        """
        Finish the response. Closing twice is a no-op.

        Raises:
            ResponseStateError: If the socket was detached.
        """
        if self._detached:
            raise ResponseStateError("The socket of this response was detached.")
        if self._closed:
            return
        if not self._headers_sent:
            self._send_head()
        if self._chunked:
            self._writer.write(b"0\r\n\r\n")
        if self._remaining:
            logger.warning(
                f"Response closed {self._remaining} bytes short of its "
                f"Content-Length; closing the connection"
            )
            self._keep_alive = False
        self._closed = True
        try:
            await self._writer.drain()
        finally:
            self._finished.set()

    def abort(self) -> None:
        """
        Drop the connection without finishing the response.

        A detached response belongs to its new owner and is left alone.
        """
        if self._detached:
            return
        self._keep_alive = False
        self._closed = True
        self._writer.close()
        self._finished.set()

    # ─────────────────────────────────────────────────────────────────────
    # HIJACK SUPPORT
    # ─────────────────────────────────────────────────────────────────────

    def detach_socket(self, write_headers: bool = True) -> Tuple[Any, Any]:
        """
        Hand the connection's (reader, writer) pair to the caller.

        With ``write_headers`` the current status line and headers are
        written first (without any body framing). The transport never
        touches the connection afterwards.

        Raises:
            ResponseStateError: If the head was already sent, or the
                response was closed or detached.
        """
        self._check_open()
        if self._headers_sent:
            raise ResponseStateError("Headers were already sent; can't detach.")
        if write_headers:
            self._writer.write(self._head_bytes(self.headers))
            self._headers_sent = True
        self._detached = True
        self._finished.set()
        if self._on_detach is not None:
            self._on_detach()
        return self._reader, self._writer


# =============================================================================
# REQUEST
# =============================================================================

class RawRequest:
    """
    A parsed request as delivered by the transport.

    Headers keep every received value; ``requested_uri`` is computed on
    demand and raises ValueError when the target and Host header don't
    form a valid absolute URI.
    """

    def __init__(
        self,
        method: str,
        target: str,
        *,
        protocol_version: str = "1.1",
        headers: Optional[CIMultiDict] = None,
        body: Any = None,
        response: Optional[RawResponse] = None,
        scheme: str = "http",
        connection_info: Optional[Dict[str, Any]] = None,
    ):
        self.method = method
        self.target = target
        self.protocol_version = protocol_version
        self.headers: CIMultiDict[str] = headers if headers is not None else CIMultiDict()
        self.body = body if body is not None else _no_body()
        self.response = response
        self.scheme = scheme
        self.connection_info: Dict[str, Any] = connection_info or {}

    @property
    def requested_uri(self) -> URL:
        target = self.target
        if not target.startswith("/"):
            uri = URL(target, encoded=True)
            if not uri.is_absolute() or not uri.host:
                raise ValueError(f"Invalid request target: {target!r}.")
            return uri

        host = self.headers.get("Host") or self._local_authority()
        if not host or _INVALID_HOST_CHARS.intersection(host):
            raise ValueError(f"Invalid Host header: {host!r}.")
        uri = URL(f"{self.scheme}://{host}{target}", encoded=True)
        if not uri.host:
            raise ValueError(f"Invalid Host header: {host!r}.")
        return uri

    def _local_authority(self) -> Optional[str]:
        local = self.connection_info.get("local_address")
        if not local:
            return None
        host, port = local[0], local[1]
        if ":" in host:
            host = f"[{host}]"
        return f"{host}:{port}"

    def __repr__(self) -> str:
        return f"<RawRequest {self.method} {self.target}>"


async def _no_body() -> AsyncIterator[bytes]:
    return
    yield  # pragma: no cover


# =============================================================================
# CONNECTION
# =============================================================================

class HTTPConnection:
    """
    Serves the requests of one TCP connection.

    httptools drives the parser callbacks below; completed request heads
    wait in ``_ready`` until the previous exchange on this connection is
    finished.

    Args:
        reader: Stream reader of the accepted connection.
        writer: Stream writer of the accepted connection.
        publish: Receives each RawRequest; returns False to refuse it
            (for example while the server shuts down).
        config: Transport settings.
        scheme: URI scheme of this listener.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        publish: Callable[[RawRequest], bool],
        config: Optional[AdapterConfig] = None,
        scheme: str = "http",
    ):
        self.reader = reader
        self.writer = writer
        self.config = config or AdapterConfig()
        self._publish = publish
        self._scheme = scheme

        self._parser = httptools.HttpRequestParser(self)
        self._ready: Deque[RawRequest] = deque()
        self._current: Optional[RawRequest] = None
        self._url = bytearray()
        self._headers: List[Tuple[str, str]] = []
        self._upgraded = False
        self._eof = False
        self._pump: Optional["asyncio.Task[None]"] = None

        peer = writer.get_extra_info("peername")
        local = writer.get_extra_info("sockname")
        self._connection_info = {"remote_address": peer, "local_address": local}

    # ─────────────────────────────────────────────────────────────────────
    # PARSER CALLBACKS (called by httptools)
    # ─────────────────────────────────────────────────────────────────────

    def on_message_begin(self) -> None:
        self._url = bytearray()
        self._headers = []

    def on_url(self, url: bytes) -> None:
        self._url.extend(url)

    def on_header(self, name: bytes, value: bytes) -> None:
        self._headers.append((name.decode("latin-1"), value.decode("latin-1")))

    def on_headers_complete(self) -> None:
        method = self._parser.get_method().decode("ascii")
        version = self._parser.get_http_version()
        keep_alive = self.config.keep_alive and self._parser.should_keep_alive()

        response = RawResponse(
            self.writer,
            reader=self.reader,
            protocol_version=version,
            method=method,
            keep_alive=keep_alive,
            on_detach=self._on_detach,
        )
        self._current = RawRequest(
            method,
            self._url.decode("latin-1"),
            protocol_version=version,
            headers=CIMultiDict(self._headers),
            body=RawBody(),
            response=response,
            scheme=self._scheme,
            connection_info=dict(self._connection_info),
        )
        self._ready.append(self._current)

    def on_body(self, body: bytes) -> None:
        if self._current is not None:
            self._current.body.feed_data(body)

    def on_message_complete(self) -> None:
        if self._current is not None:
            self._current.body.feed_eof()
            self._current = None

    # ─────────────────────────────────────────────────────────────────────
    # READING
    # ─────────────────────────────────────────────────────────────────────

    async def _read_more(self) -> bool:
        """
        Read one chunk from the socket and feed it to the parser.

        Returns False on end of stream. Raises asyncio.TimeoutError when
        the client is silent for longer than ``read_timeout`` and
        httptools.HttpParserError on malformed input.
        """
        data = await asyncio.wait_for(
            self.reader.read(self.config.read_chunk_size),
            timeout=self.config.read_timeout,
        )
        if not data:
            self._eof = True
            return False
        try:
            self._parser.feed_data(data)
        except httptools.HttpParserUpgrade as upgrade:
            # The rest of the stream belongs to whoever hijacks the request.
            offset = upgrade.args[0] if upgrade.args else len(data)
            self._upgraded = True
            if offset < len(data):
                logger.warning(
                    f"{len(data) - offset} bytes after an upgrade request "
                    f"were dropped"
                )
            if self._current is not None:
                self._current.body.feed_eof()
                self._current = None
        return True

    async def _pump_body(self, raw: RawRequest) -> None:
        """Keep reading until ``raw``'s body is complete."""
        while not raw.body.complete:
            try:
                more = await self._read_more()
            except (asyncio.TimeoutError, httptools.HttpParserError, ConnectionError) as error:
                logger.warning(f"Request body aborted: {error!r}")
                raw.body.set_exception(ConnectionError(f"Request body aborted: {error!r}"))
                raw.response.disallow_keep_alive()
                return
            if not more:
                raw.body.set_exception(ConnectionError("Connection closed mid-body."))
                raw.response.disallow_keep_alive()
                return

    def _on_detach(self) -> None:
        # The hijacker owns the reader from now on.
        if self._pump is not None and not self._pump.done():
            self._pump.cancel()

    async def _send_bad_request(self) -> None:
        body = b"Bad Request"
        self.writer.write(
            b"HTTP/1.1 400 Bad Request\r\n"
            b"Content-Type: text/plain; charset=utf-8\r\n"
            b"Content-Length: %d\r\n"
            b"Connection: close\r\n\r\n%b" % (len(body), body)
        )
        await self.writer.drain()

    # ─────────────────────────────────────────────────────────────────────
    # MAIN LOOP
    # ─────────────────────────────────────────────────────────────────────

    async def serve(self) -> None:
        """Serve requests until the connection closes or is detached."""
        detached = False
        try:
            while True:
                # ─── Wait for a complete request head ───
                if not self._ready:
                    if self._eof or self._upgraded:
                        break
                    try:
                        if not await self._read_more():
                            break
                    except asyncio.TimeoutError:
                        logger.debug(f"Read timeout on {self._connection_info['remote_address']}")
                        break
                    except httptools.HttpParserError as error:
                        logger.warning(f"Malformed request: {error}")
                        await self._send_bad_request()
                        break
                    continue

                raw = self._ready.popleft()
                if not self._publish(raw):
                    break

                # ─── Keep the body flowing while the request is handled ───
                if not raw.body.complete:
                    self._pump = asyncio.create_task(self._pump_body(raw))

                await raw.response.wait_finished()

                if raw.response.detached:
                    detached = True
                    return

                if self._pump is not None:
                    await self._pump
                    self._pump = None

                if not raw.response.keep_alive or self.writer.is_closing():
                    break
        except ConnectionError as error:
            logger.debug(f"Connection dropped: {error!r}")
        finally:
            if self._pump is not None and not self._pump.done():
                self._pump.cancel()
            if not detached:
                await self._close()

    async def _close(self) -> None:
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError):
            logger.debug("Error closing connection", exc_info=True)


# =============================================================================
# SERVER
# =============================================================================

_CLOSED = object()


class RequestServer:
    """
    A listening socket exposed as an async iterable of RawRequest.

        server = await RequestServer.bind("127.0.0.1", 8080)
        async for raw in server:
            ...

    Closing the server stops the iteration; requests already published are
    still answered.
    """

    def __init__(self, config: Optional[AdapterConfig] = None):
        self.config = config or AdapterConfig()
        self.serving: Optional["asyncio.Task[None]"] = None
        """Task consuming this server's requests, set by ``serve()``."""

        self._server: Optional[asyncio.AbstractServer] = None
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False

    @classmethod
    async def bind(
        cls,
        host: str,
        port: int,
        backlog: Optional[int] = None,
        config: Optional[AdapterConfig] = None,
    ) -> "RequestServer":
        """Start listening on ``host``:``port``."""
        server = cls(config)
        server._server = await asyncio.start_server(
            server._handle_client,
            host,
            port,
            backlog=server.config.backlog if backlog is None else backlog,
            reuse_address=True,
        )
        logger.info(f"Listening on {server.address}:{server.port}")
        return server

    @property
    def address(self) -> str:
        return self._sockname()[0]

    @property
    def port(self) -> int:
        return self._sockname()[1]

    def _sockname(self) -> Tuple[Any, ...]:
        if self._server is None or not self._server.sockets:
            raise ResponseStateError("The server is not listening.")
        return self._server.sockets[0].getsockname()

    @property
    def closed(self) -> bool:
        return self._closed

    def _accept(self, raw: RawRequest) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(raw)
        return True

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peer = writer.get_extra_info("peername")
        logger.debug(f"Connection from {peer}")
        connection = HTTPConnection(reader, writer, self._accept, config=self.config)
        try:
            await connection.serve()
        except Exception:
            logger.exception(f"Connection handler for {peer} failed")

    # ─────────────────────────────────────────────────────────────────────
    # ITERATION
    # ─────────────────────────────────────────────────────────────────────

    def __aiter__(self) -> "RequestServer":
        return self

    async def __anext__(self) -> RawRequest:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    # ─────────────────────────────────────────────────────────────────────
    # LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """
        Stop listening and end the iteration.

        Waits up to ``shutdown_timeout`` seconds for open connections.
        """
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        if self._server is None:
            return
        self._server.close()
        try:
            await asyncio.wait_for(self._server.wait_closed(), self.config.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Connections still open after shutdown timeout")
        logger.info("Server closed")

    async def __aenter__(self) -> "RequestServer":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
