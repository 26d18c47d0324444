"""
pytest configuration and fixtures.
"""

import asyncio
from typing import Any, Callable, List, Optional, Sequence, Tuple

import pytest
from multidict import CIMultiDict

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpadapter import AdapterConfig, ErrorType, Response
from httpadapter.core.transport import RawBody, RawRequest, RawResponse


class MemoryWriter:
    """In-memory stand-in for asyncio.StreamWriter."""

    def __init__(self):
        self.data = bytearray()
        self.closed = False

    def write(self, data: bytes) -> None:
        self.data.extend(data)

    async def drain(self) -> None:
        pass

    def close(self) -> None:
        self.closed = True

    def is_closing(self) -> bool:
        return self.closed

    async def wait_closed(self) -> None:
        pass

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        return {
            "peername": ("127.0.0.1", 50000),
            "sockname": ("127.0.0.1", 8080),
        }.get(name, default)


class RecordingErrorHandler:
    """Error handler that remembers every report."""

    def __init__(self, response: Optional[Response] = None, answer: bool = True):
        self.calls: List[Tuple[ErrorType, Optional[BaseException]]] = []
        self._response = response
        self._answer = answer

    def __call__(self, error_type, error=None, trace=None):
        self.calls.append((error_type, error))
        if not self._answer or not error_type.response_needed:
            return None
        return self._response or Response.internal_server_error()

    @property
    def types(self) -> List[ErrorType]:
        return [error_type for error_type, _ in self.calls]


def parse_http_response(data: bytes) -> Tuple[int, "CIMultiDict[str]", bytes]:
    """Split a serialized response into (status, headers, decoded body)."""
    head, _, rest = bytes(data).partition(b"\r\n\r\n")
    lines = head.decode("latin-1").split("\r\n")
    status = int(lines[0].split(" ", 2)[1])
    headers: CIMultiDict[str] = CIMultiDict()
    for line in lines[1:]:
        name, _, value = line.partition(":")
        headers.add(name.strip(), value.strip())

    if headers.get("Transfer-Encoding", "").lower() == "chunked":
        body = bytearray()
        while True:
            size_line, _, rest = rest.partition(b"\r\n")
            size = int(size_line, 16)
            if size == 0:
                break
            body.extend(rest[:size])
            rest = rest[size + 2:]
        return status, headers, bytes(body)
    return status, headers, rest


async def read_http_response(reader: asyncio.StreamReader) -> Tuple[int, "CIMultiDict[str]", bytes]:
    """Read exactly one response from a client connection."""
    head = await reader.readuntil(b"\r\n\r\n")
    status, headers, _ = parse_http_response(head)

    if "Content-Length" in headers:
        body = await reader.readexactly(int(headers["Content-Length"]))
    elif headers.get("Transfer-Encoding", "").lower() == "chunked":
        parts = bytearray()
        while True:
            size = int((await reader.readuntil(b"\r\n"))[:-2], 16)
            chunk = await reader.readexactly(size + 2)
            if size == 0:
                break
            parts.extend(chunk[:-2])
        body = bytes(parts)
    else:
        body = await reader.read()
    return status, headers, body


@pytest.fixture
def memory_writer() -> MemoryWriter:
    """A fresh in-memory stream writer."""
    return MemoryWriter()


@pytest.fixture
def make_raw_request() -> Callable[..., Tuple[RawRequest, MemoryWriter]]:
    """
    Factory for transport requests backed by a MemoryWriter.

    Returns (raw_request, writer); the writer collects the wire bytes.
    """

    def factory(
        method: str = "GET",
        target: str = "/",
        headers: Sequence[Tuple[str, str]] = (("Host", "localhost:8080"),),
        body: bytes = b"",
        protocol_version: str = "1.1",
    ) -> Tuple[RawRequest, MemoryWriter]:
        writer = MemoryWriter()
        raw_body = RawBody()
        raw_body.feed_data(body)
        raw_body.feed_eof()
        response = RawResponse(
            writer,
            reader=object(),
            protocol_version=protocol_version,
            method=method,
        )
        raw = RawRequest(
            method,
            target,
            protocol_version=protocol_version,
            headers=CIMultiDict(headers),
            body=raw_body,
            response=response,
            connection_info={
                "remote_address": ("127.0.0.1", 50000),
                "local_address": ("127.0.0.1", 8080),
            },
        )
        return raw, writer

    return factory


@pytest.fixture
def parse_response() -> Callable[[bytes], Tuple[int, "CIMultiDict[str]", bytes]]:
    """Parser for serialized responses."""
    return parse_http_response


@pytest.fixture
def read_response():
    """Reader for one response on a client connection."""
    return read_http_response


@pytest.fixture
def recorder() -> RecordingErrorHandler:
    """Error handler recording reports and answering with a 500."""
    return RecordingErrorHandler()


@pytest.fixture
def recorder_factory() -> Callable[..., RecordingErrorHandler]:
    """Build recording error handlers with a custom answer."""
    return RecordingErrorHandler


@pytest.fixture
def config() -> AdapterConfig:
    """Test server configuration."""
    return AdapterConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        read_timeout=5.0,
        shutdown_timeout=1.0,
        log_level="WARNING",
    )
