"""
Unit tests for the abstract Response.
"""

from datetime import datetime

import pytest

from httpadapter.http import HTTPStatus, Response, allows_body, format_http_date, reason_phrase


class TestResponse:
    """Tests for the Response constructor."""

    def test_status_below_100_rejected(self):
        """Test that status codes below 100 are invalid."""
        with pytest.raises(ValueError, match="Invalid status code: 99."):
            Response(99)

    @pytest.mark.asyncio
    async def test_text_body(self):
        """Test a str body gets length and content type."""
        response = Response(200, body="hello")

        assert response.headers["Content-Length"] == "5"
        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert await response.read_bytes() == b"hello"

    def test_explicit_content_type_kept(self):
        """Test that a given Content-Type is not overridden."""
        response = Response(200, body="{}", headers={"Content-Type": "application/json"})
        assert response.headers["Content-Type"] == "application/json"

    def test_bytes_body_has_no_content_type(self):
        """Test that bytes bodies get a length but no content type."""
        response = Response(200, body=b"\x00\x01")

        assert response.headers["Content-Length"] == "2"
        assert "Content-Type" not in response.headers

    def test_stream_body_has_no_length(self):
        """Test that a streamed body has no Content-Length."""
        async def chunks():
            yield b"a"

        response = Response(200, body=chunks())

        assert "Content-Length" not in response.headers
        assert response.content_length is None

    def test_no_content_has_no_length(self):
        """Test that statuses without a body get no Content-Length."""
        assert "Content-Length" not in Response(204).headers
        assert "Content-Length" not in Response.not_modified().headers

    def test_none_header_kept(self):
        """Test that a None header is stored on a Response."""
        response = Response.ok("hi", headers={"Server": None})

        assert "Server" in response.headers
        assert response.headers["Server"] is None

    def test_repr(self):
        """Test the debugging representation."""
        assert repr(Response(404)) == "<Response 404>"


class TestConvenienceConstructors:
    """Tests for the named constructors."""

    def test_ok(self):
        """Test 200 OK."""
        assert Response.ok().status_code == 200

    @pytest.mark.asyncio
    async def test_not_found(self):
        """Test 404 with its default body."""
        response = Response.not_found()

        assert response.status_code == 404
        assert await response.read_text() == "Not Found"

    @pytest.mark.asyncio
    async def test_forbidden(self):
        """Test 403 with its default body."""
        response = Response.forbidden()

        assert response.status_code == 403
        assert await response.read_text() == "Forbidden"

    @pytest.mark.asyncio
    async def test_internal_server_error_is_empty(self):
        """Test that the fallback 500 carries no body."""
        response = Response.internal_server_error()

        assert response.status_code == 500
        assert response.headers["Content-Length"] == "0"
        assert await response.read_bytes() == b""

    @pytest.mark.parametrize("factory, status", [
        (Response.moved_permanently, 301),
        (Response.found, 302),
        (Response.see_other, 303),
    ])
    def test_redirects(self, factory, status):
        """Test redirects set the Location header."""
        response = factory("/login")

        assert response.status_code == status
        assert response.headers["Location"] == "/login"

    def test_redirect_keeps_other_headers(self):
        """Test that extra headers survive a redirect constructor."""
        response = Response.found("/next", headers={"X-Reason": "moved"})

        assert response.headers["Location"] == "/next"
        assert response.headers["X-Reason"] == "moved"


class TestChange:
    """Tests for Response.change."""

    @pytest.mark.asyncio
    async def test_adds_headers_keeps_body(self):
        """Test change without a body keeps the original body."""
        response = Response.ok("hello").change(headers={"X-Extra": "1"})

        assert response.headers["X-Extra"] == "1"
        assert response.headers["Content-Length"] == "5"
        assert await response.read_bytes() == b"hello"

    @pytest.mark.asyncio
    async def test_new_body_recomputes_length(self):
        """Test that a new body drops the stale Content-Length."""
        response = Response.ok("hello").change(body="hi!!")

        assert response.headers["Content-Length"] == "4"
        assert await response.read_bytes() == b"hi!!"

    def test_none_suppresses_header(self):
        """Test that change stores None values."""
        response = Response.ok("hi").change(headers={"Date": None})
        assert response.headers["Date"] is None

    def test_status_kept(self):
        """Test that change keeps the status code."""
        assert Response(418).change(headers={"X": "1"}).status_code == 418


class TestStatusCodes:
    """Tests for status code helpers."""

    def test_reason_phrase(self):
        """Test reason phrases for known and unknown codes."""
        assert reason_phrase(200) == "OK"
        assert reason_phrase(404) == "Not Found"
        assert reason_phrase(599) == "Unknown"

    def test_enum_phrase(self):
        """Test the enum phrase property."""
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"

    @pytest.mark.parametrize("status, expected", [
        (100, False),
        (200, True),
        (204, False),
        (304, False),
        (500, True),
    ])
    def test_allows_body(self, status, expected):
        """Test which statuses may carry a body."""
        assert allows_body(status) is expected


class TestFormatHttpDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        """Test RFC 7231 formatting."""
        assert format_http_date(datetime(2026, 1, 1, 12, 0, 0)) == "Thu, 01 Jan 2026 12:00:00 GMT"
