"""
Unit tests for error classification, diagnostics and trace folding.
"""

import asyncio
import json
import logging

import pytest

from httpadapter.core.errors import ErrorLogger, ErrorType, catch_top_level_errors, log_error
from httpadapter.core.trace import CORE, TraceFilter, frame_package
from httpadapter.http.body import Body


def raise_value_error():
    raise ValueError("boom")


def caught(func, *args, **kwargs) -> BaseException:
    try:
        func(*args, **kwargs)
    except Exception as error:
        return error
    raise AssertionError("expected an exception")


class TestErrorType:
    """Tests for the ErrorType classification."""

    @pytest.mark.parametrize("error_type, description, response_needed", [
        (ErrorType.ASYNCHRONOUS_ERROR, "Asynchronous error", False),
        (ErrorType.ERROR_PARSING_REQUEST, "Error parsing request", True),
        (
            ErrorType.CAUGHT_INVALID_HIJACK_EXCEPTION,
            "Caught HijackException, but the request wasn't hijacked.",
            True,
        ),
        (ErrorType.ERROR_THROWN_BY_HANDLER, "Error thrown by handler", True),
        (ErrorType.NULL_RESPONSE, "null response from handler.", True),
    ])
    def test_members(self, error_type, description, response_needed):
        """Test each member's description and response flag."""
        assert error_type.description == description
        assert error_type.response_needed is response_needed

    def test_str(self):
        """Test the rendered form."""
        assert str(ErrorType.NULL_RESPONSE) == 'ErrorType: "null response from handler."'

    def test_closed_set(self):
        """Test that there are exactly five kinds of failure."""
        assert len(ErrorType) == 5


class TestErrorLogger:
    """Tests for the default error handler."""

    def test_response_needed_returns_500(self, caplog):
        """Test that response-needed errors get an empty 500."""
        error = caught(raise_value_error)

        with caplog.at_level(logging.ERROR, logger="httpadapter.errors"):
            response = log_error(ErrorType.ERROR_THROWN_BY_HANDLER, error, error.__traceback__)

        assert response.status_code == 500
        assert response.headers["Content-Length"] == "0"

    def test_asynchronous_error_returns_none(self, caplog):
        """Test that ASYNCHRONOUS_ERROR produces no response."""
        error = caught(raise_value_error)

        with caplog.at_level(logging.ERROR, logger="httpadapter.errors"):
            assert log_error(ErrorType.ASYNCHRONOUS_ERROR, error) is None

        assert len(caplog.records) == 1

    def test_diagnostic_block(self, caplog):
        """Test the layout of one diagnostic block."""
        error = caught(raise_value_error)

        with caplog.at_level(logging.ERROR, logger="httpadapter.errors"):
            log_error(ErrorType.ERROR_THROWN_BY_HANDLER, error, error.__traceback__)

        record = caplog.records[0]
        lines = record.getMessage().split("\n")
        assert record.name == "httpadapter.errors"
        assert record.levelno == logging.ERROR
        assert lines[0].startswith("ERROR - ")
        assert lines[1] == "Error thrown by handler"
        assert lines[2] == "boom"
        assert "in raise_value_error" in record.getMessage()

    def test_error_without_message_uses_type_name(self):
        """Test that an exception with no message shows its type."""
        text = ErrorLogger().format(ErrorType.ERROR_THROWN_BY_HANDLER, KeyError())
        assert text.split("\n")[2] == "KeyError"

    def test_no_error(self):
        """Test a block for a failure without an exception."""
        text = ErrorLogger().format(ErrorType.NULL_RESPONSE)

        lines = text.split("\n")
        assert len(lines) == 2
        assert lines[1] == "null response from handler."

    def test_custom_logger(self):
        """Test that diagnostics go to the given logger."""
        records = []

        class ListHandler(logging.Handler):
            def emit(self, record):
                records.append(record)

        logger = logging.getLogger("tests.errors.custom")
        logger.addHandler(ListHandler())
        logger.propagate = False

        ErrorLogger(logger=logger)(ErrorType.ASYNCHRONOUS_ERROR, RuntimeError("late"))

        assert len(records) == 1
        assert "late" in records[0].getMessage()


class TestTraceFilter:
    """Tests for folding frames out of traces."""

    def test_standard_library_frames_folded(self):
        """Test that stdlib frames collapse into a single line."""
        def explode(obj):
            raise ValueError("from hook")

        error = caught(json.loads, '{"a": 1}', object_hook=explode)

        text = TraceFilter(deny_packages=()).format(error.__traceback__)

        assert "in explode" in text
        assert "frames folded" in text or "frame folded" in text
        assert "json" not in "".join(
            line for line in text.splitlines() if line.lstrip().startswith("File")
        )

    def test_denied_package_folded(self):
        """Test that frames of a denied package are folded."""
        error = caught(Body, object())

        text = TraceFilter(deny_packages=("httpadapter",)).format(error.__traceback__)

        assert "in caught" in text
        assert "1 frame folded (last: body.py in __init__)" in text

    def test_allow_wins_over_deny(self):
        """Test that an allowed package is kept even when denied."""
        error = caught(Body, object())

        text = TraceFilter(
            deny_packages=("httpadapter",),
            allow_packages=("httpadapter",),
        ).format(error.__traceback__)

        assert "folded" not in text
        assert "body.py" in text

    def test_unknown_package_ignored(self):
        """Test that naming a package that isn't installed is harmless."""
        error = caught(raise_value_error)

        text = TraceFilter(deny_packages=("no_such_package_here",)).format(error.__traceback__)

        assert "in raise_value_error" in text

    def test_current_stack(self):
        """Test that a None trace means the current stack."""
        text = TraceFilter().format(None)
        assert "in test_current_stack" in text

    def test_frame_package(self):
        """Test classification of frozen and stdlib files."""
        assert frame_package("<frozen importlib._bootstrap>") == CORE
        assert frame_package(json.__file__) == CORE
        assert frame_package(__file__) is None


class TestCatchTopLevelErrors:
    """Tests for routing unhandled loop exceptions."""

    @pytest.mark.asyncio
    async def test_exceptions_routed(self):
        """Test that loop exceptions reach the callback."""
        loop = asyncio.get_running_loop()
        errors = []
        previous = catch_top_level_errors(loop, errors.append)
        try:
            error = RuntimeError("nobody awaited this")
            loop.call_exception_handler({"message": "unhandled", "exception": error})
        finally:
            loop.set_exception_handler(previous)

        assert errors == [error]

    @pytest.mark.asyncio
    async def test_messages_without_exception_delegated(self):
        """Test that plain loop messages go to the previous handler."""
        loop = asyncio.get_running_loop()
        contexts, errors = [], []
        loop.set_exception_handler(lambda loop, context: contexts.append(context))
        previous = catch_top_level_errors(loop, errors.append)
        try:
            loop.call_exception_handler({"message": "just a note"})
        finally:
            loop.set_exception_handler(None)

        assert errors == []
        assert contexts[0]["message"] == "just a note"
        assert previous is not None
