"""
=============================================================================
SERVING A HANDLER
=============================================================================

Ties the transport, the adapter and the error policy together.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST LIFECYCLE                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. CLIENT CONNECTS                                                │
    │      └── RequestServer accepts, HTTPConnection parses              │
    │                                                                      │
    │   2. REQUEST PUBLISHED                                              │
    │      └── serve_requests() pulls the RawRequest off the server      │
    │                                                                      │
    │   3. ONE TASK PER REQUEST                                           │
    │      └── handle_request(): adapt, dispatch, write                  │
    │                                                                      │
    │   4. FAILURE ESCAPES THE TASK                                       │
    │      └── reported as ASYNCHRONOUS_ERROR, connection aborted,       │
    │          the accept loop keeps going                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
USAGE
=============================================================================

    # Blocking, for scripts
    run(handler, AdapterConfig(port=3000))

    # Inside a running event loop
    server = await serve(handler, "127.0.0.1", 0)
    print(server.port)
    ...
    await server.close()

=============================================================================
"""

import asyncio
import functools
import logging
from typing import AsyncIterable, Optional, Set

from .config import DEFAULT_SERVER_NAME, AdapterConfig
from .core.adapter import handle_request
from .core.errors import ErrorHandler, ErrorLogger, ErrorType, catch_top_level_errors, log_error
from .core.trace import TraceFilter
from .core.transport import RawRequest, RequestServer
from .middleware.base import Handler


logger = logging.getLogger(__name__)


def _request_done(
    raw: RawRequest,
    report: ErrorHandler,
    pending: "Set[asyncio.Task[None]]",
    task: "asyncio.Task[None]",
) -> None:
    pending.discard(task)
    if task.cancelled():
        raw.response.abort()
        return
    error = task.exception()
    if error is not None:
        report(ErrorType.ASYNCHRONOUS_ERROR, error, error.__traceback__)
        raw.response.abort()


async def _accept_loop(
    requests: AsyncIterable[RawRequest],
    handler: Handler,
    report: ErrorHandler,
    server_name: str,
) -> None:
    pending: "Set[asyncio.Task[None]]" = set()
    iterator = requests.__aiter__()

    while True:
        try:
            raw = await iterator.__anext__()
        except StopAsyncIteration:
            break
        except Exception as error:
            report(ErrorType.ASYNCHRONOUS_ERROR, error, error.__traceback__)
            await asyncio.sleep(0)
            continue

        task = asyncio.create_task(
            handle_request(raw, handler, error_handler=report, server_name=server_name)
        )
        pending.add(task)
        task.add_done_callback(functools.partial(_request_done, raw, report, pending))

    # ─── Stream ended: let in-flight requests finish ───
    if pending:
        await asyncio.wait(set(pending))
    logger.debug("Request stream ended")


def serve_requests(
    requests: AsyncIterable[RawRequest],
    handler: Handler,
    *,
    error_handler: Optional[ErrorHandler] = None,
    server_name: str = DEFAULT_SERVER_NAME,
) -> "asyncio.Task[None]":
    """
    Dispatch every request of ``requests`` to ``handler``.

    Must be called from a running event loop. Each request runs in its own
    task; a failure escaping one is reported as ASYNCHRONOUS_ERROR and never
    stops the others. Exceptions nobody retrieved on the loop are reported
    the same way until the returned task finishes, when the loop's previous
    exception handler is put back.

    Returns:
        The task consuming ``requests``. It finishes once the stream ends
        and every request it started is done.
    """
    report = error_handler or log_error
    loop = asyncio.get_running_loop()

    def on_top_level_error(error: BaseException) -> None:
        report(ErrorType.ASYNCHRONOUS_ERROR, error, error.__traceback__)

    previous = catch_top_level_errors(loop, on_top_level_error)
    installed = loop.get_exception_handler()

    def restore(_: "asyncio.Task[None]") -> None:
        # Leave the handler alone if someone installed another one since.
        if loop.get_exception_handler() is installed:
            loop.set_exception_handler(previous)

    task = loop.create_task(_accept_loop(requests, handler, report, server_name))
    task.add_done_callback(restore)
    return task


async def serve(
    handler: Handler,
    host: str,
    port: int,
    *,
    backlog: Optional[int] = None,
    error_handler: Optional[ErrorHandler] = None,
    config: Optional[AdapterConfig] = None,
) -> RequestServer:
    """
    Listen on ``host``:``port`` and serve ``handler``.

    Without an explicit ``error_handler`` failures are logged by an
    ErrorLogger folding the packages named in
    ``config.trace_deny_packages``.

    Returns:
        The listening RequestServer; ``await server.close()`` stops it.
    """
    config = config or AdapterConfig(host=host, port=port)
    if error_handler is None:
        error_handler = ErrorLogger(
            trace_filter=TraceFilter(deny_packages=tuple(config.trace_deny_packages))
        )

    server = await RequestServer.bind(host, port, backlog=backlog, config=config)
    server.serving = serve_requests(
        server,
        handler,
        error_handler=error_handler,
        server_name=config.server_name,
    )
    return server


def setup_logging(config: AdapterConfig) -> None:
    """Configure logging based on config."""
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=config.log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    logging.getLogger("httpadapter").setLevel(level)


def run(
    handler: Handler,
    config: Optional[AdapterConfig] = None,
    *,
    error_handler: Optional[ErrorHandler] = None,
) -> None:
    """
    Serve ``handler`` until interrupted (blocking).

    Args:
        handler: The Handler to serve, usually ``Pipeline(...).add_handler``.
        config: Settings; read from the environment when omitted.
        error_handler: Overrides the default ErrorLogger.
    """
    config = config or AdapterConfig.from_env()
    config.validate()
    setup_logging(config)

    async def main() -> None:
        server = await serve(
            handler,
            config.host,
            config.port,
            error_handler=error_handler,
            config=config,
        )
        logger.info(f"Serving on http://{server.address}:{server.port}")
        try:
            await server.serving
        finally:
            await server.close()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
    logger.info("Server stopped")
