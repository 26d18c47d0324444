"""
=============================================================================
HANDLERS, MIDDLEWARE AND PIPELINES
=============================================================================

A Handler turns a Request into a Response. A Middleware turns a Handler
into another Handler. A Pipeline chains middleware around a final handler.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    ONION MODEL                                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Pipeline().add_middleware(m1).add_middleware(m2).add_handler(h)   │
    │                                                                      │
    │            ┌─────────────────────────────────────────┐              │
    │            │  m1                                     │              │
    │            │  ┌───────────────────────────────────┐  │              │
    │   request ─┼─►│  m2                               │  │              │
    │            │  │  ┌─────────────────────────────┐  │  │              │
    │            │  │  │            h                │  │  │              │
    │            │  │  └─────────────────────────────┘  │  │              │
    │   response◄┼──│                                   │  │              │
    │            │  └───────────────────────────────────┘  │              │
    │            └─────────────────────────────────────────┘              │
    │                                                                      │
    │   m1 sees the request first and the response last.                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Handlers and every hook may be plain functions or coroutine functions; the
composed handler is always a coroutine function.

=============================================================================
HIJACKING AND MIDDLEWARE
=============================================================================

``HijackException`` is not a failure. It tells the adapter that the
connection was taken over. Every helper here lets it pass untouched, and
custom middleware must do the same.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Iterator, Optional, Sequence, Tuple, Union

from ..http.hijack import HijackException
from ..http.request import Request
from ..http.response import Response
from ..util import resolve


logger = logging.getLogger(__name__)


# =============================================================================
# TYPE ALIASES
# =============================================================================

Handler = Callable[[Request], Union[Response, Awaitable[Optional[Response]], None]]

Middleware = Callable[[Handler], Handler]


# =============================================================================
# PIPELINE
# =============================================================================

class Pipeline:
    """
    Immutable, ordered chain of middleware.

    Each ``add_middleware`` returns a new Pipeline, so a partially built
    pipeline can be shared and extended in different directions:

        base = Pipeline().add_middleware(log_requests)
        api = base.add_middleware(require_token).add_handler(api_handler)
        static = base.add_handler(static_handler)
    """

    def __init__(self, middleware: Sequence[Middleware] = ()):
        self._middleware: Tuple[Middleware, ...] = tuple(middleware)

    def add_middleware(self, middleware: Middleware) -> "Pipeline":
        """Return a new Pipeline with ``middleware`` as the innermost layer."""
        logger.debug(f"Adding middleware: {_name(middleware)}")
        return Pipeline(self._middleware + (middleware,))

    def add_handler(self, handler: Handler) -> Handler:
        """
        Wrap ``handler`` in every middleware of this pipeline.

        Wrapping runs from the innermost layer outwards, so the first
        middleware added ends up outermost:

            [m1, m2, m3] + h   ──►   m1(m2(m3(h)))
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = middleware(current)
        return current

    def as_middleware(self) -> Middleware:
        """Collapse this pipeline into a single Middleware."""
        return self.add_handler

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self) -> Iterator[Middleware]:
        return iter(self._middleware)


def _name(middleware: Any) -> str:
    return getattr(middleware, "name", None) or getattr(
        middleware, "__name__", type(middleware).__name__
    )


# =============================================================================
# HOOK-BASED MIDDLEWARE
# =============================================================================

def create_middleware(
    request_handler: Optional[Callable[[Request], Any]] = None,
    response_handler: Optional[Callable[[Response], Any]] = None,
    error_handler: Optional[Callable[[Exception], Any]] = None,
) -> Middleware:
    """
    Build a Middleware from up to three hooks.

    Args:
        request_handler: Called first. Returning a Response answers the
            request without calling the inner handler; returning None
            continues.
        response_handler: Receives the inner handler's response and returns
            the one to send. Its own exceptions propagate like any handler
            error.
        error_handler: Receives exceptions raised by the inner handler (never
            HijackException) and returns a Response, or re-raises.

    A short-circuit response from ``request_handler`` does not go through
    ``response_handler``.
    """

    def middleware(inner: Handler) -> Handler:
        async def handler(request: Request) -> Optional[Response]:
            if request_handler is not None:
                early = await resolve(request_handler(request))
                if early is not None:
                    return early

            try:
                response = await resolve(inner(request))
            except HijackException:
                raise
            except Exception as error:
                if error_handler is None:
                    raise
                return await resolve(error_handler(error))

            if response_handler is None or response is None:
                return response
            return await resolve(response_handler(response))

        return handler

    return middleware


# =============================================================================
# CLASS-BASED MIDDLEWARE
# =============================================================================

class BaseMiddleware(ABC):
    """
    Base class for stateful middleware.

    Subclasses implement ``handle`` and receive the inner handler as an
    argument:

        class Timing(BaseMiddleware):
            async def handle(self, request, inner):
                started = time.monotonic()
                response = await inner(request)
                elapsed = f"{time.monotonic() - started:.3f}"
                return response.change(headers={"X-Elapsed": elapsed})

        pipeline = Pipeline().add_middleware(Timing())

    ``inner`` is always awaitable, whatever kind of handler it wraps.
    """

    @abstractmethod
    def handle(
        self,
        request: Request,
        inner: Callable[[Request], Awaitable[Optional[Response]]],
    ) -> Any:
        """
        Process one request.

        Call ``await inner(request)`` to continue the chain, or return a
        Response directly to short-circuit. May be sync or async.
        """

    @property
    def name(self) -> str:
        """The middleware name used in log messages."""
        return self.__class__.__name__

    def __call__(self, inner: Handler) -> Handler:
        async def call_inner(request: Request) -> Optional[Response]:
            return await resolve(inner(request))

        async def handler(request: Request) -> Optional[Response]:
            return await resolve(self.handle(request, call_inner))

        return handler


class FunctionMiddleware(BaseMiddleware):
    """Adapts a ``(request, inner) -> response`` function to BaseMiddleware."""

    def __init__(self, func: Callable[..., Any], name: Optional[str] = None):
        self._func = func
        self._name = name or func.__name__

    def handle(self, request, inner):
        return self._func(request, inner)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(func: Callable[..., Any]) -> FunctionMiddleware:
    """
    Decorator turning a ``(request, inner)`` function into middleware.

        @function_middleware
        async def add_version(request, inner):
            response = await inner(request)
            return response.change(headers={"X-Version": "1"})

        handler = Pipeline().add_middleware(add_version).add_handler(app)
    """
    return FunctionMiddleware(func)
