"""
=============================================================================
MIDDLEWARE COMPOSITION
=============================================================================

Middleware wraps a Handler to add behaviour around it: checking requests,
decorating responses, turning failures into answers. Three ways to write
one:

    create_middleware(request_handler=..., response_handler=...)
    class Auth(BaseMiddleware): def handle(self, request, inner): ...
    @function_middleware
    def tag(request, inner): ...

and one way to chain them:

    handler = Pipeline().add_middleware(a).add_middleware(b).add_handler(app)

=============================================================================
"""

from .base import (
    BaseMiddleware,
    FunctionMiddleware,
    Handler,
    Middleware,
    Pipeline,
    create_middleware,
    function_middleware,
)

__all__ = [
    "BaseMiddleware",
    "FunctionMiddleware",
    "Handler",
    "Middleware",
    "Pipeline",
    "create_middleware",
    "function_middleware",
]
