"""
Middleware system - async middleware chains.

Every middleware follows the same signature:

    async def __call__(self, request, ctx, next_handler) -> Response
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .request import Request
from .response import Response


@dataclass
class RequestCtx:
    """
    Request context handed to middleware and controller methods.

    Attributes:
        request: The HTTP request
        params: Path parameters captured by the matched route
        route: The matched route
        container: DI container
        state: Additional state dictionary
    """

    request: Request
    params: Dict[str, str] = field(default_factory=dict)
    route: Optional[Any] = None
    container: Optional[Any] = None
    state: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def method(self) -> str:
        return self.request.method


Handler = Callable[[Request, RequestCtx], Awaitable[Response]]
Middleware = Callable[[Request, RequestCtx, Handler], Awaitable[Response]]


def compose(middlewares: Sequence[Middleware], final_handler: Handler) -> Handler:
    """
    Build a handler running ``middlewares`` in order around ``final_handler``.

    The first middleware is the outermost one.
    """
    handler = final_handler
    for middleware in reversed(list(middlewares)):
        handler = _wrap(middleware, handler)
    return handler


def _wrap(middleware: Middleware, next_handler: Handler) -> Handler:
    async def wrapped(request: Request, ctx: RequestCtx) -> Response:
        return await middleware(request, ctx, next_handler)

    return wrapped


def middleware_name(middleware: Any) -> str:
    """Readable name for listings and logs."""
    if hasattr(middleware, "__name__"):
        return middleware.__name__
    return type(middleware).__name__


__all__: List[str] = ["RequestCtx", "Handler", "Middleware", "compose", "middleware_name"]
