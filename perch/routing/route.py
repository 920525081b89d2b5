"""
Route and RouteGroup.

A Route binds one or more HTTP verbs and a path pattern to a handler and
carries the route's middleware chain. The chain order is the order in which
middleware was added; the first one added runs first.
"""

from __future__ import annotations

import inspect
import re
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..middleware import Middleware, RequestCtx, compose, middleware_name
from ..request import Request
from ..response import Response

if TYPE_CHECKING:
    from .router import Router


_PARAM_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)(?::([^{}]+))?\}")


def compile_pattern(pattern: str) -> Tuple["re.Pattern[str]", List[str]]:
    """
    Compile a path pattern into a regex.

    ``{id}`` matches one path segment, ``{path:.+}`` uses the given regex.
    """
    regex = ""
    names = []
    pos = 0
    for m in _PARAM_RE.finditer(pattern):
        regex += re.escape(pattern[pos:m.start()])
        name, expr = m.group(1), m.group(2) or "[^/]+"
        regex += f"(?P<{name}>{expr})"
        names.append(name)
        pos = m.end()
    regex += re.escape(pattern[pos:])
    return re.compile(f"^{regex}$"), names


def normalize_methods(methods: Union[str, Sequence[str]]) -> Tuple[str, ...]:
    if isinstance(methods, str):
        methods = [methods]
    return tuple(m.upper() for m in methods)


class Route:
    """
    A registered route.

    Attributes:
        methods: Upper-cased HTTP verbs
        pattern: Full path pattern (group prefixes included)
        handler: Callable receiving the RequestCtx
        middleware: Ordered middleware chain
        name: Optional route name
    """

    def __init__(
        self,
        methods: Union[str, Sequence[str]],
        pattern: str,
        handler: Callable[..., Any],
        router: Optional["Router"] = None,
    ):
        self.methods = normalize_methods(methods)
        self.pattern = pattern
        self.handler = handler
        self.middleware: List[Middleware] = []
        self.name: Optional[str] = None
        self._router = router
        self._regex, self.param_names = compile_pattern(pattern)

    def add_middleware(self, middleware: Middleware) -> "Route":
        self.middleware.append(middleware)
        return self

    def set_name(self, name: str) -> "Route":
        if self._router is not None:
            self._router._name_route(self, name)
        self.name = name
        return self

    def match(self, path: str) -> Optional[Dict[str, str]]:
        m = self._regex.match(path)
        if m is None:
            return None
        return m.groupdict()

    async def handle(self, request: Request, ctx: RequestCtx) -> Response:
        """Run the middleware chain around the handler."""
        return await compose(self.middleware, self._invoke)(request, ctx)

    async def _invoke(self, request: Request, ctx: RequestCtx) -> Response:
        result = self.handler(ctx)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, Response):
            return result
        return Response(result)

    @property
    def handler_name(self) -> str:
        func = getattr(self.handler, "__func__", self.handler)
        return getattr(func, "__qualname__", repr(func))

    def describe(self) -> Dict[str, Any]:
        return {
            "methods": list(self.methods),
            "pattern": self.pattern,
            "name": self.name,
            "handler": self.handler_name,
            "middleware": [middleware_name(m) for m in self.middleware],
        }

    def __repr__(self) -> str:
        return f"<Route {'|'.join(self.methods)} {self.pattern}>"


class RouteGroup:
    """
    Route collector scoped to a URL prefix.

    Routes mapped through a group land in the owning router with the prefix
    prepended to their pattern.
    """

    def __init__(self, router: "Router", prefix: str):
        self.router = router
        self.prefix = prefix

    def map(self, methods: Union[str, Sequence[str]], pattern: str, handler: Callable[..., Any]) -> Route:
        return self.router.map(methods, self.prefix + pattern, handler)

    def group(self, prefix: str, callback: Callable[["RouteGroup"], Any]) -> "RouteGroup":
        group = RouteGroup(self.router, self.prefix + prefix)
        callback(group)
        return group

    def __repr__(self) -> str:
        return f"<RouteGroup {self.prefix}>"
