"""
Router - the route table.

Routes are matched in registration order. Registration happens once at
startup; after that the table is only read.
"""

from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union
from urllib.parse import urlencode

from ..faults.domains import ConfigFault, SecurityFault
from ..middleware import RequestCtx
from ..request import Request
from ..response import Response
from .route import Route, RouteGroup

logger = logging.getLogger("perch.routing")


@dataclass
class RouteMatch:
    """Result of a successful route match."""
    route: Route
    params: Dict[str, str]


class Router:
    """
    Route table with prefix groups, named routes and dispatch.

    Example:
        router = Router()
        router.group("/api", lambda g: g.map("GET", "/users", list_users))
        match = router.match("GET", "/api/users")
    """

    def __init__(self):
        self.routes: List[Route] = []
        self._named: Dict[str, Route] = {}

    # ========================================================================
    # Registration
    # ========================================================================

    def map(self, methods: Union[str, Sequence[str]], pattern: str, handler: Callable[..., Any]) -> Route:
        route = Route(methods, pattern, handler, router=self)
        self.routes.append(route)
        logger.debug("Mapped %s %s", "|".join(route.methods), pattern)
        return route

    def group(self, prefix: str, callback: Callable[[RouteGroup], Any]) -> RouteGroup:
        group = RouteGroup(self, prefix)
        callback(group)
        return group

    def _name_route(self, route: Route, name: str) -> None:
        existing = self._named.get(name)
        if existing is not None and existing is not route:
            raise ConfigFault(
                "ROUTE_NAME_DUPLICATE",
                f"Route name '{name}' is already used by {existing!r}",
                metadata={"name": name, "pattern": route.pattern},
            )
        self._named[name] = route

    @contextmanager
    def transaction(self) -> Iterator["Router"]:
        """
        Restore the route table if the block raises.

        Startup registration runs inside a transaction so a failed pass never
        leaves a partially populated table behind.
        """
        routes = list(self.routes)
        named = dict(self._named)
        try:
            yield self
        except BaseException:
            self.routes[:] = routes
            self._named = named
            logger.debug("Route table rolled back to %d routes", len(routes))
            raise

    # ========================================================================
    # Lookup
    # ========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        method = method.upper()
        for route in self.routes:
            if method not in route.methods and not (method == "HEAD" and "GET" in route.methods):
                continue
            params = route.match(path)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    def allowed_methods(self, path: str) -> List[str]:
        allowed: List[str] = []
        for route in self.routes:
            if route.match(path) is not None:
                allowed.extend(m for m in route.methods if m not in allowed)
        return allowed

    def get(self, name: str) -> Route:
        try:
            return self._named[name]
        except KeyError:
            raise KeyError(f"No route named '{name}'") from None

    def url_for(self, name: str, /, **params: Any) -> str:
        """
        Reverse URL generation for a named route.

        Parameters not used by the pattern become the query string.
        """
        route = self.get(name)
        query = {k: v for k, v in params.items() if k not in route.param_names}
        path = route.pattern
        for key in route.param_names:
            if key not in params:
                raise ValueError(f"Missing parameter '{key}' for route '{name}'")
            path = _fill(path, key, str(params[key]))
        if query:
            path += "?" + urlencode(query)
        return path

    def get_routes(self) -> List[Dict[str, Any]]:
        return [route.describe() for route in self.routes]

    # ========================================================================
    # Dispatch
    # ========================================================================

    async def dispatch(self, request: Request, container: Optional[Any] = None) -> Response:
        matched = self.match(request.method, request.path)
        if matched is None:
            allowed = self.allowed_methods(request.path)
            if allowed:
                return Response.json(
                    {"error": "Method Not Allowed"},
                    status=405,
                    headers={"allow": ", ".join(allowed)},
                )
            return Response.json({"error": "Not Found"}, status=404)

        ctx = RequestCtx(
            request=request,
            params=matched.params,
            route=matched.route,
            container=container,
        )
        request.state["url_builder"] = self.url_for
        try:
            return await matched.route.handle(request, ctx)
        except SecurityFault as fault:
            logger.info("%s %s rejected: %s", request.method, request.path, fault)
            headers = {"x-fault-code": fault.code}
            retry_after = getattr(fault, "retry_after", None)
            if retry_after is not None:
                headers["retry-after"] = str(max(1, int(retry_after)))
            return Response.json(
                {"error": fault.message, "code": fault.code},
                status=fault.status,
                headers=headers,
            )


def _fill(pattern: str, key: str, value: str) -> str:
    return re.sub(r"\{" + re.escape(key) + r"(?::[^{}]+)?\}", lambda _: value, pattern)
