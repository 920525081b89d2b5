"""
Login Only Middleware - keeps anonymous users out of a route.

A request is authenticated when ``request.state["user"]`` is set, or the
session (``request.state["session"]``) holds a ``user`` entry. Anonymous
browser requests are redirected to the login page; AJAX requests get a 401.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..middleware import Handler, RequestCtx
from ..request import Request
from ..response import Response
from ..security.login_url import LoginUrlBuilder

logger = logging.getLogger("perch.security")


def current_user(request: Request) -> Optional[Any]:
    user = request.state.get("user")
    if user is not None:
        return user
    session = request.state.get("session")
    if session is not None and hasattr(session, "get"):
        return session.get("user")
    return None


def is_ajax(request: Request) -> bool:
    requested_with = request.header("x-requested-with") or ""
    return requested_with.lower() == "xmlhttprequest"


class LoginOnlyMiddleware:
    """
    Args:
        url_builder: Builds the redirect target
        redirect_status: Status used for the redirect
    """

    def __init__(self, url_builder: LoginUrlBuilder, redirect_status: int = 302):
        self.url_builder = url_builder
        self.redirect_status = redirect_status

    async def __call__(self, request: Request, ctx: RequestCtx, next_handler: Handler) -> Response:
        if current_user(request) is not None:
            return await next_handler(request, ctx)

        if is_ajax(request):
            logger.info("Anonymous AJAX request to %s rejected", request.path)
            return Response.json(
                {"error": "Authentication required", "code": "LOGIN_REQUIRED"},
                status=401,
            )

        location = self.url_builder.build(request)
        logger.info("Anonymous request to %s redirected to %s", request.path, location)
        return Response.redirect(location, status=self.redirect_status)


__all__ = ["LoginOnlyMiddleware", "current_user", "is_ajax"]
