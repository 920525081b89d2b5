"""
Login URL builders.

Where anonymous users are sent when a route requires a login.
"""

from __future__ import annotations

from typing import Optional, Protocol
from urllib.parse import quote_plus

from ..request import Request


class LoginUrlBuilder(Protocol):
    """Builds the login URL for a request that needs an authenticated user."""

    def build(self, request: Request) -> str:
        ...


class DefaultLoginUrlBuilder:
    """
    ``login_url`` with the current request URL appended as ``redirect_param``.

    Example:
        >>> DefaultLoginUrlBuilder().build(Request.build("GET", "http://example.com/a?b=1"))
        '/login?redirect=http%3A%2F%2Fexample.com%2Fa%3Fb%3D1'
    """

    def __init__(self, login_url: str = "/login", redirect_param: Optional[str] = "redirect"):
        self.login_url = login_url
        self.redirect_param = redirect_param

    def build(self, request: Request) -> str:
        if self.redirect_param is None:
            return self.login_url
        separator = "&" if "?" in self.login_url else "?"
        return f"{self.login_url}{separator}{self.redirect_param}={quote_plus(str(request.url()))}"
