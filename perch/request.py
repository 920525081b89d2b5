"""
Request object for Perch.

Requests are built from an ASGI-style scope plus an already buffered body;
reading the socket is the host server's job.
"""

from __future__ import annotations

from http.cookies import SimpleCookie
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl

from ._datastructures import Headers, QueryParams, URL


class Request:
    """
    HTTP request.

    Args:
        scope: ASGI scope dict (method, path, query_string, headers, client, ...)
        body: Complete request body
    """

    def __init__(self, scope: Mapping[str, Any], body: bytes = b""):
        self.scope = scope
        self._body = body

        self.state: Dict[str, Any] = {}

        self._query_params: Optional[QueryParams] = None
        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None
        self._url: Optional[URL] = None

    @classmethod
    def build(
        cls,
        method: str = "GET",
        url: str = "/",
        *,
        headers: Optional[Union[Mapping[str, str], List[Tuple[str, str]]]] = None,
        body: Union[bytes, str] = b"",
        client: Optional[Tuple[str, int]] = ("127.0.0.1", 0),
        http_version: str = "1.1",
    ) -> "Request":
        """
        Build a request from plain values.

        Example:
            >>> Request.build("POST", "/users?page=2", headers={"Cookie": "a=1"}, body="{}")
        """
        parsed = URL.parse(url)
        pairs = list(headers.items()) if isinstance(headers, Mapping) else list(headers or [])
        if parsed.host and not any(name.lower() == "host" for name, _ in pairs):
            host = parsed.host + (f":{parsed.port}" if parsed.port else "")
            pairs.insert(0, ("host", host))
        if isinstance(body, str):
            body = body.encode("utf-8")
        scope = {
            "type": "http",
            "http_version": http_version,
            "method": method.upper(),
            "scheme": parsed.scheme,
            "path": parsed.path,
            "query_string": parsed.query.encode("latin-1"),
            "headers": [(n.lower().encode("latin-1"), v.encode("latin-1")) for n, v in pairs],
            "client": client,
            "user_info": parsed.username,
        }
        return cls(scope, body=body)

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET")

    @property
    def http_version(self) -> str:
        return self.scope.get("http_version", "1.1")

    @property
    def path(self) -> str:
        return self.scope.get("path", "/")

    @property
    def scheme(self) -> str:
        return self.scope.get("scheme", "http")

    @property
    def query_string(self) -> str:
        return self.scope.get("query_string", b"").decode("utf-8", "replace")

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    @property
    def body(self) -> bytes:
        return self._body

    # ========================================================================
    # Query Parameters
    # ========================================================================

    @property
    def query_params(self) -> QueryParams:
        if self._query_params is None:
            self._query_params = QueryParams(parse_qsl(self.query_string, keep_blank_values=True))
        return self._query_params

    def query_param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.query_params.get(name, default)

    # ========================================================================
    # Headers & Cookies
    # ========================================================================

    @property
    def headers(self) -> Headers:
        if self._headers is None:
            self._headers = Headers(self.scope.get("headers", []))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    def header_line(self, name: str) -> str:
        """All values of a header joined by comma; empty string when absent."""
        return self.headers.get_line(name)

    @property
    def cookies(self) -> Mapping[str, str]:
        if self._cookies is None:
            cookie_header = self.header("cookie", "")
            if cookie_header:
                cookie = SimpleCookie()
                cookie.load(cookie_header)
                self._cookies = {key: morsel.value for key, morsel in cookie.items()}
            else:
                self._cookies = {}
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.cookies.get(name, default)

    # ========================================================================
    # URL
    # ========================================================================

    def url(self) -> URL:
        """Get full request URL."""
        if self._url is None:
            host = self.header("host", "localhost")
            port = None
            if ":" in host and not host.endswith("]"):
                host_part, port_part = host.rsplit(":", 1)
                try:
                    port = int(port_part)
                    host = host_part
                except ValueError:
                    port = None
            self._url = URL(
                scheme=self.scheme,
                host=host,
                port=port,
                path=self.path,
                query=self.query_string,
                username=self.scope.get("user_info"),
            )
        return self._url

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
