"""
Response object for Perch.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union


class Response:
    """
    HTTP response with a fully materialized body.

    Args:
        content: Response body (bytes, str, dict/list serialized as JSON)
        status: HTTP status code
        headers: Response headers
        media_type: Content-Type override
    """

    def __init__(
        self,
        content: Union[bytes, str, Mapping, Sequence, None] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
    ):
        self.status = status

        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                if isinstance(value, (list, tuple)):
                    self._headers[key.lower()] = list(value)
                else:
                    self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = self._detect_media_type(content)

        self.body = self._encode(content)

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        return self._headers

    @property
    def body_size(self) -> int:
        return len(self.body)

    @staticmethod
    def _detect_media_type(content: Any) -> str:
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        if isinstance(content, str):
            return "text/plain; charset=utf-8"
        return "application/octet-stream"

    @staticmethod
    def _encode(content: Any) -> bytes:
        if content is None:
            return b""
        if isinstance(content, bytes):
            return content
        if isinstance(content, str):
            return content.encode("utf-8")
        return json.dumps(content, default=str).encode("utf-8")

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(cls, obj: Any, status: int = 200, headers: Optional[Mapping[str, str]] = None) -> "Response":
        return cls(
            json.dumps(obj, default=str).encode("utf-8"),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def redirect(cls, url: str, status: int = 302) -> "Response":
        return cls(b"", status=status, headers={"location": url})

    def set_cookie(self, cookie: str) -> None:
        """Append a raw Set-Cookie value without overwriting earlier ones."""
        existing = self._headers.get("set-cookie")
        if existing is None:
            self._headers["set-cookie"] = cookie
        elif isinstance(existing, list):
            existing.append(cookie)
        else:
            self._headers["set-cookie"] = [existing, cookie]

    def __repr__(self) -> str:
        return f"<Response {self.status}>"
