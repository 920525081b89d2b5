"""
Value types behind Request: query parameters, headers and the request URL.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
from urllib.parse import urlparse, urlunparse


class QueryParams:
    """
    Ordered query parameters; a name may repeat.

    Example:
        >>> params = QueryParams([("tag", "a"), ("tag", "b")])
        >>> params.get("tag"), params.get_all("tag")
        ('a', ['a', 'b'])
    """

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()):
        self._pairs: List[Tuple[str, str]] = list(pairs)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for key, value in self._pairs:
            if key == name:
                return value
        return default

    def get_all(self, name: str) -> List[str]:
        return [value for key, value in self._pairs if key == name]

    def pairs(self) -> List[Tuple[str, str]]:
        return list(self._pairs)

    def __contains__(self, name: object) -> bool:
        return any(key == name for key, _ in self._pairs)

    def __iter__(self) -> Iterator[str]:
        seen = set()
        for key, _ in self._pairs:
            if key not in seen:
                seen.add(key)
                yield key

    def __len__(self) -> int:
        return len(self._pairs)

    def __repr__(self) -> str:
        return f"QueryParams({self._pairs!r})"


class Headers:
    """
    Read-only view over ASGI header pairs.

    Lookups are case-insensitive; values are decoded as latin-1.
    """

    def __init__(self, raw: Sequence[Tuple[bytes, bytes]] = ()):
        self._values: Dict[str, List[str]] = {}
        self._names: Dict[str, str] = {}
        for name, value in raw:
            text = name.decode("latin-1")
            key = text.lower()
            self._names.setdefault(key, text)
            self._values.setdefault(key, []).append(value.decode("latin-1"))

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self._values.get(name.lower())
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        return list(self._values.get(name.lower(), []))

    def get_line(self, name: str) -> str:
        """All values of a header joined by comma, or an empty string."""
        return ", ".join(self.get_all(name))

    def to_dict(self) -> Dict[str, List[str]]:
        """Header name (as first seen) mapped to all of its values."""
        return {self._names[key]: list(values) for key, values in self._values.items()}

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __repr__(self) -> str:
        return f"Headers({self.to_dict()!r})"


@dataclass(frozen=True)
class URL:
    """Absolute request URL; default ports are left out of ``str()``."""

    scheme: str
    host: str
    port: Optional[int] = None
    path: str = "/"
    query: str = ""
    username: Optional[str] = None

    @classmethod
    def parse(cls, url: str) -> "URL":
        parsed = urlparse(url)
        return cls(
            scheme=parsed.scheme or "http",
            host=parsed.hostname or "",
            port=parsed.port,
            path=parsed.path or "/",
            query=parsed.query,
            username=parsed.username,
        )

    @property
    def netloc(self) -> str:
        netloc = f"{self.username}@{self.host}" if self.username else self.host
        if self.port and (self.scheme, self.port) not in (("http", 80), ("https", 443)):
            netloc += f":{self.port}"
        return netloc

    def __str__(self) -> str:
        return urlunparse((self.scheme, self.netloc, self.path, "", self.query, ""))
