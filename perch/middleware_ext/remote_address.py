"""
Client address resolution.

Proxies announce the original client in forwarding headers. The address
list is built from X-Forwarded-For, X-Real-IP and Client-IP (in that
order) followed by the socket peer; entries that are not valid IP
addresses are dropped.
"""

from __future__ import annotations

import ipaddress
from typing import List, Optional

from ..request import Request

FORWARDING_HEADERS = ("x-forwarded-for", "x-real-ip", "client-ip")


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def get_all(request: Request) -> List[str]:
    """All client addresses known for the request, most original first."""
    addresses: List[str] = []
    for header in FORWARDING_HEADERS:
        for value in request.headers.get_all(header):
            for candidate in value.split(","):
                candidate = candidate.strip()
                if candidate and _valid_ip(candidate) and candidate not in addresses:
                    addresses.append(candidate)

    client = request.client
    if client and client[0] and _valid_ip(client[0]) and client[0] not in addresses:
        addresses.append(client[0])
    return addresses


def get_remote_address(request: Request) -> Optional[str]:
    """The original client address, or None when nothing usable is known."""
    addresses = get_all(request)
    return addresses[0] if addresses else None


__all__ = ["get_all", "get_remote_address", "FORWARDING_HEADERS"]
