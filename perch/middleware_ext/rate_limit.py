"""
Rate Limiting Middleware - per-client token bucket.

Each client key gets a bucket of ``limit`` tokens refilled over ``window``
seconds. An empty bucket raises RateLimitExceededFault, which the router
turns into a 429 response with Retry-After.

Follows the Perch async middleware signature:
    async def __call__(self, request, ctx, next_handler) -> Response
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional, Tuple

from ..faults.domains import RateLimitExceededFault
from ..middleware import Handler, RequestCtx
from ..request import Request
from ..response import Response
from .remote_address import get_remote_address

logger = logging.getLogger("perch.security")

KeyFunc = Callable[[Request], Optional[str]]


def ip_key_extractor(request: Request) -> str:
    """Extract client IP as rate-limit key."""
    return f"ip:{get_remote_address(request) or 'unknown'}"


class _TokenBucket:
    """
    Classic token bucket with lazy refill.

    Attributes:
        capacity: Maximum tokens in bucket.
        refill_rate: Tokens added per second.
        tokens: Current token count.
        last_refill: Timestamp of last refill.
    """

    __slots__ = ("capacity", "refill_rate", "tokens", "last_refill")

    def __init__(self, capacity: int, refill_rate: float, now: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = now

    def consume(self, now: float) -> Tuple[bool, float]:
        """
        Try to take one token.

        Returns:
            (allowed, retry_after_seconds)
        """
        elapsed = max(0.0, now - self.last_refill)
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True, 0.0
        return False, (1 - self.tokens) / self.refill_rate

    @property
    def remaining(self) -> int:
        return int(self.tokens)


class RateLimitMiddleware:
    """
    Args:
        limit: Requests allowed per window
        window: Window length in seconds
        key_func: Client key extractor; None from the extractor skips limiting
        max_keys: Upper bound on tracked clients (oldest evicted first)
        clock: Monotonic time source
    """

    def __init__(
        self,
        limit: int = 60,
        window: float = 60.0,
        key_func: Optional[KeyFunc] = None,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1 or window <= 0:
            raise ValueError("limit must be >= 1 and window > 0")
        self.limit = limit
        self.window = window
        self.key_func = key_func or ip_key_extractor
        self.max_keys = max_keys
        self._clock = clock
        self._buckets: Dict[str, _TokenBucket] = {}

    def _bucket(self, key: str, now: float) -> _TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            if len(self._buckets) >= self.max_keys:
                self._buckets.pop(next(iter(self._buckets)))
            bucket = _TokenBucket(self.limit, self.limit / self.window, now)
            self._buckets[key] = bucket
        return bucket

    async def __call__(self, request: Request, ctx: RequestCtx, next_handler: Handler) -> Response:
        key = self.key_func(request)
        if key is None:
            return await next_handler(request, ctx)

        now = self._clock()
        bucket = self._bucket(key, now)
        allowed, retry_after = bucket.consume(now)
        if not allowed:
            logger.warning("Rate limit exceeded for %s on %s", key, request.path)
            raise RateLimitExceededFault(self.limit, self.window, retry_after)

        response = await next_handler(request, ctx)
        response.headers.setdefault("x-ratelimit-limit", str(self.limit))
        response.headers.setdefault("x-ratelimit-remaining", str(bucket.remaining))
        return response


__all__ = ["RateLimitMiddleware", "ip_key_extractor"]
