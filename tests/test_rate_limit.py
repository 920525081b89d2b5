"""
Tests for RateLimitMiddleware and the RateLimit filter.
"""

import json

import pytest

from perch.config import RateLimitConfig
from perch.controller import RateLimit
from perch.di import Container
from perch.faults import RateLimitExceededFault
from perch.middleware_ext.rate_limit import RateLimitMiddleware, ip_key_extractor
from perch.response import Response
from perch.routing import Router

from tests.conftest import make_ctx, make_handler, make_request


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def ok(ctx):
    return Response(b"ok")


class TestKeyExtractor:

    def test_client_ip(self):
        assert ip_key_extractor(make_request(client=("10.1.1.1", 80))) == "ip:10.1.1.1"

    def test_forwarded_header_preferred(self):
        request = make_request(headers={"X-Forwarded-For": "203.0.113.9"})
        assert ip_key_extractor(request) == "ip:203.0.113.9"

    def test_unknown_client(self):
        assert ip_key_extractor(make_request(client=None)) == "ip:unknown"


class TestRateLimitMiddleware:

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            RateLimitMiddleware(limit=0)
        with pytest.raises(ValueError):
            RateLimitMiddleware(window=0)

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        middleware = RateLimitMiddleware(limit=2, window=60, clock=FakeClock())
        request = make_request()

        first = await middleware(request, make_ctx(request), make_handler())
        second = await middleware(request, make_ctx(request), make_handler())
        assert first.headers["x-ratelimit-limit"] == "2"
        assert first.headers["x-ratelimit-remaining"] == "1"
        assert second.headers["x-ratelimit-remaining"] == "0"

        with pytest.raises(RateLimitExceededFault) as exc_info:
            await middleware(request, make_ctx(request), make_handler())
        assert exc_info.value.status == 429
        assert exc_info.value.retry_after == pytest.approx(30.0)

    @pytest.mark.asyncio
    async def test_refills_over_time(self):
        clock = FakeClock()
        middleware = RateLimitMiddleware(limit=1, window=10, clock=clock)
        request = make_request()

        await middleware(request, make_ctx(request), make_handler())
        with pytest.raises(RateLimitExceededFault):
            await middleware(request, make_ctx(request), make_handler())

        clock.now += 10
        response = await middleware(request, make_ctx(request), make_handler())
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_clients_limited_separately(self):
        middleware = RateLimitMiddleware(limit=1, window=60, clock=FakeClock())
        a = make_request(client=("10.0.0.1", 1))
        b = make_request(client=("10.0.0.2", 1))

        await middleware(a, make_ctx(a), make_handler())
        response = await middleware(b, make_ctx(b), make_handler())
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_none_key_skips_limiting(self):
        middleware = RateLimitMiddleware(limit=1, window=60, key_func=lambda r: None, clock=FakeClock())
        request = make_request()
        for _ in range(3):
            response = await middleware(request, make_ctx(request), make_handler())
            assert response.status == 200

    @pytest.mark.asyncio
    async def test_oldest_key_evicted(self):
        middleware = RateLimitMiddleware(limit=1, window=60, max_keys=1, clock=FakeClock())
        a = make_request(client=("10.0.0.1", 1))
        b = make_request(client=("10.0.0.2", 1))

        await middleware(a, make_ctx(a), make_handler())
        await middleware(b, make_ctx(b), make_handler())
        response = await middleware(a, make_ctx(a), make_handler())
        assert response.status == 200

    @pytest.mark.asyncio
    async def test_router_maps_fault_to_429(self):
        router = Router()
        route = router.map("GET", "/limited", ok)
        route.add_middleware(RateLimitMiddleware(limit=1, window=60, clock=FakeClock()))

        first = await router.dispatch(make_request("GET", "/limited"))
        second = await router.dispatch(make_request("GET", "/limited"))

        assert first.status == 200
        assert second.status == 429
        assert second.headers["retry-after"] == "60"
        assert second.headers["x-fault-code"] == "RATE_LIMIT_EXCEEDED"
        assert json.loads(second.body)["code"] == "RATE_LIMIT_EXCEEDED"


class TestRateLimitFilter:

    def test_defaults_from_config(self):
        container = Container()
        container.register_instance(RateLimitConfig, RateLimitConfig(limit=5, window=2.0))
        middleware = RateLimit().materialize(container)

        assert middleware.limit == 5
        assert middleware.window == 2.0

    def test_explicit_values_win(self):
        middleware = RateLimit(limit=3, window=1.0).materialize(Container())
        assert middleware.limit == 3
        assert middleware.window == 1.0

    def test_custom_key_func(self):
        key_func = lambda request: "global"
        middleware = RateLimit(key_func=key_func).materialize(Container())
        assert middleware.key_func is key_func
