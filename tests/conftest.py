"""
Shared test fixtures and helpers for the Perch test suite.
"""

from typing import Any, Dict, List, Optional

import pytest

from perch.annotations import AnnotationReader, ComponentRegistry
from perch.controller import MiddlewareFactory
from perch.di import Container
from perch.middleware import RequestCtx
from perch.request import Request
from perch.response import Response
from perch.routing import Router


# ============================================================================
# Request Helpers
# ============================================================================


def make_request(
    method: str = "GET",
    url: str = "/",
    headers: Optional[Dict[str, str]] = None,
    body: bytes = b"",
    client: Optional[tuple] = ("127.0.0.1", 5000),
) -> Request:
    return Request.build(method, url, headers=headers or {}, body=body, client=client)


def make_ctx(request: Request, container: Optional[Container] = None) -> RequestCtx:
    return RequestCtx(request=request, container=container)


def make_handler(status: int = 200, body: bytes = b"OK", headers: Optional[Dict[str, str]] = None):
    """Create a simple async handler returning a fixed Response."""
    async def handler(request, ctx):
        return Response(body, status=status, headers=headers or {})
    return handler


# ============================================================================
# Filter Helpers
# ============================================================================


class Tagged:
    """Middleware that records its label and passes the request on."""

    def __init__(self, label: str, calls: Optional[List[str]] = None):
        self.label = label
        self.calls = calls

    async def __call__(self, request, ctx, next_handler):
        if self.calls is not None:
            self.calls.append(self.label)
        return await next_handler(request, ctx)


class Recording(MiddlewareFactory):
    """Filter producing a Tagged middleware; every subclass is its own concern."""

    calls: Optional[List[str]] = None

    def __init__(self, label: str, **kwargs: Any):
        super().__init__(**kwargs)
        self.label = label

    def create(self, container):
        return Tagged(self.label, self.calls)


class Audit(Recording):
    pass


class Trace(Recording):
    pass


class Declining(Recording):
    def create(self, container):
        return None


def labels(middleware) -> List[str]:
    return [m.label for m in middleware]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def registry():
    return ComponentRegistry()


@pytest.fixture
def container():
    return Container()


@pytest.fixture
def reader():
    return AnnotationReader()


@pytest.fixture
def router():
    return Router()


@pytest.fixture
def calls():
    """Shared call log for Recording filters."""
    log: List[str] = []
    Recording.calls = log
    yield log
    Recording.calls = None
