"""
Perch - annotation-driven routing for async Python web applications.

Controllers declare routes and filters with annotations; at startup the
AnnotationProcessor turns them into routes with ordered middleware chains.

Example:
    from perch import Application, controller, RequestMapping, GET, CsrfToken

    @controller
    @RequestMapping("/users")
    @CsrfToken()
    class UsersController:
        @GET("/{id}", name="users.show")
        async def show(self, ctx):
            return {"id": ctx.params["id"]}

    app = Application()
    app.startup()
"""

__version__ = "0.1.0"

from .annotations import Annotation, AnnotationReader, Component, ComponentRegistry, MethodRef
from .app import Application
from .config import ConfigLoader, WebConfig, configure_logging, load_config
from .controller import (
    AnnotationProcessor,
    Controller,
    CsrfToken,
    DELETE,
    Filter,
    GET,
    HEAD,
    LoginOnly,
    MiddlewareChainBuilder,
    MiddlewareFactory,
    OPTIONS,
    PATCH,
    POST,
    PUT,
    RateLimit,
    RequestMapping,
    RouteRegistrar,
    Use,
    controller,
    route,
)
from .di import Container
from .faults import Fault
from .middleware import RequestCtx
from .middleware_ext import AccessLogMiddleware
from .request import Request
from .response import Response
from .routing import Route, RouteGroup, Router

__all__ = [
    "__version__",
    "Annotation",
    "AnnotationReader",
    "Component",
    "ComponentRegistry",
    "MethodRef",
    "Application",
    "ConfigLoader",
    "WebConfig",
    "configure_logging",
    "load_config",
    "AnnotationProcessor",
    "Controller",
    "CsrfToken",
    "DELETE",
    "Filter",
    "GET",
    "HEAD",
    "LoginOnly",
    "MiddlewareChainBuilder",
    "MiddlewareFactory",
    "OPTIONS",
    "PATCH",
    "POST",
    "PUT",
    "RateLimit",
    "RequestMapping",
    "RouteRegistrar",
    "Use",
    "controller",
    "route",
    "Container",
    "Fault",
    "RequestCtx",
    "AccessLogMiddleware",
    "Request",
    "Response",
    "Route",
    "RouteGroup",
    "Router",
]
