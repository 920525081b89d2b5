"""
Perch Controllers - annotation-driven route registration.

Example:
    from perch.controller import controller, RequestMapping, GET, CsrfToken

    @controller
    @RequestMapping("/users")
    class UsersController:
        def __init__(self, repo: UserRepository):
            self.repo = repo

        @GET("/{id}", name="users.show")
        async def show(self, ctx):
            return {"id": ctx.params["id"]}
"""

from .decorators import (
    Controller,
    controller,
    RequestMapping,
    GET,
    POST,
    PUT,
    PATCH,
    DELETE,
    HEAD,
    OPTIONS,
    route,
)
from .filters import Filter, MiddlewareFactory, CsrfToken, LoginOnly, RateLimit, Use
from .chain import MiddlewareChainBuilder
from .registrar import ControllerDescriptor, RouteRegistrar
from .processor import AnnotationProcessor

__all__ = [
    "Controller",
    "controller",
    "RequestMapping",
    "GET",
    "POST",
    "PUT",
    "PATCH",
    "DELETE",
    "HEAD",
    "OPTIONS",
    "route",
    "Filter",
    "MiddlewareFactory",
    "CsrfToken",
    "LoginOnly",
    "RateLimit",
    "Use",
    "MiddlewareChainBuilder",
    "ControllerDescriptor",
    "RouteRegistrar",
    "AnnotationProcessor",
]
