"""
Application - wires configuration, DI, controller discovery and routing.

Example:
    app = Application(WebConfig(context_url="/app"), scan=["myproject.controllers"])
    app.startup()
    response = await app.handle(Request.build("GET", "/app/users"))
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .annotations.core import AnnotationReader
from .annotations.registry import ComponentRegistry, default_registry
from .config import AccessLogConfig, CsrfConfig, LoginConfig, RateLimitConfig, WebConfig
from .controller.processor import AnnotationProcessor
from .di import Container
from .faults.core import Fault
from .middleware import Middleware, RequestCtx, compose
from .middleware_ext.access_log import AccessLogMiddleware
from .request import Request
from .response import Response
from .routing.router import Router
from .security.login_url import DefaultLoginUrlBuilder, LoginUrlBuilder

logger = logging.getLogger("perch.app")


class Application:
    """
    Perch application.

    Args:
        config: Web configuration (defaults to ``WebConfig()``)
        container: DI container; a new one is created when omitted
        registry: Component registry holding ``@controller`` classes
        scan: Packages imported at startup so their controllers register
        middleware: Global middleware wrapped around routing
    """

    def __init__(
        self,
        config: Optional[WebConfig] = None,
        container: Optional[Container] = None,
        registry: Optional[ComponentRegistry] = None,
        scan: Sequence[str] = (),
        middleware: Sequence[Middleware] = (),
    ):
        self.config = config or WebConfig()
        self.container = container or Container()
        self.registry = registry if registry is not None else default_registry
        self.reader = AnnotationReader()
        self.router = Router()
        self.scan = list(scan)
        self.middleware: List[Middleware] = []
        self._started = False

        self._register_services()
        if self.config.access_log.enabled:
            self.middleware.append(AccessLogMiddleware.from_config(self.config.access_log))
        self.middleware.extend(middleware)

    def _register_services(self) -> None:
        c = self.container
        for token, instance in (
            (WebConfig, self.config),
            (AccessLogConfig, self.config.access_log),
            (CsrfConfig, self.config.csrf),
            (LoginConfig, self.config.login),
            (RateLimitConfig, self.config.rate_limit),
            (AnnotationReader, self.reader),
            (Router, self.router),
            (Container, c),
        ):
            if not c.is_registered(token):
                c.register_instance(token, instance)

        if not c.is_registered(LoginUrlBuilder):
            c.register_instance(
                LoginUrlBuilder,
                DefaultLoginUrlBuilder(self.config.login.login_url, self.config.login.redirect_param),
            )

    def add_middleware(self, middleware: Middleware) -> "Application":
        """Append a global middleware (runs before routing)."""
        self.middleware.append(middleware)
        return self

    @property
    def started(self) -> bool:
        return self._started

    def startup(self) -> None:
        """
        Discover controllers and populate the route table.

        A failure leaves the route table as it was before the call and
        re-raises the fault.
        """
        if self._started:
            return

        if self.scan:
            self.registry.scan(*self.scan)

        processor = AnnotationProcessor(
            self.container,
            self.reader,
            self.router,
            context_url=self.config.context_url,
            registry=self.registry,
        )
        try:
            with self.router.transaction():
                processor.process()
        except Fault as fault:
            logger.error("Startup failed: %s", fault)
            raise

        self._started = True
        logger.info("Application started with %d routes", len(self.router.routes))

    async def handle(self, request: Request) -> Response:
        """Run a request through global middleware and the router."""
        if not self._started:
            self.startup()
        ctx = RequestCtx(request=request, container=self.container)
        return await compose(self.middleware, self._dispatch)(request, ctx)

    async def _dispatch(self, request: Request, ctx: RequestCtx) -> Response:
        return await self.router.dispatch(request, self.container)


__all__ = ["Application"]
