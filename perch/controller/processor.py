"""
AnnotationProcessor - turns discovered controllers into routes.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Set

from ..annotations.core import AnnotationReader
from ..annotations.registry import ComponentRegistry, default_registry
from ..di import Container
from ..routing.route import RouteGroup
from ..routing.router import Router
from .decorators import Controller
from .registrar import RouteRegistrar

logger = logging.getLogger("perch.controller")


class AnnotationProcessor:
    """
    Walks every registered ``@controller`` class once and registers its
    routes.

    The route prefix of a class is ``context_url`` followed by the value of
    its class-level RequestMapping. A non-empty prefix registers the class
    inside a route group; otherwise routes go straight into the router.

    Args:
        container: DI container used for controllers and filters
        reader: Annotation reader
        router: Route table to populate
        context_url: Application-wide path prefix
        registry: Component registry (defaults to the global one)
    """

    def __init__(
        self,
        container: Container,
        reader: AnnotationReader,
        router: Router,
        context_url: Optional[str] = None,
        registry: Optional[ComponentRegistry] = None,
        registrar: Optional[RouteRegistrar] = None,
    ):
        self.container = container
        self.reader = reader
        self.router = router
        self.context_url = context_url
        self.registry = registry if registry is not None else default_registry
        self.registrar = registrar or RouteRegistrar(container, reader)

    def process(self) -> None:
        seen: Set[type] = set()
        before = len(self.router.routes)
        for annotation in self.registry.get_annotations(Controller):
            controller_class = annotation.target
            if controller_class is None or controller_class in seen:
                continue
            seen.add(controller_class)

            prefix = self.context_url or ""
            descriptor_prefix = self.registrar.describe(controller_class).prefix
            if descriptor_prefix:
                prefix += descriptor_prefix

            if prefix:
                self.router.group(prefix, self._mapper(controller_class))
            else:
                self.registrar.add_mapping(self.router, controller_class)

        logger.info(
            "Registered %d routes from %d controllers",
            len(self.router.routes) - before,
            len(seen),
        )

    def _mapper(self, controller_class: type) -> Any:
        def add(group: RouteGroup) -> None:
            self.registrar.add_mapping(group, controller_class)
        return add
