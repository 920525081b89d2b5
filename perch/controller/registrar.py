"""
Route registration for a single controller class.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from ..annotations.core import AnnotationReader, MethodRef
from ..di import Container, DIError
from ..faults.domains import AnnotationFault, ControllerResolutionFault, RouteNameAmbiguityFault
from ..routing.route import Route
from .chain import MiddlewareChainBuilder
from .decorators import RequestMapping

logger = logging.getLogger("perch.controller")


@dataclass(frozen=True)
class ControllerDescriptor:
    """
    Routing view of a controller class.

    Attributes:
        controller_class: The controller class
        prefix: Class-level RequestMapping value, if any
        methods: Eligible methods (public, non-static) carrying a mapping,
            paired with their mappings
    """
    controller_class: type
    prefix: Optional[str]
    methods: Tuple[Tuple[MethodRef, Tuple[RequestMapping, ...]], ...]


class RouteRegistrar:
    """
    Registers the routes of a controller class into a route collector
    (a Router or a RouteGroup).

    The controller instance is resolved from the container once per
    class; every route of the class is bound to that instance.
    """

    def __init__(
        self,
        container: Container,
        reader: AnnotationReader,
        chain_builder: Optional[MiddlewareChainBuilder] = None,
    ):
        self.container = container
        self.reader = reader
        self.chain_builder = chain_builder or MiddlewareChainBuilder(container, reader)

    def describe(self, controller_class: type) -> ControllerDescriptor:
        class_mapping = self.reader.get_class_annotation(controller_class, RequestMapping)
        prefix = None
        if class_mapping is not None:
            if not isinstance(class_mapping.value, str):
                raise AnnotationFault(
                    controller_class.__qualname__,
                    f"class-level RequestMapping must be a single prefix, got {class_mapping.value!r}",
                )
            prefix = class_mapping.value

        methods = []
        for method in self.reader.get_methods(controller_class):
            if not self.reader.is_public(method) or not self.reader.is_instance_method(method):
                continue
            mappings = self.reader.get_method_annotations_of(method, RequestMapping)
            if mappings:
                methods.append((method, tuple(mappings)))
        return ControllerDescriptor(controller_class, prefix, tuple(methods))

    def add_mapping(self, collector: Any, controller_class: type) -> List[Route]:
        """
        Map every eligible method of ``controller_class`` onto ``collector``.

        Raises:
            RouteNameAmbiguityFault: A named mapping has several patterns
            ControllerResolutionFault: The container cannot build the controller
        """
        descriptor = self.describe(controller_class)
        for method, mappings in descriptor.methods:
            for mapping in mappings:
                if mapping.name and len(mapping.patterns) > 1:
                    raise RouteNameAmbiguityFault(
                        method.declaring_class.__qualname__,
                        method.name,
                        mapping.name,
                        mapping.patterns,
                    )

        try:
            instance = self.container.resolve(controller_class)
        except DIError as exc:
            raise ControllerResolutionFault(controller_class.__qualname__, str(exc)) from exc

        routes: List[Route] = []
        for method, mappings in descriptor.methods:
            handler = method.bind(instance)
            for mapping in mappings:
                for pattern in mapping.patterns:
                    route = collector.map(mapping.methods, pattern, handler)
                    for middleware in self.chain_builder.build_chain(method):
                        route.add_middleware(middleware)
                    if mapping.name:
                        route.set_name(mapping.name)
                    routes.append(route)

        logger.debug("Registered %d routes for %s", len(routes), controller_class.__qualname__)
        return routes
