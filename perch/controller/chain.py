"""
Middleware chain construction for controller routes.

Method-level filters come first (a repeated concern on the method keeps its
first position but the later annotation), class-level filters fill in only
the concerns the method does not already cover. The result is ordered by
priority (stable, so equal priorities keep their collection order) and
each filter is materialized through the container.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..annotations.core import AnnotationReader, MethodRef
from ..di import Container
from ..middleware import Middleware
from .filters import Filter

logger = logging.getLogger("perch.controller")


class MiddlewareChainBuilder:
    """Builds the ordered middleware list for a controller method."""

    def __init__(self, container: Container, reader: AnnotationReader):
        self.container = container
        self.reader = reader

    def collect(self, method: MethodRef) -> List[Filter]:
        """Effective filters for ``method``, deduplicated and sorted."""
        filters: Dict[Any, Filter] = {}
        for annotation in self.reader.get_method_annotations_of(method, Filter):
            filters[annotation.concern] = annotation
        for annotation in self.reader.get_class_annotations(method.declaring_class):
            if isinstance(annotation, Filter):
                filters.setdefault(annotation.concern, annotation)
        return sorted(filters.values(), key=lambda f: f.get_priority())

    def build_chain(self, method: MethodRef) -> List[Middleware]:
        chain: List[Middleware] = []
        for filter_ in self.collect(method):
            middleware = filter_.materialize(self.container)
            if middleware is None:
                logger.debug("%r declined for %s", filter_, method.qualname)
                continue
            chain.append(middleware)
        return chain
