"""
Controller Decorators

Annotations that declare controllers and their route mappings.
Applying them only records metadata; routes are registered later by the
AnnotationProcessor.
"""

from typing import Any, List, Optional, Sequence, Tuple, Union

from ..annotations.core import Annotation
from ..annotations.registry import Component, ComponentRegistry
from ..faults.domains import AnnotationFault


class Controller(Component):
    """Marks a class as a controller to be picked up by the AnnotationProcessor."""


def controller(cls: Optional[type] = None, *, registry: Optional[ComponentRegistry] = None) -> Any:
    """
    Register a controller class.

    Usable bare (``@controller``) or with options
    (``@controller(registry=my_registry)``).
    """
    if cls is not None:
        return Controller(registry=registry)(cls)
    return Controller(registry=registry)


class RequestMapping(Annotation):
    """
    Route mapping.

    On a class, ``value`` is the URL prefix shared by all of its routes.
    On a method, it maps one or more verbs and one or more path patterns to
    the method. A route ``name`` is only allowed with a single pattern.

    Args:
        value: Path pattern or list of patterns (class level: the prefix)
        method: HTTP verb or list of verbs
        name: Optional route name
    """

    http_method: Union[str, Sequence[str]] = "GET"

    def __init__(
        self,
        value: Union[str, Sequence[str]] = "",
        method: Optional[Union[str, Sequence[str]]] = None,
        name: Optional[str] = None,
    ):
        self.value = value
        self.method = method if method is not None else self.http_method
        self.name = name

    @property
    def patterns(self) -> List[str]:
        if isinstance(self.value, str):
            return [self.value]
        return list(self.value)

    @property
    def methods(self) -> Tuple[str, ...]:
        if isinstance(self.method, str):
            return (self.method.upper(),)
        return tuple(m.upper() for m in self.method)

    def validate(self, target: str) -> None:
        value = self.value
        if isinstance(value, str):
            pass
        elif isinstance(value, (list, tuple)) and value and all(isinstance(v, str) for v in value):
            pass
        else:
            raise AnnotationFault(target, f"route pattern must be a string or a non-empty list of strings, got {value!r}")

        method = self.method
        if not (isinstance(method, str) and method) and not (
            isinstance(method, (list, tuple)) and method and all(isinstance(m, str) and m for m in method)
        ):
            raise AnnotationFault(target, f"HTTP method must be a verb or a list of verbs, got {method!r}")

        if self.name is not None and not isinstance(self.name, str):
            raise AnnotationFault(target, f"route name must be a string, got {self.name!r}")


class GET(RequestMapping):
    """GET request mapping."""
    targets = ("method",)
    http_method = "GET"

    def __init__(self, value: Union[str, Sequence[str]] = "", name: Optional[str] = None):
        super().__init__(value, name=name)


class POST(GET):
    """POST request mapping."""
    http_method = "POST"


class PUT(GET):
    """PUT request mapping."""
    http_method = "PUT"


class PATCH(GET):
    """PATCH request mapping."""
    http_method = "PATCH"


class DELETE(GET):
    """DELETE request mapping."""
    http_method = "DELETE"


class HEAD(GET):
    """HEAD request mapping."""
    http_method = "HEAD"


class OPTIONS(GET):
    """OPTIONS request mapping."""
    http_method = "OPTIONS"


def route(
    method: Union[str, Sequence[str]],
    value: Union[str, Sequence[str]] = "",
    name: Optional[str] = None,
) -> RequestMapping:
    """
    Generic route mapping.

    Example:
        @route(["GET", "POST"], "/items")
        async def handle_items(self, ctx):
            ...
    """
    mapping = RequestMapping(value, method=method, name=name)
    mapping.targets = ("method",)
    return mapping
