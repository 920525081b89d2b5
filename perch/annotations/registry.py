"""
Component Registry

Collects component annotations (e.g. ``@controller``) as they are applied,
in application order. Discovery is nothing more than importing the modules
that hold decorated classes; ``scan()`` does that for whole packages.
"""

from __future__ import annotations

import importlib
import logging
import pkgutil
from typing import Dict, List, Optional, Type, TypeVar

from .core import Annotation

logger = logging.getLogger("perch.annotations")

C = TypeVar("C", bound="Component")


class Component(Annotation):
    """
    Class-level annotation marking a discoverable component.

    Attributes:
        target: The annotated class (set when applied)
    """

    targets = ("class",)

    def __init__(self, registry: Optional["ComponentRegistry"] = None):
        self.target: Optional[type] = None
        self._registry = registry

    def attached(self, target: type) -> None:
        self.target = target
        (self._registry or default_registry).add(self)


class ComponentRegistry:
    """Ordered store of component annotations, queried by annotation type."""

    def __init__(self):
        self._components: Dict[type, List[Component]] = {}

    def add(self, component: Component) -> None:
        self._components.setdefault(type(component), []).append(component)

    def get_annotations(self, kind: Type[C]) -> List[C]:
        """
        All components that are instances of ``kind``, in the order they were
        applied. The same class may appear more than once.
        """
        result = []
        for component_type, components in self._components.items():
            if issubclass(component_type, kind):
                result.extend(components)
        return result

    def clear(self) -> None:
        self._components.clear()

    def scan(self, *packages: str) -> List[str]:
        """
        Import every module under the given packages so their decorators run.

        Returns:
            Names of the imported modules
        """
        imported = []
        for package_name in packages:
            package = importlib.import_module(package_name)
            imported.append(package_name)
            search_path = getattr(package, "__path__", None)
            if search_path is None:
                continue
            for info in pkgutil.walk_packages(search_path, prefix=f"{package_name}."):
                importlib.import_module(info.name)
                imported.append(info.name)
        logger.debug("Scanned %d modules from %s", len(imported), ", ".join(packages))
        return imported


default_registry = ComponentRegistry()
