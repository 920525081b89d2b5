"""
Perch annotation metadata store.
"""

from .core import Annotation, AnnotationReader, MethodRef, ANNOTATIONS_ATTR
from .registry import Component, ComponentRegistry, default_registry

__all__ = [
    "Annotation",
    "AnnotationReader",
    "MethodRef",
    "ANNOTATIONS_ATTR",
    "Component",
    "ComponentRegistry",
    "default_registry",
]
