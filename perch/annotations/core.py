"""
Annotation Metadata

Annotations are plain objects attached to classes and functions by using
them as decorators. Attaching has no side effect besides recording the
annotation on the target; the AnnotationReader answers queries about them.

Example:
    @RequestMapping("/api")
    @CsrfToken()
    class UsersController:
        @GET("/users")
        @RateLimit(limit=10)
        async def list(self, ctx): ...

    reader = AnnotationReader()
    reader.get_class_annotation(UsersController, RequestMapping)
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Type, TypeVar

from ..faults.domains import AnnotationFault


ANNOTATIONS_ATTR = "__perch_annotations__"

A = TypeVar("A", bound="Annotation")


class Annotation:
    """
    Base class for all annotations.

    Subclasses declare which targets they accept through ``targets``
    ("class", "method" or both).
    """

    targets: tuple = ("class", "method")

    def __call__(self, target: Any) -> Any:
        kind = "class" if inspect.isclass(target) else "method"
        if kind not in self.targets:
            raise AnnotationFault(
                _describe(target),
                f"{type(self).__name__} cannot be applied to a {kind}",
            )
        # Decorators apply bottom-up; inserting at the front keeps source order.
        own = target.__dict__.get(ANNOTATIONS_ATTR)
        if own is None:
            own = []
            setattr(target, ANNOTATIONS_ATTR, own)
        own.insert(0, self)
        self.attached(target)
        return target

    def attached(self, target: Any) -> None:
        """Hook invoked after the annotation is recorded on its target."""

    def validate(self, target: str) -> None:
        """Raise AnnotationFault if the annotation is malformed."""

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in vars(self).items() if not k.startswith("_"))
        return f"{type(self).__name__}({fields})"


@dataclass(frozen=True)
class MethodRef:
    """
    A method as seen from a controller class.

    Attributes:
        owner: The class the method was looked up on
        name: Attribute name
        func: The plain function object
        declaring_class: The class in the MRO that defines the method
    """
    owner: type
    name: str
    func: Callable
    declaring_class: type

    @property
    def qualname(self) -> str:
        return f"{self.declaring_class.__qualname__}.{self.name}"

    def bind(self, instance: Any) -> Callable:
        return getattr(instance, self.name)


def _describe(target: Any) -> str:
    if isinstance(target, MethodRef):
        return target.qualname
    return getattr(target, "__qualname__", repr(target))


def _read(target: Any) -> List[Annotation]:
    raw = getattr(target, "__dict__", {}).get(ANNOTATIONS_ATTR, [])
    if not isinstance(raw, list):
        raise AnnotationFault(_describe(target), f"{ANNOTATIONS_ATTR} must be a list")
    for annotation in raw:
        if not isinstance(annotation, Annotation):
            raise AnnotationFault(
                _describe(target), f"unexpected annotation object {annotation!r}"
            )
        annotation.validate(_describe(target))
    return list(raw)


class AnnotationReader:
    """
    Read-only lookup over annotations attached to classes and methods.

    Class annotations are not inherited: only those applied to the class
    itself are returned.
    """

    def get_class_annotations(self, cls: type) -> List[Annotation]:
        return _read(cls)

    def get_class_annotation(self, cls: type, kind: Type[A]) -> Optional[A]:
        for annotation in self.get_class_annotations(cls):
            if isinstance(annotation, kind):
                return annotation
        return None

    def get_method_annotations(self, method: MethodRef) -> List[Annotation]:
        return _read(method.func)

    def get_method_annotation(self, method: MethodRef, kind: Type[A]) -> Optional[A]:
        for annotation in self.get_method_annotations(method):
            if isinstance(annotation, kind):
                return annotation
        return None

    def get_method_annotations_of(self, method: MethodRef, kind: Type[A]) -> List[A]:
        """All annotations of ``kind`` on the method, in source order."""
        return [a for a in self.get_method_annotations(method) if isinstance(a, kind)]

    def get_methods(self, cls: type) -> List[MethodRef]:
        """
        Enumerate methods defined on ``cls`` or its bases, own methods first
        in definition order, then inherited ones.

        Static methods and class methods are included and flagged by
        ``is_instance_method``; callers decide eligibility.
        """
        names: List[str] = []
        for klass in inspect.getmro(cls):
            if klass is object:
                continue
            for name in vars(klass):
                if name not in names:
                    names.append(name)

        methods = []
        for name in names:
            raw = inspect.getattr_static(cls, name)
            func = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
            if not inspect.isfunction(func):
                continue
            methods.append(MethodRef(
                owner=cls,
                name=name,
                func=func,
                declaring_class=self.declaring_class(cls, name),
            ))
        return methods

    @staticmethod
    def declaring_class(cls: type, name: str) -> type:
        for klass in inspect.getmro(cls):
            if name in vars(klass):
                return klass
        return cls

    @staticmethod
    def is_instance_method(method: MethodRef) -> bool:
        raw = inspect.getattr_static(method.owner, method.name)
        return not isinstance(raw, (staticmethod, classmethod))

    @staticmethod
    def is_public(method: MethodRef) -> bool:
        return not method.name.startswith("_")
