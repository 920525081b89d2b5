"""
Provider implementations for different instantiation strategies.
"""

from typing import Any, Callable, Dict, Optional, Type, TypeVar
import inspect

from .core import ProviderMeta, ResolveCtx, token_key
from .errors import DIError


T = TypeVar("T")


def _extract_dependencies(func: Callable, owner: str) -> Dict[str, Dict[str, Any]]:
    """
    Extract dependencies from a callable's signature.

    Returns:
        Dict mapping parameter names to dependency info
    """
    deps: Dict[str, Dict[str, Any]] = {}

    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        return deps

    try:
        type_hints = inspect.get_annotations(func, eval_str=True)
    except Exception:
        try:
            from typing import get_type_hints
            type_hints = get_type_hints(func)
        except Exception:
            type_hints = {}

    for param_name, param in sig.parameters.items():
        if param_name in ("self", "cls"):
            continue

        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue

        annotation = type_hints.get(param_name, param.annotation)

        if annotation is inspect.Parameter.empty:
            # Parameters with defaults and no hint are left to the default
            if param.default is not inspect.Parameter.empty:
                continue
            raise DIError(
                f"Missing type annotation for parameter '{param_name}' in {owner}"
            )

        deps[param_name] = {
            "token": annotation,
            "optional": param.default is not inspect.Parameter.empty,
        }

    return deps


class ClassProvider:
    """
    Provider that instantiates a class by resolving constructor dependencies.
    """

    __slots__ = ("_meta", "_cls", "_dependencies")

    def __init__(self, cls: Type[T], scope: str = "app"):
        self._cls = cls
        if cls.__init__ is object.__init__:
            self._dependencies = {}
        else:
            self._dependencies = _extract_dependencies(cls.__init__, f"{cls.__qualname__}.__init__")
        self._meta = ProviderMeta(
            name=cls.__name__,
            token=token_key(cls),
            scope=scope,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        """Instantiate class by resolving dependencies."""
        kwargs = {}
        for name, info in self._dependencies.items():
            value = ctx.container.resolve(info["token"], optional=info["optional"], _ctx=ctx)
            if value is None and info["optional"]:
                continue
            kwargs[name] = value
        return self._cls(**kwargs)


class FactoryProvider:
    """
    Provider that calls a factory function to produce instances.

    Factory parameters are resolved like constructor parameters.
    """

    __slots__ = ("_meta", "_factory", "_dependencies")

    def __init__(
        self,
        token: Any,
        factory: Callable[..., Any],
        scope: str = "app",
        name: Optional[str] = None,
    ):
        self._factory = factory
        self._dependencies = _extract_dependencies(
            factory, getattr(factory, "__qualname__", repr(factory))
        )
        self._meta = ProviderMeta(
            name=name or getattr(factory, "__name__", "factory"),
            token=token_key(token),
            scope=scope,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        kwargs = {}
        for name, info in self._dependencies.items():
            value = ctx.container.resolve(info["token"], optional=info["optional"], _ctx=ctx)
            if value is None and info["optional"]:
                continue
            kwargs[name] = value
        return self._factory(**kwargs)


class ValueProvider:
    """Provider wrapping a pre-built instance."""

    __slots__ = ("_meta", "_value")

    def __init__(self, token: Any, value: Any, name: Optional[str] = None):
        self._value = value
        self._meta = ProviderMeta(
            name=name or f"{getattr(token, '__name__', token)}_instance",
            token=token_key(token),
            scope="singleton",
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        return self._value
