"""
Core DI types and protocols.

Defines the fundamental contracts for the DI system. Resolution is
synchronous: the container is used while routes are registered at startup
and by filter factories materializing middleware.
"""

from typing import (
    Any,
    Dict,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
    runtime_checkable,
)
from dataclasses import dataclass
import inspect
import logging

from .errors import DependencyCycleError, ProviderNotFoundError


T = TypeVar("T")

logger = logging.getLogger("perch.di")

# Module-level cache: type -> "module.qualname" string
_type_key_cache: Dict[type, str] = {}

# Scopes that cache instances
_CACHEABLE_SCOPES = frozenset(("singleton", "app"))


def token_key(token: Any) -> str:
    """Convert a type or string token into its registry key."""
    if isinstance(token, str):
        return token
    if isinstance(token, type):
        key = _type_key_cache.get(token)
        if key is None:
            key = f"{token.__module__}.{token.__qualname__}"
            _type_key_cache[token] = key
        return key
    return str(token)


@dataclass(frozen=True, slots=True)
class ProviderMeta:
    """Compact provider metadata."""
    name: str
    token: str
    scope: str  # "singleton", "app", "transient"


class ResolveCtx:
    """
    Context for resolution operations.

    Tracks resolution stack for cycle detection and diagnostics.
    """
    __slots__ = ("container", "stack")

    def __init__(self, container: "Container"):
        self.container = container
        self.stack: List[str] = []

    def push(self, token: str) -> None:
        self.stack.append(token)

    def pop(self) -> None:
        self.stack.pop()

    def in_cycle(self, token: str) -> bool:
        return token in self.stack


@runtime_checkable
class Provider(Protocol):
    """
    Provider protocol - how to instantiate a dependency.
    """

    @property
    def meta(self) -> ProviderMeta:
        ...

    def instantiate(self, ctx: ResolveCtx) -> Any:
        ...


class Container:
    """
    DI Container - manages provider instances and scopes.

    Args:
        autowire: Create a ClassProvider on demand for unregistered
            concrete classes (controllers, middleware).
    """

    __slots__ = ("_providers", "_cache", "_autowire")

    def __init__(self, autowire: bool = True):
        self._providers: Dict[str, Provider] = {}
        self._cache: Dict[str, Any] = {}
        self._autowire = autowire

    def register(self, provider: Provider) -> None:
        """
        Register a provider under its token.

        Raises:
            ValueError: If a different provider is already registered
        """
        key = provider.meta.token
        existing = self._providers.get(key)
        if existing is not None:
            if existing is provider:
                return
            raise ValueError(
                f"Provider for {key} already registered: {existing.meta.name}"
            )
        self._providers[key] = provider
        logger.debug("Registered provider %s for %s", provider.meta.name, key)

    def register_instance(self, token: Type[T] | str, instance: T) -> None:
        """
        Register a pre-instantiated object.

        Example:
            >>> container.register_instance(LoginUrlBuilder, DefaultLoginUrlBuilder("/signin"))
        """
        from .providers import ValueProvider
        self.register(ValueProvider(token, instance))

    def register_factory(self, token: Type[T] | str, factory: Any, scope: str = "app") -> None:
        """Register a factory callable whose parameters are resolved from the container."""
        from .providers import FactoryProvider
        self.register(FactoryProvider(token, factory, scope=scope))

    def bind(self, interface: Type | str, implementation: Type, scope: str = "app") -> None:
        """
        Bind an interface to an implementation class.

        Example:
            container.bind(LoginUrlBuilder, DefaultLoginUrlBuilder)
        """
        from .providers import ClassProvider
        self.register(_AliasProvider(interface, ClassProvider(implementation, scope=scope)))

    def is_registered(self, token: Type[T] | str) -> bool:
        return token_key(token) in self._providers

    def resolve(
        self,
        token: Type[T] | str,
        *,
        optional: bool = False,
        _ctx: Optional[ResolveCtx] = None,
    ) -> T:
        """
        Resolve a dependency.

        Args:
            token: Type or string key
            optional: If True, return None if not found instead of raising

        Returns:
            The resolved instance

        Raises:
            ProviderNotFoundError: If provider not found and not optional
            DependencyCycleError: If the token is already being resolved
        """
        key = token_key(token)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        provider = self._providers.get(key)
        if provider is None and self._autowire and self._can_autowire(token):
            from .providers import ClassProvider
            provider = ClassProvider(token)
            self._providers[key] = provider

        if provider is None:
            if optional:
                return None
            raise ProviderNotFoundError(
                key,
                requested_by=_ctx.stack[-1] if _ctx and _ctx.stack else None,
            )

        ctx = _ctx or ResolveCtx(self)
        if ctx.in_cycle(key):
            raise DependencyCycleError(ctx.stack + [key])

        ctx.push(key)
        try:
            instance = provider.instantiate(ctx)
        finally:
            ctx.pop()

        if provider.meta.scope in _CACHEABLE_SCOPES:
            self._cache[key] = instance
        return instance

    @staticmethod
    def _can_autowire(token: Any) -> bool:
        return (
            isinstance(token, type)
            and token.__module__ != "builtins"
            and not inspect.isabstract(token)
            and not getattr(token, "_is_protocol", False)
        )


class _AliasProvider:
    """Registers an implementation provider under an interface token."""

    __slots__ = ("_meta", "_target")

    def __init__(self, interface: Any, target: Provider):
        self._target = target
        self._meta = ProviderMeta(
            name=target.meta.name,
            token=token_key(interface),
            scope=target.meta.scope,
        )

    @property
    def meta(self) -> ProviderMeta:
        return self._meta

    def instantiate(self, ctx: ResolveCtx) -> Any:
        return self._target.instantiate(ctx)
