"""
Perch DI - constructor injection for controllers and middleware.

Example:
    container = Container()
    container.bind(LoginUrlBuilder, DefaultLoginUrlBuilder)
    users = container.resolve(UsersController)
"""

from .core import Container, Provider, ProviderMeta, ResolveCtx, token_key
from .providers import ClassProvider, FactoryProvider, ValueProvider
from .errors import DIError, ProviderNotFoundError, DependencyCycleError

__all__ = [
    "Container",
    "Provider",
    "ProviderMeta",
    "ResolveCtx",
    "token_key",
    "ClassProvider",
    "FactoryProvider",
    "ValueProvider",
    "DIError",
    "ProviderNotFoundError",
    "DependencyCycleError",
]
