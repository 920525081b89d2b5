"""
Controller Filters

A filter is an annotation that turns into route middleware. Filters can be
put on a controller class (applies to every route of the class) or on a
method; a method-level filter replaces the class-level filter of the same
concern.

Lower ``priority`` runs earlier.

Example:
    @controller
    @CsrfToken()
    class AccountController:
        @POST("/account", name="account.update")
        @LoginOnly()
        @CsrfToken(repeat_ok=False)
        async def update(self, ctx): ...
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from ..annotations.core import Annotation
from ..di import Container, token_key
from ..middleware import Middleware


def _registered_or(container: Container, token: Any, default: Callable[[], Any]) -> Any:
    if container.is_registered(token):
        return container.resolve(token)
    return default()


class Filter(Annotation):
    """
    Base filter annotation.

    Subclasses implement ``materialize``; returning ``None`` declines to add
    middleware for the route.
    """

    priority: int = 1024

    @property
    def concern(self) -> Any:
        """Identity used to deduplicate filters; defaults to the filter type."""
        return type(self)

    def get_priority(self) -> int:
        return self.priority

    def materialize(self, container: Container) -> Optional[Middleware]:
        raise NotImplementedError


class MiddlewareFactory(Filter):
    """
    Filter that builds its middleware through ``create``.

    Args:
        priority: Overrides the class default
        enabled: When False the filter produces no middleware
    """

    def __init__(self, priority: Optional[int] = None, enabled: bool = True):
        if priority is not None:
            self.priority = priority
        self.enabled = enabled

    def materialize(self, container: Container) -> Optional[Middleware]:
        if not self.enabled:
            return None
        return self.create(container)

    def create(self, container: Container) -> Optional[Middleware]:
        raise NotImplementedError


class CsrfToken(MiddlewareFactory):
    """
    Require a valid CSRF token on state-changing requests.

    Args:
        repeat_ok: Allow a token to be used for more than one request.
            When False the token is rotated after each successful check.
    """

    priority = 200

    def __init__(self, repeat_ok: bool = True, **kwargs: Any):
        super().__init__(**kwargs)
        self.repeat_ok = repeat_ok

    def create(self, container: Container) -> Optional[Middleware]:
        from ..config import CsrfConfig
        from ..middleware_ext.csrf import CsrfTokenMiddleware

        config = _registered_or(container, CsrfConfig, CsrfConfig)
        if not config.enabled:
            return None
        return CsrfTokenMiddleware(
            secret_key=config.secret_key,
            repeat_ok=self.repeat_ok,
            header_name=config.header_name,
            field_name=config.field_name,
            cookie_name=config.cookie_name,
        )


class LoginOnly(MiddlewareFactory):
    """Redirect anonymous users to the login page."""

    priority = 100

    def create(self, container: Container) -> Optional[Middleware]:
        from ..middleware_ext.login import LoginOnlyMiddleware
        from ..security.login_url import DefaultLoginUrlBuilder, LoginUrlBuilder

        builder = _registered_or(container, LoginUrlBuilder, DefaultLoginUrlBuilder)
        return LoginOnlyMiddleware(builder)


class RateLimit(MiddlewareFactory):
    """
    Limit requests per client.

    Args:
        limit: Requests allowed per window (default from RateLimitConfig)
        window: Window length in seconds (default from RateLimitConfig)
        key_func: Client key extractor (defaults to client IP)
    """

    priority = 10

    def __init__(
        self,
        limit: Optional[int] = None,
        window: Optional[float] = None,
        key_func: Optional[Callable[..., Optional[str]]] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.limit = limit
        self.window = window
        self.key_func = key_func

    def create(self, container: Container) -> Optional[Middleware]:
        from ..config import RateLimitConfig
        from ..middleware_ext.rate_limit import RateLimitMiddleware

        defaults = _registered_or(container, RateLimitConfig, RateLimitConfig)
        return RateLimitMiddleware(
            limit=self.limit if self.limit is not None else defaults.limit,
            window=self.window if self.window is not None else defaults.window,
            key_func=self.key_func,
        )


class Use(MiddlewareFactory):
    """
    Attach an arbitrary middleware.

    ``middleware`` is either a DI token (class or string) resolved from the
    container, or a ready middleware callable. Each distinct middleware is
    its own concern.
    """

    def __init__(self, middleware: Any, **kwargs: Any):
        super().__init__(**kwargs)
        self.middleware = middleware

    @property
    def concern(self) -> Any:
        if isinstance(self.middleware, (type, str)):
            return (Use, token_key(self.middleware))
        return (Use, id(self.middleware))

    def create(self, container: Container) -> Optional[Middleware]:
        if isinstance(self.middleware, (type, str)):
            return container.resolve(self.middleware)
        return self.middleware
