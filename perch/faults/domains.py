"""
Perch Faults - Domain-specific fault types.

Provides concrete fault classes for each domain:
- CONFIG faults (metadata, route naming, configuration values)
- DI faults (controller resolution)
- SECURITY faults (CSRF, rate limiting)
"""

from typing import Any, Optional

from .core import Fault, FaultDomain, Severity


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults. Always fatal at startup."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=Severity.FATAL,
            public=False,
            metadata=metadata,
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


class AnnotationFault(ConfigFault):
    """Annotation metadata on a class or method is malformed."""

    def __init__(self, target: str, reason: str, **kwargs):
        super().__init__(
            code="ANNOTATION_INVALID",
            message=f"Malformed annotation on {target}: {reason}",
            metadata={"target": target, "reason": reason, **kwargs.get("metadata", {})},
        )


class RouteNameAmbiguityFault(ConfigFault):
    """A route name was requested for a mapping with several patterns."""

    def __init__(self, controller: str, method: str, name: str, patterns: list[str], **kwargs):
        super().__init__(
            code="ROUTE_NAME_AMBIGUOUS",
            message=(
                f"Cannot set route name '{name}' when there are multiple routes "
                f"for method {controller}.{method}"
            ),
            metadata={
                "controller": controller,
                "method": method,
                "name": name,
                "patterns": patterns,
                **kwargs.get("metadata", {}),
            },
        )


# ============================================================================
# DI Faults
# ============================================================================

class DIFault(Fault):
    """Base class for dependency injection faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.DI,
            severity=severity,
            public=False,
            metadata=metadata,
        )


class ControllerResolutionFault(DIFault):
    """The container could not produce a controller instance."""

    def __init__(self, controller: str, reason: str, **kwargs):
        super().__init__(
            code="CONTROLLER_RESOLUTION_FAILED",
            message=f"Failed to resolve controller '{controller}': {reason}",
            metadata={"controller": controller, "reason": reason, **kwargs.get("metadata", {})},
        )


# ============================================================================
# SECURITY Faults
# ============================================================================

class SecurityFault(Fault):
    """Base class for security faults."""

    status: int = 403

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.WARN,
        public: bool = True,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.SECURITY,
            severity=severity,
            public=public,
            metadata=metadata,
        )


class CSRFViolationFault(SecurityFault):
    """CSRF token validation failed."""

    def __init__(self, reason: str = "CSRF validation failed", **kwargs):
        self.reason = reason
        super().__init__(
            code="CSRF_VIOLATION",
            message=reason,
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )


class RateLimitExceededFault(SecurityFault):
    """Rate limit exceeded for client."""

    status = 429

    def __init__(self, limit: int, window: float, retry_after: float, **kwargs):
        self.retry_after = retry_after
        super().__init__(
            code="RATE_LIMIT_EXCEEDED",
            message=f"Rate limit exceeded ({limit} requests per {window}s). Retry after {int(retry_after)}s",
            metadata={
                "limit": limit,
                "window": window,
                "retry_after": retry_after,
                **kwargs.get("metadata", {}),
            },
        )
