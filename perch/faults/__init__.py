"""
Perch Faults - typed fault signals.

Startup faults (CONFIG, DI) are fatal and abort route registration.
Security faults raised by middleware are mapped to HTTP responses by the router.
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)
from .domains import (
    ConfigFault,
    ConfigInvalidFault,
    AnnotationFault,
    RouteNameAmbiguityFault,
    DIFault,
    ControllerResolutionFault,
    SecurityFault,
    CSRFViolationFault,
    RateLimitExceededFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "ConfigFault",
    "ConfigInvalidFault",
    "AnnotationFault",
    "RouteNameAmbiguityFault",
    "DIFault",
    "ControllerResolutionFault",
    "SecurityFault",
    "CSRFViolationFault",
    "RateLimitExceededFault",
]
