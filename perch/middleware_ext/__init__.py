"""
Perch middleware extensions.

All middleware follow the Perch async signature:
    async def __call__(self, request, ctx, next_handler) -> Response
"""

from .access_log import (
    AccessLogMiddleware,
    CallableLogFormatter,
    ContextExtractor,
    LogFormatter,
    RequestLogContext,
    StructuredLogFormatter,
    TemplateLogFormatter,
    get_jwt_payload,
    MAIN,
)
from .csrf import CsrfTokenMiddleware
from .login import LoginOnlyMiddleware
from .rate_limit import RateLimitMiddleware, ip_key_extractor
from .remote_address import get_all as get_remote_addresses, get_remote_address

__all__ = [
    "AccessLogMiddleware",
    "CallableLogFormatter",
    "ContextExtractor",
    "LogFormatter",
    "RequestLogContext",
    "StructuredLogFormatter",
    "TemplateLogFormatter",
    "get_jwt_payload",
    "MAIN",
    "CsrfTokenMiddleware",
    "LoginOnlyMiddleware",
    "RateLimitMiddleware",
    "ip_key_extractor",
    "get_remote_addresses",
    "get_remote_address",
]
