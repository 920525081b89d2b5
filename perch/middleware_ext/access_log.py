"""
Access Log Middleware - one log record per request.

Features:
- nginx ``main`` log format by default, any ``$variable`` template
- Callable formats and a structured JSON formatter
- Opt-in extras: query, body, headers, cookies, jwt, header.<name>, pid
- Request filter to skip records (e.g. health checks)
- Requests whose handler raised are logged with status 500 before the
  exception continues to propagate

Follows the Perch async middleware signature:
    async def __call__(self, request, ctx, next_handler) -> Response
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
import re
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)
from urllib.parse import urlencode

from ..middleware import Handler, RequestCtx
from ..request import Request
from ..response import Response
from . import remote_address

MAIN = (
    '$remote_addr - $remote_user [$time_local] "$request" $status $body_bytes_sent "$http_referer" '
    '"$http_user_agent" "$http_x_forwarded_for" rt=$request_time'
)

DEFAULT_DATE_FORMAT = "%d/%b/%Y:%H:%M:%S %z"
DEFAULT_EXTRA = ("query", "body")
DEFAULT_BODY_MAX_SIZE = 4096

RequestFilter = Callable[[Request, Optional[Response]], bool]


@dataclass(frozen=True)
class RequestLogContext:
    """
    Snapshot of a finished request, built once and handed to a formatter.

    ``status`` is 500 and ``body_bytes_sent`` 0 when no response was produced.
    """

    remote_addr: str
    remote_user: str
    time_local: str
    request_method: str
    request_uri: str
    request: str
    status: int
    body_bytes_sent: int
    http_referer: str
    http_user_agent: str
    http_x_forwarded_for: str
    request_time: float
    extra: Mapping[str, Any] = field(default_factory=dict)

    def variables(self) -> Dict[str, Any]:
        """Template variables (everything except ``extra``)."""
        values = asdict(self)
        values.pop("extra")
        return values


def get_jwt_payload(authorization: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Decode the payload segment of a ``Bearer`` JWT without verifying it.

    Returns None for a missing header, another scheme or a malformed token.
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None
    parts = authorization[7:].split(".")
    if len(parts) < 2:
        return None
    segment = parts[1]
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        payload = json.loads(raw)
    except (binascii.Error, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


class ContextExtractor:
    """
    Builds RequestLogContext values.

    Args:
        extra: Names of extra fields to collect
        body_max_size: Bodies larger than this are summarized by size
        date_format: strftime format or a callable returning the timestamp
    """

    def __init__(
        self,
        extra: Sequence[str] = DEFAULT_EXTRA,
        body_max_size: Optional[int] = DEFAULT_BODY_MAX_SIZE,
        date_format: Union[str, Callable[[], str]] = DEFAULT_DATE_FORMAT,
    ):
        self.extra = tuple(extra)
        self.body_max_size = body_max_size
        if callable(date_format):
            self._date_formatter = date_format
        else:
            self._date_formatter = lambda: datetime.now().astimezone().strftime(date_format)

    def extract(
        self,
        request: Request,
        response: Optional[Response],
        elapsed_ms: float,
    ) -> RequestLogContext:
        addresses = remote_address.get_all(request)
        url = request.url()
        return RequestLogContext(
            remote_addr=addresses[0] if addresses else "-",
            remote_user=url.username or "-",
            time_local=self._date_formatter(),
            request_method=request.method,
            request_uri=str(url),
            request=f"{request.method.upper()} {request.path} {request.scheme.upper()}/{request.http_version}",
            status=response.status if response is not None else 500,
            body_bytes_sent=response.body_size if response is not None else 0,
            http_referer=request.header_line("referer"),
            http_user_agent=request.header_line("user-agent"),
            http_x_forwarded_for=",".join(addresses),
            request_time=elapsed_ms,
            extra=self.extract_extra(request),
        )

    def extract_extra(self, request: Request) -> Dict[str, Any]:
        extra: Dict[str, Any] = {}
        for name in self.extra:
            if name == "query":
                extra["query"] = urlencode(request.query_params.pairs())
            elif name == "body":
                extra["body"] = self._describe_body(request.body)
            elif name == "headers":
                extra["headers"] = request.headers.to_dict()
            elif name == "cookies":
                extra["cookies"] = request.header_line("cookie")
            elif name == "jwt":
                extra["jwt"] = get_jwt_payload(request.header_line("authorization"))
            elif name.startswith("header."):
                header = name[len("header."):]
                extra[header] = request.header_line(header)
            elif name == "pid":
                extra["pid"] = os.getpid()
        return {key: value for key, value in extra.items() if value}

    def _describe_body(self, body: bytes) -> str:
        size = len(body)
        if self.body_max_size is not None and size > self.body_max_size:
            return f"body with {size} bytes"
        try:
            return body.decode("utf-8")
        except UnicodeDecodeError:
            return f"binary data with {size} bytes"


class LogFormatter:
    """
    Base formatter: turns a finished request into ``(message, args)``.

    ``args`` is attached to the log record as ``record.access_log``.
    """

    def __init__(self, extractor: Optional[ContextExtractor] = None):
        self.extractor = extractor or ContextExtractor()

    def format(
        self,
        request: Request,
        response: Optional[Response],
        elapsed_ms: float,
    ) -> Tuple[str, Dict[str, Any]]:
        return self.render(self.extractor.extract(request, response, elapsed_ms))

    def render(self, context: RequestLogContext) -> Tuple[str, Dict[str, Any]]:
        raise NotImplementedError


class TemplateLogFormatter(LogFormatter):
    """``$variable`` template; the extras become the record arguments."""

    def __init__(self, template: str = MAIN, extractor: Optional[ContextExtractor] = None):
        super().__init__(extractor)
        self.template = template

    def render(self, context: RequestLogContext) -> Tuple[str, Dict[str, Any]]:
        variables = context.variables()
        # Longest names first so $request_time wins over $request.
        names = sorted(variables, key=len, reverse=True)
        pattern = re.compile("|".join(re.escape("$" + name) for name in names))
        message = pattern.sub(lambda m: str(variables[m.group(0)[1:]]), self.template)
        return message, dict(context.extra)


class CallableLogFormatter(LogFormatter):
    """Delegates to ``func(variables)`` where variables include ``extra``."""

    def __init__(
        self,
        func: Callable[[Dict[str, Any]], str],
        extractor: Optional[ContextExtractor] = None,
    ):
        super().__init__(extractor)
        self.func = func

    def render(self, context: RequestLogContext) -> Tuple[str, Dict[str, Any]]:
        variables = context.variables()
        variables["extra"] = dict(context.extra)
        return self.func(variables), {}


class StructuredLogFormatter(LogFormatter):
    """JSON-structured log output."""

    def render(self, context: RequestLogContext) -> Tuple[str, Dict[str, Any]]:
        record = context.variables()
        record.update(context.extra)
        return json.dumps(record, default=str), dict(context.extra)


class AccessLogMiddleware:
    """
    HTTP access logging middleware.

    Args:
        formatter: LogFormatter (default: nginx main template)
        request_filter: ``filter(request, response) -> bool``; False skips
            the record. ``response`` is None when the handler raised.
        logger: Logger to write to (default "perch.access")
    """

    def __init__(
        self,
        formatter: Optional[LogFormatter] = None,
        request_filter: Optional[RequestFilter] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.formatter = formatter or TemplateLogFormatter()
        self.request_filter = request_filter
        self.logger = logger or logging.getLogger("perch.access")

    @classmethod
    def from_config(cls, config: Any, logger: Optional[logging.Logger] = None) -> "AccessLogMiddleware":
        """Build from an AccessLogConfig section."""
        extractor = ContextExtractor(
            extra=config.extra,
            body_max_size=config.body_max_size,
            date_format=config.date_format,
        )
        if config.format == "json":
            formatter: LogFormatter = StructuredLogFormatter(extractor)
        else:
            formatter = TemplateLogFormatter(config.format or MAIN, extractor)
        skip = frozenset(config.skip_paths)
        request_filter = (lambda request, response: request.path not in skip) if skip else None
        return cls(formatter=formatter, request_filter=request_filter, logger=logger)

    async def __call__(
        self,
        request: Request,
        ctx: RequestCtx,
        next_handler: Handler,
    ) -> Response:
        start = time.perf_counter()
        response: Optional[Response] = None
        try:
            response = await next_handler(request, ctx)
            return response
        finally:
            elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
            try:
                self._log(request, response, elapsed_ms)
            except Exception:
                # The caller always sees the downstream outcome.
                self.logger.exception("Failed to write access log for %s %s", request.method, request.path)

    def _log(self, request: Request, response: Optional[Response], elapsed_ms: float) -> None:
        if self.request_filter is None or self.request_filter(request, response):
            message, args = self.formatter.format(request, response, elapsed_ms)
            self.logger.info(message, extra={"access_log": args})


__all__ = [
    "AccessLogMiddleware",
    "RequestLogContext",
    "ContextExtractor",
    "LogFormatter",
    "TemplateLogFormatter",
    "CallableLogFormatter",
    "StructuredLogFormatter",
    "get_jwt_payload",
    "MAIN",
]
