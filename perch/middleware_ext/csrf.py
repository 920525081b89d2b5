"""
CSRF Token Middleware.

Synchronizer token pattern backed by the session
(``request.state["session"]``) with an HMAC-signed double-submit cookie as
fallback when no session is available.

Flow:
    1. Retrieve the stored token (session, then signed cookie) or generate one
    2. Expose it as ``request.state["csrf_token"]``
    3. For unsafe methods, compare it with the submitted token
       (``X-CSRF-Token`` header, then ``_csrf_token`` form field or query
       parameter); a mismatch raises CSRFViolationFault
    4. Rotate the token after a successful check unless ``repeat_ok``
    5. Refresh the signed cookie on the response when there is no session
"""

from __future__ import annotations

import hmac as _hmac
import logging
import secrets
from typing import Any, FrozenSet, Optional
from urllib.parse import parse_qsl

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac

from ..faults.domains import CSRFViolationFault
from ..middleware import Handler, RequestCtx
from ..request import Request
from ..response import Response

logger = logging.getLogger("perch.security")

# Signing key for every middleware built without a configured key.
_PROCESS_SECRET_KEY = secrets.token_urlsafe(32)


class CsrfTokenMiddleware:
    """
    CSRF protection for a single route.

    Args:
        secret_key: Key for signing the cookie token. A random per-process
            key is used when omitted.
        repeat_ok: Keep the token valid after a successful check
        header_name: Header carrying the submitted token
        field_name: Form field / query parameter carrying the token
        cookie_name: Name of the signed cookie
        cookie_path: Path attribute of the cookie
        cookie_secure: Secure flag of the cookie
        cookie_samesite: SameSite attribute of the cookie
    """

    SAFE_METHODS: FrozenSet[str] = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})
    SESSION_KEY = "_csrf_token"

    def __init__(
        self,
        secret_key: Optional[str] = None,
        repeat_ok: bool = True,
        header_name: str = "X-CSRF-Token",
        field_name: str = "_csrf_token",
        cookie_name: str = "_csrf_cookie",
        cookie_path: str = "/",
        cookie_secure: bool = False,
        cookie_samesite: str = "Lax",
        token_length: int = 32,
    ):
        self._secret_key = (secret_key or _PROCESS_SECRET_KEY).encode()
        self.repeat_ok = repeat_ok
        self.header_name = header_name.lower()
        self.field_name = field_name
        self.cookie_name = cookie_name
        self._cookie_path = cookie_path
        self._cookie_secure = cookie_secure
        self._cookie_samesite = cookie_samesite
        self._token_length = token_length

    # ── Token signing ────────────────────────────────────────────────────

    def generate_token(self) -> str:
        return secrets.token_urlsafe(self._token_length)

    def _signature(self, token: str) -> bytes:
        h = crypto_hmac.HMAC(self._secret_key, hashes.SHA256())
        h.update(token.encode())
        return h.finalize()

    def sign_token(self, token: str) -> str:
        return f"{token}.{self._signature(token).hex()}"

    def verify_signed_token(self, signed: str) -> Optional[str]:
        """Return the token if the signature is valid, None otherwise."""
        if "." not in signed:
            return None
        token, sig = signed.rsplit(".", 1)
        try:
            expected = bytes.fromhex(sig)
        except ValueError:
            return None
        h = crypto_hmac.HMAC(self._secret_key, hashes.SHA256())
        h.update(token.encode())
        try:
            h.verify(expected)
        except InvalidSignature:
            return None
        return token

    # ── Token storage ────────────────────────────────────────────────────

    def _session(self, request: Request) -> Optional[Any]:
        session = request.state.get("session")
        if session is not None and hasattr(session, "get") and hasattr(session, "__setitem__"):
            return session
        return None

    def get_stored_token(self, request: Request) -> Optional[str]:
        session = self._session(request)
        if session is not None:
            token = session.get(self.SESSION_KEY)
            if token:
                return token
        cookie = request.cookie(self.cookie_name)
        if cookie:
            return self.verify_signed_token(cookie)
        return None

    def _store_token(self, request: Request, token: str) -> None:
        session = self._session(request)
        if session is not None:
            session[self.SESSION_KEY] = token
        request.state["csrf_token"] = token

    def _cookie_header(self, token: str) -> str:
        parts = [
            f"{self.cookie_name}={self.sign_token(token)}",
            f"Path={self._cookie_path}",
            f"SameSite={self._cookie_samesite}",
        ]
        if self._cookie_secure:
            parts.append("Secure")
        return "; ".join(parts)

    # ── Submitted token ──────────────────────────────────────────────────

    def get_submitted_token(self, request: Request) -> Optional[str]:
        """
        Extract the submitted token.

        Checks in order:
        1. HTTP header (X-CSRF-Token)
        2. Form field (_csrf_token) of an urlencoded body
        3. Query parameter (_csrf_token)
        """
        token = request.header(self.header_name)
        if token:
            return token

        content_type = (request.header("content-type") or "").split(";")[0].strip().lower()
        if content_type == "application/x-www-form-urlencoded" and request.body:
            form = dict(parse_qsl(request.body.decode("utf-8", "replace"), keep_blank_values=True))
            token = form.get(self.field_name)
            if token:
                return token

        return request.query_param(self.field_name) or None

    # ── Main handler ─────────────────────────────────────────────────────

    async def __call__(self, request: Request, ctx: RequestCtx, next_handler: Handler) -> Response:
        stored = self.get_stored_token(request)
        token = stored or self.generate_token()

        if request.method.upper() not in self.SAFE_METHODS:
            submitted = self.get_submitted_token(request)
            if submitted is None:
                logger.warning("CSRF token missing for %s %s", request.method, request.path)
                raise CSRFViolationFault("CSRF token missing")
            if stored is None or not _hmac.compare_digest(stored, submitted):
                logger.warning("CSRF token invalid for %s %s", request.method, request.path)
                raise CSRFViolationFault("CSRF token invalid")
            if not self.repeat_ok:
                token = self.generate_token()

        self._store_token(request, token)
        response = await next_handler(request, ctx)

        if self._session(request) is None and token != stored:
            response.set_cookie(self._cookie_header(token))
        return response


__all__ = ["CsrfTokenMiddleware"]
