# Overview: Request audit logger; wraps the gate chain and the handler.

"""
Audit logging for every routed request.

Two entries per request on the ``api`` channel:

- "Incoming request": method, URL, IP, user agent, principal id and the
  request headers with credentials stripped; non-GET requests also log the
  body without password-type fields.
- "Request completed": status, elapsed milliseconds and principal id, at
  ERROR for 5xx, WARNING for 4xx, INFO otherwise. Requests slower than
  SLOW_REQUEST_THRESHOLD_MS add a "Slow request detected" warning.

If the wrapped chain raises, the completion entry is still written with the
status the exception maps to, and the exception propagates unchanged.
Failures inside the logger itself are swallowed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable

from flask import current_app

from .errors import status_for_exception
from .logging_config import emit
from .pipeline import Gate, Handler, RequestContext
from .services import session_service
from .time_utils import to_utc_z, utcnow

DEFAULT_SLOW_REQUEST_THRESHOLD_MS = 1000.0

SENSITIVE_HEADERS = frozenset({
    "authorization",
    "proxy-authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
    "x-auth-token",
    "x-csrf-token",
    "x-xsrf-token",
})

SENSITIVE_BODY_KEYS = frozenset({
    "_token",
    "token",
    "secret",
    "api_key",
    "authorization",
    "bank_account_info",
})


@dataclass(frozen=True)
class AuditEntry:
    """One completed request: who did what, where, with which outcome."""

    timestamp: str
    user_id: int | None
    action: str
    route: str
    url: str
    ip_address: str | None
    status: int
    duration_ms: float

    def to_context(self) -> dict[str, Any]:
        data = asdict(self)
        data["method"] = self.action
        return data


def filter_headers(headers: dict[str, str]) -> dict[str, str]:
    return {k: v for k, v in headers.items() if k.lower() not in SENSITIVE_HEADERS}


def _is_sensitive_key(key) -> bool:
    lowered = str(key).lower()
    return "password" in lowered or lowered in SENSITIVE_BODY_KEYS


def filter_body(body: Any) -> Any:
    """Drop password-type keys at any depth."""
    if isinstance(body, dict):
        return {k: filter_body(v) for k, v in body.items() if not _is_sensitive_key(k)}
    if isinstance(body, list):
        return [filter_body(item) for item in body]
    return body


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestAuditLogger(Gate):
    """
    Outermost gate. `clock` returns seconds (defaults to time.perf_counter);
    `threshold_ms` defaults to the app's SLOW_REQUEST_THRESHOLD_MS.
    """

    def __init__(self, *, clock: Callable[[], float] | None = None, threshold_ms: float | None = None):
        self.clock = clock or time.perf_counter
        self.threshold_ms = threshold_ms

    def process(self, ctx: RequestContext, next_handler: Handler):
        started = self.clock()
        self._guarded(self.log_incoming, ctx)

        try:
            response = next_handler(ctx)
        except Exception as exc:
            self._guarded(self.log_completed, ctx, status_for_exception(exc), started)
            raise

        self._guarded(self.log_completed, ctx, response.status_code, started)
        return response

    def _guarded(self, fn, *args) -> None:
        try:
            fn(*args)
        except Exception:
            # Audit failures must never change the response.
            pass

    def _threshold(self) -> float:
        if self.threshold_ms is not None:
            return float(self.threshold_ms)
        return float(current_app.config.get("SLOW_REQUEST_THRESHOLD_MS", DEFAULT_SLOW_REQUEST_THRESHOLD_MS))

    def log_incoming(self, ctx: RequestContext) -> None:
        user_id = ctx.principal_id
        if user_id is None:
            user_id = session_service.peek_user_id(ctx.session_token)

        context: dict[str, Any] = {
            "method": ctx.method,
            "url": ctx.url,
            "ip_address": ctx.ip,
            "user_agent": ctx.user_agent,
            "user_id": user_id,
            "headers": filter_headers(ctx.headers),
        }
        if ctx.method != "GET":
            context["body"] = filter_body(ctx.body)

        emit("api", logging.INFO, "Incoming request", context)

    def log_completed(self, ctx: RequestContext, status: int, started: float) -> None:
        duration_ms = round((self.clock() - started) * 1000, 2)
        entry = AuditEntry(
            timestamp=to_utc_z(utcnow()),
            user_id=ctx.principal_id,
            action=ctx.method,
            route=ctx.path,
            url=ctx.url,
            ip_address=ctx.ip,
            status=status,
            duration_ms=duration_ms,
        )
        context = entry.to_context()
        emit("api", level_for_status(status), "Request completed", context)

        threshold = self._threshold()
        if duration_ms > threshold:
            emit("api", logging.WARNING, "Slow request detected", {**context, "threshold_ms": threshold})
