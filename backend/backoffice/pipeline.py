# Overview: Explicit request context and the ordered gate pipeline.

"""
Request processing pipeline.

A RequestContext is built once per request from the Flask request and then
passed explicitly through every gate and on to the handler. Gates never look
up the current request or principal from globals; they read and update the
context they are given.

Each gate implements ``process(ctx, next_handler) -> Response``. A gate
either answers the request itself (short-circuit) or calls ``next_handler``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from flask import Response

from .models import SessionToken, User

Handler = Callable[["RequestContext"], Response]

BEARER_PREFIX = "Bearer "


@dataclass
class RequestContext:
    method: str
    url: str
    path: str
    ip: str | None = None
    user_agent: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)
    expects_json: bool = False
    referrer: str | None = None

    # Credentials presented by the client
    session_token: str | None = None
    token_source: str | None = None  # "bearer" | "cookie"

    # Filled in by the authentication gate
    principal: User | None = None
    session: SessionToken | None = None

    @property
    def principal_id(self) -> int | None:
        return self.principal.id if self.principal is not None else None

    @classmethod
    def from_flask(cls, req, *, cookie_name: str) -> "RequestContext":
        token, source = _extract_token(req, cookie_name)

        body: dict[str, Any] = {}
        if req.method != "GET":
            if req.is_json:
                payload = req.get_json(silent=True)
                body = payload if isinstance(payload, dict) else {}
            else:
                body = req.form.to_dict(flat=True)

        return cls(
            method=req.method,
            url=req.url,
            path=req.path,
            ip=req.remote_addr,
            user_agent=req.headers.get("User-Agent"),
            headers={k: v for k, v in req.headers.items()},
            body=body,
            expects_json=wants_json(req),
            referrer=req.headers.get("Referer"),
            session_token=token,
            token_source=source,
        )


def wants_json(req) -> bool:
    """Machine callers: JSON Accept header, XHR, JSON body, or anything under /api/."""
    accept = (req.headers.get("Accept") or "").lower()
    if "json" in accept:
        return True
    if req.headers.get("X-Requested-With") == "XMLHttpRequest":
        return True
    if req.is_json:
        return True
    return req.path.startswith("/api/")


def _extract_token(req, cookie_name: str) -> tuple[str | None, str | None]:
    auth_header = req.headers.get("Authorization")
    if auth_header and auth_header.startswith(BEARER_PREFIX):
        token = auth_header[len(BEARER_PREFIX):].strip()
        if token:
            return token, "bearer"
    cookie = req.cookies.get(cookie_name)
    if cookie:
        return cookie, "cookie"
    return None, None


class Gate:
    """One stage of the request pipeline."""

    def process(self, ctx: RequestContext, next_handler: Handler) -> Response:
        raise NotImplementedError


class Pipeline:
    """Runs a fixed, ordered list of gates in front of a handler."""

    def __init__(self, gates: Iterable[Gate]):
        self.gates = tuple(gates)

    def run(self, ctx: RequestContext, handler: Handler) -> Response:
        def dispatch(index: int, current: RequestContext) -> Response:
            if index == len(self.gates):
                return handler(current)
            return self.gates[index].process(current, lambda c: dispatch(index + 1, c))

        return dispatch(0, ctx)
