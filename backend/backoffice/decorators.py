# Overview: Route decorators that run a view behind the fixed gate pipeline.

"""
Every routed view runs inside a Pipeline built here:

    RequestAuditLogger -> AuthenticationGate -> StatusGate -> RoleGate(roles) -> view

Public views (login, health) get only the audit logger.

Decorated views receive the RequestContext as their first argument:

    @customers_bp.get("")
    @protected()
    def list_customers_route(ctx):
        ...
"""

from __future__ import annotations

from functools import wraps

from flask import current_app, g, make_response, request

from .audit import RequestAuditLogger
from .gates import AuthenticationGate, RoleGate, StatusGate
from .pipeline import Pipeline, RequestContext


def build_pipeline(*roles: str, authenticated: bool = True) -> Pipeline:
    gates = [RequestAuditLogger()]
    if authenticated:
        gates.extend([AuthenticationGate(), StatusGate(), RoleGate(roles)])
    return Pipeline(gates)


def _build_context() -> RequestContext:
    ctx = RequestContext.from_flask(request, cookie_name=current_app.config["SESSION_TOKEN_COOKIE"])
    g.request_context = ctx
    return ctx


def _run(pipeline: Pipeline, view, args, kwargs):
    ctx = _build_context()
    return pipeline.run(ctx, lambda c: make_response(view(c, *args, **kwargs)))


def protected(*roles: str):
    """
    Require an authenticated, active principal. With `roles`, the principal's
    role must be one of them; without, any role passes.
    """
    pipeline = build_pipeline(*roles)

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            return _run(pipeline, view, args, kwargs)
        return wrapper

    return decorator


def audited(view):
    """Public route: audit-logged, no authentication."""
    pipeline = build_pipeline(authenticated=False)

    @wraps(view)
    def wrapper(*args, **kwargs):
        return _run(pipeline, view, args, kwargs)

    return wrapper
