# Overview: Authentication, status and role gates for the request pipeline.

"""
Gates answer failures themselves (short-circuit) and never raise them:
a rejected request never reaches the handler.

Machine callers (see pipeline.wants_json) get a JSON envelope; browser
callers get a redirect to the login page or a rendered error page.
"""

from __future__ import annotations

import logging

from .logging_config import emit
from .pipeline import Gate, Handler, RequestContext
from .responses import json_error, redirect_to_login, render_error_page
from .services import session_service

UNAUTHENTICATED_MESSAGE = "Unauthenticated."
INACTIVE_MESSAGE = "Your account is not active. Please contact an administrator."
INSUFFICIENT_ROLE_MESSAGE = "Insufficient privileges to access this resource."


class AuthenticationGate(Gate):
    """Resolves the presented token to a principal, or rejects with 401 / login redirect."""

    def process(self, ctx: RequestContext, next_handler: Handler):
        session = session_service.validate_session(ctx.session_token)
        if session is None:
            return self.reject(ctx)

        ctx.session = session
        ctx.principal = session.user
        return next_handler(ctx)

    @staticmethod
    def reject(ctx: RequestContext, **log_extra):
        """Shared rejection path for every gate that finds no principal."""
        context = {
            "url": ctx.url,
            "method": ctx.method,
            "ip_address": ctx.ip,
            "user_agent": ctx.user_agent,
            "referer": ctx.referrer,
            "token_source": ctx.token_source,
        }
        context.update(log_extra)
        emit("security", logging.WARNING, "Unauthorized access attempt", context)

        if ctx.expects_json:
            return json_error(UNAUTHENTICATED_MESSAGE, 401)
        return redirect_to_login(next_url=ctx.path if ctx.method == "GET" else None)


class StatusGate(Gate):
    """Turns away principals whose account is not active and kills their session."""

    def process(self, ctx: RequestContext, next_handler: Handler):
        user = ctx.principal
        if user is None:
            return AuthenticationGate.reject(ctx)

        if user.is_active():
            return next_handler(ctx)

        emit("auth", logging.WARNING, "Inactive user attempted access", {
            "user_id": user.id,
            "email": user.email,
            "status": user.status,
            "url": ctx.url,
            "ip_address": ctx.ip,
        })

        fresh_csrf = session_service.invalidate_session(ctx.session, reason=f"Account {user.status}")
        ctx.session = None

        if ctx.expects_json:
            response = json_error(INACTIVE_MESSAGE, 403, status=user.status)
        else:
            response = redirect_to_login(error=INACTIVE_MESSAGE)
        return session_service.clear_session_cookies(response, fresh_csrf)


class RoleGate(Gate):
    """
    Lets through principals holding one of `roles`. An empty role set
    admits any authenticated principal.
    """

    def __init__(self, roles=()):
        self.roles = tuple(roles)

    def allows(self, role: str | None) -> bool:
        return not self.roles or role in self.roles

    def process(self, ctx: RequestContext, next_handler: Handler):
        user = ctx.principal
        if user is None:
            return AuthenticationGate.reject(ctx, required_roles=list(self.roles))

        if not self.allows(user.role):
            emit("security", logging.WARNING, "Insufficient role for route", {
                "user_id": user.id,
                "email": user.email,
                "user_role": user.role,
                "required_roles": list(self.roles),
                "url": ctx.url,
                "method": ctx.method,
                "ip_address": ctx.ip,
            })
            if ctx.expects_json:
                return json_error(
                    INSUFFICIENT_ROLE_MESSAGE, 403,
                    required_roles=list(self.roles),
                    user_role=user.role,
                )
            return render_error_page(403, INSUFFICIENT_ROLE_MESSAGE)

        emit("auth", logging.INFO, "User accessed role-protected route", {
            "user_id": user.id,
            "email": user.email,
            "role": user.role,
            "required_roles": list(self.roles),
            "url": ctx.url,
            "method": ctx.method,
            "ip_address": ctx.ip,
        })
        return next_handler(ctx)
