# Overview: Login/logout for browsers (form + cookie) and API clients (JSON + bearer token).

"""
Authentication routes

- POST /api/auth/login returns a bearer token (also set as a cookie)
- POST /login is the browser form; success redirects to the dashboard
- Logging in with a live session rotates it: the old token is revoked
- A truthy `remember` flag opens a 30-day session; logout clears it
- Inactive accounts are refused with 403 / a flashed error, even with
  the right password
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, make_response, redirect, render_template, request, url_for

from ..decorators import audited, protected
from ..errors import AuthenticationFailure, AuthorizationFailure, ValidationFailure
from ..gates import INACTIVE_MESSAGE
from ..logging_config import emit
from ..responses import redirect_to_login
from ..services import auth_service, session_service

auth_bp = Blueprint("auth", __name__)

INVALID_CREDENTIALS_MESSAGE = "These credentials do not match our records."
TRUTHY_FLAGS = ("1", "true", "on", "yes")


def _credentials(ctx) -> tuple[str, str]:
    email = str(ctx.body.get("email") or "").strip()
    password = str(ctx.body.get("password") or "")
    return email, password


def _remember(ctx) -> bool:
    value = ctx.body.get("remember")
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUTHY_FLAGS


def _start_session(ctx, user, *, remember: bool = False):
    """Revoke whatever session the client presented and open a new one."""
    if ctx.session_token:
        session_service.revoke_session(ctx.session_token, reason="Rotated at login")

    session, token = session_service.create_session(
        user,
        user_agent=ctx.user_agent,
        ip_address=ctx.ip,
        remember=remember,
    )
    auth_service.record_login(user, ctx.ip)
    ctx.principal = user
    ctx.session = session

    emit("auth", logging.INFO, "User logged in", {
        "user_id": user.id,
        "email": user.email,
        "ip_address": ctx.ip,
        "token_source": "bearer" if ctx.expects_json else "cookie",
        "remember_me": remember,
    })
    return session, token


def _log_failed_login(ctx, email: str, reason: str) -> None:
    emit("auth", logging.WARNING, "Failed login attempt", {
        "email": email,
        "reason": reason,
        "ip_address": ctx.ip,
        "user_agent": ctx.user_agent,
    })


def _safe_next(target: str | None) -> str | None:
    # Only same-site relative paths
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return None


@auth_bp.post("/api/auth/login")
@audited
def api_login_route(ctx):
    email, password = _credentials(ctx)

    errors = {}
    if not email:
        errors["email"] = ["The email field is required."]
    if not password:
        errors["password"] = ["The password field is required."]
    if errors:
        raise ValidationFailure(errors)

    user = auth_service.authenticate(email, password)
    if user is None:
        _log_failed_login(ctx, email, "Invalid credentials")
        raise AuthenticationFailure(INVALID_CREDENTIALS_MESSAGE)

    if not user.is_active():
        _log_failed_login(ctx, email, f"Account {user.status}")
        raise AuthorizationFailure(INACTIVE_MESSAGE, status=user.status)

    remember = _remember(ctx)
    session, token = _start_session(ctx, user, remember=remember)

    response = make_response(jsonify({
        "message": "Login successful",
        "user": user.to_dict(),
        "token": token,
        "csrf_token": session.csrf_token,
        "session": session.to_dict(),
    }), 200)
    return session_service.set_session_cookies(response, token, session.csrf_token, remember=remember)


@auth_bp.post("/api/auth/logout")
@protected()
def api_logout_route(ctx):
    session_service.clear_remember(ctx.session)
    session_service.revoke_session(ctx.session_token, reason="User logout")
    emit("auth", logging.INFO, "User logged out", {"user_id": ctx.principal_id})

    response = make_response(jsonify({"message": "Logged out"}), 200)
    return session_service.clear_session_cookies(response)


@auth_bp.get("/api/auth/me")
@protected()
def me_route(ctx):
    return jsonify({
        "user": ctx.principal.to_dict(),
        "session": ctx.session.to_dict(),
        "csrf_token": ctx.session.csrf_token,
    }), 200


@auth_bp.get("/login")
@audited
def login_page(ctx):
    return render_template("auth/login.html", next_url=_safe_next(request.args.get("next")))


@auth_bp.post("/login")
@audited
def login_submit(ctx):
    email, password = _credentials(ctx)
    next_url = _safe_next(ctx.body.get("next"))

    user = auth_service.authenticate(email, password)
    if user is None:
        _log_failed_login(ctx, email, "Invalid credentials")
        return redirect_to_login(error=INVALID_CREDENTIALS_MESSAGE, next_url=next_url)

    if not user.is_active():
        _log_failed_login(ctx, email, f"Account {user.status}")
        return redirect_to_login(error=INACTIVE_MESSAGE)

    remember = _remember(ctx)
    session, token = _start_session(ctx, user, remember=remember)

    response = redirect(next_url or url_for("pages.dashboard"))
    return session_service.set_session_cookies(response, token, session.csrf_token, remember=remember)


@auth_bp.post("/logout")
@protected()
def logout_submit(ctx):
    session_service.clear_remember(ctx.session)
    session_service.revoke_session(ctx.session_token, reason="User logout")
    emit("auth", logging.INFO, "User logged out", {"user_id": ctx.principal_id})

    response = redirect(url_for("auth.login_page"))
    return session_service.clear_session_cookies(response)
