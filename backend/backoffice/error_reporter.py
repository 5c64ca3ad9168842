# Overview: Central exception handlers; logs every failure to its channel and renders a safe response.

"""
Error reporter.

Handlers are registered on the app by register_error_handlers(). Each
failure is logged once, to the channel its type belongs to, then answered
with a JSON envelope (machine callers) or a redirect / rendered page
(browser callers). Stack traces and internal messages stay in the logs.
"""

from __future__ import annotations

import logging
import traceback

from flask import current_app, flash, g, redirect, request
from werkzeug.exceptions import HTTPException, NotFound

from .audit import RequestAuditLogger
from .errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    EntityNotFound,
    ReferenceConflict,
    ValidationFailure,
)
from .extensions import db
from .logging_config import emit
from .pipeline import RequestContext
from .responses import json_error, redirect_to_login, render_error_page

SERVER_ERROR_MESSAGE = "Server Error"
NOT_FOUND_MESSAGE = "Not found."

CRITICAL_NAME_MARKERS = ("Error", "ParseError", "TypeError", "FatalError")


def current_request_context() -> RequestContext:
    """The context the pipeline built for this request, or a fresh one."""
    ctx = g.get("request_context")
    if ctx is None:
        ctx = RequestContext.from_flask(request, cookie_name=current_app.config["SESSION_TOKEN_COOKIE"])
    return ctx


def classify_channel(exc: BaseException) -> str:
    """Pick the log channel for an unhandled exception."""
    names = [cls.__name__ for cls in type(exc).__mro__]
    if any("Database" in name or "Query" in name for name in names):
        return "database"
    if isinstance(exc, AuthenticationFailure) or any("Authentication" in name for name in names):
        return "auth"
    if isinstance(exc, HTTPException) and (exc.code or 0) >= 400:
        return "security"
    return "daily"


def is_critical(exc: BaseException) -> bool:
    name = type(exc).__name__
    return any(marker in name for marker in CRITICAL_NAME_MARKERS)


def _request_fields(ctx: RequestContext) -> dict:
    return {
        "url": ctx.url,
        "method": ctx.method,
        "ip_address": ctx.ip,
        "user_agent": ctx.user_agent,
        "user_id": ctx.principal_id,
    }


def report_exception(exc: BaseException, ctx: RequestContext) -> str:
    """Log an unhandled exception with its origin and request. Returns the channel used."""
    frames = traceback.extract_tb(exc.__traceback__) if exc.__traceback__ else []
    origin = frames[-1] if frames else None

    context = {
        "exception": type(exc).__name__,
        "message": str(exc),
        "file": origin.filename if origin else None,
        "line": origin.lineno if origin else None,
        "trace": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        **_request_fields(ctx),
    }

    channel_name = classify_channel(exc)
    emit(channel_name, logging.ERROR, "Exception occurred", context)

    if is_critical(exc):
        emit("security", logging.CRITICAL, "Critical exception occurred", context)
    return channel_name


def _audit_unrouted(ctx: RequestContext, respond):
    """
    Answer a request that matched no route (or no method). Routed requests
    were already audited by their pipeline; these get the same entry pair here.
    """
    if g.get("request_context") is not None:
        return respond(ctx)
    g.request_context = ctx
    return RequestAuditLogger().process(ctx, respond)


def register_error_handlers(app) -> None:

    @app.before_request
    def reset_request_context():
        g.pop("request_context", None)

    @app.errorhandler(AuthenticationFailure)
    def handle_authentication_failure(exc: AuthenticationFailure):
        ctx = current_request_context()
        emit("auth", logging.WARNING, "Authentication failed", _request_fields(ctx))
        if ctx.expects_json:
            return json_error(exc.message, exc.status_code)
        return redirect_to_login(next_url=ctx.path if ctx.method == "GET" else None)

    @app.errorhandler(ValidationFailure)
    def handle_validation_failure(exc: ValidationFailure):
        ctx = current_request_context()
        emit("api", logging.INFO, "Validation failed", {
            "url": ctx.url,
            "method": ctx.method,
            "user_id": ctx.principal_id,
            "errors": exc.errors,
        })
        if ctx.expects_json:
            return json_error(exc.message, exc.status_code, errors=exc.errors)
        if ctx.referrer:
            for key, messages in exc.errors.items():
                for message in messages:
                    flash(message, f"error:{key}")
            return redirect(ctx.referrer)
        return render_error_page(exc.status_code, exc.message, errors=exc.errors)

    @app.errorhandler(EntityNotFound)
    def handle_entity_not_found(exc: EntityNotFound):
        ctx = current_request_context()
        emit("database", logging.WARNING, "Model not found", {
            "model": exc.model,
            "ids": exc.ids,
            **_request_fields(ctx),
        })
        if ctx.expects_json:
            return json_error(exc.message, exc.status_code)
        return render_error_page(404, exc.message)

    @app.errorhandler(AuthorizationFailure)
    def handle_authorization_failure(exc: AuthorizationFailure):
        ctx = current_request_context()
        emit("security", logging.WARNING, "Authorization failed", {
            "reason": exc.message,
            **exc.details,
            **_request_fields(ctx),
        })
        if ctx.expects_json:
            return json_error(exc.message, exc.status_code, **exc.details)
        return render_error_page(403, exc.message)

    @app.errorhandler(ReferenceConflict)
    def handle_reference_conflict(exc: ReferenceConflict):
        ctx = current_request_context()
        emit("database", logging.ERROR, "Reference allocation conflict", _request_fields(ctx))
        if ctx.expects_json:
            return json_error(exc.message, exc.status_code)
        return render_error_page(exc.status_code, exc.message)

    @app.errorhandler(404)
    def handle_route_not_found(exc: NotFound):
        def respond(ctx: RequestContext):
            emit("security", logging.WARNING, "404 Not Found", {
                **_request_fields(ctx),
                "referer": ctx.referrer,
            })
            if ctx.expects_json:
                return json_error(NOT_FOUND_MESSAGE, 404)
            return render_error_page(404)

        return _audit_unrouted(current_request_context(), respond)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        if exc.code is None or exc.code < 400:
            return exc

        def respond(ctx: RequestContext):
            emit("security", logging.WARNING, "HTTP exception", {
                "status": exc.code,
                "exception": type(exc).__name__,
                **_request_fields(ctx),
            })
            if ctx.expects_json:
                return json_error(exc.name, exc.code)
            return exc.get_response()

        return _audit_unrouted(current_request_context(), respond)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        db.session.rollback()
        ctx = current_request_context()
        report_exception(exc, ctx)
        if ctx.expects_json:
            return json_error(SERVER_ERROR_MESSAGE, 500)
        return render_error_page(500)
