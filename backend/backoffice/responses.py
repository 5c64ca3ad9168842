# Overview: Response builders shared by gates and the error reporter.

from __future__ import annotations

from flask import flash, jsonify, make_response, redirect, render_template, url_for


def json_error(message: str, status: int, /, **extra):
    payload = {"message": message}
    payload.update(extra)
    return make_response(jsonify(payload), status)


def redirect_to_login(*, error: str | None = None, next_url: str | None = None):
    """Browser rejection: back to the login page, optionally with a flashed error."""
    if error:
        flash(error, "error")
    if next_url:
        return redirect(url_for("auth.login_page", next=next_url))
    return redirect(url_for("auth.login_page"))


def render_error_page(status: int, message: str | None = None, **context):
    template = {
        403: "errors/403.html",
        404: "errors/404.html",
        422: "errors/422.html",
    }.get(status, "errors/500.html")
    body = render_template(template, status=status, message=message, **context)
    return make_response(body, status)
