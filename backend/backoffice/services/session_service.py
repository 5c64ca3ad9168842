# Overview: Server-side session tokens; creation, validation, revocation and cookie helpers.

"""
Session Token Management Service

Tokens are opaque random strings handed to the client either as a bearer
token or in the session cookie. Only the SHA-256 hash is stored.

SECURITY FEATURES:
- 32 bytes of entropy per token (64 hex characters)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- "Remember me" sessions last 30 days (SESSION_REMEMBER_LIFETIME) and skip
  the idle timeout; the flag is cleared at logout
- Each session carries its own anti-forgery (CSRF) token
- Revoked on logout, on rotation at login, and when the status gate
  finds the account is no longer active

validate_session() deliberately does NOT look at the account status.
Inactive accounts are the status gate's job, so that the client gets a
403 with the status rather than an anonymous 401.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..logging_config import emit
from ..models import SessionToken, User
from ..time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)
SESSION_REMEMBER_LIFETIME = timedelta(days=30)

# Revoked/expired rows older than this are deleted by cleanup
SESSION_RETENTION = timedelta(days=30)


def generate_token() -> str:
    return secrets.token_hex(32)


def generate_csrf_token() -> str:
    return secrets.token_hex(20)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(
    user: User,
    *,
    user_agent: str | None = None,
    ip_address: str | None = None,
    remember: bool = False,
) -> tuple[SessionToken, str]:
    """
    Create a new session for `user`. With `remember` the session outlives
    the browser and the idle timeout.

    Returns (session_record, plaintext_token). The plaintext token is only
    ever returned here; the database keeps its hash.
    """
    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        csrf_token=generate_csrf_token(),
        created_at=now,
        last_used_at=now,
        expires_at=now + (SESSION_REMEMBER_LIFETIME if remember else SESSION_ABSOLUTE_TIMEOUT),
        remember=remember,
        user_agent=(user_agent or "")[:512] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()

    if remember:
        emit("auth", logging.INFO, "Remember token set for user", {
            "user_id": user.id,
            "session_id": session.id,
            "expires_at": session.expires_at.isoformat(),
        })

    return session, plaintext_token


def _mark_revoked(session: SessionToken, reason: str, now=None) -> None:
    session.is_revoked = True
    session.revoked_at = now or utcnow()
    session.revoked_reason = reason


def validate_session(token: str | None) -> SessionToken | None:
    """
    Resolve a plaintext token to its live session.

    Returns None when the token is unknown, revoked, expired, idle for too
    long, or belongs to a closed (soft-deleted) account. Idle sessions are
    revoked on the way out; remembered sessions have no idle limit. A valid
    session gets its last_used_at bumped.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return None

    now = utcnow()

    if session.expires_at < now:
        return None

    if not session.remember and now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _mark_revoked(session, "Idle timeout", now)
        db.session.commit()
        return None

    user = session.user
    if user is None or user.is_deleted:
        _mark_revoked(session, "Account closed", now)
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return session


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke by plaintext token. Returns False if no live session matched."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if session is None:
        return False

    _mark_revoked(session, reason)
    db.session.commit()
    return True


def clear_remember(session: SessionToken | None) -> bool:
    """Drop the remember flag from `session`. Returns False if it was not set."""
    if session is None or not session.remember:
        return False

    session.remember = False
    db.session.commit()

    emit("auth", logging.INFO, "Remember token cleared for user", {
        "user_id": session.user_id,
        "session_id": session.id,
    })
    return True


def invalidate_session(session: SessionToken | None, reason: str) -> str:
    """
    Revoke `session` (if any) and return a fresh anti-forgery token for the
    client, so nothing from the old session can be replayed.
    """
    if session is not None and not session.is_revoked:
        _mark_revoked(session, reason)
        db.session.commit()
    return generate_csrf_token()


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions") -> int:
    """Revoke every live session for a user. Returns the number revoked."""
    now = utcnow()
    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        _mark_revoked(session, reason, now)

    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """Delete sessions that are old AND (expired OR revoked). Returns count deleted."""
    now = utcnow()
    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < now,
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < now - SESSION_RETENTION,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted


def set_session_cookies(response, token: str, csrf_token: str, *, remember: bool = False):
    lifetime = SESSION_REMEMBER_LIFETIME if remember else SESSION_ABSOLUTE_TIMEOUT
    max_age = int(lifetime.total_seconds())
    response.set_cookie(
        current_app.config["SESSION_TOKEN_COOKIE"],
        token,
        max_age=max_age,
        httponly=True,
        samesite="Lax",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    response.set_cookie(
        current_app.config["CSRF_COOKIE"],
        csrf_token,
        max_age=max_age,
        samesite="Lax",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    return response


def clear_session_cookies(response, fresh_csrf_token: str | None = None):
    """Drop the session cookie; optionally hand out a fresh anti-forgery token."""
    response.delete_cookie(current_app.config["SESSION_TOKEN_COOKIE"])
    if fresh_csrf_token:
        response.set_cookie(
            current_app.config["CSRF_COOKIE"],
            fresh_csrf_token,
            samesite="Lax",
            secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        )
    else:
        response.delete_cookie(current_app.config["CSRF_COOKIE"])
    return response


def peek_user_id(token: str | None) -> int | None:
    """
    Read-only lookup of the user behind a token, for logging. Does not
    enforce timeouts or touch last_used_at.
    """
    if not token:
        return None
    row = db.session.query(SessionToken.user_id).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    return row[0] if row else None
