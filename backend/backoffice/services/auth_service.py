# Overview: Password credentials, principal creation and account status changes.

"""
Authentication Service

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, mixed case, digit and special character
- Every principal keeps at least one credential: a password hash or a
  linked external identity
- Closing an account soft-deletes it and revokes every session
"""

from __future__ import annotations

import logging
import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..logging_config import emit
from ..models import User
from ..models.auth import EXTERNAL_PROVIDERS, ROLE_EMPLOYEE, ROLES, STATUS_ACTIVE, STATUSES
from ..time_utils import utcnow
from . import session_service


DEFAULT_BCRYPT_ROUNDS = 12


class PasswordValidationError(Exception):
    """Raised when a password doesn't meet strength requirements."""
    pass


class AccountError(ValueError):
    """Raised for invalid principal data (duplicate email, unknown role, no credential...)."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>?_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    return DEFAULT_BCRYPT_ROUNDS


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """Timing-safe bcrypt check. A missing or malformed hash never matches."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    *,
    name: str,
    email: str,
    password: str | None = None,
    role: str = ROLE_EMPLOYEE,
    status: str = STATUS_ACTIVE,
    external_ids: dict[str, str] | None = None,
) -> User:
    """
    Create a principal.

    Either `password` or at least one entry in `external_ids`
    ({"google": "...", "github": "..."}) is required.

    Raises AccountError or PasswordValidationError.
    """
    name = (name or "").strip()
    email = (email or "").strip().lower()
    external_ids = {p: v for p, v in (external_ids or {}).items() if v}

    if not name:
        raise AccountError("Name is required")
    if not email:
        raise AccountError("Email is required")
    if role not in ROLES:
        raise AccountError(f"Unknown role: {role}")
    if status not in STATUSES:
        raise AccountError(f"Unknown status: {status}")
    for provider in external_ids:
        if provider not in EXTERNAL_PROVIDERS:
            raise AccountError(f"Unknown identity provider: {provider}")
    if not password and not external_ids:
        raise AccountError("A password or a linked external identity is required")

    if db.session.query(User).filter(db.func.lower(User.email) == email).first():
        raise AccountError("Email already exists")

    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password) if password else None,
        role=role,
        status=status,
    )
    for provider, external_id in external_ids.items():
        user.set_external_id(provider, external_id)

    db.session.add(user)
    db.session.commit()

    emit("auth", logging.INFO, "User created", {
        "user_id": user.id,
        "email": user.email,
        "role": user.role,
        "providers": user.linked_providers,
    })
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Check email + password.

    Returns the principal on a match, whatever its status; the caller
    decides what an inactive account may do. Closed accounts never match.
    """
    email = (email or "").strip().lower()
    if not email or not password:
        return None

    user = User.live().filter(db.func.lower(User.email) == email).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def record_login(user: User, ip_address: str | None) -> None:
    user.last_login_at = utcnow()
    user.last_login_ip = ip_address
    db.session.commit()


def set_status(user: User, status: str) -> User:
    """
    Change account status. Leaving `active` revokes every session, so the
    change takes effect on the principal's next request.
    """
    if status not in STATUSES:
        raise AccountError(f"Unknown status: {status}")

    previous = user.status
    user.status = status
    db.session.commit()

    revoked = 0
    if status != STATUS_ACTIVE:
        revoked = session_service.revoke_all_user_sessions(user.id, reason=f"Status changed to {status}")

    emit("auth", logging.INFO, "User status changed", {
        "user_id": user.id,
        "email": user.email,
        "from": previous,
        "to": status,
        "sessions_revoked": revoked,
    })
    return user


def close_account(user: User) -> User:
    """Soft-delete the principal and revoke all of its sessions."""
    user.soft_delete()
    db.session.commit()
    session_service.revoke_all_user_sessions(user.id, reason="Account closed")

    emit("auth", logging.INFO, "User account closed", {"user_id": user.id, "email": user.email})
    return user
