# Overview: Linking principals to external identity providers (google, github).

"""
External identity linking.

The provider handshake (redirects, code exchange) happens elsewhere; these
functions take over once a provider has vouched for an (external id,
email, name) triple.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..logging_config import emit
from ..models import User
from ..models.auth import EXTERNAL_PROVIDERS, ROLE_EMPLOYEE, STATUS_ACTIVE


class IdentityLinkError(ValueError):
    """Raised when a link/unlink would break an account's credentials."""
    pass


def _column(provider: str):
    try:
        return getattr(User, EXTERNAL_PROVIDERS[provider])
    except KeyError:
        raise IdentityLinkError(f"Unknown identity provider: {provider}") from None


def find_by_external_identity(provider: str, external_id: str) -> User | None:
    """Live principal linked to this provider account, if any."""
    if not external_id:
        return None
    return User.live().filter(_column(provider) == str(external_id)).first()


def link_external_identity(user: User, provider: str, external_id: str) -> User:
    """
    Attach a provider account to `user`.

    Refuses if the provider account is already linked to someone else.
    """
    external_id = str(external_id or "").strip()
    if not external_id:
        raise IdentityLinkError("External identity id is required")

    owner = db.session.query(User).filter(_column(provider) == external_id).first()
    if owner is not None and owner.id != user.id:
        raise IdentityLinkError(f"This {provider} account is linked to another user")

    user.set_external_id(provider, external_id)
    db.session.commit()

    emit("auth", logging.INFO, "External identity linked", {
        "user_id": user.id,
        "provider": provider,
    })
    return user


def unlink_external_identity(user: User, provider: str) -> User:
    """
    Detach a provider account. Refuses to remove the last credential: an
    account without a password must keep at least one linked identity.
    """
    _column(provider)
    if not user.external_id(provider):
        raise IdentityLinkError(f"No {provider} account is linked")

    remaining = [p for p in user.linked_providers if p != provider]
    if not user.can_login_with_password and not remaining:
        raise IdentityLinkError("Cannot unlink the only sign-in method. Set a password first.")

    user.set_external_id(provider, None)
    db.session.commit()

    emit("auth", logging.INFO, "External identity unlinked", {
        "user_id": user.id,
        "provider": provider,
    })
    return user


def find_or_create_from_external_identity(
    provider: str,
    external_id: str,
    *,
    email: str,
    name: str | None = None,
) -> User:
    """
    Resolve a verified provider login to a principal:

    1. an account already linked to this provider id
    2. else an account with the same email, which gets linked
    3. else a new active employee with no password
    """
    _column(provider)
    external_id = str(external_id or "").strip()
    email = (email or "").strip().lower()
    if not external_id or not email:
        raise IdentityLinkError("Provider did not return an id and email")

    user = find_by_external_identity(provider, external_id)
    if user is not None:
        return user

    user = User.live().filter(db.func.lower(User.email) == email).first()
    if user is not None:
        return link_external_identity(user, provider, external_id)

    user = User(
        name=(name or "").strip() or email.split("@", 1)[0],
        email=email,
        password_hash=None,
        role=ROLE_EMPLOYEE,
        status=STATUS_ACTIVE,
    )
    user.set_external_id(provider, external_id)
    db.session.add(user)
    db.session.commit()

    emit("auth", logging.INFO, "User created from external identity", {
        "user_id": user.id,
        "email": user.email,
        "provider": provider,
    })
    return user
