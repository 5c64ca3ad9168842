from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .mixins import SoftDeleteMixin, TimestampMixin

ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_EMPLOYEE = "employee"
ROLES = (ROLE_ADMIN, ROLE_MANAGER, ROLE_EMPLOYEE)

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"
STATUS_SUSPENDED = "suspended"
STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_SUSPENDED)

# provider name -> column holding the provider's account id
EXTERNAL_PROVIDERS = {
    "google": "google_id",
    "github": "github_id",
}


class User(TimestampMixin, SoftDeleteMixin, db.Model):
    """
    Principal: anyone who can sign in.

    A user signs in with a password, with a linked external identity, or
    both. The CHECK constraint guarantees at least one credential exists.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint(
            "password_hash IS NOT NULL OR google_id IS NOT NULL OR github_id IS NOT NULL",
            name="ck_users_has_credential",
        ),
        db.CheckConstraint("role IN ('admin', 'manager', 'employee')", name="ck_users_role"),
        db.CheckConstraint("status IN ('active', 'inactive', 'suspended')", name="ck_users_status"),
        db.Index("ix_users_role_status", "role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)

    # Bcrypt hash; NULL for accounts that only sign in through a provider
    password_hash = db.Column(db.String(255), nullable=True)

    google_id = db.Column(db.String(255), nullable=True, unique=True)
    github_id = db.Column(db.String(255), nullable=True, unique=True)

    role = db.Column(db.String(16), nullable=False, default=ROLE_EMPLOYEE)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, index=True)

    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_login_ip = db.Column(db.String(45), nullable=True)

    def has_role(self, role: str) -> bool:
        return self.role == role

    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    def external_id(self, provider: str) -> str | None:
        if provider == "google":
            return self.google_id
        if provider == "github":
            return self.github_id
        raise ValueError(f"Unknown identity provider: {provider}")

    def set_external_id(self, provider: str, external_id: str | None) -> None:
        if provider == "google":
            self.google_id = external_id
        elif provider == "github":
            self.github_id = external_id
        else:
            raise ValueError(f"Unknown identity provider: {provider}")

    @property
    def linked_providers(self) -> list[str]:
        return [p for p in EXTERNAL_PROVIDERS if self.external_id(p)]

    @property
    def can_login_with_password(self) -> bool:
        return bool(self.password_hash)

    @property
    def is_external_only(self) -> bool:
        return not self.can_login_with_password and bool(self.linked_providers)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "linked_providers": self.linked_providers,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
            "created_at": to_utc_z(self.created_at),
        }


class SessionToken(db.Model):
    """
    Server-side session binding a user to a client.

    SECURITY NOTES:
    - Only the SHA-256 hash of the client token is stored
    - 24-hour absolute timeout, 2-hour idle timeout
    - remember=True: 30-day lifetime, no idle timeout
    - Revoked on logout, on status change, and when rotated at login
    - csrf_token is the session's anti-forgery token
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)
    csrf_token = db.Column(db.String(64), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)
    remember = db.Column(db.Boolean, nullable=False, default=False)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("session_tokens", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "remember": self.remember,
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
