from __future__ import annotations

from ..extensions import db
from ..time_utils import utcnow


class TimestampMixin:
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())


class SoftDeleteMixin:
    """
    Rows are never hard-removed; deleted_at marks closure.

    Lookups for live records must filter on `deleted_at IS NULL`; uniqueness
    checks deliberately do not.
    """
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        if self.deleted_at is None:
            self.deleted_at = utcnow()

    @classmethod
    def live(cls):
        return db.session.query(cls).filter(cls.deleted_at.is_(None))
