# Overview: Vendor records; validated create/update and soft delete.

"""
Vendor Service

Vendors get sequential VEN references: one past the highest reference
ever issued, so deleting the newest vendor does not free its number.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..entity_rules import VENDOR_SCHEMA
from ..errors import EntityNotFound, ValidationFailure
from ..extensions import db
from ..logging_config import emit
from ..models import User, Vendor
from ..models.vendors import REFERENCE_PREFIX
from ..validation import validate
from . import reference_service
from .concurrency import commit_with_retry

MAX_PAGE_SIZE = 500

EMAIL_TAKEN = "This email address is already associated with another vendor."


def _duplicate_email(exc: IntegrityError) -> ValidationFailure | None:
    if "email" in str(getattr(exc, "orig", exc)):
        return ValidationFailure({"email": [EMAIL_TAKEN]})
    return None


def list_vendors(
    *,
    status: str | None = None,
    vendor_type: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Vendor], int]:
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    offset = max(0, int(offset))

    query = Vendor.live()
    if status:
        query = query.filter(Vendor.status == status)
    if vendor_type:
        query = query.filter(Vendor.vendor_type == vendor_type)
    if priority:
        query = query.filter(Vendor.priority == priority)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Vendor.company_name.ilike(like),
            Vendor.service_type.ilike(like),
            Vendor.email.ilike(like),
            Vendor.vendor_id.ilike(like),
        ))

    total = query.count()
    rows = query.order_by(Vendor.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def get_vendor(vendor_id: int) -> Vendor:
    vendor = Vendor.live().filter(Vendor.id == vendor_id).first()
    if vendor is None:
        raise EntityNotFound("Vendor", vendor_id)
    return vendor


def create_vendor(data: dict, *, actor: User | None = None) -> Vendor:
    """
    Validate and insert a vendor with the next VEN reference.

    Raises ValidationFailure or ReferenceConflict.
    """
    clean = validate(data, VENDOR_SCHEMA)

    vendor = Vendor()
    vendor.assign(clean)

    try:
        reference_service.create_with_reference(
            vendor,
            column_name="vendor_id",
            candidate=lambda: reference_service.next_sequential_candidate(Vendor, "vendor_id", REFERENCE_PREFIX),
        )
    except IntegrityError as exc:
        failure = _duplicate_email(exc)
        if failure is None:
            raise
        raise failure from exc

    emit("api", logging.INFO, "Vendor created", {
        "vendor_id": vendor.vendor_id,
        "id": vendor.id,
        "user_id": actor.id if actor else None,
    })
    return vendor


def update_vendor(vendor_id: int, data: dict, *, actor: User | None = None) -> Vendor:
    vendor = get_vendor(vendor_id)
    clean = validate(data, VENDOR_SCHEMA, instance=vendor)
    vendor.assign(clean)

    try:
        commit_with_retry()
    except IntegrityError as exc:
        db.session.rollback()
        failure = _duplicate_email(exc)
        if failure is None:
            raise
        raise failure from exc

    emit("api", logging.INFO, "Vendor updated", {
        "vendor_id": vendor.vendor_id,
        "id": vendor.id,
        "user_id": actor.id if actor else None,
    })
    return vendor


def delete_vendor(vendor_id: int, *, actor: User | None = None) -> Vendor:
    vendor = get_vendor(vendor_id)
    vendor.soft_delete()
    commit_with_retry()

    emit("api", logging.INFO, "Vendor deleted", {
        "vendor_id": vendor.vendor_id,
        "id": vendor.id,
        "user_id": actor.id if actor else None,
    })
    return vendor
