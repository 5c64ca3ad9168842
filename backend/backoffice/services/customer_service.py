# Overview: Customer accounts; validated create/update, soft delete and balance movements.

"""
Customer Service

Every write goes through the validation pipeline first; nothing is
assigned from raw request data. New customers get a random CUS reference
(see reference_service). Payments and charges are written to the
financial log channel.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.exc import IntegrityError

from ..entity_rules import CUSTOMER_SCHEMA, LEDGER_SCHEMA
from ..errors import EntityNotFound, ValidationFailure
from ..extensions import db
from ..logging_config import emit
from ..models import Customer, User
from ..models.customers import REFERENCE_PREFIX
from ..validation import validate
from . import reference_service
from .concurrency import commit_with_retry

MAX_PAGE_SIZE = 500

EMAIL_TAKEN = "This email address is already associated with another customer."


def _actor_id(actor: User | None) -> int | None:
    return actor.id if actor is not None else None


def _duplicate_email(exc: IntegrityError) -> ValidationFailure | None:
    if "email" in str(getattr(exc, "orig", exc)):
        return ValidationFailure({
            "email": [EMAIL_TAKEN],
        })
    return None


def list_customers(
    *,
    status: str | None = None,
    priority: str | None = None,
    search: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Customer], int]:
    """Live customers, newest first. Returns (page, total matching)."""
    limit = max(1, min(int(limit), MAX_PAGE_SIZE))
    offset = max(0, int(offset))

    query = Customer.live()
    if status:
        query = query.filter(Customer.status == status)
    if priority:
        query = query.filter(Customer.priority == priority)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.company_name.ilike(like),
            Customer.contact_person.ilike(like),
            Customer.email.ilike(like),
            Customer.customer_id.ilike(like),
        ))

    total = query.count()
    rows = query.order_by(Customer.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def get_customer(customer_id: int) -> Customer:
    """Live customer by primary key. Raises EntityNotFound."""
    customer = Customer.live().filter(Customer.id == customer_id).first()
    if customer is None:
        raise EntityNotFound("Customer", customer_id)
    return customer


def create_customer(data: dict, *, actor: User | None = None) -> Customer:
    """
    Validate and insert a customer with a fresh CUS reference.

    Raises ValidationFailure or ReferenceConflict.
    """
    clean = validate(data, CUSTOMER_SCHEMA)

    customer = Customer()
    customer.assign(clean)

    try:
        reference_service.create_with_reference(
            customer,
            column_name="customer_id",
            candidate=lambda: reference_service.random_candidate(REFERENCE_PREFIX),
        )
    except IntegrityError as exc:
        failure = _duplicate_email(exc)
        if failure is None:
            raise
        raise failure from exc

    emit("api", logging.INFO, "Customer created", {
        "customer_id": customer.customer_id,
        "id": customer.id,
        "user_id": _actor_id(actor),
    })
    return customer


def update_customer(customer_id: int, data: dict, *, actor: User | None = None) -> Customer:
    """
    Validate `data` over the customer's current values and save.

    Fields missing from `data` keep their stored values. The reference
    never changes.
    """
    customer = get_customer(customer_id)
    clean = validate(data, CUSTOMER_SCHEMA, instance=customer)
    customer.assign(clean)

    try:
        commit_with_retry()
    except IntegrityError as exc:
        db.session.rollback()
        failure = _duplicate_email(exc)
        if failure is None:
            raise
        raise failure from exc

    emit("api", logging.INFO, "Customer updated", {
        "customer_id": customer.customer_id,
        "id": customer.id,
        "user_id": _actor_id(actor),
        "fields": sorted(k for k in data if k in clean) if isinstance(data, dict) else [],
    })
    return customer


def delete_customer(customer_id: int, *, actor: User | None = None) -> Customer:
    """Soft delete. The reference stays reserved."""
    customer = get_customer(customer_id)
    customer.soft_delete()
    commit_with_retry()

    emit("api", logging.INFO, "Customer deleted", {
        "customer_id": customer.customer_id,
        "id": customer.id,
        "user_id": _actor_id(actor),
    })
    return customer


def record_payment(customer_id: int, data: dict, *, actor: User | None = None) -> Customer:
    """Reduce the outstanding balance by a payment; the balance never goes below zero."""
    customer = get_customer(customer_id)
    clean = validate(data, LEDGER_SCHEMA)
    amount: Decimal = clean["amount"]

    previous = customer.outstanding_balance or Decimal("0")
    customer.outstanding_balance = max(Decimal("0"), previous - amount)
    commit_with_retry()

    emit("financial", logging.INFO, "Customer payment recorded", {
        "customer_id": customer.customer_id,
        "amount": str(amount),
        "previous_balance": str(previous),
        "new_balance": str(customer.outstanding_balance),
        "reference": clean.get("reference"),
        "user_id": _actor_id(actor),
    })
    return customer


def record_charge(customer_id: int, data: dict, *, actor: User | None = None) -> Customer:
    """
    Increase the outstanding balance.

    A charge that pushes the balance past the credit limit is recorded
    anyway and logged as a warning.
    """
    customer = get_customer(customer_id)
    clean = validate(data, LEDGER_SCHEMA)
    amount: Decimal = clean["amount"]

    previous = customer.outstanding_balance or Decimal("0")
    customer.outstanding_balance = previous + amount
    commit_with_retry()

    context = {
        "customer_id": customer.customer_id,
        "amount": str(amount),
        "previous_balance": str(previous),
        "new_balance": str(customer.outstanding_balance),
        "reference": clean.get("reference"),
        "user_id": _actor_id(actor),
    }
    emit("financial", logging.INFO, "Customer charge recorded", context)
    if customer.is_over_credit_limit():
        context["credit_limit"] = str(customer.credit_limit)
        emit("financial", logging.WARNING, "Customer over credit limit", context)
    return customer
