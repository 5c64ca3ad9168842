# Overview: External reference allocation (CUS00042, VEN00007) with conflict retry.

"""
Reference generation.

References are unique across every row ever written, soft-deleted ones
included, so a reference is never reused. The unique constraint on the
reference column is the source of truth: the pre-insert existence check
only avoids pointless round trips, and an IntegrityError on the reference
column means another writer won the race and a new candidate is drawn.
"""

from __future__ import annotations

import logging
import random
from typing import Callable

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ReferenceConflict
from ..extensions import db
from ..logging_config import emit

REFERENCE_DIGITS = 5
REFERENCE_MAX = 10 ** REFERENCE_DIGITS - 1
DEFAULT_MAX_ATTEMPTS = 5


def format_reference(prefix: str, number: int) -> str:
    return f"{prefix}{number:0{REFERENCE_DIGITS}d}"


def random_candidate(prefix: str, rng: random.Random | None = None) -> str:
    rng = rng or random
    return format_reference(prefix, rng.randint(1, REFERENCE_MAX))


def next_sequential_candidate(model, column_name: str, prefix: str) -> str:
    """One past the highest reference ever issued (deleted rows count)."""
    column = getattr(model, column_name)
    # Numeric order: a longer suffix is a larger number once past five digits.
    highest = (
        db.session.query(column)
        .filter(column.like(f"{prefix}%"))
        .order_by(db.func.length(column).desc(), column.desc())
        .limit(1)
        .scalar()
    )
    number = 1
    if highest:
        try:
            number = int(highest[len(prefix):]) + 1
        except ValueError:
            number = 1
    return format_reference(prefix, number)


def reference_exists(model, column_name: str, value: str) -> bool:
    column = getattr(model, column_name)
    return db.session.query(model.id).filter(column == value).first() is not None


def _is_conflict_on(exc: IntegrityError, column_name: str) -> bool:
    return column_name in str(getattr(exc, "orig", exc))


def create_with_reference(
    instance,
    *,
    column_name: str,
    candidate: Callable[[], str],
    max_attempts: int | None = None,
):
    """
    Assign a fresh reference to `instance` and insert it.

    `candidate` is called once per attempt. Raises ReferenceConflict once
    `max_attempts` candidates were taken or collided. IntegrityErrors on
    any other column propagate unchanged.
    """
    if max_attempts is None:
        max_attempts = int(current_app.config.get("REFERENCE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS))

    model = type(instance)
    for attempt in range(1, max_attempts + 1):
        value = candidate()
        if reference_exists(model, column_name, value):
            continue

        setattr(instance, column_name, value)
        db.session.add(instance)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_conflict_on(exc, column_name):
                raise
            emit("database", logging.WARNING, "Reference collision on insert", {
                "table": model.__tablename__,
                "reference": value,
                "attempt": attempt,
            })
            continue
        return instance

    emit("database", logging.ERROR, "Could not allocate reference", {
        "table": model.__tablename__,
        "attempts": max_attempts,
    })
    raise ReferenceConflict()
