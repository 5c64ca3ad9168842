# Overview: Retry helpers for transient database failures (locks, stale rows).

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..logging_config import emit


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, label: str = "db operation"):
    """
    Execute a DB operation, retrying on lock/deadlock (OperationalError)
    and optimistic-locking (StaleDataError) failures.

    The session is rolled back before each retry. The final failure is
    re-raised unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            emit("database", logging.WARNING, "Retrying database operation", {
                "operation": label,
                "attempt": attempt + 1,
                "error": type(exc).__name__,
            })
            time.sleep(backoff_base * (2 ** attempt))
    return None


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit the current session with retry handling."""
    return run_with_retry(db.session.commit, attempts=attempts, backoff_base=backoff_base, label="commit")
