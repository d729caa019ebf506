# Overview: Transaction helpers shared by the rental, payment and fleet services.

"""
Unit-of-work helpers.

Every money-changing service call is one transaction: lock the rows it
touches, apply the change, reconcile, commit. These helpers provide the lock
and the retry/rollback envelope around that transaction.
"""

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """SELECT ... FOR UPDATE. SQLite has no row locks and ignores it."""
    return query.with_for_update()


def get_for_update(model, pk):
    """Fetch one row by primary key under a row lock, or None."""
    return lock_for_update(db.session.query(model).filter(model.id == pk)).first()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func() as one unit of work.

    Lock waits, deadlocks and version_id conflicts are retried with
    exponential backoff; the last one is re-raised once attempts run out.
    Any other exception rolls the session back and propagates unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Retrying unit of work after %s (attempt %s/%s, sleeping %.2fs)",
                type(exc).__name__, attempt, attempts, delay,
            )
            time.sleep(delay)
        except Exception:
            db.session.rollback()
            raise


def commit_with_retry(*, attempts: int = 3, backoff_base: float = 0.1):
    """Commit the pending session state inside the same retry envelope."""
    return run_with_retry(db.session.commit, attempts=attempts, backoff_base=backoff_base)
