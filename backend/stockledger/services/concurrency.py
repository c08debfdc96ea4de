# Overview: Transaction boundary for every ledger mutation; row locks, commit/rollback, retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InvariantViolation
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (the whole database is
    locked by the writer); other DBs will honor it. Version columns on
    documents, batches and payments catch anything the lock misses.
    """
    return query.with_for_update()


def lock_rows(model, ids) -> dict:
    """
    Lock a set of rows of one model in ascending id order and return {id: row}.

    Locking in a fixed order keeps two transactions touching the same
    batches from deadlocking each other.
    """
    wanted = sorted(set(ids))
    if not wanted:
        return {}
    rows = (
        lock_for_update(db.session.query(model).filter(model.id.in_(wanted)))
        .order_by(model.id)
        .all()
    )
    return {row.id: row for row in rows}


def run_in_transaction(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Run ``func`` as one all-or-nothing unit of work.

    - commits once after ``func`` returns
    - any exception rolls the whole session back, so no partial effect survives
    - OperationalError (locks, deadlocks) and StaleDataError (optimistic
      version conflicts) are retried with exponential backoff; domain
      errors are raised to the caller untouched
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = config.get("LEDGER_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Ledger transaction conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except InvariantViolation as exc:
            db.session.rollback()
            current_app.logger.error("Ledger invariant violated: %s details=%s", exc.message, exc.details)
            raise
        except Exception:
            db.session.rollback()
            raise
