# Overview: Service-layer transaction helpers; row locking, write locks and transient-failure retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from rentals.errors import StoreUnavailableError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the transaction for a mutating operation.

    SQLite has no row locks, so take the database write lock up front with
    BEGIN IMMEDIATE; concurrent writers then queue instead of interleaving a
    read-then-decide. Must be the first statement of the unit of work.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB unit of work, retrying transient store failures.

    Retries on OperationalError (deadlocks, locks, dropped connections) and
    StaleDataError (optimistic locking conflicts). Once attempts are exhausted
    the failure surfaces as StoreUnavailableError. Any other exception rolls
    the session back and propagates unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("STORE_RETRY_ATTEMPTS", 2)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Store operation failed after %d attempt(s): %s", attempts, exc)
                raise StoreUnavailableError(
                    "Booking store is temporarily unavailable, please retry",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning("Transient store failure, retrying: %s", exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

