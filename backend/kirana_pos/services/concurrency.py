# Overview: Locking, transaction and retry helpers shared by the write paths.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


class PersistenceFailure(Exception):
    """Raised when the store stays unavailable (locked, timed out) after all retries."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, begin_write() takes the database write lock instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start a write transaction that serializes against other writers.

    SQLite: BEGIN IMMEDIATE takes the RESERVED lock up front, so two terminals
    cannot both read stock and then both write it. Other engines rely on
    lock_for_update row locks inside the implicit transaction.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (compare-and-swap lost to a concurrent writer). When retries run out the
    last error is wrapped in PersistenceFailure; callers treat that as
    "try again later", never as a crash.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            logger.warning("Retryable database error (attempt %s/%s): %s", attempt + 1, attempts, exc)
            if attempt < attempts - 1:
                time.sleep(backoff_base * (2 ** attempt))
    raise PersistenceFailure(
        "Database unavailable, try again",
        details={"attempts": attempts, "error": str(last_exc)},
    ) from last_exc



def run_in_write_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func inside one serialized write transaction and commit it.

    Any error rolls the whole unit back (and releases the SQLite write lock)
    before it propagates; lock errors are retried by run_with_retry.
    """
    def _op():
        begin_write()
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
