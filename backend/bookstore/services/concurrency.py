# Overview: Transaction scope, row locking and retry for settlement operations.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import InternalError
from ..extensions import db


class ConcurrentInsertError(Exception):
    """
    Another transaction created the same unique row first (e.g. a lazily
    created ProductStock). The whole operation is safe to retry.
    """


RETRYABLE_ERRORS = (OperationalError, StaleDataError, ConcurrentInsertError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    Rows already in the identity map are refreshed from the locked read.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there run_in_transaction
    opens with BEGIN IMMEDIATE instead, and the version_id_col on the row
    still turns a lost race into StaleDataError, which is retried.
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and ConcurrentInsertError.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(op, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Run op(session) as one unit of work.

    - Commits once after op returns; rolls back on any exception, so a
      validation failure halfway through a multi-line sale leaves no writes.
    - On SQLite the transaction opens with BEGIN IMMEDIATE, so every read
      op makes already holds the write lock (FOR UPDATE is a no-op there).
    - Row-lock and version conflicts re-run op from scratch against fresh
      state (op must re-read everything it mutates).
    - Any SQLAlchemy failure that survives the retries is raised as
      InternalError carrying the driver message.

    SettlementError subclasses raised by op propagate unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("SETTLEMENT_RETRY_ATTEMPTS", 3)

    def _attempt():
        session = db.session
        try:
            if db.engine.dialect.name == "sqlite":
                session.execute(text("BEGIN IMMEDIATE"))
            result = op(session)
            session.commit()
            return result
        except Exception:
            session.rollback()
            raise

    try:
        return run_with_retry(_attempt, attempts=attempts, backoff_base=backoff_base)
    except (SQLAlchemyError, ConcurrentInsertError) as exc:
        raise InternalError(f"Store failure: {exc}") from exc
