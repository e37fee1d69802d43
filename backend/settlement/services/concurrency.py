# Overview: Row locking and retry helpers for settlement units of work.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import TransactionError
from ..extensions import db

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (OperationalError, StaleDataError, IntegrityError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the optimistic `version_id` columns catch the race instead.
    """
    return query.with_for_update()


def _retry_settings(attempts: int | None, backoff_base: float | None) -> tuple[int, float]:
    if has_app_context():
        cfg = current_app.config
        if attempts is None:
            attempts = cfg.get("SETTLEMENT_RETRY_ATTEMPTS", 3)
        if backoff_base is None:
            backoff_base = cfg.get("SETTLEMENT_RETRY_BACKOFF", 0.1)
    return max(1, attempts or 3), (0.1 if backoff_base is None else backoff_base)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, timeouts), StaleDataError
    (optimistic locking conflicts) and IntegrityError (a racing writer took
    the same unique key). Each attempt starts from a rolled-back session, so
    a retried settlement re-reads and re-validates everything.

    Raises TransactionError once attempts are exhausted.
    """
    attempts, backoff_base = _retry_settings(attempts, backoff_base)
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Unit of work failed after %d attempts: %s", attempts, exc)
                raise TransactionError(
                    "Could not commit the operation; no changes were saved",
                    details={"attempts": attempts, "cause": type(exc).__name__},
                ) from exc
            logger.warning("Retrying unit of work after %s (attempt %d/%d)", type(exc).__name__, attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
