# Overview: Service-layer concurrency helpers; row locks, version checks and retry on stale writes.

from __future__ import annotations

import logging
import time

from flask import current_app, has_app_context
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConcurrencyConflictError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id_col on each document still catches a lost update there.
    """
    return query.with_for_update()


def check_version(document, expected_version: int | None) -> None:
    """
    Compare a caller's expected version against the loaded document.

    None means the caller did not pin a version.
    """
    if expected_version is None:
        return
    if document.version_id != expected_version:
        raise ConcurrencyConflictError(
            "Document was modified by another request. Reload and retry.",
            details={
                "expected_version": expected_version,
                "current_version": document.version_id,
            },
        )


def _default_attempts() -> int:
    if has_app_context():
        return int(current_app.config.get("CONCURRENCY_RETRY_ATTEMPTS", 3))
    return 3


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Each attempt re-runs `func` from the
    start so validation sees freshly loaded state. A stale write that
    outlives the budget surfaces as ConcurrencyConflictError.

    Any other failure rolls the session back and propagates unchanged.
    """
    if attempts is None:
        attempts = _default_attempts()
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            logger.warning("Concurrent write detected (attempt %s/%s): %s", attempt + 1, attempts, exc)
            if attempt >= attempts - 1:
                raise ConcurrencyConflictError(
                    "Document was modified concurrently. Reload and retry."
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
