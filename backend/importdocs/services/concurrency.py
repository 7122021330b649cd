# Overview: Transaction helpers shared by services that write more than one row.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def commit_or_conflict(conflict_message: str = "Record was modified concurrently; reload and retry") -> None:
    """
    Commit the current unit of work as one transaction.

    Any failure rolls back every pending write. Optimistic-lock and
    uniqueness failures surface as ConflictError; everything else propagates.
    """
    try:
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise ConflictError(conflict_message)
    except IntegrityError as exc:
        db.session.rollback()
        logger.info("Integrity conflict on commit: %s", exc.orig)
        raise ConflictError(conflict_message)
    except Exception:
        db.session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole read-modify-write operation, retrying it on transient
    lock failures (OperationalError, e.g. "database is locked").

    func must be safe to re-run from scratch: it re-reads everything it writes.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            logger.warning("Transient database error, retrying (attempt %d/%d)", attempt + 1, attempts)
            time.sleep(backoff_base * (2 ** attempt))
