# Overview: Service-layer transaction helpers; row locks and the per-operation transaction runner.

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import BookingError, Conflict, InfrastructureFailure

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id_col on assets and headers turns a lost race into
    a StaleDataError instead.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int = 2):
    """
    Execute one booking operation as a single transaction.

    `func` does its reads (with row locks), writes, and commits. On failure the
    session is rolled back before anything propagates.

    - StaleDataError (a concurrent writer committed first on a versioned row)
      re-runs `func` so it re-reads the committed state and reports the proper
      business error, e.g. AlreadyAttached for the loser of a scan race.
    - IntegrityError surfaces as Conflict; the caller decides whether to retry.
    - Any other SQLAlchemyError surfaces as InfrastructureFailure. These are
      never retried here.
    """
    for attempt in range(attempts):
        try:
            return func()
        except BookingError:
            db.session.rollback()
            raise
        except StaleDataError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise Conflict("Record was modified concurrently; reload and retry") from exc
            logger.info("Concurrent update detected, re-evaluating (attempt %s)", attempt + 1)
        except IntegrityError as exc:
            db.session.rollback()
            raise Conflict("Write collided with an existing record; retry", data={"detail": str(exc.orig)}) from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Persistence layer failure")
            raise InfrastructureFailure("Persistence layer unavailable") from exc
