from collections.abc import Iterator
from contextlib import contextmanager
import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..errors import ConcurrencyConflict

logger = logging.getLogger(__name__)


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """Commit on success, roll back on any error.

    Lock timeouts and serialization failures from the store are re-raised as
    ConcurrencyConflict; nothing has been written when that happens.
    """
    try:
        yield db
        db.commit()
    except OperationalError as exc:
        db.rollback()
        logger.warning("Transaction aborted by the database: %s", exc.orig)
        raise ConcurrencyConflict(
            "The operation conflicted with a concurrent change. Please retry."
        ) from exc
    except Exception:
        db.rollback()
        raise
