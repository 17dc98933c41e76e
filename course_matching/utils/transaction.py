import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from course_matching.errors import ConflictError, MatchingError, PersistenceError

logger = logging.getLogger("course_matching.db")


@contextmanager
def transaction(db: Session, action: str, conflict_message: Optional[str] = None):
    """
    One commit for everything written inside the block.
    Any failure rolls the whole block back; store errors surface as PersistenceError,
    or as ConflictError(conflict_message) for a uniqueness violation when one is given.
    """
    try:
        yield db
        db.commit()
    except MatchingError:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        if conflict_message:
            logger.warning("%s rejected by a unique constraint", action)
            raise ConflictError(conflict_message)
        logger.exception("%s failed", action)
        raise PersistenceError()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s failed", action)
        raise PersistenceError()


@contextmanager
def reading(action: str):
    try:
        yield
    except SQLAlchemyError:
        logger.exception("%s failed", action)
        raise PersistenceError()
