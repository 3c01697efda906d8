"""
Session and transaction helpers shared by services and scripts.

Services run each operation inside ``transaction(db)`` so every write an
operation makes commits together or not at all.
"""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy.orm import Session

from healthydialogue.db.session import SessionLocal

logger = logging.getLogger(__name__)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Get a database session with proper cleanup using context manager.

    Usage:
        with get_db_session() as db:
            result = db.query(Model).all()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Database session error: {e}")
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[Session, None, None]:
    """Commit the work done in the block, or roll it back if the block raises"""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
