# stay_easy/reservations/database.py
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from stay_easy.config import Config
from .errors import PersistenceError

logger = logging.getLogger(__name__)

DATABASE_URL = Config.DATABASE_URL
engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {})
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def init_db(bind=None):
    # models must be imported so their tables are registered on Base.metadata
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session):
    """
    One unit of work: commit when the block exits cleanly, roll back on any error.
    Store failures surface as PersistenceError; everything else is re-raised as is.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("transaction rolled back after store failure")
        raise PersistenceError("The reservation store is unavailable, please retry.") from e
    except Exception:
        db.rollback()
        raise
