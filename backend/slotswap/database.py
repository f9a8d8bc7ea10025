import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from .config import settings
from .errors import StoreUnavailable, SwapConflict

logger = logging.getLogger(__name__)


def make_engine(url: str, **kwargs):
    """Create an engine; sqlite gets cross-thread access and FK enforcement."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        # check_same_thread=False: FastAPI runs sync endpoints in a threadpool
        connect_args.setdefault("check_same_thread", False)
        engine = create_engine(url, connect_args=connect_args, **kwargs)

        @event.listens_for(engine, "connect")
        def enable_sqlite_fk(dbapi_connection, _):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(url, pool_pre_ping=True, **kwargs)


engine = make_engine(settings.resolved_database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def init_db(bind=None) -> None:
    """Create tables that do not exist yet."""
    from .models import Base

    Base.metadata.create_all(bind=bind or engine)


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    Run a block as one all-or-nothing transaction.

    Commits when the block exits normally. Any exception rolls back
    every write made in the block. Storage-level failures are mapped:

    - connection lost → StoreUnavailable
    - lock timeout / busy database / constraint race → SwapConflict

    Both are retryable: nothing from the block was committed.
    """
    try:
        yield db
        db.commit()
    except DBAPIError as e:
        db.rollback()
        if e.connection_invalidated:
            logger.error(f"Database connection lost: {e}")
            raise StoreUnavailable() from e
        if isinstance(e, (OperationalError, IntegrityError)):
            logger.warning(f"Transaction aborted: {e}")
            raise SwapConflict() from e
        raise
    except BaseException:
        db.rollback()
        raise
