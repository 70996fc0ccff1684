"""
Database connection utilities
"""

import logging
from contextlib import contextmanager
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker
import os
from dotenv import load_dotenv

from fulfillment.errors import TransactionConflictError, TransactionTimeoutError

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./custody_ledger.db")
TRANSACTION_TIMEOUT_MS = int(os.getenv("TRANSACTION_TIMEOUT_MS", "15000"))

# lock_not_available, query_canceled
_PG_TIMEOUT_CODES = ("55P03", "57014")
# serialization_failure, deadlock_detected
_PG_CONFLICT_CODES = ("40001", "40P01")

_POST_COMMIT_KEY = "post_commit_callbacks"


def build_engine(url: str = DATABASE_URL):
    """Create an engine; pool sizing only applies to server databases."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=False,
            connect_args={
                "check_same_thread": False,
                "timeout": TRANSACTION_TIMEOUT_MS / 1000,
            },
        )
    return create_engine(
        url,
        echo=False,
        pool_pre_ping=True,  # Test connections before using them
        pool_recycle=3600,   # Recycle connections after 1 hour
        pool_size=5,         # Connection pool size
        max_overflow=10      # Max overflow connections
    )


engine = build_engine()
SessionLocal = sessionmaker(bind=engine)


@contextmanager
def get_db():
    """Get database session with automatic commit/rollback."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _pgcode(exc) -> str:
    return getattr(getattr(exc, "orig", None), "pgcode", None) or ""


def _is_lock_timeout(exc: OperationalError) -> bool:
    if _pgcode(exc) in _PG_TIMEOUT_CODES:
        return True
    message = str(getattr(exc, "orig", exc)).lower()
    return "database is locked" in message or "lock timeout" in message


def _begin(db: Session, timeout_ms: int):
    """Bound lock waits and make sure the transaction holds its write lock before reading."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        # SET does not accept bind parameters
        db.execute(text(f"SET LOCAL lock_timeout = '{int(timeout_ms)}ms'"))
    elif dialect == "sqlite":
        # SQLite ignores FOR UPDATE; take the database write lock before the first read
        dbapi_connection = db.connection().connection.dbapi_connection
        if not dbapi_connection.in_transaction:
            db.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def transaction(db: Session, timeout_ms: int = None):
    """
    Run a unit of work atomically.

    Commits when the block completes and rolls back on any exception, so a
    failed operation leaves no partial writes behind. Database lock waits
    are bounded by TRANSACTION_TIMEOUT_MS.

    Raises:
        TransactionTimeoutError: A row lock could not be acquired in time
        TransactionConflictError: A unique/check constraint or serialization
            failure aborted the commit
    """
    timeout_ms = timeout_ms or TRANSACTION_TIMEOUT_MS
    try:
        _begin(db, timeout_ms)
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Transaction aborted by constraint violation: {e.orig}")
        raise TransactionConflictError("Conflicting concurrent update, please retry") from e
    except OperationalError as e:
        db.rollback()
        if _is_lock_timeout(e):
            logger.warning(f"Transaction timed out after {timeout_ms}ms waiting for a lock")
            raise TransactionTimeoutError(f"Transaction timed out after {timeout_ms}ms") from e
        if _pgcode(e) in _PG_CONFLICT_CODES:
            logger.warning(f"Transaction aborted by serialization failure: {e.orig}")
            raise TransactionConflictError("Conflicting concurrent update, please retry") from e
        raise
    except Exception:
        db.rollback()
        raise


def run_after_commit(db: Session, callback, *args):
    """
    Schedule callback(*args) to run once the session's current transaction
    commits. A rollback discards it.
    """
    db.info.setdefault(_POST_COMMIT_KEY, []).append((callback, args))


@event.listens_for(Session, "after_commit")
def _run_post_commit_callbacks(session):
    callbacks = session.info.pop(_POST_COMMIT_KEY, [])
    for callback, args in callbacks:
        try:
            callback(*args)
        except Exception as e:
            # The transaction is already durable; a side effect must not undo it
            logger.error(f"Post-commit callback {getattr(callback, '__name__', callback)} failed: {e}")


@event.listens_for(Session, "after_rollback")
def _discard_post_commit_callbacks(session):
    session.info.pop(_POST_COMMIT_KEY, None)


def get_session():
    """FastAPI dependency yielding a session; services manage their own transactions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
