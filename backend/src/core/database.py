# pyright: reportMissingTypeStubs=false
"""
Database configuration and session management.

This module sets up SQLAlchemy database connection, session management,
and provides dependency injection for database sessions in FastAPI routes.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from fastapi import HTTPException
from sqlalchemy import create_engine, event
from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from core.config import DATABASE_URL, DB_STATEMENT_TIMEOUT_MS
from core.constants import DB_POOL_RECYCLE_SECONDS
from core.exceptions import ConflictError, StoreTimeoutError, StoreUnavailableError

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for a statement cancelled by statement_timeout
QUERY_CANCELED_PGCODE = "57014"


def _engine_options(url: str) -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    options: Dict[str, Any] = {
        "pool_pre_ping": True,  # Verify connections before use
        "echo": False,
        "future": True,
    }
    if url.startswith("postgresql"):
        options["pool_recycle"] = DB_POOL_RECYCLE_SECONDS
        # Store-level deadline: a slow statement is cancelled and nothing is committed
        options["connect_args"] = {"options": f"-c statement_timeout={DB_STATEMENT_TIMEOUT_MS}"}
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Don't expire objects after commit
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


@event.listens_for(Base, "before_insert", propagate=True)  # type: ignore
def receive_before_insert(mapper, connection, target):  # type: ignore
    """Set created_at and updated_at on insert using UTC."""
    # Import here to avoid circular import
    from utils.datetime_utils import utc_now
    now = utc_now()
    for column_name in ("created_at", "updated_at"):
        if column_name in mapper.columns and getattr(target, column_name, None) is None:  # type: ignore
            setattr(target, column_name, now)


@event.listens_for(Base, "before_update", propagate=True)  # type: ignore
def receive_before_update(mapper, connection, target):  # type: ignore
    """Set updated_at on update using UTC."""
    from utils.datetime_utils import utc_now
    if "updated_at" in mapper.columns:  # type: ignore
        setattr(target, "updated_at", utc_now())


def is_statement_timeout(error: BaseException) -> bool:
    """Check whether a driver error is a cancelled statement (deadline exceeded)."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) == QUERY_CANCELED_PGCODE:
        return True
    return "statement timeout" in str(orig or error).lower()


def translate_store_error(error: DBAPIError) -> HTTPException:
    """Map an infrastructure error from the store to the typed error surfaced to callers."""
    if is_statement_timeout(error):
        return StoreTimeoutError()
    return StoreUnavailableError()


def commit_or_conflict(db: Session, detail: str) -> None:
    """
    Commit the session, translating a uniqueness violation into ConflictError.

    The partial unique indexes are the only concurrency control for the
    "one active relationship per pair" rules, so a concurrent duplicate that
    passed the service-level check surfaces here.
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info(f"Uniqueness conflict on commit: {e.orig}")
        raise ConflictError(detail) from e


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency to provide database sessions.

    Yields a database session that is automatically closed after the request.
    Handles cleanup even if an exception occurs during request processing.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except HTTPException:
        # Expected business errors (not found, conflict, ...) are not logged as failures
        db.rollback()
        raise
    except SQLAlchemyError as e:
        logger.exception(f"Database error: {e}")
        db.rollback()
        raise
    except Exception as e:
        logger.exception(f"Unexpected error in database session: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI dependency injection.

    Useful for maintenance tasks and scripts (e.g. reconciliation runs).

    Example:
        ```python
        with get_db_context() as db:
            PatientAssignmentService.reconcile_accepted_requests(db)
        ```
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.exception(f"Database transaction failed: {e}")
        raise
    finally:
        db.close()
