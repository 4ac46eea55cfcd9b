"""
Database session management and the transaction boundary.

Provides the pooled engine/session factory singletons and transaction(), the
atomic boundary every creation workflow runs in. Unique constraints are the
final arbiter of check-then-act races: an IntegrityError at flush or commit
is rolled back and surfaced as ConflictError.

Usage:
    from retail_access.database.session import get_db_session_sync, transaction

    for session in get_db_session_sync():
        with transaction(session):
            ProvisioningService(session).create_region(actor_id, command)
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from retail_access.platform.errors import ConflictError

logger = logging.getLogger(__name__)

# Module-level engine singleton
_engine = None
_SessionLocal = None


def _get_database_url() -> str:
    """
    Get and normalize the database URL from environment.

    Handles the postgres:// URL format by converting to postgresql://.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable is not set")

    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    return database_url


def get_engine():
    """
    Get or create the database engine singleton.

    Uses connection pooling with sensible defaults for production:
    - pool_size: 5 connections
    - max_overflow: 10 additional connections under load
    - pool_pre_ping: Verify connections before use
    """
    global _engine
    if _engine is None:
        try:
            database_url = _get_database_url()
            _engine = create_engine(
                database_url,
                poolclass=QueuePool,
                pool_size=5,
                max_overflow=10,
                pool_pre_ping=True,
                pool_recycle=1800,
            )
            logger.info("Database engine created with connection pooling")
        except ValueError as e:
            logger.error("Failed to create database engine", extra={"error": str(e)})
            raise
    return _engine


def get_session_factory() -> sessionmaker:
    """Get or create the session factory singleton."""
    global _SessionLocal
    if _SessionLocal is None:
        engine = get_engine()
        _SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            bind=engine
        )
    return _SessionLocal


def get_db_session_sync() -> Generator[Session, None, None]:
    """
    Yield a session and close it afterwards.

    Usage:
        for session in get_db_session_sync():
            # use session
    """
    try:
        SessionLocal = get_session_factory()
    except ValueError as e:
        raise RuntimeError(f"Database not configured: {e}") from e

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@contextmanager
def translate_integrity_errors(session: Session, message: str = "Duplicate record") -> Iterator[None]:
    """
    Turn a unique-constraint violation into ConflictError.

    The session is rolled back before the ConflictError propagates.
    """
    try:
        yield
    except IntegrityError as e:
        session.rollback()
        logger.warning(
            "db.integrity_conflict",
            extra={"error": str(e.orig) if e.orig is not None else str(e)},
        )
        raise ConflictError(message) from e


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Atomic unit of work: commit on success, roll back on any error.

    Raises:
        ConflictError: a unique constraint rejected the commit
    """
    try:
        with translate_integrity_errors(session):
            yield session
            session.commit()
    except Exception:
        session.rollback()
        raise
