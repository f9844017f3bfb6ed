"""
Database Persistence Layer - Core Engine.

============================================================
SHARED STATE STORE
============================================================

Every entity (products, quality history, producer profiles,
price floors, fraud records, role grants) is persisted in
one relational store keyed by its natural identifier.

Requirements:
- SQLAlchemy ORM
- Explicit transaction management
- Hard failures on persistence errors (rollback + raise)

============================================================
"""

import os
import logging
from typing import Generator, Optional
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite:///supply_chain.db"

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")
    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")
    return url


def create_database_engine(url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        url: Database URL (defaults to DATABASE_URL)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    database_url = url or get_database_url()
    logger.info(f"Creating database engine for: {database_url.split('@')[-1]}")

    engine = create_engine(database_url, echo=echo, future=True)

    if database_url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def on_connect(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def get_engine() -> Engine:
    """Get the process-wide engine, creating it if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def get_session_factory(engine: Optional[Engine] = None) -> sessionmaker:
    """
    Get a session factory.

    Passing an engine returns a fresh factory bound to it;
    otherwise the process-wide factory is returned.
    """
    global _SessionFactory

    if engine is not None:
        return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(
            bind=get_engine(),
            autoflush=False,
            expire_on_commit=False,
        )
    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================


@contextmanager
def transaction_scope(
    factory: Optional[sessionmaker] = None,
) -> Generator[Session, None, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception.

    Usage:
        with transaction_scope() as session:
            LedgerRepository(session).save(ledger)
    """
    session = (factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("Database transaction committed successfully")
    except SQLAlchemyError as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        session.rollback()
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


def register_models() -> None:
    """Import every component's ORM models so Base knows their tables."""
    from . import models  # noqa: F401
    import actor_registry.models  # noqa: F401
    import product_ledger.models  # noqa: F401
    import fair_pricing.models  # noqa: F401
    import fraud_detection.models  # noqa: F401


def create_all_tables(engine: Optional[Engine] = None) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    register_models()

    try:
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine or get_engine())
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


def drop_all_tables(engine: Optional[Engine] = None) -> None:
    """Drop every table known to Base."""
    register_models()
    logger.warning("Dropping all database tables")
    Base.metadata.drop_all(bind=engine or get_engine())


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "create_database_engine",
    "get_engine",
    "get_session_factory",
    "transaction_scope",
    "register_models",
    "create_all_tables",
    "drop_all_tables",
    "DatabasePersistenceError",
    "DatabaseInitializationError",
]
