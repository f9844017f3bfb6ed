"""
Database Package Initialization.

============================================================
SHARED STATE STORE
============================================================

SQLAlchemy base, engine and transaction scope used by the
per-component ORM models and repositories.

REQUIRED:
- Every write happens inside transaction_scope
- Every failure rolls back and raises

============================================================
"""

from .engine import (
    Base,
    DEFAULT_DATABASE_URL,
    get_database_url,
    create_database_engine,
    get_engine,
    get_session_factory,
    transaction_scope,
    register_models,
    create_all_tables,
    drop_all_tables,
    DatabasePersistenceError,
    DatabaseInitializationError,
)


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
