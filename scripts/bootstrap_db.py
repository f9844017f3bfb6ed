"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes the shared state store for first-time setup.

- Creates the schema for every component
- Optionally seeds the bootstrap admin grant
- Validates that every table exists

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db

Options:
  --database-url URL   Override DATABASE_URL
  --drop-existing      Drop existing tables (DANGEROUS)
  --admin IDENTITY     Seed the bootstrap admin role grant
  --validate-only      Only validate, don't create

EXIT CODES:
- 0: Schema present and valid
- 1: Database connection or creation failed
- 2: Validation failed (tables missing)

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from actor_registry.registry import ActorRegistry
from actor_registry.repository import RegistryRepository
from core.logging_setup import configure_logging
from database.engine import (
    Base,
    DatabaseInitializationError,
    DatabasePersistenceError,
    create_all_tables,
    create_database_engine,
    drop_all_tables,
    get_session_factory,
    register_models,
    transaction_scope,
)


logger = logging.getLogger("bootstrap_db")


def missing_tables(engine: Engine) -> List[str]:
    """Tables known to the ORM that the database does not have."""
    existing = set(inspect(engine).get_table_names())
    return sorted(name for name in Base.metadata.tables if name not in existing)


def seed_admin(engine: Engine, admin: str) -> None:
    registry = ActorRegistry(admin=admin)
    with transaction_scope(get_session_factory(engine)) as session:
        RegistryRepository(session).save(registry)
    logger.info(f"Seeded bootstrap admin {admin}")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Create the supply-chain state store schema",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating (DANGEROUS)",
    )
    parser.add_argument("--admin", default=None, help="Seed the bootstrap admin identity")
    parser.add_argument(
        "--validate-only",
        action="store_true",
        help="Only check that every table exists",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    try:
        engine = create_database_engine(args.database_url)
        if not args.validate_only:
            if args.drop_existing:
                drop_all_tables(engine)
            create_all_tables(engine)
            if args.admin:
                seed_admin(engine, args.admin)
        else:
            register_models()
        missing = missing_tables(engine)
    except (SQLAlchemyError, DatabaseInitializationError, DatabasePersistenceError) as e:
        logger.error(f"Bootstrap failed: {e}")
        return 1

    if missing:
        logger.error(f"Missing tables: {', '.join(missing)}")
        return 2

    logger.info(f"Schema valid: {len(Base.metadata.tables)} tables")
    return 0


if __name__ == "__main__":
    sys.exit(main())
