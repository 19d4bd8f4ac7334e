from database import engine as default_engine, Base
import models  # noqa: F401  (registers tables on Base.metadata)
from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine
import logging

logger = logging.getLogger(__name__)


def _check_column_exists(inspector, table: str, column: str) -> bool:
    """Check if a column exists in a table"""
    columns = [col['name'] for col in inspector.get_columns(table)]
    return column in columns


def _add_column_if_missing(engine: Engine, inspector, table: str, column: str, column_def: str) -> bool:
    """Add a column to a table if it doesn't exist"""
    if _check_column_exists(inspector, table, column):
        return False
    logger.info(f"Running migration: Adding '{column}' column to {table} table...")
    with engine.connect() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {column_def}"))
        conn.commit()
    logger.info(f"Migration complete: '{column}' column added to {table}")
    return True


def _run_essential_migrations(engine: Engine) -> int:
    """
    Upgrade databases created by older releases.

    Returns:
        Number of migrations applied
    """
    inspector = inspect(engine)
    migrations_run = 0

    if 'manage_data' in inspector.get_table_names():
        # Documents written before versioned writes start at version 1
        if _add_column_if_missing(engine, inspector, 'manage_data', 'version', "INTEGER NOT NULL DEFAULT 1"):
            migrations_run += 1

    return migrations_run


def init_database(engine: Engine = default_engine) -> None:
    """Create missing tables and apply pending column migrations."""
    migrations_run = _run_essential_migrations(engine)
    Base.metadata.create_all(bind=engine)
    if migrations_run:
        logger.info(f"Applied {migrations_run} schema migration(s)")
    logger.info("Database initialized")
