"""
Database connection management and initialization.

Supports both SQLite (local dev) and PostgreSQL (production) via DATABASE_URL.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, Connection

from scriptguard.core.config import get_settings


# Global engine instance
_engine: Engine | None = None
_DB_PATH: Path | None = None


def get_database_url() -> str:
    """Get database URL from environment or default to SQLite.

    Handles the postgres:// URL format by converting to postgresql://.
    """
    database_url = os.getenv("DATABASE_URL")

    if database_url:
        # SQLAlchemy requires postgresql://
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    db_path = get_db_path()
    return f"sqlite:///{db_path}"


def get_db_path() -> Path:
    """Get the SQLite database file path (used when DATABASE_URL not set)."""
    global _DB_PATH
    if _DB_PATH is None:
        data_dir = Path(get_settings().data_dir)
        data_dir.mkdir(parents=True, exist_ok=True)
        _DB_PATH = data_dir / "scriptguard.db"
    return _DB_PATH


def set_db_path(path: Path | str) -> None:
    """Set a custom database path (useful for testing)."""
    global _DB_PATH, _engine
    _DB_PATH = Path(path)
    _engine = None  # Reset engine when path changes


def get_engine() -> Engine:
    """Get SQLAlchemy engine for database operations."""
    global _engine
    if _engine is None:
        database_url = get_database_url()

        connect_args = {}
        if database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        _engine = create_engine(database_url, echo=False, connect_args=connect_args)
    return _engine


def reset_engine() -> None:
    """Reset the engine (useful for testing or reconfiguration)."""
    global _engine
    if _engine is not None:
        _engine.dispose()
    _engine = None


@contextmanager
def get_db() -> Generator[Connection, None, None]:
    """Get a database connection.

    Usage:
        with get_db() as conn:
            result = conn.execute(text("SELECT value FROM kv_store"))
            rows = result.fetchall()
    """
    engine = get_engine()
    with engine.connect() as conn:
        yield conn


def init_db() -> None:
    """Initialize database schema.

    Creates all tables if they don't exist. Safe to call multiple times.
    """
    with get_db() as conn:
        for statement in _SCHEMA.split(";"):
            statement = statement.strip()
            if statement:
                conn.execute(text(statement))
        conn.commit()


# =============================================================================
# Database Schema (SQLite, PostgreSQL-compatible design)
# =============================================================================

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_store (
    storage_key VARCHAR(255) PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def reset_db() -> None:
    """Drop the key-value table and recreate schema. USE WITH CAUTION."""
    with get_db() as conn:
        conn.execute(text("DROP TABLE IF EXISTS kv_store"))
        conn.commit()

    init_db()


def get_table_stats() -> dict[str, int]:
    """Get row counts for managed tables (useful for diagnostics)."""
    with get_db() as conn:
        result = conn.execute(text("SELECT COUNT(*) AS count FROM kv_store"))
        return {"kv_store": result.fetchone()[0]}
