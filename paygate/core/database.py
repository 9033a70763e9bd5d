"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- SQLite support for local and test stores
- The key/value table backing SqlKeyValueStore

Engines are built by the caller and passed in explicitly.
"""
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, String, DateTime, Text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import text
import logging


# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 5
MAX_OVERFLOW = 10
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

logger = logging.getLogger("paygate")


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite URLs get a single shared connection."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,  # Set to True for SQL query logging
    )


@contextmanager
def get_db_session(engine: Engine):
    """
    Context manager for database sessions.

    Commits on success and rolls back on any error.

    Usage:
        with get_db_session(engine) as session:
            session.execute(...)
    """
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine: Engine):
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine)


def drop_all_tables(engine: Engine):
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=engine)


def check_connection(engine: Engine) -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database connection check failed", extra={"error_message": str(e)})
        return False


# Key/value entries backing the persistence store contract
kv_entries = Table(
    'kv_entries',
    metadata,
    Column('key', String(255), primary_key=True),
    Column('value_type', String(16), nullable=False),
    Column('value', Text, nullable=True),
    Column('updated_at', DateTime(timezone=True), nullable=False),
)
