"""Database engine setup and table reflection via SQLAlchemy Core."""

from entitykit.infrastructure.database.engine import create_db_engine, reflect_tables

__all__ = [
    "create_db_engine",
    "reflect_tables",
]
