"""Persistence for accounts, categories, templates, staged batches and committed transactions."""

from bankmap.database.base import Database
from bankmap.database.factories import DB_PATH_ENVVAR, create_sqlite_database, resolve_database_path
from bankmap.database.sqlalchemy_db import SQLAlchemyDatabase

__all__ = [
    "DB_PATH_ENVVAR",
    "Database",
    "SQLAlchemyDatabase",
    "create_sqlite_database",
    "resolve_database_path",
]
