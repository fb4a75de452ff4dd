"""Build the database from an explicit path, the environment or the default location."""

import logging
import os
from pathlib import Path
from typing import Optional

from bankmap.database.sqlalchemy_db import SQLAlchemyDatabase

logger = logging.getLogger(__name__)

DB_PATH_ENVVAR = "BANKMAP_DB_PATH"
DEFAULT_DB_FILE = "bankmap.db"
IN_MEMORY = ":memory:"


def resolve_database_path(database_path: Optional[str] = None) -> str:
    """Pick the SQLite file to use.

    An explicit path wins, then ``BANKMAP_DB_PATH``, then
    ``~/.bankmap/bankmap.db`` (the directory is created on demand).
    """
    if database_path:
        return str(database_path)
    env_path = os.environ.get(DB_PATH_ENVVAR)
    if env_path:
        return env_path
    default_dir = Path.home() / ".bankmap"
    default_dir.mkdir(parents=True, exist_ok=True)
    return str(default_dir / DEFAULT_DB_FILE)


def sqlite_url(database_path: str) -> str:
    if database_path == IN_MEMORY:
        return "sqlite://"
    return f"sqlite:///{database_path}"


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite-backed database.

    Args:
        database_path: SQLite file, or ``":memory:"``; resolved with
            ``resolve_database_path`` when omitted

    Returns:
        SQLAlchemyDatabase, not yet connected
    """
    path = resolve_database_path(database_path)
    logger.debug("Using database at %s", path)
    return SQLAlchemyDatabase(sqlite_url(path))
