"""Store factory functions for creating record store instances."""

import os
from pathlib import Path
from typing import Optional

from bankfeed.constants import DB_PATH_ENV_VAR, DEFAULT_DB_DIR, DEFAULT_DB_FILE
from bankfeed.database.sqlalchemy_db import SQLAlchemyRecordStore


def create_sqlite_store(database_path: Optional[str] = None) -> SQLAlchemyRecordStore:
    """Create a SQLite record store.

    Args:
        database_path: Path to SQLite database file. If None, checks
            BANKFEED_DB_PATH, then defaults to ~/.bankfeed/bankfeed.db

    Returns:
        SQLAlchemyRecordStore configured for SQLite
    """
    if database_path is None:
        database_path = os.environ.get(DB_PATH_ENV_VAR)

    if database_path is None:
        db_dir = Path.home() / DEFAULT_DB_DIR
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / DEFAULT_DB_FILE)

    return SQLAlchemyRecordStore(f"sqlite:///{database_path}")
