"""
Database connection and initialization helpers.
"""
import sqlite3
from pathlib import Path
import os


DB_FILE = "weave.db"


def get_data_dir() -> Path:
    """Get the data directory, honoring WEAVE_DATA_DIR when set."""
    env_dir = os.getenv("WEAVE_DATA_DIR")
    if env_dir:
        data_dir = Path(env_dir)
    else:
        # Running from a checkout: keep data next to the package
        data_dir = Path(__file__).parent.parent

    data_dir.mkdir(parents=True, exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database path (WEAVE_DB_PATH overrides the data directory)."""
    env_path = os.getenv("WEAVE_DB_PATH")
    if env_path:
        return Path(env_path)
    return get_data_dir() / DB_FILE


def get_db_connection() -> sqlite3.Connection:
    """Get a database connection."""
    db_path = get_db_path()
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    return conn


def check_database_initialized() -> bool:
    """Check if database is initialized by looking for the artifacts table."""
    conn = get_db_connection()
    try:
        cursor = conn.execute("""
            SELECT name FROM sqlite_master
            WHERE type='table' AND name='artifacts'
        """)
        return cursor.fetchone() is not None
    finally:
        conn.close()


def initialize_database() -> bool:
    """Initialize all database tables."""
    from weave import storage

    conn = get_db_connection()
    try:
        storage.ensure_tables(conn)
    finally:
        conn.close()
    return True
