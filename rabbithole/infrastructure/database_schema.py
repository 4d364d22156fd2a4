"""
Database schema initialization for Rabbithole.

Contains the SQL schema and initialization logic, kept apart from database.py
so the pool module stays focused on connection handling.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from rabbithole.observability.logging import get_logger

logger = get_logger(__name__)


def init_database(db_path: Path) -> None:
    """
    Initialize database with schema (idempotent)

    Safe to run multiple times - uses CREATE TABLE IF NOT EXISTS.

    Args:
        db_path: Path to the database file

    Side Effects:
    - Creates tables in rabbithole.db if they don't exist
    - Creates indexes for the recency-ordered listings
    - Creates the parent directory if needed
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)

    conn.executescript("""
        PRAGMA foreign_keys = ON;

        CREATE TABLE IF NOT EXISTS item_groups (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            label TEXT NOT NULL,
            summary TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(user_id, label)
        );

        CREATE TABLE IF NOT EXISTS items (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            page_url TEXT NOT NULL,
            title TEXT,
            group_id TEXT REFERENCES item_groups(id) ON DELETE SET NULL,
            saved_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            UNIQUE(user_id, page_url)
        );

        CREATE TABLE IF NOT EXISTS notes (
            id TEXT PRIMARY KEY,
            item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
            content TEXT,
            position_json TEXT,
            rects_json TEXT,
            revision INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS highlights (
            id TEXT PRIMARY KEY,
            item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
            text TEXT,
            rects_json TEXT,
            revision INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS drawings (
            id TEXT PRIMARY KEY,
            item_id TEXT NOT NULL REFERENCES items(id) ON DELETE CASCADE,
            blob_ref TEXT NOT NULL,
            bounds_json TEXT,
            revision INTEGER,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_items_user_updated
        ON items(user_id, updated_at DESC);

        CREATE INDEX IF NOT EXISTS idx_items_group_updated
        ON items(group_id, updated_at DESC);

        CREATE INDEX IF NOT EXISTS idx_item_groups_user_updated
        ON item_groups(user_id, updated_at DESC);

        CREATE INDEX IF NOT EXISTS idx_notes_item ON notes(item_id, updated_at DESC);
        CREATE INDEX IF NOT EXISTS idx_highlights_item ON highlights(item_id);
        CREATE INDEX IF NOT EXISTS idx_drawings_item ON drawings(item_id);
    """)

    conn.commit()
    conn.close()

    logger.info("Database initialized: %s", db_path)


def validate_schema(conn: sqlite3.Connection) -> bool:
    """
    Validate database has expected schema

    Args:
        conn: Active database connection

    Returns:
        True if valid

    Raises:
        ValueError: If tables or columns are missing
    """
    required_tables = {
        "items": ["id", "user_id", "page_url", "title", "group_id", "saved_at", "updated_at"],
        "item_groups": ["id", "user_id", "label", "summary", "updated_at"],
        "notes": ["id", "item_id", "content", "position_json", "rects_json", "revision"],
        "highlights": ["id", "item_id", "text", "rects_json", "revision"],
        "drawings": ["id", "item_id", "blob_ref", "bounds_json", "revision"],
    }

    cursor = conn.cursor()

    cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
    existing_tables = {row[0] for row in cursor.fetchall()}

    missing_tables = set(required_tables.keys()) - existing_tables
    if missing_tables:
        raise ValueError(f"Database missing tables: {missing_tables}")

    for table, required_cols in required_tables.items():
        # Identifiers can't be parameterized; names come from the dict above
        cursor.execute(f"PRAGMA table_info({table})")
        existing_cols = {row[1] for row in cursor.fetchall()}

        missing_cols = set(required_cols) - existing_cols
        if missing_cols:
            raise ValueError(f"Table '{table}' missing columns: {missing_cols}")

    return True
