"""
Repositories for items, annotations and groups.

Follows the database patterns in rabbithole/infrastructure/database.py: every
write runs inside db_transaction() under @retry_on_db_lock(), and every
upsert is keyed by a natural key so concurrent requests converge on one row.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from rabbithole.infrastructure.database import db_transaction, get_db_connection, retry_on_db_lock
from rabbithole.library.models import (
    DrawingRecord,
    HighlightRecord,
    ItemBundle,
    ItemGroupRecord,
    ItemRecord,
    NoteRecord,
    dump_json,
    now_iso,
)
from rabbithole.observability.logging import get_logger
from rabbithole.utils.redaction import redact

logger = get_logger(__name__)


class ItemRepository:
    """
    Repository for saved pages.

    Reads and writes are always filtered by user_id; an item id alone never
    reaches a row.
    """

    @staticmethod
    def get_for_user(item_id: str, user_id: str) -> ItemRecord | None:
        """Single lookup by (id, user_id); absent and not-owned look the same."""
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM items WHERE id = ? AND user_id = ?",
                (item_id, user_id),
            ).fetchone()

        return ItemRecord.from_db_row(dict(row)) if row else None

    @staticmethod
    def get_by_url(user_id: str, page_url: str) -> ItemRecord | None:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT * FROM items WHERE user_id = ? AND page_url = ?",
                (user_id, page_url),
            ).fetchone()

        return ItemRecord.from_db_row(dict(row)) if row else None

    @staticmethod
    @retry_on_db_lock()
    def upsert(
        user_id: str,
        page_url: str,
        title: str | None = None,
        group_id: str | None = None,
    ) -> ItemRecord:
        """
        Create or update the item for (user_id, page_url).

        A missing title or group keeps whatever the row already has.

        Side Effects:
            - Inserts or updates one row in items
            - Commits transaction
        """
        now = now_iso()

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO items (id, user_id, page_url, title, group_id, saved_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, page_url) DO UPDATE SET
                    title = COALESCE(excluded.title, items.title),
                    group_id = COALESCE(excluded.group_id, items.group_id),
                    updated_at = excluded.updated_at
                """,
                (str(uuid.uuid4()), user_id, page_url, title, group_id, now, now),
            )
            row = conn.execute(
                "SELECT * FROM items WHERE user_id = ? AND page_url = ?",
                (user_id, page_url),
            ).fetchone()

        logger.info("Upserted item %s for user %s (%s)", row["id"], user_id, redact(page_url))
        return ItemRecord.from_db_row(dict(row))

    @staticmethod
    @retry_on_db_lock()
    def update_title(item_id: str, user_id: str, title: str | None) -> ItemRecord | None:
        with db_transaction() as conn:
            cursor = conn.execute(
                "UPDATE items SET title = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                (title, now_iso(), item_id, user_id),
            )
            if cursor.rowcount == 0:
                return None
            row = conn.execute("SELECT * FROM items WHERE id = ?", (item_id,)).fetchone()

        return ItemRecord.from_db_row(dict(row))

    @staticmethod
    @retry_on_db_lock()
    def delete(item_id: str, user_id: str) -> bool:
        """
        Delete an item; notes, highlights and drawings cascade.

        Returns:
            False when no owned item matched
        """
        with db_transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM items WHERE id = ? AND user_id = ?",
                (item_id, user_id),
            )
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info("Deleted item %s for user %s", item_id, user_id)
        return deleted

    @staticmethod
    def list_recent(user_id: str, limit: int) -> list[ItemRecord]:
        with get_db_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM items
                WHERE user_id = ?
                ORDER BY updated_at DESC, rowid DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()

        return [ItemRecord.from_db_row(dict(row)) for row in rows]

    @staticmethod
    def load_bundle(item: ItemRecord) -> ItemBundle:
        """Item plus all of its annotations, oldest first."""
        with get_db_connection() as conn:
            notes = conn.execute(
                "SELECT * FROM notes WHERE item_id = ? ORDER BY created_at, rowid",
                (item.id,),
            ).fetchall()
            highlights = conn.execute(
                "SELECT * FROM highlights WHERE item_id = ? ORDER BY created_at, rowid",
                (item.id,),
            ).fetchall()
            drawings = conn.execute(
                "SELECT * FROM drawings WHERE item_id = ? ORDER BY created_at, rowid",
                (item.id,),
            ).fetchall()

        return ItemBundle(
            item=item,
            notes=[NoteRecord.from_db_row(dict(r)) for r in notes],
            highlights=[HighlightRecord.from_db_row(dict(r)) for r in highlights],
            drawings=[DrawingRecord.from_db_row(dict(r)) for r in drawings],
        )


class _AnnotationRepository:
    """
    Shared upsert/delete for the per-item annotation tables.

    Subclasses name the table, the record type and which columns hold JSON.
    Column names only ever come from these class attributes.
    """

    table: str = ""
    record_cls: Any = None
    columns: tuple[str, ...] = ()
    json_columns: frozenset[str] = frozenset()

    @classmethod
    def _encode(cls, values: Mapping[str, Any]) -> dict[str, Any]:
        encoded = {}
        for column, value in values.items():
            if column not in cls.columns:
                raise ValueError(f"Unknown {cls.table} column: {column}")
            encoded[column] = dump_json(value) if column in cls.json_columns else value
        return encoded

    @classmethod
    @retry_on_db_lock()
    def upsert(
        cls,
        item_id: str,
        values: Mapping[str, Any],
        entity_id: str | None = None,
        revision: int | None = None,
    ):
        """
        Insert or replace one annotation keyed by its id.

        Only the columns present in values are written on update, so a
        partial body leaves the rest of the row untouched.

        A write carrying a revision lower than the stored one is ignored and
        the stored row is returned. A write whose id already belongs to a
        different item changes nothing and returns None.
        """
        entity_id = entity_id or str(uuid.uuid4())
        encoded = cls._encode(values)
        now = now_iso()

        insert_cols = ["id", "item_id", *encoded, "revision", "created_at", "updated_at"]
        params = [entity_id, item_id, *encoded.values(), revision, now, now]
        assignments = [f"{col} = excluded.{col}" for col in encoded]
        assignments.append(f"revision = COALESCE(excluded.revision, {cls.table}.revision)")
        assignments.append("updated_at = excluded.updated_at")

        sql = f"""
            INSERT INTO {cls.table} ({", ".join(insert_cols)})
            VALUES ({", ".join("?" * len(insert_cols))})
            ON CONFLICT(id) DO UPDATE SET {", ".join(assignments)}
            WHERE {cls.table}.item_id = excluded.item_id
              AND (excluded.revision IS NULL
                   OR {cls.table}.revision IS NULL
                   OR excluded.revision >= {cls.table}.revision)
        """

        with db_transaction() as conn:
            cursor = conn.execute(sql, params)
            if cursor.rowcount == 0:
                logger.info(
                    "Skipped stale %s write %s (revision=%s)", cls.table, entity_id, revision
                )
            row = conn.execute(
                f"SELECT * FROM {cls.table} WHERE id = ? AND item_id = ?",
                (entity_id, item_id),
            ).fetchone()

        if row is None:
            return None
        return cls.record_cls.from_db_row(dict(row))

    @classmethod
    def find_owned(cls, entity_id: str, user_id: str):
        """Annotation by id, joined against items filtered by the caller."""
        with get_db_connection() as conn:
            row = conn.execute(
                f"""
                SELECT child.* FROM {cls.table} AS child
                JOIN items ON items.id = child.item_id
                WHERE child.id = ? AND items.user_id = ?
                """,
                (entity_id, user_id),
            ).fetchone()

        return cls.record_cls.from_db_row(dict(row)) if row else None

    @classmethod
    @retry_on_db_lock()
    def delete(cls, entity_id: str) -> bool:
        with db_transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {cls.table} WHERE id = ?", (entity_id,))
            return cursor.rowcount > 0


class NoteRepository(_AnnotationRepository):
    table = "notes"
    record_cls = NoteRecord
    columns = ("content", "position_json", "rects_json")
    json_columns = frozenset({"position_json", "rects_json"})

    @staticmethod
    def list_recent_for_items(item_ids: Iterable[str], limit: int) -> list[NoteRecord]:
        """Newest notes across item_ids."""
        ids = list(item_ids)
        if not ids:
            return []

        placeholders = ",".join("?" * len(ids))
        with get_db_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM notes
                WHERE item_id IN ({placeholders})
                ORDER BY updated_at DESC, rowid DESC
                LIMIT ?
                """,
                (*ids, limit),
            ).fetchall()

        return [NoteRecord.from_db_row(dict(row)) for row in rows]


class HighlightRepository(_AnnotationRepository):
    table = "highlights"
    record_cls = HighlightRecord
    columns = ("text", "rects_json")
    json_columns = frozenset({"rects_json"})


class DrawingRepository(_AnnotationRepository):
    table = "drawings"
    record_cls = DrawingRecord
    columns = ("blob_ref", "bounds_json")
    json_columns = frozenset({"bounds_json"})


class GroupRepository:
    """Repository for item groups. (user_id, label) is the natural key."""

    @staticmethod
    @retry_on_db_lock()
    def upsert(user_id: str, label: str, summary: str | None = None) -> ItemGroupRecord:
        """Create the group for (user_id, label), or refresh it if it exists."""
        now = now_iso()

        with db_transaction() as conn:
            conn.execute(
                """
                INSERT INTO item_groups (id, user_id, label, summary, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, label) DO UPDATE SET
                    summary = COALESCE(excluded.summary, item_groups.summary),
                    updated_at = excluded.updated_at
                """,
                (str(uuid.uuid4()), user_id, label, summary, now, now),
            )
            row = conn.execute(
                "SELECT * FROM item_groups WHERE user_id = ? AND label = ?",
                (user_id, label),
            ).fetchone()

        logger.info("Upserted group %s for user %s", row["id"], user_id)
        return ItemGroupRecord.from_db_row(dict(row))

    @staticmethod
    @retry_on_db_lock()
    def touch(group_id: str, user_id: str) -> None:
        """Bump updated_at so the group sorts first in recency listings."""
        with db_transaction() as conn:
            conn.execute(
                "UPDATE item_groups SET updated_at = ? WHERE id = ? AND user_id = ?",
                (now_iso(), group_id, user_id),
            )

    @staticmethod
    def count_for_user(user_id: str) -> int:
        with get_db_connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM item_groups WHERE user_id = ?", (user_id,)
            ).fetchone()
        return int(row[0])

    @staticmethod
    def list_with_items(
        user_id: str,
        limit: int,
        items_per_group: int | None = None,
    ) -> list[ItemGroupRecord]:
        """
        Most recently updated groups, each with its items (newest first).

        Args:
            user_id: Owner of the groups
            limit: Maximum number of groups
            items_per_group: Cap on nested items, None for all

        Returns:
            Groups ordered by updated_at DESC
        """
        with get_db_connection() as conn:
            group_rows = conn.execute(
                """
                SELECT * FROM item_groups
                WHERE user_id = ?
                ORDER BY updated_at DESC, rowid DESC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()

            groups = [ItemGroupRecord.from_db_row(dict(row)) for row in group_rows]
            if not groups:
                return []

            placeholders = ",".join("?" * len(groups))
            item_rows = conn.execute(
                f"""
                SELECT * FROM items
                WHERE user_id = ? AND group_id IN ({placeholders})
                ORDER BY updated_at DESC, rowid DESC
                """,
                (user_id, *(g.id for g in groups)),
            ).fetchall()

        by_id = {group.id: group for group in groups}
        for row in item_rows:
            group = by_id[row["group_id"]]
            if items_per_group is None or len(group.items) < items_per_group:
                group.items.append(ItemRecord.from_db_row(dict(row)))

        return groups
