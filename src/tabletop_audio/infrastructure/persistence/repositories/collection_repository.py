"""SQLite implementation of the collection repository."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tabletop_audio.domain.library.entities import AudioCollection, CollectionItem
from tabletop_audio.domain.library.repository import CollectionRepository
from tabletop_audio.domain.library.value_objects import CollectionType, ItemKind, ItemRef
from tabletop_audio.domain.shared.datetime_utils import UtcDateTime

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)

_REFERENCED_TABLE = {
    ItemKind.FILE: "audio_files",
    ItemKind.COLLECTION: "collections",
}


class SQLiteCollectionRepository(CollectionRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, collection_id: int) -> AudioCollection | None:
        async with self._db.snapshot() as conn:
            cursor = await conn.execute("SELECT * FROM collections WHERE id = ?", (collection_id,))
            row = await cursor.fetchone()
            if row is None:
                return None
            cursor = await conn.execute(
                "SELECT * FROM collection_items WHERE collection_id = ? ORDER BY position, id",
                (collection_id,),
            )
            item_rows = await cursor.fetchall()

        return self._row_to_collection(dict(row), [dict(r) for r in item_rows])

    async def list_all(self, collection_type: CollectionType | None = None) -> list[AudioCollection]:
        async with self._db.snapshot() as conn:
            if collection_type is None:
                cursor = await conn.execute("SELECT * FROM collections ORDER BY position, id")
            else:
                cursor = await conn.execute(
                    "SELECT * FROM collections WHERE collection_type = ? ORDER BY position, id",
                    (collection_type.value,),
                )
            rows = [dict(r) for r in await cursor.fetchall()]

            cursor = await conn.execute(
                "SELECT * FROM collection_items ORDER BY collection_id, position, id"
            )
            items_by_collection: dict[int, list[dict[str, Any]]] = {}
            for item_row in await cursor.fetchall():
                items_by_collection.setdefault(item_row["collection_id"], []).append(dict(item_row))

        return [self._row_to_collection(row, items_by_collection.get(row["id"], [])) for row in rows]

    async def add(
        self, collection: AudioCollection, reposition: Mapping[int, float] | None = None
    ) -> AudioCollection:
        async with self._db.transaction() as conn:
            if reposition:
                await conn.executemany(
                    "UPDATE collections SET position = ? WHERE id = ?",
                    [(position, row_id) for row_id, position in reposition.items()],
                )
            cursor = await conn.execute(
                """
                INSERT INTO collections
                    (collection_type, name, description, position, duration_seconds, volume, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    collection.collection_type.value,
                    collection.name,
                    collection.description,
                    collection.position,
                    collection.duration_seconds,
                    collection.volume,
                    UtcDateTime(collection.created_at).iso,
                ),
            )
            collection_id = cursor.lastrowid
        return collection.model_copy(update={"id": collection_id, "items": []})

    async def update(self, collection: AudioCollection) -> None:
        await self._db.execute(
            """
            UPDATE collections
            SET name = ?, description = ?, duration_seconds = ?, volume = ?
            WHERE id = ?
            """,
            (
                collection.name,
                collection.description,
                collection.duration_seconds,
                collection.volume,
                collection.id,
            ),
        )

    async def reposition(self, positions: Mapping[int, float]) -> None:
        if not positions:
            return
        async with self._db.transaction() as conn:
            await conn.executemany(
                "UPDATE collections SET position = ? WHERE id = ?",
                [(position, row_id) for row_id, position in positions.items()],
            )

    async def delete(self, collection_id: int) -> int:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM collection_items WHERE item_kind = ? AND item_id = ?",
                (ItemKind.COLLECTION.value, collection_id),
            )
            dropped = cursor.rowcount
            # Its own membership rows go with the ON DELETE CASCADE.
            await conn.execute("DELETE FROM collections WHERE id = ?", (collection_id,))
        return dropped

    async def nesting_edges(self) -> dict[int, list[int]]:
        rows = await self._db.fetch_all(
            "SELECT collection_id, item_id FROM collection_items WHERE item_kind = ?",
            (ItemKind.COLLECTION.value,),
        )
        edges: dict[int, list[int]] = {}
        for row in rows:
            edges.setdefault(row["collection_id"], []).append(row["item_id"])
        return edges

    async def insert_item(
        self, item: CollectionItem, reposition: Mapping[int, float] | None = None
    ) -> CollectionItem | None:
        table = _REFERENCED_TABLE[item.ref.kind]
        async with self._db.transaction() as conn:
            if reposition:
                await self._apply_item_positions(conn, reposition)
            cursor = await conn.execute(
                f"""
                INSERT INTO collection_items
                    (collection_id, item_kind, item_id, position, volume, active, delay_ms)
                SELECT ?, ?, ?, ?, ?, ?, ?
                WHERE EXISTS (SELECT 1 FROM {table} WHERE id = ?)
                """,  # noqa: S608
                (
                    item.collection_id,
                    item.ref.kind.value,
                    item.ref.id,
                    item.position,
                    item.volume,
                    int(item.active),
                    item.delay_ms,
                    item.ref.id,
                ),
            )
            if cursor.rowcount == 0:
                await conn.rollback()
                return None
            item_id = cursor.lastrowid
        return item.model_copy(update={"id": item_id})

    async def update_item(self, item: CollectionItem) -> None:
        await self._db.execute(
            "UPDATE collection_items SET volume = ?, active = ?, delay_ms = ? WHERE id = ?",
            (item.volume, int(item.active), item.delay_ms, item.id),
        )

    async def reposition_items(self, positions: Mapping[int, float]) -> None:
        if not positions:
            return
        async with self._db.transaction() as conn:
            await self._apply_item_positions(conn, positions)

    async def delete_item(self, item_id: int) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute("DELETE FROM collection_items WHERE id = ?", (item_id,))
            return cursor.rowcount > 0

    async def _apply_item_positions(self, conn: Any, positions: Mapping[int, float]) -> None:
        await conn.executemany(
            "UPDATE collection_items SET position = ? WHERE id = ?",
            [(position, row_id) for row_id, position in positions.items()],
        )

    def _row_to_item(self, row: dict[str, Any]) -> CollectionItem:
        return CollectionItem(
            id=row["id"],
            collection_id=row["collection_id"],
            ref=ItemRef(ItemKind(row["item_kind"]), row["item_id"]),
            position=row["position"],
            volume=row["volume"],
            active=bool(row["active"]),
            delay_ms=row["delay_ms"],
        )

    def _row_to_collection(
        self, row: dict[str, Any], item_rows: list[dict[str, Any]]
    ) -> AudioCollection:
        return AudioCollection(
            id=row["id"],
            collection_type=CollectionType(row["collection_type"]),
            name=row["name"],
            description=row["description"],
            position=row["position"],
            duration_seconds=row["duration_seconds"],
            volume=row["volume"],
            items=[self._row_to_item(item_row) for item_row in item_rows],
            created_at=UtcDateTime.from_iso(row["created_at"]).dt,
        )
