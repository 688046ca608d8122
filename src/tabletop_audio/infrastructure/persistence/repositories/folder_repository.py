"""SQLite implementation of the folder repository."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from tabletop_audio.domain.library.entities import Folder
from tabletop_audio.domain.library.repository import FolderRepository
from tabletop_audio.domain.library.value_objects import FolderType, ItemKind
from tabletop_audio.domain.shared.datetime_utils import UtcDateTime

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)

_SUBTREE_CTE = """
    WITH RECURSIVE subtree(id) AS (
        SELECT ?
        UNION
        SELECT f.id FROM folders f JOIN subtree s ON f.parent_id = s.id
    )
"""


class SQLiteFolderRepository(FolderRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, folder_id: int) -> Folder | None:
        row = await self._db.fetch_one("SELECT * FROM folders WHERE id = ?", (folder_id,))
        return self._row_to_folder(row) if row else None

    async def get_root(self) -> Folder | None:
        row = await self._db.fetch_one(
            """
            SELECT * FROM folders
            WHERE parent_id IS NULL AND folder_type = ?
            ORDER BY position, id
            LIMIT 1
            """,
            (FolderType.ROOT.value,),
        )
        return self._row_to_folder(row) if row else None

    async def list_all(self) -> list[Folder]:
        rows = await self._db.fetch_all("SELECT * FROM folders ORDER BY position, id")
        return [self._row_to_folder(row) for row in rows]

    async def add(self, folder: Folder, reposition: Mapping[int, float] | None = None) -> Folder:
        async with self._db.transaction() as conn:
            await self._apply_positions(conn, reposition)
            cursor = await conn.execute(
                """
                INSERT INTO folders (name, folder_type, parent_id, position, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    folder.name,
                    folder.folder_type.value,
                    folder.parent_id,
                    folder.position,
                    UtcDateTime.now().iso,
                ),
            )
            folder_id = cursor.lastrowid
        return folder.model_copy(update={"id": folder_id})

    async def rename(self, folder_id: int, name: str) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE folders SET name = ? WHERE id = ?", (name, folder_id)
            )
            return cursor.rowcount > 0

    async def move(
        self,
        folder_id: int,
        parent_id: int,
        position: float,
        reposition: Mapping[int, float] | None = None,
    ) -> None:
        async with self._db.transaction() as conn:
            await self._apply_positions(conn, reposition)
            await conn.execute(
                "UPDATE folders SET parent_id = ?, position = ? WHERE id = ?",
                (parent_id, position, folder_id),
            )

    async def delete_subtree(self, folder_id: int) -> tuple[int, int]:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                _SUBTREE_CTE + "SELECT COUNT(*) FROM subtree", (folder_id,)
            )
            folder_count = (await cursor.fetchone())[0]

            cursor = await conn.execute(
                _SUBTREE_CTE
                + "SELECT COUNT(*) FROM audio_files WHERE folder_id IN (SELECT id FROM subtree)",
                (folder_id,),
            )
            file_count = (await cursor.fetchone())[0]

            await conn.execute(
                _SUBTREE_CTE
                + """
                DELETE FROM collection_items
                WHERE item_kind = ?
                AND item_id IN (
                    SELECT id FROM audio_files WHERE folder_id IN (SELECT id FROM subtree)
                )
                """,
                (folder_id, ItemKind.FILE.value),
            )
            # Child folders and their files go with the ON DELETE CASCADE.
            await conn.execute("DELETE FROM folders WHERE id = ?", (folder_id,))

        return folder_count, file_count

    async def _apply_positions(self, conn: Any, positions: Mapping[int, float] | None) -> None:
        if not positions:
            return
        await conn.executemany(
            "UPDATE folders SET position = ? WHERE id = ?",
            [(position, row_id) for row_id, position in positions.items()],
        )

    def _row_to_folder(self, row: dict[str, Any]) -> Folder:
        return Folder(
            id=row["id"],
            name=row["name"],
            folder_type=FolderType(row["folder_type"]),
            parent_id=row["parent_id"],
            position=row["position"],
        )
