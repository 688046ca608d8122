"""SQLite implementation of the audio file repository."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from tabletop_audio.domain.library.entities import AudioFile
from tabletop_audio.domain.library.repository import AudioFileRepository
from tabletop_audio.domain.library.value_objects import AudioType, ItemKind
from tabletop_audio.domain.shared.datetime_utils import UtcDateTime

if TYPE_CHECKING:
    from ..database import Database

logger = logging.getLogger(__name__)


def _placeholders(count: int) -> str:
    return ",".join("?" * count)


class SQLiteAudioFileRepository(AudioFileRepository):
    def __init__(self, database: Database) -> None:
        self._db = database

    async def get(self, file_id: int) -> AudioFile | None:
        row = await self._db.fetch_one("SELECT * FROM audio_files WHERE id = ?", (file_id,))
        return self._row_to_file(row) if row else None

    async def list_by_folder(self, folder_id: int) -> list[AudioFile]:
        rows = await self._db.fetch_all(
            "SELECT * FROM audio_files WHERE folder_id = ? ORDER BY name COLLATE NOCASE, id",
            (folder_id,),
        )
        return [self._row_to_file(row) for row in rows]

    async def audio_types_in_folders(self, folder_ids: Iterable[int]) -> set[AudioType]:
        ids = list(folder_ids)
        if not ids:
            return set()
        rows = await self._db.fetch_all(
            f"SELECT DISTINCT audio_type FROM audio_files WHERE folder_id IN ({_placeholders(len(ids))})",  # noqa: S608
            tuple(ids),
        )
        return {AudioType(row["audio_type"]) for row in rows}

    async def add(self, file: AudioFile) -> AudioFile:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO audio_files (name, audio_type, duration_seconds, source, folder_id, added_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    file.name,
                    file.audio_type.value,
                    file.duration_seconds,
                    file.source,
                    file.folder_id,
                    UtcDateTime(file.added_at).iso,
                ),
            )
            file_id = cursor.lastrowid
        return file.model_copy(update={"id": file_id})

    async def rename(self, file_id: int, name: str) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE audio_files SET name = ? WHERE id = ?", (name, file_id)
            )
            return cursor.rowcount > 0

    async def move(self, file_id: int, folder_id: int) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE audio_files SET folder_id = ? WHERE id = ?", (folder_id, file_id)
            )
            return cursor.rowcount > 0

    async def delete_many(self, file_ids: Iterable[int]) -> tuple[int, int]:
        ids = list(dict.fromkeys(file_ids))
        if not ids:
            return 0, 0

        marks = _placeholders(len(ids))
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                f"DELETE FROM collection_items WHERE item_kind = ? AND item_id IN ({marks})",  # noqa: S608
                (ItemKind.FILE.value, *ids),
            )
            dropped = cursor.rowcount
            cursor = await conn.execute(
                f"DELETE FROM audio_files WHERE id IN ({marks})",  # noqa: S608
                tuple(ids),
            )
            deleted = cursor.rowcount
        return deleted, dropped

    def _row_to_file(self, row: dict[str, Any]) -> AudioFile:
        return AudioFile(
            id=row["id"],
            name=row["name"],
            audio_type=AudioType(row["audio_type"]),
            duration_seconds=row["duration_seconds"],
            source=row["source"],
            folder_id=row["folder_id"],
            added_at=UtcDateTime.from_iso(row["added_at"]).dt,
        )
