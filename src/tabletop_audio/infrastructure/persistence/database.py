"""SQLite database with per-operation connections and WAL mode."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from tabletop_audio.domain.shared.constants import DatabaseTables, SQLPragmas
from tabletop_audio.domain.shared.messages import LogTemplates

if TYPE_CHECKING:
    from ...config.settings import DatabaseSettings

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class Database:
    def __init__(self, url: str, settings: DatabaseSettings | None = None) -> None:
        if url.startswith("sqlite:///"):
            self._db_path = url[10:]  # Remove "sqlite:///"
        elif url.startswith("sqlite://"):
            self._db_path = url[9:] or MEMORY_PATH
        else:
            self._db_path = url

        self._initialized = False
        self._keepalive_conn: aiosqlite.Connection | None = None
        self._memory_lock = asyncio.Lock()
        self._busy_timeout = settings.busy_timeout_ms if settings else 5000
        self._connection_timeout = settings.connection_timeout_s if settings else 10

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def is_memory(self) -> bool:
        return self._db_path == MEMORY_PATH

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        if self._initialized:
            return

        if not self.is_memory:
            db_dir = Path(self._db_path).parent
            db_dir.mkdir(parents=True, exist_ok=True)

        # An in-memory database lives exactly as long as its one connection,
        # so every operation is routed through it (see connection()).
        if self.is_memory and self._keepalive_conn is None:
            self._keepalive_conn = await self._connect()

        async with self.transaction() as conn:
            await self._ensure_schema(conn)

        self._initialized = True
        logger.info(LogTemplates.DATABASE_INITIALIZED, self._db_path)

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.FOLDERS} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                folder_type TEXT NOT NULL,
                parent_id INTEGER,
                position REAL NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
                FOREIGN KEY(parent_id) REFERENCES {DatabaseTables.FOLDERS}(id) ON DELETE CASCADE
            )
            """
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_folders_parent_pos ON {DatabaseTables.FOLDERS}(parent_id, position)"
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.AUDIO_FILES} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                audio_type TEXT NOT NULL,
                duration_seconds REAL,
                source TEXT NOT NULL,
                folder_id INTEGER NOT NULL,
                added_at TEXT NOT NULL,
                FOREIGN KEY(folder_id) REFERENCES {DatabaseTables.FOLDERS}(id) ON DELETE CASCADE
            )
            """
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_audio_files_folder ON {DatabaseTables.AUDIO_FILES}(folder_id)"
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.COLLECTIONS} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection_type TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                position REAL NOT NULL DEFAULT 0,
                duration_seconds REAL,
                volume REAL,
                created_at TEXT NOT NULL
            )
            """
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_collections_type_pos ON {DatabaseTables.COLLECTIONS}(collection_type, position)"
        )

        await conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {DatabaseTables.COLLECTION_ITEMS} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection_id INTEGER NOT NULL,
                item_kind TEXT NOT NULL,
                item_id INTEGER NOT NULL,
                position REAL NOT NULL,
                volume REAL,
                active INTEGER NOT NULL DEFAULT 0,
                delay_ms INTEGER NOT NULL DEFAULT 0,
                UNIQUE (collection_id, item_kind, item_id),
                FOREIGN KEY(collection_id) REFERENCES {DatabaseTables.COLLECTIONS}(id) ON DELETE CASCADE
            )
            """
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_collection_items_pos ON {DatabaseTables.COLLECTION_ITEMS}(collection_id, position, id)"
        )
        await conn.execute(
            f"CREATE INDEX IF NOT EXISTS idx_collection_items_ref ON {DatabaseTables.COLLECTION_ITEMS}(item_kind, item_id)"
        )

    async def _connect(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(
            self._db_path,
            # detect_types=0 because our ISO 8601 timestamps use 'T' separator,
            # but SQLite's built-in converter expects space-separated format.
            detect_types=0,
            timeout=self._connection_timeout,
        )
        conn.row_factory = aiosqlite.Row

        # WAL improves concurrent read behavior and reduces writer blocking.
        await conn.execute(SQLPragmas.JOURNAL_MODE_WAL)
        await conn.execute(SQLPragmas.FOREIGN_KEYS_ON)
        await conn.execute(SQLPragmas.BUSY_TIMEOUT.format(timeout=self._busy_timeout))

        return conn

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Yield a connection for one unit of work.

        For in-memory databases this is the shared keepalive connection held
        under a lock; callers must not open a second connection while
        holding one.
        """
        if self._keepalive_conn is not None:
            async with self._memory_lock:
                try:
                    yield self._keepalive_conn
                except Exception:
                    await self._keepalive_conn.rollback()
                    raise
            return

        conn = await self._connect()
        try:
            yield conn
        except Exception:
            try:
                await conn.rollback()
            except Exception:
                pass
            raise
        finally:
            await conn.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Get a transaction context manager with auto-commit/rollback."""
        async with self.connection() as conn:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def snapshot(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """Read-only transaction: every query inside sees the same snapshot."""
        async with self.connection() as conn:
            await conn.execute("BEGIN")
            try:
                yield conn
            finally:
                await conn.rollback()

    async def execute(
        self, sql: str, parameters: tuple[Any, ...] | None = None
    ) -> aiosqlite.Cursor:
        """Execute a SQL statement.

        Note:
            This always runs in its own transaction. If you need multiple
            statements to commit/rollback together, use `transaction()` and the
            returned connection directly.
        """
        async with self.transaction() as conn:
            if parameters is not None:
                cursor = await conn.execute(sql, parameters)
            else:
                cursor = await conn.execute(sql)
            return cursor

    async def fetch_one(
        self, sql: str, parameters: tuple[Any, ...] | None = None
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        async with self.connection() as conn:
            if parameters is not None:
                cursor = await conn.execute(sql, parameters)
            else:
                cursor = await conn.execute(sql)
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def fetch_all(
        self, sql: str, parameters: tuple[Any, ...] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        async with self.connection() as conn:
            if parameters is not None:
                cursor = await conn.execute(sql, parameters)
            else:
                cursor = await conn.execute(sql)
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_stats(self) -> dict[str, Any]:
        """Get database statistics.

        Returns:
            Dictionary with database statistics including file size,
            table row counts and page metrics.
        """
        stats: dict[str, Any] = {
            "db_path": self._db_path,
            "initialized": self._initialized,
            "tables": {},
        }

        if not self.is_memory:
            db_file = Path(self._db_path)
            if db_file.exists():
                stats["file_size_bytes"] = db_file.stat().st_size
                stats["file_size_mb"] = round(db_file.stat().st_size / (1024 * 1024), 2)

        if not self._initialized:
            return stats

        try:
            async with self.connection() as conn:
                cursor = await conn.execute(
                    "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
                )
                tables = await cursor.fetchall()

                for (table_name,) in tables:
                    count_cursor = await conn.execute(
                        f"SELECT COUNT(*) FROM {table_name}"  # noqa: S608
                    )
                    count_row = await count_cursor.fetchone()
                    stats["tables"][table_name] = count_row[0] if count_row else 0

                page_cursor = await conn.execute(SQLPragmas.PAGE_COUNT)
                page_count_row = await page_cursor.fetchone()
                stats["page_count"] = page_count_row[0] if page_count_row else 0

                page_size_cursor = await conn.execute(SQLPragmas.PAGE_SIZE)
                page_size_row = await page_size_cursor.fetchone()
                stats["page_size"] = page_size_row[0] if page_size_row else 0

        except Exception as e:
            logger.error(LogTemplates.DATABASE_STATS_FAILED, e)
            stats["error"] = str(e)

        return stats

    async def close(self) -> None:
        """Close the database manager.

        For file-based DBs this is mostly a no-op. For in-memory DBs we also
        close the keepalive connection, which discards the data.
        """
        if self._keepalive_conn is not None:
            try:
                await self._keepalive_conn.close()
            finally:
                self._keepalive_conn = None
        self._initialized = False
        logger.info(LogTemplates.DATABASE_CLOSED)
