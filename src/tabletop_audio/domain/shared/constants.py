"""Centralized constants for database schema, pragmas, and ordering defaults."""

from __future__ import annotations


class DatabaseTables:
    """Database table names."""

    FOLDERS = "folders"
    AUDIO_FILES = "audio_files"
    COLLECTIONS = "collections"
    COLLECTION_ITEMS = "collection_items"


class SQLPragmas:
    """SQLite PRAGMA statements for database configuration."""

    JOURNAL_MODE_WAL = "PRAGMA journal_mode=WAL"
    FOREIGN_KEYS_ON = "PRAGMA foreign_keys=ON"
    BUSY_TIMEOUT = "PRAGMA busy_timeout={timeout}"
    PAGE_COUNT = "PRAGMA page_count"
    PAGE_SIZE = "PRAGMA page_size"


class OrderingDefaults:
    """Defaults for the sparse float position space."""

    GAP = 1.0
    MIN_POSITION = -1_000_000.0
    MAX_NESTING_DEPTH = 8


class LockKeys:
    """Aggregate lock key formats."""

    COLLECTION = "collection:{id}"
    COLLECTION_ORDER = "collection-order:{type}"
    FOLDER = "folder:{id}"
    FOLDER_TREE = "folder-tree"
    COLLECTION_GRAPH = "collection-graph"
