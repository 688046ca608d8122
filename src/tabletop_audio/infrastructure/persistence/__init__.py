"""SQLite persistence over aiosqlite."""
