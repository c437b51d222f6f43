"""
Database connection and initialization for chatpipe's persistent stores.

Uses aiosqlite for async SQLite operations:

Performance:
    - WAL (Write-Ahead Logging) mode for better concurrency
    - Auto-commit mode; every store write is a single statement

Schema:
    - stores: one JSON document per store key
"""

import logging
from pathlib import Path
from typing import Any

import aiosqlite

logger = logging.getLogger(__name__)

# SQL schema for tables
SCHEMA = """
-- Persistent key-value stores
CREATE TABLE IF NOT EXISTS stores (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class Database:
    """Async SQLite database wrapper."""

    def __init__(self, db_path: str | Path, wal_mode: bool = True):
        self.db_path = Path(db_path)
        self.wal_mode = wal_mode
        self._connection: aiosqlite.Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def connect(self) -> None:
        """Connect to the database."""
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._connection = await aiosqlite.connect(
            self.db_path,
            isolation_level=None  # Auto-commit mode
        )

        # Enable WAL mode for better concurrency
        if self.wal_mode:
            await self._connection.execute("PRAGMA journal_mode=WAL")

        # Row factory for dict-like access
        self._connection.row_factory = aiosqlite.Row

        logger.info(f"Connected to database: {self.db_path}")

    async def disconnect(self) -> None:
        """Disconnect from the database."""
        if self._connection:
            await self._connection.close()
            self._connection = None
            logger.info("Disconnected from database")

    async def init_schema(self) -> None:
        """Initialize database schema."""
        if not self._connection:
            raise RuntimeError("Database not connected")

        await self._connection.executescript(SCHEMA)
        logger.info("Database schema initialized")

    @property
    def connection(self) -> aiosqlite.Connection:
        """Get the database connection."""
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    async def execute(
        self,
        query: str,
        parameters: tuple | dict | None = None
    ) -> aiosqlite.Cursor:
        """Execute a query."""
        if parameters:
            return await self.connection.execute(query, parameters)
        return await self.connection.execute(query)

    async def fetch_one(
        self,
        query: str,
        parameters: tuple | dict | None = None
    ) -> dict[str, Any] | None:
        """Fetch a single row."""
        cursor = await self.execute(query, parameters)
        row = await cursor.fetchone()
        if row:
            return dict(row)
        return None

    async def fetch_all(
        self,
        query: str,
        parameters: tuple | dict | None = None
    ) -> list[dict[str, Any]]:
        """Fetch all rows."""
        cursor = await self.execute(query, parameters)
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]
