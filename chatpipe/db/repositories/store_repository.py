"""
Repository for persistent store documents.
"""

import json
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from chatpipe.core.exceptions import StorageError
from chatpipe.db.database import Database
from chatpipe.models.message import thaw


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


class StoreRepository:
    """Loads and saves one JSON mapping per store key (last write wins)."""

    def __init__(self, db: Database):
        self.db = db

    async def load(self, key: str) -> dict[str, Any] | None:
        """Load the saved mapping for a key, or None if nothing was saved."""
        row = await self.db.fetch_one(
            "SELECT value FROM stores WHERE key = ?",
            (key,)
        )

        if not row:
            return None

        try:
            value = json.loads(row["value"])
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt store value for {key!r}: {e}", {"key": key}) from e

        if not isinstance(value, dict):
            raise StorageError(f"Store {key!r} does not hold a mapping", {"key": key})
        return value

    async def save(self, key: str, value: Mapping[str, Any]) -> None:
        """Save the mapping for a key, replacing whatever was there."""
        try:
            encoded = json.dumps(thaw(value))
        except (TypeError, ValueError) as e:
            raise StorageError(f"Store {key!r} holds a value that cannot be saved: {e}", {"key": key}) from e

        await self.db.execute(
            """
            INSERT INTO stores (key, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (key, encoded, _utcnow().isoformat()),
        )

    async def delete(self, key: str) -> int:
        """Delete a key and return the number of rows removed."""
        cursor = await self.db.execute("DELETE FROM stores WHERE key = ?", (key,))
        return cursor.rowcount

    async def keys(self) -> list[str]:
        """All saved store keys."""
        rows = await self.db.fetch_all("SELECT key FROM stores ORDER BY key")
        return [row["key"] for row in rows]
