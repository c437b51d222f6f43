"""
Persistent stores: KeyValueAtom cells backed by SQLite.

A cell is loaded from the database the first time its key is requested and
the same cell is returned afterwards. Processors only ever touch the
in-memory cell; the adapter writes cells back when ``flush`` is called and
when the bot closes.
"""

import asyncio
import logging

from chatpipe.core.config import StorageSettings
from chatpipe.core.exceptions import ConfigurationError
from chatpipe.core.key_value_atom import KeyValueAtom
from chatpipe.db.database import Database
from chatpipe.db.repositories.store_repository import StoreRepository

logger = logging.getLogger(__name__)


class PersistentStores:
    """Store provider for ``Bot.store``."""

    def __init__(self, settings: StorageSettings):
        self.settings = settings
        self._db: Database | None = None
        self._repo: StoreRepository | None = None
        self._atoms: dict[str, KeyValueAtom] = {}
        self._lock = asyncio.Lock()

    async def _ensure_repository(self) -> StoreRepository:
        if self._repo is None:
            if not self.settings.path:
                raise ConfigurationError(
                    "No store path defined; set storage.path in settings.yaml"
                )
            db = Database(self.settings.path, wal_mode=self.settings.wal_mode)
            await db.connect()
            await db.init_schema()
            self._db = db
            self._repo = StoreRepository(db)
        return self._repo

    async def get(self, key: str) -> KeyValueAtom:
        """Get the cell for a key, loading saved contents on first access."""
        atom = self._atoms.get(key)
        if atom is not None:
            return atom

        async with self._lock:
            atom = self._atoms.get(key)
            if atom is None:
                repo = await self._ensure_repository()
                saved = await repo.load(key)
                atom = self._atoms[key] = KeyValueAtom(saved)
                logger.debug(f"Loaded store {key!r}")
            return atom

    async def flush(self, key: str | None = None) -> None:
        """Write one cell (or every loaded cell) back to the database."""
        if self._repo is None:
            return
        keys = [key] if key is not None else list(self._atoms)
        for name in keys:
            atom = self._atoms.get(name)
            if atom is not None:
                await self._repo.save(name, atom.value)
        logger.debug(f"Flushed stores: {keys}")

    async def close(self) -> None:
        """Flush every loaded cell and close the database.

        The database is closed even when a cell cannot be saved; the
        StorageError is raised afterwards.
        """
        try:
            await self.flush()
        finally:
            if self._db is not None:
                await self._db.disconnect()
            self._db = None
            self._repo = None
            self._atoms.clear()
