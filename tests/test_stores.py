"""Tests for persistent stores."""

import pytest

from chatpipe.bot import Bot
from chatpipe.core.config import Settings, StorageSettings
from chatpipe.core.exceptions import ConfigurationError, StorageError
from chatpipe.db.stores import PersistentStores


class TestPersistentStores:
    """Tests for PersistentStores."""

    @pytest.mark.asyncio
    async def test_same_atom_per_key(self, temp_dir):
        """Test that a key always maps to the same cell."""
        stores = PersistentStores(StorageSettings(path=str(temp_dir / "s.db")))

        first = await stores.get("k")
        second = await stores.get("k")
        other = await stores.get("other")

        assert first is second
        assert first is not other
        await stores.close()

    @pytest.mark.asyncio
    async def test_values_survive_restart(self, temp_dir):
        """Test that flushed values are loaded by a new adapter."""
        settings = StorageSettings(path=str(temp_dir / "s.db"))

        stores = PersistentStores(settings)
        atom = await stores.get("weather")
        atom["cities"] = ["Oslo", "Lima"]
        await stores.close()

        reopened = PersistentStores(settings)
        atom = await reopened.get("weather")

        assert atom["cities"] == ("Oslo", "Lima")
        await reopened.close()

    @pytest.mark.asyncio
    async def test_flush_single_key(self, temp_dir):
        """Test flushing one key only writes that key."""
        settings = StorageSettings(path=str(temp_dir / "s.db"))
        stores = PersistentStores(settings)
        (await stores.get("a"))["n"] = 1
        (await stores.get("b"))["n"] = 2

        await stores.flush("a")
        keys = await stores._repo.keys()

        assert keys == ["a"]
        await stores.close()

    @pytest.mark.asyncio
    async def test_no_path_is_an_error(self):
        """Test that stores need a configured path."""
        stores = PersistentStores(StorageSettings())

        with pytest.raises(ConfigurationError, match="No store path defined"):
            await stores.get("k")

    @pytest.mark.asyncio
    async def test_flush_before_use_is_noop(self):
        """Test that flushing an unused adapter does nothing."""
        stores = PersistentStores(StorageSettings())

        await stores.flush()
        await stores.close()

    @pytest.mark.asyncio
    async def test_close_disconnects_when_flush_fails(self, temp_dir):
        """Test that an unsavable value still lets the database close."""
        stores = PersistentStores(StorageSettings(path=str(temp_dir / "s.db")))
        atom = await stores.get("k")
        atom["bad"] = object()
        db = stores._db

        with pytest.raises(StorageError, match="cannot be saved"):
            await stores.close()

        assert not db.is_connected
        assert stores._db is None
        assert stores._repo is None
        assert stores._atoms == {}


class TestBotStores:
    """Tests for Bot.store."""

    @pytest.mark.asyncio
    async def test_bot_store_roundtrip(self, temp_dir):
        """Test that a bot's store outlives the bot."""
        settings = Settings(storage=StorageSettings(path=str(temp_dir / "bot.db")))

        async with Bot(settings=settings) as bot:
            atom = await bot.store("counter")
            atom.swap(lambda current: {**current, "n": current.get("n", 0) + 1})
            assert await bot.store("counter") is atom

        async with Bot(settings=settings) as bot:
            assert (await bot.store("counter"))["n"] == 1

    @pytest.mark.asyncio
    async def test_bot_close_releases_stores_on_error(self, temp_dir):
        """Test that a failed flush still leaves the bot closed."""
        bot = Bot(settings=Settings(storage=StorageSettings(path=str(temp_dir / "bot.db"))))
        (await bot.store("k"))["bad"] = object()

        with pytest.raises(StorageError):
            await bot.close()

        assert bot._stores is None
        await bot.close()

    @pytest.mark.asyncio
    async def test_bot_store_without_path(self, bot):
        """Test the error when the bot has no store path."""
        bot.configure(Settings())

        with pytest.raises(ConfigurationError):
            await bot.store("k")
