"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Set test environment
os.environ["CHATPIPE_CONFIG_DIR"] = ""


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_settings(temp_dir: Path):
    """Create test settings."""
    from chatpipe.core.config import BotSettings, ServerSettings, Settings, StorageSettings

    return Settings(
        bot=BotSettings(name="testbot", command_prefix="#"),
        storage=StorageSettings(path=str(temp_dir / "stores.db")),
        server=ServerSettings(host="127.0.0.1", port=8000, debug=True),
    )


@pytest.fixture
def bot(test_settings):
    """A bot with test settings and empty registries."""
    from chatpipe.bot import Bot

    return Bot(settings=test_settings)


@pytest.fixture
def mock_bot():
    """A stand-in bot that records calls to log()."""
    mock = MagicMock()
    mock.command_prefix = "#"
    return mock


@pytest.fixture
def recorder():
    """An acceptor that records every message it receives."""
    received = []

    def accept(message):
        received.append(message)

    accept.received = received
    return accept


@pytest.fixture
def logged(mock_bot):
    """Returns everything the mock bot was asked to log, as one string."""
    def text() -> str:
        return "\n".join(call.args[0] for call in mock_bot.log.call_args_list)
    return text
