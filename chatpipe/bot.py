"""
The bot: pipeline orchestrator and shared context for processors.

A bot owns one processor registry per stage and runs every inbound message
through the stages in order::

    preprocessor (chain) -> service (group) -> postprocessor (chain) -> sender (group)

For every message, each stage builds a fresh chain or group from its
registry's current contents and wires its output into the next stage. The
final stage's output is discarded. The bot is also the context object
passed to every processor, giving access to configuration, caches,
persistent stores, the stage registries and the logger.
"""

import asyncio
import logging
import threading
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from chatpipe.core.config import Settings
from chatpipe.core.exceptions import (
    BundleError,
    ConfigurationError,
    InvalidMessageError,
    UnknownStageError,
)
from chatpipe.core.key_value_atom import KeyValueAtom
from chatpipe.db.stores import PersistentStores
from chatpipe.models.message import Message, as_message
from chatpipe.pipeline.chain import ProcessorChain
from chatpipe.pipeline.group import ProcessorGroup
from chatpipe.pipeline.processors import POSTPROCESSOR, PREPROCESSOR, SENDER, SERVICE
from chatpipe.pipeline.registry import ProcessorRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """A named pipeline stage and the composition used to run it."""
    name: str
    kind: type = ProcessorChain


DEFAULT_STAGES: tuple[Stage, ...] = (
    Stage(PREPROCESSOR, ProcessorChain),
    Stage(SERVICE, ProcessorGroup),
    Stage(POSTPROCESSOR, ProcessorChain),
    Stage(SENDER, ProcessorGroup),
)


class Bot:
    """Orchestrates the message pipeline for one bot instance.

    Pipeline Flow:
        1. preprocessor - filtering and normalisation, run as a chain
        2. service - every service sees every message, run as a group
        3. postprocessor - transforms replies, run as a chain
        4. sender - every sender sees every reply, run as a group

    Error Handling:

        +----------------------+----------------------------------------+
        | Situation            | Effect                                 |
        +----------------------+----------------------------------------+
        | Processor discards   | Path ends silently                     |
        | Processor stops      | Path ends silently                     |
        | Processor raises     | Path ends, failure logged via log()    |
        | Unknown stage name   | UnknownStageError raised to caller     |
        | Invalid message      | InvalidMessageError raised to caller   |
        | Bad configuration    | ConfigurationError raised to caller    |
        +----------------------+----------------------------------------+

        Per-message failures never affect other paths or other messages.
    """

    def __init__(
        self,
        settings: Settings | Mapping[str, Any] | None = None,
        config_dir: Path | str | None = None,
        stages: Sequence[Stage] | None = None,
    ):
        self._config_dir = config_dir
        self._settings: Settings | None = None
        if settings is not None:
            self.configure(settings)

        self._stages = tuple(stages) if stages is not None else DEFAULT_STAGES
        names = [stage.name for stage in self._stages]
        if not names:
            raise ConfigurationError("A bot needs at least one stage")
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate stage names: {names}", {"stages": names})
        self._stage_index = {name: i for i, name in enumerate(names)}

        self._registries: dict[str, ProcessorRegistry] = {}
        self._caches: dict[str, KeyValueAtom] = {}
        self._caches_lock = threading.Lock()
        self._stores: PersistentStores | None = None
        self._background: set[asyncio.Task] = set()

    # --- Configuration ---

    @property
    def config(self) -> Settings:
        """Immutable settings, loaded from the config directory on first use."""
        if self._settings is None:
            self._settings = Settings.load(self._config_dir)
        return self._settings

    def configure(self, settings: Settings | Mapping[str, Any]) -> Settings:
        """Set the configuration explicitly."""
        if isinstance(settings, Settings):
            self._settings = settings
        elif isinstance(settings, Mapping):
            self._settings = Settings.from_mapping(settings)
        else:
            raise ConfigurationError(
                f"Cannot configure a bot from {type(settings).__name__}"
            )
        return self._settings

    @property
    def name(self) -> str:
        return self.config.bot.name

    @property
    def command_prefix(self) -> str:
        return self.config.bot.command_prefix

    # --- Stages and registration ---

    @property
    def stages(self) -> tuple[Stage, ...]:
        return self._stages

    @property
    def stage_names(self) -> list[str]:
        return [stage.name for stage in self._stages]

    def _stage_position(self, name: str) -> int:
        try:
            return self._stage_index[name]
        except KeyError:
            raise UnknownStageError(name, self.stage_names) from None

    def registry(self, stage: str) -> ProcessorRegistry:
        """Get the registry for a stage, creating it on first access."""
        self._stage_position(stage)
        if stage not in self._registries:
            self._registries[stage] = ProcessorRegistry(stage)
        return self._registries[stage]

    @property
    def preprocessor(self) -> ProcessorRegistry:
        return self.registry(PREPROCESSOR)

    @property
    def service(self) -> ProcessorRegistry:
        return self.registry(SERVICE)

    @property
    def postprocessor(self) -> ProcessorRegistry:
        return self.registry(POSTPROCESSOR)

    @property
    def sender(self) -> ProcessorRegistry:
        return self.registry(SENDER)

    def use(self, bundle: Any, *args: Any, **kwargs: Any) -> Any:
        """Let a bundle register its processors into this bot.

        A bundle is any object (module, class, instance) exposing
        ``register_into(bot, *args, **kwargs)``.
        """
        register_into = getattr(bundle, "register_into", None)
        if not callable(register_into):
            raise BundleError(
                f"{bundle!r} cannot be used: it has no register_into(bot) entry point"
            )
        logger.info(f"Using bundle {getattr(bundle, '__name__', bundle)!r}")
        return register_into(self, *args, **kwargs)

    # --- Message processing ---

    def validate(self, message: Any) -> Message:
        """Check a message at the pipeline entry boundary and freeze it."""
        if not isinstance(message, Mapping):
            raise InvalidMessageError(
                f"Messages must be mappings, got {type(message).__name__}"
            )
        bad_keys = [k for k in message if not isinstance(k, str)]
        if bad_keys:
            raise InvalidMessageError(
                f"Message keys must be strings: {bad_keys!r}", {"keys": bad_keys}
            )
        missing = [f for f in self.config.bot.required_fields if message.get(f) is None]
        if missing:
            raise InvalidMessageError(
                f"Message is missing required fields: {', '.join(missing)}",
                {"missing": missing},
            )
        return as_message(message)

    def build_stage(self, stage: str) -> ProcessorChain | ProcessorGroup:
        """Build a chain or group from the current contents of a stage's registry."""
        position = self._stage_position(stage)
        return self._stages[position].kind(self.registry(stage).list())

    async def accept(self, message: Any, stage: str | None = None) -> None:
        """Run a message through the pipeline.

        Args:
            message: The inbound message (any string-keyed mapping).
            stage: Stage to start at; defaults to the first stage. Messages
                that originate mid-pipeline (e.g. direct sends) start later.

        Raises:
            UnknownStageError: If ``stage`` is not one of the bot's stages.
            InvalidMessageError: If the message fails entry validation.

        Returns once every path spawned by the message has finished.
        """
        position = self._stage_position(stage) if stage is not None else 0
        frozen = self.validate(message)
        await self._run_stage(position, frozen)

    async def _run_stage(self, position: int, message: Message) -> None:
        stage = self._stages[position]
        composition = self.build_stage(stage.name)

        if position + 1 < len(self._stages):
            async def forward(output: Message) -> None:
                await self._run_stage(position + 1, output)
        else:
            def forward(output: Message) -> None:
                logger.debug(f"Message left the pipeline: {output!r}")

        await composition.call(self, message, forward)

    def submit(self, message: Any, stage: str | None = None) -> asyncio.Task:
        """Start processing a message in the background.

        Validation happens immediately so setup errors still reach the
        caller. Returns the task running the pipeline.
        """
        if stage is not None:
            self._stage_position(stage)
        frozen = self.validate(message)
        task = asyncio.create_task(self.accept(frozen, stage))
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Background processing failed: {task.exception()!r}")

    async def drain(self) -> None:
        """Wait for every message submitted in the background to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # --- Logging ---

    def log(self, message: str, level: int = logging.ERROR) -> None:
        """Log a message on behalf of a processor or the pipeline."""
        logger.log(level, message)

    # --- Caches and stores ---

    @property
    def caches(self) -> dict[str, KeyValueAtom]:
        """Snapshot of the caches created so far."""
        with self._caches_lock:
            return dict(self._caches)

    def cache(self, key: str) -> KeyValueAtom:
        """Get the ephemeral cache cell for ``key``, creating it on first use.

        The same cell is returned for the same key for the bot's lifetime.
        """
        with self._caches_lock:
            atom = self._caches.get(key)
            if atom is None:
                atom = self._caches[key] = KeyValueAtom()
            return atom

    def clear_cache(self, key: str | None = None) -> None:
        """Drop one cache (or all of them)."""
        with self._caches_lock:
            if key is None:
                self._caches.clear()
            else:
                self._caches.pop(key, None)

    @property
    def stores(self) -> PersistentStores:
        """The persistent store adapter, created on first use."""
        if self._stores is None:
            self._stores = PersistentStores(self.config.storage)
        return self._stores

    async def store(self, key: str) -> KeyValueAtom:
        """Get the persistent store cell for ``key``.

        Raises:
            ConfigurationError: If no store path is configured.
        """
        return await self.stores.get(key)

    # --- Lifecycle ---

    async def close(self) -> None:
        """Finish background work, flush stores and release resources."""
        await self.drain()
        if self._stores is not None:
            stores, self._stores = self._stores, None
            await stores.close()

    async def __aenter__(self) -> "Bot":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
