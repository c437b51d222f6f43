"""Tests for the bot orchestrator."""

import types

import pytest

from chatpipe.bot import DEFAULT_STAGES, Bot, Stage
from chatpipe.core.config import Settings
from chatpipe.core.exceptions import (
    BundleError,
    ConfigurationError,
    InvalidMessageError,
    UnknownStageError,
)
from chatpipe.core.key_value_atom import KeyValueAtom
from chatpipe.pipeline.group import ProcessorGroup
from chatpipe.pipeline.processors import Preprocessor, Sender
from chatpipe.services.base import Service, on_message


def tagging(stage):
    """A processor that records the current count under its stage name, then increments it."""
    def processor(bot, message, emit):
        count = message["count"]
        emit(message.evolve(**{stage: count, "count": count + 1}))
    processor.__name__ = f"tag_{stage}"
    return processor


def recording_sender(sent):
    def sender(bot, message, emit):
        sent.append(message)
    return sender


class TestPipeline:
    """End-to-end tests of Bot.accept."""

    @pytest.mark.asyncio
    async def test_message_visits_every_stage(self, bot):
        """Test the preprocessor -> service -> postprocessor -> sender path."""
        final = []

        def record_sender(bot, message, emit):
            count = message["count"]
            final.append(message.evolve(sender=count))

        bot.preprocessor.register(tagging("preprocessor"))
        bot.service.register(tagging("service"))
        bot.postprocessor.register(tagging("postprocessor"))
        bot.sender.register(record_sender)

        await bot.accept({"count": 0})

        assert final == [{"count": 3, "preprocessor": 0, "service": 1, "postprocessor": 2, "sender": 3}]

    @pytest.mark.asyncio
    async def test_empty_stages_pass_messages_on(self, bot):
        """Test that empty chains pass messages on and an empty service group ends them."""
        sent = []
        bot.sender.register(recording_sender(sent))

        await bot.accept({"text": "hi"})

        # The service stage is a group: with no services nothing reaches senders
        assert sent == []

        bot.service.register(lambda bot, message, emit: emit(message))
        await bot.accept({"text": "hi"})

        assert sent == [{"text": "hi"}]

    @pytest.mark.asyncio
    async def test_services_fan_out_to_every_sender(self, bot):
        """Test that each reply reaches each sender."""
        first, second = [], []

        class Echo(Service):
            @on_message
            def echo(self, message):
                return [message["text"], message["text"].upper()]

        bot.use(Echo)
        bot.sender.register(recording_sender(first))
        bot.sender.register(recording_sender(second))

        await bot.accept({"service": "irc", "group": "#a", "text": "hi"})

        assert sorted(m["text"] for m in first) == ["HI", "hi"]
        assert sorted(m["text"] for m in second) == ["HI", "hi"]

    @pytest.mark.asyncio
    async def test_start_at_later_stage(self, bot):
        """Test that a message can enter directly at the sender stage."""
        sent = []
        bot.preprocessor.register(tagging("preprocessor"))
        bot.sender.register(recording_sender(sent))

        await bot.accept({"count": 0}, stage="sender")

        assert sent == [{"count": 0}]

    @pytest.mark.asyncio
    async def test_unknown_stage(self, bot):
        """Test that starting at an unknown stage raises."""
        with pytest.raises(UnknownStageError) as exc_info:
            await bot.accept({"count": 0}, stage="nope")

        assert exc_info.value.stage == "nope"
        assert "preprocessor" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_failures_are_logged_not_raised(self, bot, monkeypatch):
        """Test that a raising processor ends only its own path."""
        logged = []
        monkeypatch.setattr(bot, "log", lambda text, level=None: logged.append(text))
        sent = []

        def explode(bot, message, emit):
            raise RuntimeError("preprocess failed")

        bot.preprocessor.register(explode)
        bot.service.register(lambda bot, message, emit: emit(message))
        bot.sender.register(recording_sender(sent))

        await bot.accept({"test": True})

        assert sent == []
        assert len(logged) == 1
        assert "=> message = {'test': True}" in logged[0]

    @pytest.mark.asyncio
    async def test_preprocessor_stop(self, bot):
        """Test that a preprocessor can filter messages out."""
        sent = []

        class OnlyText(Preprocessor):
            def process(self, message):
                if not message.get("text"):
                    return self.stop_processing()
                return message

        bot.use(OnlyText)
        bot.service.register(lambda bot, message, emit: emit(message))
        bot.sender.register(recording_sender(sent))

        await bot.accept({"other": 1})
        await bot.accept({"text": "kept"})

        assert sent == [{"text": "kept"}]

    @pytest.mark.asyncio
    async def test_registry_changes_apply_to_later_messages(self, bot):
        """Test that each message snapshots the registries when it enters a stage."""
        sent = []
        bot.service.register(lambda bot, message, emit: emit(message))
        bot.sender.register(recording_sender(sent))

        await bot.accept({"n": 1})

        class Marker(Sender):
            def process(self, message):
                sent.append("marker")
                return self.stop_processing()

        bot.use(Marker)
        await bot.accept({"n": 2})

        assert sent == [{"n": 1}, {"n": 2}, "marker"]


class TestValidation:
    """Tests for the pipeline entry boundary."""

    @pytest.mark.asyncio
    async def test_rejects_non_mappings(self, bot):
        """Test that only mappings are accepted."""
        with pytest.raises(InvalidMessageError):
            await bot.accept("hello")

    @pytest.mark.asyncio
    async def test_rejects_non_string_keys(self, bot):
        """Test that message keys must be strings."""
        with pytest.raises(InvalidMessageError):
            await bot.accept({1: "x"})

    @pytest.mark.asyncio
    async def test_required_fields(self, bot):
        """Test that configured required fields are enforced."""
        bot.configure({"bot": {"required_fields": ["service", "group", "text"]}})

        with pytest.raises(InvalidMessageError) as exc_info:
            await bot.accept({"service": "irc", "text": "hi"})

        assert exc_info.value.details["missing"] == ["group"]
        await bot.accept({"service": "irc", "group": "#a", "text": "hi"})

    def test_validate_freezes(self, bot):
        """Test that validation returns a frozen message."""
        message = bot.validate({"text": "hi", "tags": ["a"]})

        assert message["tags"] == ("a",)


class TestSubmit:
    """Tests for background processing."""

    @pytest.mark.asyncio
    async def test_submit_and_drain(self, bot):
        """Test that submitted messages are processed by drain time."""
        sent = []
        bot.service.register(lambda bot, message, emit: emit(message))
        bot.sender.register(recording_sender(sent))

        task = bot.submit({"n": 1})
        bot.submit({"n": 2})
        await bot.drain()

        assert task.done()
        assert sorted(m["n"] for m in sent) == [1, 2]

    @pytest.mark.asyncio
    async def test_submit_validates_immediately(self, bot):
        """Test that setup errors surface from submit itself."""
        with pytest.raises(InvalidMessageError):
            bot.submit(["not", "a", "mapping"])
        with pytest.raises(UnknownStageError):
            bot.submit({"n": 1}, stage="nope")

    @pytest.mark.asyncio
    async def test_close_drains(self, bot):
        """Test that closing waits for background work."""
        sent = []
        bot.service.register(lambda bot, message, emit: emit(message))
        bot.sender.register(recording_sender(sent))

        bot.submit({"n": 1})
        await bot.close()

        assert sent == [{"n": 1}]


class TestRegistration:
    """Tests for registries and bundles."""

    def test_default_stages(self, bot):
        """Test the four standard stages in order."""
        assert bot.stage_names == ["preprocessor", "service", "postprocessor", "sender"]
        assert bot.stages == DEFAULT_STAGES

    def test_registry_per_stage(self, bot):
        """Test that each stage has its own stable registry."""
        assert bot.registry("service") is bot.service
        assert bot.preprocessor is not bot.postprocessor

    def test_unknown_registry(self, bot):
        """Test that asking for an unknown stage's registry raises."""
        with pytest.raises(UnknownStageError):
            bot.registry("nope")

    def test_use_bundle_module(self, bot):
        """Test that a bundle registers through register_into with arguments."""
        def preprocess(bot, message, emit):
            emit(message)

        calls = []

        def register_into(target, *args, **kwargs):
            calls.append((args, kwargs))
            target.preprocessor.register(preprocess)
            return "registered"

        bundle = types.SimpleNamespace(register_into=register_into)

        assert bot.use(bundle, 1, flag=True) == "registered"
        assert calls == [((1,), {"flag": True})]
        assert bot.preprocessor.list() == [preprocess]

    def test_use_without_register_into(self, bot):
        """Test that objects without register_into are rejected."""
        with pytest.raises(BundleError):
            bot.use(object())

    def test_use_twice_is_idempotent(self, bot):
        """Test that registering the same class twice keeps one entry."""
        class Drop(Preprocessor):
            def process(self, message):
                return None

        bot.use(Drop)
        bot.use(Drop)

        assert bot.preprocessor.list() == [Drop]

    def test_custom_stages(self):
        """Test a bot with its own stage layout."""
        bot = Bot(settings=Settings(), stages=[Stage("in"), Stage("out", ProcessorGroup)])

        assert bot.stage_names == ["in", "out"]
        assert bot.registry("out").stage == "out"
        with pytest.raises(UnknownStageError):
            bot.service

    def test_bad_stage_layouts(self):
        """Test that empty and duplicate stage layouts are rejected."""
        with pytest.raises(ConfigurationError):
            Bot(stages=[])
        with pytest.raises(ConfigurationError):
            Bot(stages=[Stage("a"), Stage("a")])


class TestSharedState:
    """Tests for config, caches and logging."""

    def test_cache_is_stable(self, bot):
        """Test that the same key always yields the same cache."""
        cache = bot.cache("weather")

        assert isinstance(cache, KeyValueAtom)
        assert bot.cache("weather") is cache
        assert bot.cache("other") is not cache
        assert set(bot.caches) == {"weather", "other"}

    def test_clear_cache(self, bot):
        """Test dropping caches."""
        first = bot.cache("a")
        bot.cache("b")

        bot.clear_cache("a")
        assert bot.cache("a") is not first

        bot.clear_cache()
        assert bot.caches == {}

    def test_config_from_mapping(self, bot):
        """Test configuring the bot from a plain mapping."""
        bot.configure({"bot": {"name": "mapped", "command_prefix": "!"}})

        assert bot.name == "mapped"
        assert bot.command_prefix == "!"

    def test_configure_rejects_other_types(self, bot):
        """Test that nonsense configuration is rejected."""
        with pytest.raises(ConfigurationError):
            bot.configure(42)

    def test_config_loads_lazily(self, temp_dir):
        """Test that settings.yaml is read on first access."""
        bot = Bot(config_dir=temp_dir)
        (temp_dir / "settings.yaml").write_text("bot:\n  name: lazy\n")

        assert bot.name == "lazy"

    def test_log(self, bot, caplog):
        """Test that bot.log writes through the logging module."""
        with caplog.at_level("ERROR", logger="chatpipe.bot"):
            bot.log("something broke")

        assert "something broke" in caplog.text
