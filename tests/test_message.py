"""Tests for immutable message records."""

import pickle

import pytest

from chatpipe.models.message import FrozenMap, Message, as_message, freeze, thaw


class TestMessage:
    """Tests for Message and FrozenMap."""

    def test_behaves_like_a_mapping(self):
        """Test mapping access and equality with plain dicts."""
        message = Message({"service": "irc", "group": "#a"}, text="hi")

        assert message["text"] == "hi"
        assert message.get("missing") is None
        assert dict(message) == {"service": "irc", "group": "#a", "text": "hi"}
        assert message == {"service": "irc", "group": "#a", "text": "hi"}
        assert len(message) == 3

    def test_chat_fields(self):
        """Test the service, group and text accessors."""
        message = Message(service="slack", group="general", text="yo")

        assert (message.service, message.group, message.text) == ("slack", "general", "yo")
        assert Message().text is None

    def test_is_immutable(self):
        """Test that neither items nor attributes can be changed."""
        message = Message(text="hi")

        with pytest.raises(TypeError):
            message["text"] = "bye"
        with pytest.raises(AttributeError):
            message.extra = 1

    def test_nested_values_are_frozen(self):
        """Test that nested containers are frozen too."""
        message = Message(meta={"tags": ["a", "b"]}, ids={1, 2})

        assert isinstance(message["meta"], FrozenMap)
        assert message["meta"]["tags"] == ("a", "b")
        assert message["ids"] == frozenset({1, 2})

    def test_input_is_copied(self):
        """Test that later changes to the source dict do not leak in."""
        source = {"text": "hi", "meta": {"n": 1}}
        message = Message(source)
        source["text"] = "changed"
        source["meta"]["n"] = 2

        assert message["text"] == "hi"
        assert message["meta"]["n"] == 1

    def test_evolve_merge_without(self):
        """Test building new messages from old ones."""
        message = Message(text="hi", count=1)

        evolved = message.evolve(count=2)
        merged = message.merge({"extra": True})
        trimmed = message.without("count")

        assert message["count"] == 1
        assert evolved == {"text": "hi", "count": 2}
        assert merged == {"text": "hi", "count": 1, "extra": True}
        assert trimmed == {"text": "hi"}
        assert isinstance(evolved, Message)

    def test_reply(self):
        """Test addressing a reply to the original service and group."""
        message = Message(service="irc", group="#a", text="ping", user="bob")

        assert message.reply("pong") == {"service": "irc", "group": "#a", "text": "pong"}

    def test_to_dict_and_thaw(self):
        """Test converting back to plain, mutable data."""
        message = Message(meta={"tags": ["a"]})

        plain = message.to_dict()
        plain["meta"]["tags"].append("b")

        assert plain == {"meta": {"tags": ["a", "b"]}}
        assert thaw(freeze({"s": {1}})) == {"s": {1}}

    def test_as_message_reuses_messages(self):
        """Test that freezing an existing message is free."""
        message = Message(text="hi")

        assert as_message(message) is message
        assert as_message({"text": "hi"}) == message

    def test_pickle(self):
        """Test that messages survive pickling."""
        message = Message(text="hi", meta={"n": 1})

        restored = pickle.loads(pickle.dumps(message))

        assert restored == message
        assert isinstance(restored, Message)

    def test_repr(self):
        """Test the readable representation."""
        assert repr(Message(text="hi")) == "Message({'text': 'hi'})"
