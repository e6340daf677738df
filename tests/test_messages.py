import pytest

from Relay.errors import MalformedRequest
from Relay.messages import (
    CanonicalMessage,
    Role,
    last_user_content,
    merge_system,
    messages_from_dicts,
    split_system,
    validate_messages,
)


class TestValidation:
    def test_valid_conversation_passes(self, conversation):
        validate_messages(conversation)

    def test_empty_sequence_rejected(self):
        with pytest.raises(MalformedRequest):
            validate_messages([])

    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    def test_blank_content_rejected(self, content):
        with pytest.raises(MalformedRequest, match="empty content"):
            validate_messages([CanonicalMessage(Role.USER, content)])

    def test_only_system_messages_rejected(self):
        with pytest.raises(MalformedRequest, match="user or assistant"):
            validate_messages(
                [CanonicalMessage(Role.SYSTEM, "a"), CanonicalMessage(Role.SYSTEM, "b")]
            )

    def test_assistant_only_is_enough(self):
        validate_messages([CanonicalMessage(Role.ASSISTANT, "prefill")])


class TestFromDicts:
    def test_roles_are_normalised(self):
        messages = messages_from_dicts(
            [{"role": "System", "content": "be brief"}, {"role": " user ", "content": "hi"}]
        )
        assert [m.role for m in messages] == [Role.SYSTEM, Role.USER]

    def test_unknown_role_rejected(self):
        with pytest.raises(MalformedRequest, match="role"):
            messages_from_dicts([{"role": "tool", "content": "x"}])

    def test_non_string_content_rejected(self):
        with pytest.raises(MalformedRequest):
            messages_from_dicts([{"role": "user", "content": None}])


def test_merge_system_keeps_order(conversation):
    assert merge_system(conversation) == "SYSTEM ONE\n\nSYSTEM TWO\n\nSYSTEM THREE"


def test_split_system_returns_turns_in_order(conversation):
    system, turns = split_system(conversation)
    assert system.startswith("SYSTEM ONE")
    assert [m.content for m in turns] == ["Hello", "Hi", "Do X"]
    assert all(m.role is not Role.SYSTEM for m in turns)


def test_last_user_content(conversation):
    assert last_user_content(conversation) == "Do X"
    assert last_user_content([CanonicalMessage(Role.ASSISTANT, "x")]) == ""
