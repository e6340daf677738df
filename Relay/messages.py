"""Vendor-neutral conversation model shared by every adapter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from .errors import MalformedRequest

SYSTEM_SEPARATOR = "\n\n"


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class CanonicalMessage:
    role: Role
    content: str

    def to_dict(self) -> dict:
        return {"role": self.role.value, "content": self.content}


def _coerce_role(value: Any) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        raise MalformedRequest(f"Unsupported message role: {value!r}") from None


def messages_from_dicts(items: Iterable[Mapping[str, Any]]) -> List[CanonicalMessage]:
    """Build canonical messages from {"role", "content"} mappings."""
    messages: List[CanonicalMessage] = []
    for item in items:
        content = item.get("content")
        if not isinstance(content, str):
            raise MalformedRequest("Message content must be a string")
        messages.append(CanonicalMessage(role=_coerce_role(item.get("role")), content=content))
    return messages


def validate_messages(messages: Sequence[CanonicalMessage]) -> None:
    """
    Reject conversations that no vendor could accept.

    - the sequence must not be empty
    - every message must carry a known role and non-blank content
    - at least one message must be a user or assistant turn
    """
    if not messages:
        raise MalformedRequest("Conversation must contain at least one message")

    for index, message in enumerate(messages):
        if not isinstance(message.role, Role):
            raise MalformedRequest(f"Message {index} has unsupported role {message.role!r}")
        if not isinstance(message.content, str) or not message.content.strip():
            raise MalformedRequest(f"Message {index} ({message.role.value}) has empty content")

    if not any(m.role is not Role.SYSTEM for m in messages):
        raise MalformedRequest("Conversation must contain at least one user or assistant message")


def merge_system(messages: Sequence[CanonicalMessage]) -> str:
    """Concatenate all system contents in their original order."""
    return SYSTEM_SEPARATOR.join(m.content for m in messages if m.role is Role.SYSTEM)


def split_system(
    messages: Sequence[CanonicalMessage],
) -> Tuple[str, List[CanonicalMessage]]:
    """Return (merged system text, non-system messages in order)."""
    turns = [m for m in messages if m.role is not Role.SYSTEM]
    return merge_system(messages), turns


def last_user_content(messages: Sequence[CanonicalMessage]) -> str:
    for message in reversed(messages):
        if message.role is Role.USER:
            return message.content
    return ""
