"""Data classes for chat messages observed from the chat source."""

from __future__ import annotations

import hashlib
import time
from dataclasses import dataclass, field
from typing import NamedTuple

_DIGEST_LENGTH = 32


class ParsedMessage(NamedTuple):
    """A chat message extracted from one line of chat source output.

    Attributes:
        user: Display name of the sender.
        text: Message body.
        message_id: Identifier supplied by the chat source, if any.
    """

    user: str
    text: str
    message_id: str | None = None


def content_id(user: str, text: str) -> str:
    """Derive a stable identity from sender and message text.

    The same ``(user, text)`` pair always yields the same id, so repeated
    sightings of one logical message collapse to a single identity.
    """
    digest = hashlib.sha256()
    digest.update(user.encode("utf-8"))
    digest.update(b"\x1f")
    digest.update(text.encode("utf-8"))
    return digest.hexdigest()[:_DIGEST_LENGTH]


@dataclass(frozen=True)
class ChatEvent:
    """One observed chat message.

    Attributes:
        id: Stable identity (provided id, or a digest of user and text).
        user: Display name of the sender (untrusted).
        text: Message body (untrusted, non-empty).
        observed_at: Monotonic capture time, used for ordering only.
    """

    id: str
    user: str
    text: str
    observed_at: float = field(default_factory=time.monotonic, compare=False)

    @classmethod
    def create(
        cls,
        user: str,
        text: str,
        message_id: str | None = None,
        observed_at: float | None = None,
    ) -> ChatEvent:
        """Build an event, trimming fields and assigning its identity.

        Raises:
            ValueError: If user or text is empty after trimming.
        """
        user = user.strip()
        text = text.strip()
        if not user:
            raise ValueError("Chat event requires a user.")
        if not text:
            raise ValueError("Chat event requires message text.")

        provided = str(message_id).strip() if message_id is not None else ""
        event_id = provided or content_id(user, text)
        if observed_at is None:
            observed_at = time.monotonic()
        return cls(id=event_id, user=user, text=text, observed_at=observed_at)

    @classmethod
    def from_parsed(cls, parsed: ParsedMessage) -> ChatEvent:
        """Build an event from a parser result."""
        return cls.create(parsed.user, parsed.text, parsed.message_id)
