"""Reply generation for chat comments.

Every comment gets a canned reply picked from one of two pools, chosen by
whether the comment uses crypto chat slang. When a generation backend is
configured it may replace the canned text with something more specific,
but only if its output looks sane. :meth:`ResponseGenerator.generate`
never raises and never returns an empty string.
"""

from __future__ import annotations

import random
from enum import Enum
from typing import Protocol

from chatannouncer.chat.event import ChatEvent
from chatannouncer.utils.logging import get_logger

log = get_logger("ai.responder")

DEFAULT_SLANG_TOKENS = (
    "gm",
    "gn",
    "wagmi",
    "ngmi",
    "lfg",
    "moon",
    "pump",
    "hodl",
    "fud",
    "ser",
    "degen",
    "ape",
    "rug",
    "bullish",
    "based",
    "wen",
    "lambo",
    "diamond hands",
)

CRYPTO_RESPONSES = (
    "WAGMI, {user}! Thanks for the energy!",
    "GM {user}, love to see you here!",
    "{user} is bullish and so am I!",
    "Diamond hands, {user}! We ride together.",
    "LFG {user}! Appreciate you being here.",
    "Ser {user}, that is the spirit!",
)

GENERIC_RESPONSES = (
    "Thanks for sharing, {user}!",
    "Interesting point, {user}!",
    "I hear you, {user}!",
    "Cool message, {user}!",
    "Nice one, {user}!",
)

FALLBACK_RESPONSE = "Thanks for the comment, {user}!"

PROMPT_TEMPLATE = (
    'User {user} says: "{text}". Draft reply: "{draft}". '
    "Improve the draft so it answers the message. Reply briefly and friendly:"
)


class ResponseKind(Enum):
    """Which canned response pool a comment maps to."""

    CRYPTO = "crypto"
    GENERIC = "generic"


class CompletionBackend(Protocol):
    """Anything that turns a prompt into text (may raise)."""

    def complete(self, prompt: str) -> str: ...


def first_sentence(text: str) -> str:
    """Cut *text* down to its first sentence, keeping the terminator."""
    text = " ".join(text.split())
    for index, char in enumerate(text):
        if char in ".!?":
            return text[: index + 1]
    return text


class ResponseGenerator:
    """Produces a spoken reply for a chat comment.

    Args:
        backend: Optional completion backend for enhanced replies.
        slang_tokens: Substrings that mark a comment as crypto chat.
        min_length: Shortest backend reply accepted (characters).
        max_length: Longest backend reply accepted (characters).
        rng: Random source for picking canned replies.
    """

    def __init__(
        self,
        backend: CompletionBackend | None = None,
        slang_tokens: tuple[str, ...] | list[str] = DEFAULT_SLANG_TOKENS,
        min_length: int = 8,
        max_length: int = 160,
        rng: random.Random | None = None,
    ):
        self.backend = backend
        self.slang_tokens = tuple(token.lower() for token in slang_tokens if token)
        self.min_length = min_length
        self.max_length = max_length
        self._rng = rng or random.Random()

    def classify(self, text: str) -> ResponseKind:
        """Pick the response pool for a comment."""
        lowered = text.lower()
        if any(token in lowered for token in self.slang_tokens):
            return ResponseKind.CRYPTO
        return ResponseKind.GENERIC

    def canned_response(self, event: ChatEvent) -> str:
        """Pick a canned reply for *event* from its pool."""
        kind = self.classify(event.text)
        pool = CRYPTO_RESPONSES if kind is ResponseKind.CRYPTO else GENERIC_RESPONSES
        return self._rng.choice(pool).format(user=event.user)

    def generate(self, event: ChatEvent) -> str:
        """Return a non-empty reply for *event*. Never raises."""
        user = getattr(event, "user", "") or "friend"
        try:
            reply = self.canned_response(event)
        except Exception as exc:
            log.error("Canned reply failed for %s: %s", user, exc)
            return FALLBACK_RESPONSE.format(user=user)

        if self.backend is not None:
            enhanced = self._enhance(event, reply)
            if enhanced is not None:
                reply = enhanced

        return reply if reply.strip() else FALLBACK_RESPONSE.format(user=user)

    def _enhance(self, event: ChatEvent, draft: str) -> str | None:
        """Ask the backend to improve *draft*; None if it fails or looks wrong."""
        prompt = PROMPT_TEMPLATE.format(user=event.user, text=event.text, draft=draft)
        try:
            raw = self.backend.complete(prompt)
        except Exception as exc:
            log.warning("Reply backend failed, using canned reply: %s", exc)
            return None

        if not isinstance(raw, str):
            log.warning("Reply backend returned %s, using canned reply", type(raw).__name__)
            return None

        text = first_sentence(raw.replace(prompt, ""))
        if len(text) < self.min_length or len(text) > self.max_length:
            log.info("Discarding backend reply of length %d: %r", len(text), text[:80])
            return None
        return text
