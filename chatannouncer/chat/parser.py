"""Extraction of chat messages from chat source output.

The chat source has no fixed wire format. Each line is tried against a
prioritized chain of decoders; the first one that recognizes the line wins:

1. JSON records that declare themselves a message.
2. ``New message from <user>: <text>`` lines.
3. ``<word>: <text>`` lines (best effort).

Lines none of them recognize are diagnostics and are dropped.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable

from chatannouncer.chat.event import ParsedMessage
from chatannouncer.utils.logging import get_logger

log = get_logger("chat.parser")

MESSAGE_TYPES = frozenset({"message", "chat", "chat_message"})

# Word tokens that start log lines rather than chat lines
DIAGNOSTIC_TOKENS = frozenset(
    {"info", "debug", "warn", "warning", "error", "trace", "fatal", "log", "http", "https"}
)

_NEW_MESSAGE_RE = re.compile(r"new message from\s+(?P<user>.+?)\s*:\s*(?P<text>.+)", re.IGNORECASE)
_COLON_PAIR_RE = re.compile(r"^\s*(?P<user>\w+)\s*:\s*(?P<text>.+)$")

Decoder = Callable[[str], "ParsedMessage | None"]


def _clean(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def decode_json_record(line: str) -> ParsedMessage | None:
    """Decode a self-describing JSON message record.

    The record must be a JSON object whose ``type`` names a chat message and
    which carries non-empty ``user`` and ``text`` fields.
    """
    stripped = line.strip()
    if not stripped.startswith("{"):
        return None
    try:
        record = json.loads(stripped)
    except ValueError:
        return None
    if not isinstance(record, dict) or record.get("type") not in MESSAGE_TYPES:
        return None

    user = _clean(record.get("user"))
    text = _clean(record.get("text"))
    if not user or not text:
        return None

    raw_id = record.get("id", record.get("message_id"))
    message_id = str(raw_id) if raw_id not in (None, "") else None
    return ParsedMessage(user, text, message_id)


def decode_new_message(line: str) -> ParsedMessage | None:
    """Decode a ``New message from <user>: <text>`` line."""
    match = _NEW_MESSAGE_RE.search(line)
    if match is None:
        return None
    user = match.group("user").strip()
    text = match.group("text").strip()
    if not user or not text:
        return None
    return ParsedMessage(user, text)


def decode_colon_pair(line: str) -> ParsedMessage | None:
    """Decode a ``<word>: <text>`` line.

    Lines whose leading token is a log level or URL scheme are ignored.
    """
    match = _COLON_PAIR_RE.match(line)
    if match is None:
        return None
    user = match.group("user")
    if user.lower() in DIAGNOSTIC_TOKENS:
        return None
    text = match.group("text").strip()
    if not text:
        return None
    return ParsedMessage(user, text)


DECODERS: tuple[Decoder, ...] = (decode_json_record, decode_new_message, decode_colon_pair)


def parse_line(line: str, decoders: tuple[Decoder, ...] = DECODERS) -> ParsedMessage | None:
    """Run *line* through the decoder chain.

    Returns:
        The first decoder result, or None if no decoder recognizes the line.
    """
    if not line.strip():
        return None
    for decoder in decoders:
        try:
            result = decoder(line)
        except Exception as exc:
            log.debug("Decoder %s failed on %r: %s", decoder.__name__, line[:80], exc)
            continue
        if result is not None:
            return result
    return None


class OutputLineParser:
    """Incremental parser for raw chat source output.

    Chunks may contain several lines and may end mid-line; the unterminated
    tail is kept until the next chunk (or :meth:`flush`) completes it.

    Args:
        decoders: Decoder chain to apply to every complete line.
    """

    def __init__(self, decoders: tuple[Decoder, ...] = DECODERS):
        self._decoders = decoders
        self._pending = ""

    def feed(self, chunk: str) -> list[ParsedMessage]:
        """Parse all complete lines in *chunk*."""
        data = self._pending + chunk
        lines = data.splitlines(keepends=True)
        if lines and not lines[-1].endswith(("\n", "\r")):
            self._pending = lines.pop()
        else:
            self._pending = ""
        return self._parse_lines(lines)

    def flush(self) -> list[ParsedMessage]:
        """Parse the buffered tail, if any."""
        tail, self._pending = self._pending, ""
        return self._parse_lines([tail]) if tail else []

    def _parse_lines(self, lines: list[str]) -> list[ParsedMessage]:
        messages = []
        for line in lines:
            parsed = parse_line(line.rstrip("\r\n"), self._decoders)
            if parsed is not None:
                messages.append(parsed)
        return messages
