"""Speech announcer with self-disabling audio.

Observers always receive the text that is about to be spoken. Audio is
best effort: the first synthesis failure or timeout switches audio off for
the rest of the process lifetime, and no call ever waits longer than the
configured timeout for the speech engine.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from enum import Enum
from typing import Any, Protocol

from chatannouncer.chat.event import ChatEvent
from chatannouncer.chat.intake import PipelineState
from chatannouncer.utils.logging import get_logger

log = get_logger("tts.announcer")

Observer = Callable[[str, "ChatEvent | None"], Any]


def _log_cancel_failure(future: asyncio.Future) -> None:
    if not future.cancelled() and future.exception() is not None:
        log.warning("Cancelling speech engine failed: %s", future.exception())


class AnnouncerState(Enum):
    """Whether speech synthesis is still attempted."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class SpeechEngine(Protocol):
    """Blocking speech engine; ``cancel`` is optional."""

    def speak(self, text: str) -> None: ...


class SpeechAnnouncer:
    """Announces replies to observers and, while enabled, out loud.

    Args:
        engine: Speech engine, or None to run without audio.
        timeout: Hard limit in seconds for one utterance.
        state: Pipeline state whose ``speaking`` flag is maintained.
    """

    def __init__(
        self,
        engine: SpeechEngine | None,
        timeout: float = 5.0,
        state: PipelineState | None = None,
    ):
        self.engine = engine
        self.timeout = timeout
        self._pipeline_state = state
        self._state = AnnouncerState.ENABLED if engine is not None else AnnouncerState.DISABLED
        self._observers: list[Observer] = []
        self._speaking = False

    @property
    def state(self) -> AnnouncerState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is AnnouncerState.ENABLED

    @property
    def speaking(self) -> bool:
        return self._speaking

    def add_observer(self, observer: Observer) -> None:
        """Register a callable receiving ``(text, event)`` for every announcement."""
        self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        """Unregister *observer*; unknown observers are ignored."""
        if observer in self._observers:
            self._observers.remove(observer)

    def disable(self, reason: str) -> None:
        """Switch audio off for good."""
        if self._state is AnnouncerState.DISABLED:
            return
        self._state = AnnouncerState.DISABLED
        log.warning("Speech disabled: %s", reason)

    async def announce(self, text: str, event: ChatEvent | None = None) -> bool:
        """Notify observers of *text*, then try to speak it.

        Returns:
            True if audio played to completion, False otherwise.
        """
        log.info("Speaking: %s", text[:120])
        await self._notify(text, event)

        if self._state is AnnouncerState.DISABLED:
            return False

        self._set_speaking(True)
        try:
            await asyncio.wait_for(asyncio.to_thread(self.engine.speak, text), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.disable(f"synthesis exceeded {self.timeout}s")
            self._cancel_engine()
            return False
        except Exception as exc:
            self.disable(f"synthesis failed: {exc}")
            return False
        finally:
            self._set_speaking(False)

        log.debug("Finished speaking")
        return True

    async def _notify(self, text: str, event: ChatEvent | None) -> None:
        for observer in list(self._observers):
            try:
                result = observer(text, event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                log.warning("Announcement observer %r failed: %s", observer, exc)

    def _cancel_engine(self) -> None:
        """Ask the engine to stop in the background; the caller does not wait."""
        cancel = getattr(self.engine, "cancel", None)
        if cancel is None:
            return
        future = asyncio.get_running_loop().run_in_executor(None, cancel)
        future.add_done_callback(_log_cancel_failure)

    def _set_speaking(self, value: bool) -> None:
        self._speaking = value
        if self._pipeline_state is not None:
            self._pipeline_state.speaking = value
