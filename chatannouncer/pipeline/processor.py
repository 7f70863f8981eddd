"""Sequential processor: drains the intake queue one comment at a time.

A periodic tick checks whether the processor is idle and the queue holds a
comment. If so the comment is taken, marked processed (at-most-once), and a
single task generates and announces the reply. The next comment is only
taken once that task has finished, so replies never overlap and are spaced
at least one tick apart.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from chatannouncer.chat.event import ChatEvent
from chatannouncer.chat.intake import IntakeQueue, ProcessorState
from chatannouncer.utils.logging import get_logger

log = get_logger("pipeline.processor")

ResponseHook = Callable[[ChatEvent, str], Any]


class SequentialProcessor:
    """Single-flight consumer of the intake queue.

    Args:
        intake: Queue to drain; its pipeline state holds the Idle/Busy flag.
        generator: Object with a blocking ``generate(event) -> str``.
        announcer: Object with a coroutine ``announce(text, event)``.
        interval: Seconds between ticks.
        on_response: Optional hook called with ``(event, reply)`` before
            the reply is announced.
    """

    def __init__(
        self,
        intake: IntakeQueue,
        generator,
        announcer,
        interval: float = 1.0,
        on_response: ResponseHook | None = None,
    ):
        if interval <= 0:
            raise ValueError("Processor interval must be positive.")
        self.intake = intake
        self.generator = generator
        self.announcer = announcer
        self.interval = interval
        self.on_response = on_response
        self._loop_task: asyncio.Task | None = None
        self._current: asyncio.Task | None = None

    @property
    def state(self) -> ProcessorState:
        return self.intake.state.processor_state

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def start(self) -> None:
        """Start ticking on the running event loop. Idempotent."""
        if self.running:
            return
        self._loop_task = asyncio.create_task(self.run(), name="comment-processor")
        log.info("Queue processor started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        """Stop ticking and cancel the in-flight comment, if any."""
        for task in (self._loop_task, self._current):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._loop_task = None
        self._current = None
        self.intake.state.processor_state = ProcessorState.IDLE

    async def run(self) -> None:
        """Tick forever."""
        while True:
            try:
                self.tick()
            except Exception:
                log.exception("Processor tick failed")
            await asyncio.sleep(self.interval)

    def tick(self) -> asyncio.Task | None:
        """Start processing the next comment if idle.

        Returns:
            The task processing the comment, or None if nothing was started.
        """
        state = self.intake.state
        if state.processor_state is ProcessorState.BUSY:
            return None
        event = self.intake.dequeue()
        if event is None:
            return None

        state.processor_state = ProcessorState.BUSY
        self.intake.mark_processed(event)
        self._current = asyncio.create_task(self.process(event), name=f"comment-{event.id[:8]}")
        return self._current

    async def process(self, event: ChatEvent) -> None:
        """Generate and announce the reply for *event*; always ends Idle."""
        try:
            log.info("Processing comment from %s: %s", event.user, event.text[:80])
            reply = await asyncio.to_thread(self.generator.generate, event)
            if self.on_response is not None:
                result = self.on_response(event, reply)
                if inspect.isawaitable(result):
                    await result
            await self.announcer.announce(reply, event)
        except asyncio.CancelledError:
            raise
        except Exception:
            log.exception("Error processing comment %s", event.id)
        finally:
            self.intake.state.processor_state = ProcessorState.IDLE
