"""Deduplicating intake queue and the pipeline state it lives in.

All mutation happens on the event loop thread: the chat source readers
produce, the processor tick consumes.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum

from chatannouncer.chat.event import ChatEvent
from chatannouncer.utils.logging import get_logger

log = get_logger("chat.intake")


class ProcessorState(Enum):
    """Whether the processor has an event in flight."""

    IDLE = "idle"
    BUSY = "busy"


@dataclass
class PipelineState:
    """Mutable state shared by intake, processor and status reporting.

    Attributes:
        queue: Events awaiting processing, in arrival order.
        processed_ids: Ids already handed to the processor. Never pruned.
        queued_ids: Ids currently waiting in ``queue``.
        processor_state: Idle or Busy.
        speaking: True while speech audio is playing.
    """

    queue: deque[ChatEvent] = field(default_factory=deque)
    processed_ids: set[str] = field(default_factory=set)
    queued_ids: set[str] = field(default_factory=set)
    processor_state: ProcessorState = ProcessorState.IDLE
    speaking: bool = False

    @property
    def queue_length(self) -> int:
        return len(self.queue)

    @property
    def processed_count(self) -> int:
        return len(self.processed_ids)

    @property
    def is_processing(self) -> bool:
        return self.processor_state is ProcessorState.BUSY

    def has_seen(self, event_id: str) -> bool:
        """Return True if *event_id* is queued or already processed."""
        return event_id in self.processed_ids or event_id in self.queued_ids

    def snapshot(self) -> dict:
        """Status fields for reporting."""
        return {
            "queue_length": self.queue_length,
            "is_processing": self.is_processing,
            "currently_speaking": self.speaking,
            "processed_count": self.processed_count,
        }


class IntakeQueue:
    """FIFO queue of chat events that drops anything seen before.

    Args:
        state: Pipeline state to operate on. A fresh one is created if None.
    """

    def __init__(self, state: PipelineState | None = None):
        self.state = state if state is not None else PipelineState()

    def __len__(self) -> int:
        return self.state.queue_length

    def enqueue(self, event: ChatEvent) -> bool:
        """Append *event* unless its id is queued or processed.

        Returns:
            True if the event was queued, False if it was a duplicate.
        """
        if self.state.has_seen(event.id):
            log.debug("Dropping duplicate comment %s from %s", event.id, event.user)
            return False
        self.state.queue.append(event)
        self.state.queued_ids.add(event.id)
        log.info("Queued comment from %s: %s", event.user, event.text[:80])
        return True

    def submit(self, user: str, text: str, message_id: str | None = None) -> bool:
        """Build a :class:`ChatEvent` and enqueue it.

        Returns:
            True if queued, False for duplicates or empty fields.
        """
        try:
            event = ChatEvent.create(user, text, message_id)
        except ValueError as exc:
            log.debug("Rejecting comment: %s", exc)
            return False
        return self.enqueue(event)

    def dequeue(self) -> ChatEvent | None:
        """Pop the oldest event, or return None when the queue is empty."""
        if not self.state.queue:
            return None
        return self.state.queue.popleft()

    def mark_processed(self, event: ChatEvent) -> None:
        """Record *event* as handed to the processor."""
        self.state.queued_ids.discard(event.id)
        self.state.processed_ids.add(event.id)
