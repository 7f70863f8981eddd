"""Chat monitor: wires chat source, intake, processor and announcer together.

The monitor owns the pipeline state. Chat source output is parsed and
queued as it arrives; the processor drains the queue on its own cadence.
"""

from __future__ import annotations

from chatannouncer.chat.event import ChatEvent
from chatannouncer.chat.intake import IntakeQueue, PipelineState
from chatannouncer.chat.parser import OutputLineParser
from chatannouncer.pipeline.processor import SequentialProcessor
from chatannouncer.source.chat_source import ChatSource, RestartPolicy
from chatannouncer.tts.announcer import Observer, SpeechAnnouncer
from chatannouncer.utils.logging import get_logger

log = get_logger("monitor")


class ChatMonitor:
    """Controller for monitoring one token's chat at a time.

    Args:
        generator: Response generator (``generate(event) -> str``).
        announcer: Speech announcer; its ``speaking`` flag feeds the status.
        state: Pipeline state shared with the announcer.
        source_command: Chat source command prefix.
        restart_policy: Restart policy for the chat source.
        interval: Processor tick interval in seconds.
        on_response: Optional hook ``(event, reply)`` for each reply.
    """

    def __init__(
        self,
        generator,
        announcer: SpeechAnnouncer,
        state: PipelineState | None = None,
        source_command: list[str] | tuple[str, ...] | None = None,
        restart_policy: RestartPolicy | None = None,
        interval: float = 1.0,
        on_response=None,
    ):
        self.state = state if state is not None else PipelineState()
        self.intake = IntakeQueue(self.state)
        self.announcer = announcer
        self.processor = SequentialProcessor(
            self.intake,
            generator,
            announcer,
            interval=interval,
            on_response=on_response,
        )
        source_kwargs = {"policy": restart_policy}
        if source_command:
            source_kwargs["command"] = source_command
        self.source = ChatSource(self.handle_output, on_eof=self.handle_eof, **source_kwargs)
        self.display_name: str | None = None
        self._parsers: dict[str, OutputLineParser] = {}

    @property
    def token(self) -> str | None:
        return self.source.token

    def add_observer(self, observer: Observer) -> None:
        """Register an observer for announced replies."""
        self.announcer.add_observer(observer)

    def remove_observer(self, observer: Observer) -> None:
        self.announcer.remove_observer(observer)

    async def start(self, token: str, display_name: str | None = None) -> str:
        """Start (or restart) monitoring *token*.

        Returns:
            Greeting for the operator.
        """
        self.display_name = display_name.strip() if display_name else None
        self._parsers.clear()
        log.info("Starting chat monitoring for %s (user: %s)", token, self.display_name or "-")
        await self.source.start(token)
        self.processor.start()
        greeting = f"Hi {self.display_name}! " if self.display_name else ""
        return f"{greeting}Starting to monitor chat for {self.source.token}..."

    async def stop(self) -> None:
        """Stop the chat source and the processor."""
        await self.source.stop()
        await self.processor.stop()
        log.info("Chat monitoring stopped")

    def handle_output(self, stream: str, text: str) -> int:
        """Parse chat source output and queue the comments in it.

        Returns:
            Number of comments newly queued.
        """
        parser = self._parsers.setdefault(stream, OutputLineParser())
        return self._queue(parser.feed(text))

    def handle_eof(self, stream: str) -> int:
        """Parse the unterminated tail of an ended stream and forget its buffer.

        A restarted chat source starts with fresh line buffers.

        Returns:
            Number of comments newly queued.
        """
        parser = self._parsers.pop(stream, None)
        if parser is None:
            return 0
        return self._queue(parser.flush())

    def _queue(self, messages) -> int:
        queued = 0
        for parsed in messages:
            try:
                event = ChatEvent.from_parsed(parsed)
            except ValueError as exc:
                log.debug("Skipping unusable message: %s", exc)
                continue
            if self.intake.enqueue(event):
                queued += 1
        return queued

    def status(self) -> dict:
        """Current queue, processor, speech and source status."""
        status = self.state.snapshot()
        status.update(
            {
                "announcer_enabled": self.announcer.enabled,
                "source_state": self.source.state.value,
                "token_address": self.source.token,
            }
        )
        return status
