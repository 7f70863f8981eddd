"""Chat source subprocess supervisor.

Spawns the external chat monitor for a token, reads its stdout and stderr
line by line and hands every line to a callback. When the process exits
on its own it is restarted with exponential backoff; after too many
consecutive failures the source gives up and reports FAILED.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from chatannouncer.exceptions import ChatSourceError
from chatannouncer.utils.logging import get_logger

log = get_logger("source.chat_source")

DEFAULT_COMMAND = ("npx", "pump-fun-chat-mcp")
_LINE_LIMIT = 1024 * 1024

OutputHandler = Callable[[str, str], None]
EndOfStreamHandler = Callable[[str], None]


class SourceState(Enum):
    """Lifecycle of the chat source subprocess."""

    STOPPED = "stopped"
    RUNNING = "running"
    RESTARTING = "restarting"
    FAILED = "failed"


@dataclass(frozen=True)
class RestartPolicy:
    """Backoff rules for restarting the chat source.

    Attributes:
        initial_delay: Delay before the first restart (seconds).
        max_delay: Upper bound for the delay.
        max_attempts: Consecutive failures before giving up (0 = never).
        stable_after: A run lasting this long resets the failure count.
    """

    initial_delay: float = 5.0
    max_delay: float = 60.0
    max_attempts: int = 10
    stable_after: float = 30.0

    def delay_for(self, attempt: int) -> float:
        """Delay before restart number *attempt* (1-based)."""
        if attempt < 1:
            raise ValueError("attempt must be >= 1")
        return min(self.initial_delay * (2 ** (attempt - 1)), self.max_delay)

    def exhausted(self, attempt: int) -> bool:
        """True if restart number *attempt* exceeds the limit."""
        return self.max_attempts > 0 and attempt > self.max_attempts


class ChatSource:
    """Keeps the chat monitor subprocess for one token alive.

    Args:
        on_output: Called with ``(stream_name, text)`` for every output line.
            Only the last line of a stream may lack its newline.
        command: Command prefix; the token address is appended.
        policy: Restart policy.
        on_eof: Called with ``stream_name`` when a stream of the current
            process ends, before any restart.
    """

    def __init__(
        self,
        on_output: OutputHandler,
        command: Sequence[str] = DEFAULT_COMMAND,
        policy: RestartPolicy | None = None,
        on_eof: EndOfStreamHandler | None = None,
    ):
        if not command:
            raise ChatSourceError("Chat source command must not be empty.")
        self.on_output = on_output
        self.on_eof = on_eof
        self.command = list(command)
        self.policy = policy or RestartPolicy()
        self.token: str | None = None
        self.state = SourceState.STOPPED
        self.attempts = 0
        self.last_exit_code: int | None = None
        self._process: asyncio.subprocess.Process | None = None
        self._supervisor: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._supervisor is not None and not self._supervisor.done()

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    async def start(self, token: str) -> None:
        """Start monitoring *token*, replacing any running subprocess."""
        token = token.strip()
        if not token:
            raise ChatSourceError("A token address is required.")
        await self.stop()
        self.token = token
        self.attempts = 0
        self._supervisor = asyncio.create_task(self._supervise(), name="chat-source")

    async def stop(self) -> None:
        """Terminate the subprocess and stop restarting it."""
        self.token = None
        supervisor, self._supervisor = self._supervisor, None
        await self._terminate()
        if supervisor is not None and not supervisor.done():
            supervisor.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await supervisor
        self.state = SourceState.STOPPED

    async def _supervise(self) -> None:
        loop = asyncio.get_running_loop()
        while self.token is not None:
            started = loop.time()
            try:
                self.last_exit_code = await self._run_once(self.token)
                log.info("Chat source exited with code %s", self.last_exit_code)
            except OSError as exc:
                log.error("Could not start chat source %s: %s", self.command[0], exc)

            if self.token is None:
                break
            if loop.time() - started >= self.policy.stable_after:
                self.attempts = 0
            self.attempts += 1
            if self.policy.exhausted(self.attempts):
                self.state = SourceState.FAILED
                log.error("Chat source exited %d times in a row, giving up", self.attempts)
                break

            delay = self.policy.delay_for(self.attempts)
            self.state = SourceState.RESTARTING
            log.warning("Restarting chat source in %.1fs (attempt %d)", delay, self.attempts)
            await asyncio.sleep(delay)

    async def _run_once(self, token: str) -> int:
        cmd = [*self.command, token]
        log.info("Starting chat source: %s", " ".join(cmd))
        self._process = await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=_LINE_LIMIT,
        )
        self.state = SourceState.RUNNING
        try:
            await asyncio.gather(
                self._read_stream("stdout", self._process.stdout),
                self._read_stream("stderr", self._process.stderr),
            )
            return await self._process.wait()
        finally:
            self._process = None

    async def _read_stream(self, name: str, stream: asyncio.StreamReader) -> None:
        discarding = False
        while True:
            try:
                raw = await stream.readuntil(b"\n")
            except asyncio.IncompleteReadError as exc:
                raw = exc.partial
            except asyncio.LimitOverrunError as exc:
                # Drop what is buffered and the rest of the line when it arrives
                await stream.readexactly(exc.consumed)
                if not discarding:
                    log.warning("Dropping oversized %s line from chat source", name)
                discarding = True
                continue

            if discarding:
                discarding = False
                if raw.endswith(b"\n"):
                    continue
                raw = b""
            if not raw:
                break

            text = raw.decode("utf-8", errors="replace")
            log.debug("Chat source %s: %s", name, text.rstrip("\r\n")[:200])
            try:
                self.on_output(name, text)
            except Exception:
                log.exception("Output handler failed on %s line", name)
            if not raw.endswith(b"\n"):
                break

        if self.on_eof is not None:
            try:
                self.on_eof(name)
            except Exception:
                log.exception("End-of-stream handler failed on %s", name)

    async def _terminate(self, grace: float = 5.0) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        log.info("Stopping chat source (pid %s)", process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=grace)
        except asyncio.TimeoutError:
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()
