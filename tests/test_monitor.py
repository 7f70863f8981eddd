"""Tests for ChatMonitor wiring (chat source subprocess and TTS faked)."""

import asyncio
import random
import sys
from unittest.mock import AsyncMock, MagicMock

from chatannouncer.ai.responder import CRYPTO_RESPONSES, ResponseGenerator
from chatannouncer.chat.intake import PipelineState
from chatannouncer.monitor import ChatMonitor
from chatannouncer.source.chat_source import RestartPolicy
from chatannouncer.tts.announcer import SpeechAnnouncer


def _make_monitor(engine=None, **kwargs):
    state = PipelineState()
    announcer = SpeechAnnouncer(engine, timeout=1, state=state)
    generator = ResponseGenerator(rng=random.Random(3))
    monitor = ChatMonitor(generator, announcer, state=state, interval=0.01, **kwargs)
    return monitor


def test_handle_output_queues_parsed_comments():
    """Chat lines in output are parsed and queued."""
    monitor = _make_monitor()

    queued = monitor.handle_output("stdout", "New message from alice: gm wagmi\nINFO: ping\n")

    assert queued == 1
    event = monitor.intake.dequeue()
    assert (event.user, event.text) == ("alice", "gm wagmi")


def test_identical_lines_queue_once():
    """Two lines with the same user and text produce one queued event."""
    monitor = _make_monitor()

    monitor.handle_output("stdout", "New message from alice: gm\n")
    monitor.handle_output("stderr", "alice: gm\n")

    assert monitor.status()["queue_length"] == 1


def test_partial_lines_are_joined_per_stream():
    """A line split across chunks is parsed once complete."""
    monitor = _make_monitor()

    assert monitor.handle_output("stdout", "New message from bo") == 0
    assert monitor.handle_output("stderr", "carol: hi\n") == 1
    assert monitor.handle_output("stdout", "b: lfg\n") == 1


def test_status_fields():
    """status() reports queue, processor, speech and source fields."""
    monitor = _make_monitor()
    monitor.handle_output("stdout", "dave: hello\n")

    status = monitor.status()

    assert status == {
        "queue_length": 1,
        "is_processing": False,
        "currently_speaking": False,
        "processed_count": 0,
        "announcer_enabled": False,
        "source_state": "stopped",
        "token_address": None,
    }


def test_end_to_end_comment_is_announced():
    """A comment from the chat source ends up announced to observers and spoken."""
    engine = MagicMock()
    announced = []
    script = "print('New message from alice: gm wagmi', flush=True); import time; time.sleep(30)"
    monitor = _make_monitor(
        engine=engine,
        source_command=[sys.executable, "-c", script],
        restart_policy=RestartPolicy(initial_delay=0.05),
    )
    monitor.add_observer(lambda text, event: announced.append((text, event.user)))

    async def run():
        greeting = await monitor.start("TOKEN", "operator")
        for _ in range(500):
            if announced and not monitor.state.is_processing:
                break
            await asyncio.sleep(0.01)
        status = monitor.status()
        await monitor.stop()
        return greeting, status

    greeting, status = asyncio.run(run())

    assert greeting == "Hi operator! Starting to monitor chat for TOKEN..."
    assert len(announced) == 1
    text, user = announced[0]
    assert user == "alice"
    assert text in {t.format(user="alice") for t in CRYPTO_RESPONSES}
    engine.speak.assert_called_once_with(text)
    assert status["processed_count"] == 1
    assert status["token_address"] == "TOKEN"
    assert status["source_state"] == "running"


def test_start_without_name_has_plain_greeting():
    """Without a display name the greeting omits the salutation."""
    monitor = _make_monitor()
    monitor.source.start = AsyncMock()
    monitor.source.token = "ABC"

    async def run():
        message = await monitor.start("ABC")
        await monitor.processor.stop()
        return message

    assert asyncio.run(run()) == "Starting to monitor chat for ABC..."


def test_stream_end_parses_unterminated_tail():
    """A last line without newline is parsed when its stream ends."""
    monitor = _make_monitor()

    assert monitor.handle_output("stdout", "New message from bob: hi") == 0
    assert monitor.handle_eof("stdout") == 1
    assert monitor.handle_output("stdout", "New message from alice: gm\n") == 1

    events = [monitor.intake.dequeue(), monitor.intake.dequeue()]
    assert [(e.user, e.text) for e in events] == [("bob", "hi"), ("alice", "gm")]


def test_stream_end_without_output_is_noop():
    monitor = _make_monitor()
    assert monitor.handle_eof("stderr") == 0


def test_restart_does_not_join_lines_across_runs(tmp_path):
    """A run that dies mid-line does not corrupt the first line of the next run."""
    marker = tmp_path / "first-run-done"
    script = (
        "import sys, time, pathlib\n"
        f"marker = pathlib.Path({str(marker)!r})\n"
        "if not marker.exists():\n"
        "    marker.write_text('x')\n"
        "    sys.stdout.write('New message from bob: hi')\n"
        "    sys.stdout.flush()\n"
        "else:\n"
        "    print('New message from alice: gm', flush=True)\n"
        "    time.sleep(30)\n"
    )
    monitor = _make_monitor(
        source_command=[sys.executable, "-c", script],
        restart_policy=RestartPolicy(initial_delay=0.05),
    )

    async def run():
        await monitor.source.start("TOKEN")
        for _ in range(500):
            if len(monitor.intake) >= 2:
                break
            await asyncio.sleep(0.01)
        await monitor.source.stop()

    asyncio.run(run())

    events = [monitor.intake.dequeue(), monitor.intake.dequeue()]
    assert [(e.user, e.text) for e in events if e] == [("bob", "hi"), ("alice", "gm")]
