"""Tests for ConsoleTranscript."""

from rich.console import Console

from chatannouncer.chat.event import ChatEvent
from chatannouncer.utils.terminal_ui import ConsoleTranscript


def _recording_console():
    return Console(record=True, width=120, force_terminal=False)


def test_print_turn_shows_comment_and_reply():
    """A turn prints the user, the comment and the reply."""
    console = _recording_console()
    transcript = ConsoleTranscript(console=console)

    transcript.print_turn(ChatEvent.create("alice", "gm wagmi"), "GM alice!")

    output = console.export_text()
    assert "alice: gm wagmi" in output
    assert "Reply: GM alice!" in output


def test_markup_in_comments_is_not_interpreted():
    """Chat text containing Rich markup is printed literally."""
    console = _recording_console()
    transcript = ConsoleTranscript(console=console)

    transcript.print_turn(ChatEvent.create("bob", "[bold]rug[/bold]"), "ok")

    assert "[bold]rug[/bold]" in console.export_text()


def test_log_prints_message():
    """log() prints a timestamped system message."""
    console = _recording_console()
    ConsoleTranscript(console=console).log("chatannouncer running")

    output = console.export_text()
    assert "chatannouncer running" in output
    assert output.startswith("[")


def test_default_console_writes_to_stderr():
    """Without a console, output goes to stderr."""
    assert ConsoleTranscript().console.stderr is True
