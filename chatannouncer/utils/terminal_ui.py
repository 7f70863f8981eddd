"""Console transcript using Rich.

Prints each processed chat comment and the reply that was announced for
it, with timestamps, so the operator can follow the stream in a terminal.
"""

from datetime import datetime

from rich.console import Console
from rich.text import Text

from chatannouncer.chat.event import ChatEvent


class ConsoleTranscript:
    """Rich-based transcript of comments and replies.

    Usage::

        transcript = ConsoleTranscript()
        transcript.print_turn(event, "Nice one, alice!")
    """

    def __init__(self, console: Console | None = None):
        self.console = console or Console(stderr=True)

    def print_turn(self, event: ChatEvent, reply: str) -> None:
        """Print one comment and the reply generated for it."""
        timestamp = datetime.now().strftime("%H:%M:%S")

        comment = Text()
        comment.append(f"[{timestamp}] ", style="dim")
        comment.append(f"{event.user}: ", style="bold green")
        comment.append(event.text)
        self.console.print(comment)

        answer = Text()
        answer.append(f"[{timestamp}] ", style="dim")
        answer.append("Reply: ", style="bold cyan")
        answer.append(reply)
        self.console.print(answer)
        self.console.print()

    def log(self, message: str) -> None:
        """Print a dimmed system message."""
        timestamp = datetime.now().strftime("[%H:%M:%S]")
        text = Text()
        text.append(f"{timestamp} ", style="dim")
        text.append(message, style="dim")
        self.console.print(text)
