"""Text-to-speech through the operating system's speech command.

Runs ``espeak-ng``/``espeak`` on Linux, ``say`` on macOS and the SAPI
speech synthesizer through PowerShell on Windows. Each utterance is one
subprocess; a running utterance can be cancelled from another thread.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
import threading

from chatannouncer.exceptions import TTSError
from chatannouncer.utils.logging import get_logger

log = get_logger("tts.system")

_LINUX_COMMANDS = ("espeak-ng", "espeak")

_POWERSHELL_SCRIPT = (
    "Add-Type -AssemblyName System.Speech; "
    "$s = New-Object System.Speech.Synthesis.SpeechSynthesizer; "
    "$s.Rate = {rate}; "
    "$s.Speak([Console]::In.ReadToEnd())"
)


def build_speech_command(
    text: str,
    platform: str | None = None,
    voice: str | None = None,
    rate: int | None = None,
) -> tuple[list[str], str | None]:
    """Build the speech command for the current platform.

    Args:
        text: Text to speak.
        platform: Override for ``sys.platform``.
        voice: Voice name passed to the speech command, if supported.
        rate: Speaking rate in words per minute (Windows: -10..10).

    Returns:
        Tuple of (command list, stdin text or None).

    Raises:
        TTSError: If no speech command is available.
    """
    platform = platform or sys.platform

    if platform == "darwin":
        cmd = ["say"]
        if voice:
            cmd.extend(["-v", voice])
        if rate:
            cmd.extend(["-r", str(rate)])
        cmd.append(text)
        return cmd, None

    if platform == "win32":
        script = _POWERSHELL_SCRIPT.format(rate=max(-10, min(10, rate or 0)))
        return ["powershell", "-NoProfile", "-Command", script], text

    for name in _LINUX_COMMANDS:
        binary = shutil.which(name)
        if binary:
            cmd = [binary]
            if voice:
                cmd.extend(["-v", voice])
            if rate:
                cmd.extend(["-s", str(rate)])
            cmd.append(text)
            return cmd, None

    raise TTSError("No speech command found (install espeak-ng or espeak).")


class SystemTextToSpeech:
    """Text-to-speech via the platform speech command.

    Args:
        voice: Optional voice name.
        rate: Optional speaking rate.
        timeout: Maximum seconds a single utterance may take.
    """

    def __init__(
        self,
        voice: str | None = None,
        rate: int | None = None,
        timeout: float = 30.0,
    ):
        self.voice = voice
        self.rate = rate
        self.timeout = timeout
        self._lock = threading.Lock()
        self._current_process: subprocess.Popen | None = None

    def speak(self, text: str) -> None:
        """Speak *text* and block until playback finishes.

        Raises:
            ValueError: If text is empty.
            TTSError: If the speech command is missing, fails or times out.
        """
        if not text.strip():
            raise ValueError("No text to speak.")

        cmd, stdin_text = build_speech_command(text, voice=self.voice, rate=self.rate)
        log.debug("Running speech command: %s", cmd[0])

        try:
            with self._lock:
                self._current_process = subprocess.Popen(
                    cmd,
                    stdin=subprocess.PIPE if stdin_text is not None else subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.PIPE,
                    text=True,
                    encoding="utf-8",
                )
            process = self._current_process
            _, stderr = process.communicate(input=stdin_text, timeout=self.timeout)
            returncode = process.returncode
        except FileNotFoundError as exc:
            raise TTSError(f"Speech command not found: {cmd[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            self.cancel()
            raise TTSError(f"Speech did not finish within {self.timeout}s") from exc
        finally:
            with self._lock:
                self._current_process = None

        if returncode != 0:
            raise TTSError(f"Speech command exited with code {returncode}: {(stderr or '').strip()}")

    def cancel(self) -> None:
        """Stop the utterance in progress. No-op if nothing is playing."""
        with self._lock:
            proc = self._current_process
        if proc is None:
            return
        log.info("Cancelling speech subprocess")
        try:
            proc.terminate()
            proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()
