"""Tests for SystemTextToSpeech (subprocess mocked)."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from chatannouncer.exceptions import TTSError
from chatannouncer.tts.system_tts import SystemTextToSpeech, build_speech_command


def _make_mock_process(stderr="", returncode=0):
    """Create a mock Popen process."""
    proc = MagicMock()
    proc.communicate.return_value = ("", stderr)
    proc.returncode = returncode
    return proc


class TestBuildSpeechCommand:
    """Tests for platform command selection."""

    def test_macos_uses_say(self):
        cmd, stdin = build_speech_command("hi", platform="darwin", voice="Alex", rate=180)
        assert cmd == ["say", "-v", "Alex", "-r", "180", "hi"]
        assert stdin is None

    def test_windows_uses_powershell_stdin(self):
        cmd, stdin = build_speech_command("hi there", platform="win32")
        assert cmd[0] == "powershell"
        assert "System.Speech" in cmd[-1]
        assert stdin == "hi there"

    def test_windows_rate_is_clamped(self):
        cmd, _ = build_speech_command("hi", platform="win32", rate=200)
        assert "$s.Rate = 10;" in cmd[-1]

    @patch("chatannouncer.tts.system_tts.shutil.which")
    def test_linux_prefers_espeak_ng(self, mock_which):
        mock_which.side_effect = lambda name: f"/usr/bin/{name}"
        cmd, stdin = build_speech_command("hi", platform="linux", rate=150)
        assert cmd == ["/usr/bin/espeak-ng", "-s", "150", "hi"]
        assert stdin is None

    @patch("chatannouncer.tts.system_tts.shutil.which")
    def test_linux_falls_back_to_espeak(self, mock_which):
        mock_which.side_effect = lambda name: "/usr/bin/espeak" if name == "espeak" else None
        cmd, _ = build_speech_command("hi", platform="linux")
        assert cmd == ["/usr/bin/espeak", "hi"]

    @patch("chatannouncer.tts.system_tts.shutil.which", return_value=None)
    def test_linux_without_engine_raises(self, _mock_which):
        with pytest.raises(TTSError, match="No speech command"):
            build_speech_command("hi", platform="linux")


@patch("chatannouncer.tts.system_tts.build_speech_command", return_value=(["say", "hi"], None))
@patch("chatannouncer.tts.system_tts.subprocess.Popen")
def test_speak_runs_command(mock_popen, _mock_build):
    """speak() runs the speech command and waits for it."""
    mock_popen.return_value = _make_mock_process()
    SystemTextToSpeech().speak("hi")

    assert mock_popen.call_args[0][0] == ["say", "hi"]
    mock_popen.return_value.communicate.assert_called_once()


@patch("chatannouncer.tts.system_tts.build_speech_command", return_value=(["say", "hi"], None))
@patch("chatannouncer.tts.system_tts.subprocess.Popen")
def test_nonzero_exit_raises(mock_popen, _mock_build):
    """A failing speech command raises TTSError with its stderr."""
    mock_popen.return_value = _make_mock_process(stderr="no audio device", returncode=1)

    with pytest.raises(TTSError, match="no audio device"):
        SystemTextToSpeech().speak("hi")


@patch("chatannouncer.tts.system_tts.build_speech_command", return_value=(["say", "hi"], None))
@patch("chatannouncer.tts.system_tts.subprocess.Popen", side_effect=FileNotFoundError("say"))
def test_missing_binary_raises(_mock_popen, _mock_build):
    """A missing speech binary raises TTSError."""
    with pytest.raises(TTSError, match="not found"):
        SystemTextToSpeech().speak("hi")


@patch("chatannouncer.tts.system_tts.build_speech_command", return_value=(["say", "hi"], None))
@patch("chatannouncer.tts.system_tts.subprocess.Popen")
def test_timeout_kills_and_raises(mock_popen, _mock_build):
    """A hanging speech command is terminated and reported."""
    proc = _make_mock_process()
    proc.communicate.side_effect = subprocess.TimeoutExpired(cmd="say", timeout=1)
    mock_popen.return_value = proc

    with pytest.raises(TTSError, match="did not finish"):
        SystemTextToSpeech(timeout=1).speak("hi")
    proc.terminate.assert_called_once()


def test_speak_empty_text_raises():
    """speak() raises ValueError for empty text."""
    with pytest.raises(ValueError, match="No text"):
        SystemTextToSpeech().speak("")


def test_cancel_without_process_is_noop():
    """cancel() is safe when nothing is playing."""
    SystemTextToSpeech().cancel()
