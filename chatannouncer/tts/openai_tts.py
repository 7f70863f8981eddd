"""OpenAI Text-to-Speech client with PCM streaming.

Streams 24kHz PCM audio from the OpenAI speech API straight into an
audio output stream so playback starts before synthesis finishes.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from openai import OpenAI

from chatannouncer.utils.logging import get_logger

if TYPE_CHECKING:
    from chatannouncer.audio.player import AudioPlayer

log = get_logger("tts.openai")

# OpenAI TTS PCM format: 24kHz, 16-bit, mono
TTS_SAMPLE_RATE = 24000
TTS_CHANNELS = 1
TTS_CHUNK_SIZE = 1024


class OpenAITextToSpeech:
    """Text-to-speech using the OpenAI TTS API with PCM streaming.

    Args:
        model: TTS model name.
        voice: Voice name.
        speed: Speech speed multiplier.
        client: Optional OpenAI client instance.
        player_factory: Callable returning an unopened audio player
            (defaults to :class:`~chatannouncer.audio.player.AudioPlayer`).
    """

    def __init__(
        self,
        model: str = "tts-1",
        voice: str = "onyx",
        speed: float = 1.0,
        client: OpenAI | None = None,
        player_factory=None,
    ):
        self.model = model
        self.voice = voice
        self.speed = speed
        self._client = client or OpenAI()
        self._player_factory = player_factory
        self._cancelled = threading.Event()

    def _create_player(self) -> AudioPlayer:
        if self._player_factory is not None:
            return self._player_factory()
        from chatannouncer.audio.player import AudioPlayer

        return AudioPlayer()

    def speak(self, text: str) -> None:
        """Convert text to speech and play it through the speakers.

        Stops early if :meth:`cancel` is called from another thread.

        Raises:
            ValueError: If text is empty.
        """
        if not text.strip():
            raise ValueError("No text to speak.")

        self._cancelled.clear()
        with self._create_player() as player:
            stream = player.open_pcm_stream(rate=TTS_SAMPLE_RATE, channels=TTS_CHANNELS)
            try:
                with self._client.audio.speech.with_streaming_response.create(
                    model=self.model,
                    voice=self.voice,
                    input=text,
                    response_format="pcm",
                    speed=self.speed,
                ) as response:
                    for chunk in response.iter_bytes(chunk_size=TTS_CHUNK_SIZE):
                        if self._cancelled.is_set():
                            log.info("Speech playback cancelled")
                            break
                        stream.write(chunk)
            finally:
                stream.stop_stream()
                stream.close()

    def cancel(self) -> None:
        """Stop streaming the current utterance."""
        self._cancelled.set()
