"""PCM playback through PyAudio for streamed speech."""

import pyaudio


class AudioPlayer:
    """Audio output using PyAudio.

    Usage::

        with AudioPlayer() as player:
            stream = player.open_pcm_stream(rate=24000)
            stream.write(pcm_bytes)
            stream.close()
    """

    def __init__(self):
        self._pa: pyaudio.PyAudio | None = None

    def __enter__(self) -> "AudioPlayer":
        self._pa = pyaudio.PyAudio()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
        return None

    def open_pcm_stream(self, rate: int = 24000, channels: int = 1) -> pyaudio.Stream:
        """Open an int16 PCM output stream.

        The caller writes the audio and closes the stream.

        Raises:
            RuntimeError: If the player is not open.
        """
        if self._pa is None:
            raise RuntimeError("AudioPlayer is not open. Use as context manager.")

        return self._pa.open(
            format=pyaudio.paInt16,
            channels=channels,
            rate=rate,
            output=True,
        )

    def close(self) -> None:
        """Release PyAudio resources."""
        if self._pa is not None:
            self._pa.terminate()
            self._pa = None
