"""Custom exception hierarchy for the chat announcer."""


class AnnouncerError(Exception):
    """Base exception for all chat announcer errors."""


class ConfigError(AnnouncerError):
    """Errors related to configuration loading."""


class ChatSourceError(AnnouncerError):
    """Errors from the chat source subprocess."""


class GenerationError(AnnouncerError):
    """Errors from the reply generation backend."""


class TTSError(AnnouncerError):
    """Errors during text-to-speech synthesis or playback."""
