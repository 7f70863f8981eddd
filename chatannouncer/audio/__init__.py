"""Audio output used by the streaming speech engine."""
