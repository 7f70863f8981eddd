"""OpenAI chat completions backend for reply enhancement.

Improves the canned draft reply so it responds to the actual chat
message. Used by :class:`~chatannouncer.ai.responder.ResponseGenerator`,
which treats every failure here as "keep the canned reply".
"""

from __future__ import annotations

from openai import OpenAI

from chatannouncer.exceptions import GenerationError
from chatannouncer.utils.logging import get_logger

log = get_logger("ai.openai_chat")

_SYSTEM_PROMPT = (
    "You are the voice of a livestream host reading chat comments aloud. "
    "Answer in one short, friendly sentence. No hashtags, no emojis."
)


class OpenAIChatBackend:
    """Reply generation using the OpenAI chat completions API.

    Args:
        model: Chat model name.
        timeout: Maximum seconds to wait for a response.
        max_tokens: Upper bound on generated tokens.
        temperature: Sampling temperature.
        client: Optional OpenAI client instance.
    """

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        timeout: float = 10.0,
        max_tokens: int = 60,
        temperature: float = 0.7,
        client: OpenAI | None = None,
    ):
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client = client or OpenAI(timeout=timeout)

    def complete(self, prompt: str) -> str:
        """Send *prompt* and return the generated text.

        Raises:
            GenerationError: If the request fails or returns no text.
        """
        log.debug("Requesting completion: %s", prompt[:80])
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": _SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                timeout=self.timeout,
            )
        except Exception as exc:
            raise GenerationError(f"Chat completion failed: {exc}") from exc

        if not response.choices:
            raise GenerationError("Chat completion returned no choices.")
        content = response.choices[0].message.content or ""
        text = content.strip()
        if not text:
            raise GenerationError("Chat completion returned an empty response.")
        return text
