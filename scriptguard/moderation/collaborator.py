"""Text-generation collaborator backed by the OpenAI API."""

from __future__ import annotations

from typing import Protocol

from scriptguard.core.config import Settings, get_settings
from scriptguard.core.errors import CollaboratorError
from scriptguard.core.logging import get_logger

logger = get_logger(__name__)


class TextGenerator(Protocol):
    """Anything that turns a prompt into model text.

    Implementations raise ``CollaboratorError`` on transport failures and
    empty replies.
    """

    async def generate(self, prompt: str, *, json_output: bool = False) -> str: ...


class OpenAIGenerator:
    """Chat-completions client used for rechecks, rule generation and rewrites."""

    def __init__(self, settings: Settings | None = None, client=None):
        self.settings = settings or get_settings()
        self._client = client
        if self._client is None:
            from openai import AsyncOpenAI

            self._client = AsyncOpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.llm_timeout_seconds,
            )

    async def generate(self, prompt: str, *, json_output: bool = False) -> str:
        """Send a single-turn prompt and return the reply text."""
        kwargs = {}
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(
                model=self.settings.llm_model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.settings.llm_max_tokens,
                temperature=self.settings.llm_temperature,
                **kwargs,
            )
        except Exception as e:
            raise CollaboratorError(
                "LLM request failed", {"model": self.settings.llm_model, "error": str(e)}
            ) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise CollaboratorError("No response from AI", {"model": self.settings.llm_model})
        return content


# Global instance
_generator: TextGenerator | None = None


def get_generator() -> TextGenerator | None:
    """Get or create the collaborator; None when no API key is configured."""
    global _generator
    if _generator is None:
        settings = get_settings()
        if not settings.openai_api_key:
            return None
        _generator = OpenAIGenerator(settings)
        logger.info("llm_collaborator_ready", model=settings.llm_model)
    return _generator


def set_generator(generator: TextGenerator | None) -> None:
    """Override the collaborator (tests, alternative backends)."""
    global _generator
    _generator = generator
