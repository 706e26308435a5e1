"""Answer generation through the OpenAI chat completions API."""

from typing import Protocol

import openai
from openai import OpenAI

from .config import config
from .errors import GenerationError

logger = config.get_logger(__name__)


class Generator(Protocol):
    """Turns a prompt into answer text, raising GenerationError on failure."""

    def generate(self, prompt: str, temperature: float) -> str: ...


class GenerationService:
    """Handles OpenAI chat completions for grounded answers."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        """Initialize the GenerationService.

        Args:
            api_key: OpenAI API key. If None,
                reads from OPENAI_API_KEY environment variable.
            model: Chat model name. If None, uses config.CHAT_MODEL.
            max_tokens: Completion token limit. If None, uses
                config.CHAT_MAX_TOKENS.
        """
        default_headers = config.get_api_headers()
        self.client = OpenAI(
            api_key=api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=default_headers or None,
        )
        self.model = model or config.CHAT_MODEL
        self.max_tokens = max_tokens or config.CHAT_MAX_TOKENS

    def generate(self, prompt: str, temperature: float) -> str:
        """Generate a completion for ``prompt``.

        Returns:
            The stripped completion text; empty if the model returned nothing.

        Raises:
            GenerationError: If the API call fails.
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.max_tokens,
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            msg = f"Chat completion failed: {e!s}"
            raise GenerationError(msg) from e

        content = response.choices[0].message.content if response.choices else None
        return content.strip() if content else ""
