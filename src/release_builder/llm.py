"""OpenAI LLM client wrapper for release notes generation.

This module encapsulates all interaction with the OpenAI API:
- Client initialization and configuration
- Chat completion requests for HTML release notes
- Mapping of API failures and empty completions to GenerationError

Design notes:
- All LLM calls go through this module so the provider can be swapped
  without touching the generation service
- No retries: a failed generation is reported and the user regenerates
"""

from __future__ import annotations

import re

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel

from release_builder.errors import GenerationError
from release_builder.logging_config import get_logger

logger = get_logger(__name__)

_CODE_FENCE = re.compile(r"^```(?:html)?\s*|\s*```$", re.IGNORECASE)


class LLMConfig(BaseModel):
    """Configuration for the LLM client.

    Attributes:
        model: OpenAI model identifier (e.g., "gpt-4o", "gpt-4o-mini")
        temperature: Sampling temperature; release notes stay close to the source
        max_tokens: Maximum tokens in the response
        api_key: OpenAI API key (the SDK reads OPENAI_API_KEY when None)
    """

    model: str = "gpt-4o-mini"
    temperature: float = 0.3
    max_tokens: int = 2500
    api_key: str | None = None


def strip_code_fences(content: str) -> str:
    """Remove a surrounding ```html fence the model may add despite instructions."""
    return _CODE_FENCE.sub("", content.strip())


class LLMClient:
    """Async wrapper around the OpenAI chat completions API.

    Usage:
        client = LLMClient(config=LLMConfig())
        html = await client.generate_text(system_prompt, user_prompt)
    """

    def __init__(self, config: LLMConfig | None = None) -> None:
        self.config = config or LLMConfig()
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        # Created lazily so the app can start without OPENAI_API_KEY
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.config.api_key)
        return self._client

    async def generate_text(self, system_prompt: str, user_prompt: str) -> str:
        """Send one chat completion request and return the text.

        Args:
            system_prompt: Instructions and output contract
            user_prompt: Source material

        Returns:
            The generated content with code fences stripped

        Raises:
            GenerationError: If the API call fails or returns no content
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                messages=messages,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            )
        except openai.OpenAIError as exc:
            logger.error("llm_request_failed", model=self.config.model, error=str(exc))
            raise GenerationError(f"AI generation failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError("AI returned empty content")

        if response.usage is not None:
            logger.info(
                "llm_usage",
                model=self.config.model,
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
            )
        return strip_code_fences(content)
