# text_generators/openrouter.py
from __future__ import annotations

import logging
import os

from openai import APIConnectionError, APIError, AsyncOpenAI, RateLimitError

from .base import TextGeneratorAPI

_CLIENT_CACHE: dict[str, AsyncOpenAI] = {}
_LOG = logging.getLogger(__name__)


def _get_openrouter_client() -> AsyncOpenAI:
    """Get or create the shared OpenRouter client."""
    if "openrouter" not in _CLIENT_CACHE:
        api_key = os.getenv("OPENROUTER_API_KEY")
        if not api_key:
            raise ValueError("OPENROUTER_API_KEY environment variable is required for OpenRouter")
        _CLIENT_CACHE["openrouter"] = AsyncOpenAI(
            api_key=api_key,
            base_url="https://openrouter.ai/api/v1"
        )
    return _CLIENT_CACHE["openrouter"]


class OpenRouterTextGenerator(TextGeneratorAPI):
    """Text-generation backend for OpenRouter models (chat completions).

    Uses OpenRouter's OpenAI-compatible API.
    Requires OPENROUTER_API_KEY in the environment.
    """

    def __init__(self, model: str = "meta-llama/llama-3.1-405b-instruct") -> None:
        self.model = model

    def _get_client(self) -> AsyncOpenAI:
        return _get_openrouter_client()

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate text using OpenRouter's OpenAI-compatible API."""
        if not isinstance(prompt, str):
            raise TypeError("prompt must be a string")

        client = self._get_client()

        _LOG.debug("OpenRouter: generating with model=%s, prompt_len=%d", self.model, len(prompt))

        try:
            resp = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=1.0 if temperature is None else temperature,
                max_tokens=max_tokens or 1024,
            )
        except RateLimitError as e:
            _LOG.warning("OpenRouter rate limit hit for model %s: %s", self.model, e)
            raise
        except APIConnectionError as e:
            _LOG.error("OpenRouter connection error for model %s: %s", self.model, e)
            raise
        except APIError as e:
            _LOG.error("OpenRouter API error for model %s (status %s): %s", self.model, getattr(e, 'status_code', 'unknown'), e)
            raise

        choice = resp.choices[0]
        content = choice.message.content

        _LOG.info("OpenRouter result: finish_reason=%s, content_len=%d",
                  getattr(choice, 'finish_reason', None), len(content) if content else 0)

        return (content or "").strip()
