# text_generators/openai_chatgpt.py
from __future__ import annotations

from typing import Any, Dict, List
import logging

from openai import AsyncOpenAI, APIConnectionError, APIError, RateLimitError

from .base import TextGeneratorAPI

_CLIENT_CACHE: Dict[str, AsyncOpenAI] = {}
_LOG = logging.getLogger(__name__)


class OpenAIChatTextGenerator(TextGeneratorAPI):
    """Text-generation backend for OpenAI models.

    - gpt-5 family models use the Responses API with medium reasoning effort.
    - Other models (e.g., gpt-4o) use Chat Completions.

    Requires OPENAI_API_KEY in the environment.
    """

    def __init__(self, model: str = "gpt-5") -> None:
        self.model = model

    def _get_client(self) -> AsyncOpenAI:
        if "default" not in _CLIENT_CACHE:
            _CLIENT_CACHE["default"] = AsyncOpenAI()  # picks up OPENAI_API_KEY
        return _CLIENT_CACHE["default"]

    def _is_gpt5(self) -> bool:
        return (self.model or "").lower().startswith("gpt-5")

    async def generate(
        self,
        prompt: str,
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        if not isinstance(prompt, str):
            raise TypeError("prompt must be a string")

        client = self._get_client()

        try:
            if self._is_gpt5():
                kwargs: Dict[str, Any] = {
                    "model": self.model,
                    "input": prompt,
                    "reasoning": {"effort": "medium"},
                }
                if max_tokens:
                    kwargs["max_output_tokens"] = max_tokens
                resp = await client.responses.create(**kwargs)

                text = getattr(resp, "output_text", None)
                if not text:
                    parts: List[str] = []
                    for item in getattr(resp, "output", None) or []:
                        for c in getattr(item, "content", []) or []:
                            tt = getattr(c, "text", None)
                            if tt:
                                parts.append(tt)
                    text = "\n".join(parts)
                return (text or "").strip()

            kwargs = {
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
            }
            if temperature is not None:
                kwargs["temperature"] = temperature
            if max_tokens:
                kwargs["max_tokens"] = max_tokens
            resp = await client.chat.completions.create(**kwargs)
        except RateLimitError as e:
            _LOG.warning("OpenAI rate limit hit for model %s: %s", self.model, e)
            raise
        except APIConnectionError as e:
            _LOG.error("OpenAI connection error for model %s: %s", self.model, e)
            raise
        except APIError as e:
            _LOG.error("OpenAI API error for model %s (status %s): %s", self.model, getattr(e, "status_code", "unknown"), e)
            raise

        choice = resp.choices[0]
        return (choice.message.content or "").strip()
