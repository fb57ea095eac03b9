"""Generation backend used by the summarizer."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from typing import Protocol

from .environment import PresetService, ProfileService
from .text_generators import TextGeneratorAPI, get_text_generator

_LOG = logging.getLogger(__name__)


class LLMProtocol(Protocol):
    """Protocol for LLM interface."""

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        """Generate text from a prompt."""
        ...


class ProfileBackedGenerator:
    """Generates with whatever profile and preset are active at call time.

    Because the lookup happens per call, swapping the active profile or
    preset changes the backend used for the next generation.
    """

    def __init__(
        self,
        profiles: ProfileService,
        presets: PresetService,
        default_api: str | None = None,
        default_model: str | None = None,
        factory: Callable[[str, str], TextGeneratorAPI] = get_text_generator,
    ):
        self.profiles = profiles
        self.presets = presets
        self.default_api = default_api or os.getenv("INLINE_SUMMARIES_DEFAULT_API", "anthropic")
        self.default_model = default_model or os.getenv("INLINE_SUMMARIES_DEFAULT_MODEL", "claude-sonnet-4-5")
        self._factory = factory
        self._generators: dict[tuple[str, str], TextGeneratorAPI] = {}

    def _get_generator(self, api: str, model: str) -> TextGeneratorAPI:
        key = (api, model)
        if key not in self._generators:
            self._generators[key] = self._factory(api, model)
        return self._generators[key]

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        profile = self.profiles.active()
        if profile is not None:
            api, model = profile.api, profile.model
        else:
            api, model = self.default_api, self.default_model

        preset = self.presets.active()
        temperature = preset.temperature if preset else None
        if not max_tokens and preset is not None and preset.max_tokens:
            max_tokens = preset.max_tokens

        _LOG.info(
            "Generating summary with api=%s model=%s preset=%s max_tokens=%s",
            api, model, preset.name if preset else None, max_tokens,
        )
        generator = self._get_generator(api, model)
        return await generator.generate(prompt, max_tokens=max_tokens, temperature=temperature)
