"""Summarize, restore and regenerate ranges of a conversation."""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Callable
from enum import Enum

from .backend import LLMProtocol
from .environment import EnvironmentService, environment_swap, planned_swaps
from .errors import GenerationError, InlineSummaryError, RestoreError, SwapError, ValidationError
from .messages import (
    GENERATING_PLACEHOLDER,
    MANUAL_PLACEHOLDER,
    Message,
    SummaryMessage,
    create_summary,
    has_originals,
    restore_originals,
)
from .navigation import DisclosureView, MessagePath, resolve_path
from .prompt_builder import build_prompt
from .selection import Highlight, Selection
from .settings import SummarySettings
from .store import MessageStore

_LOG = logging.getLogger(__name__)


class SummaryMode(str, Enum):
    AI = "ai"
    MANUAL = "manual"


def failure_text(error: BaseException) -> str:
    """Summary body used when generation fails."""
    return (
        "[Failed to get a response]\n"
        "This can happen if Token limit is too low and reasoning uses up all of it.\n"
        f"Raw Error:\n{error}"
    )


class InlineSummaries:
    """Summary workflow for the conversation currently open.

    Owned by the surrounding application: call :meth:`open_conversation`
    whenever the active conversation changes and :meth:`close` on teardown.
    Listeners registered with :meth:`add_listener` are called after every
    state change so views can refresh.
    """

    def __init__(
        self,
        generator: LLMProtocol,
        settings: SummarySettings | None = None,
        profiles: EnvironmentService | None = None,
        presets: EnvironmentService | None = None,
        report_error: Callable[[str], None] | None = None,
    ):
        self.generator = generator
        self.settings = settings or SummarySettings()
        self.profiles = profiles
        self.presets = presets
        self._report_error_cb = report_error
        self._store: MessageStore | None = None
        self._listeners: list[Callable[[], None]] = []
        self._active_ranges: set[tuple[int, int]] = set()

        self.selection = Selection()
        self.selection.add_listener(self._on_selection_changed)
        self.view = DisclosureView([])

    # ==================== Lifecycle ====================

    def open_conversation(self, store: MessageStore) -> None:
        """Bind *store* as the active conversation and reset the selection."""
        self._store = store
        self.view.bind(store.read_sequence())
        self.selection.clear()
        _LOG.info("Opened conversation with %d messages", len(store.read_sequence()))

    def close(self) -> None:
        """Drop the conversation and all listeners."""
        self.selection.remove_listener(self._on_selection_changed)
        self._listeners.clear()
        self._store = None
        self.view.bind([])
        _LOG.info("Inline summaries closed")

    @property
    def store(self) -> MessageStore:
        if self._store is None:
            raise InlineSummaryError("No conversation is open")
        return self._store

    def messages(self) -> list[Message]:
        return self.store.read_sequence()

    # ==================== Change notification ====================

    def add_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_changed(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                _LOG.exception("Change listener %r failed", listener)

    def _on_selection_changed(self, selection: Selection) -> None:
        self._notify_changed()

    def _report_error(self, message: str) -> None:
        _LOG.error("%s", message)
        if self._report_error_cb is not None:
            self._report_error_cb(message)

    async def _commit(self) -> None:
        await self.store.commit()
        self.view.reset()
        self._notify_changed()

    # ==================== Selection ====================

    def set_range_start(self, index: int) -> None:
        self.selection.set_start(index)

    def set_range_end(self, index: int) -> None:
        self.selection.set_end(index)

    def clear_selection(self) -> None:
        self.selection.clear()

    def highlight(self, index: int) -> Highlight:
        return self.selection.highlight(index)

    # ==================== Navigation ====================

    def resolve_path(self, path: MessagePath) -> Message | None:
        return resolve_path(self.messages(), path)

    # ==================== Summarize ====================

    def _validated_range(self) -> tuple[int, int]:
        start, end = self.selection.require_range()
        count = len(self.messages())
        if start < 0 or end >= count:
            raise ValidationError(f"Range {start}..{end} is outside the conversation ({count} messages)")
        if (start, end) in self._active_ranges:
            raise ValidationError(f"Range {start}..{end} is already being summarized")
        return start, end

    async def summarize(self, mode: SummaryMode = SummaryMode.AI) -> SummaryMessage | None:
        """Replace the selected range with a summary.

        Returns the new summary, or None when the selection is not a valid
        range or an environment swap failed (nothing is modified then).
        """
        try:
            start, end = self._validated_range()
        except ValidationError as exc:
            _LOG.debug("Summarize skipped: %s", exc)
            return None

        self._active_ranges.add((start, end))
        try:
            if mode == SummaryMode.MANUAL:
                summary = await self._summarize_manual(start, end)
            else:
                summary = await self._summarize_ai(start, end)
        finally:
            self._active_ranges.discard((start, end))

        if summary is not None:
            self.selection.clear()
        return summary

    async def _summarize_manual(self, start: int, end: int) -> SummaryMessage:
        originals = self.messages()[start : end + 1]
        summary = create_summary(originals)
        summary.text = MANUAL_PLACEHOLDER
        self.store.splice_replace(start, len(originals), [summary])
        await self._commit()
        _LOG.info("Manually summarized messages %d..%d", start, end)
        return summary

    async def _summarize_ai(self, start: int, end: int) -> SummaryMessage | None:
        settings = copy.copy(self.settings)
        swaps = planned_swaps(settings, self.profiles, self.presets)

        try:
            async with environment_swap(swaps, self._report_error):
                messages = self.messages()
                originals = messages[start : end + 1]
                prompt = build_prompt(start, originals, settings, messages)

                # Generation runs while the placeholder is committed
                generation = asyncio.ensure_future(self._generate(prompt, settings))
                try:
                    summary = create_summary(originals)
                    summary.text = GENERATING_PLACEHOLDER
                    self.store.splice_replace(start, len(originals), [summary])
                    await self._commit()

                    try:
                        summary.text = await generation
                    except GenerationError as exc:
                        summary.text = failure_text(exc.__cause__ or exc)
                    await self._commit()
                finally:
                    if not generation.done():
                        generation.cancel()
        except SwapError as exc:
            self._report_error(f"{exc}\nGeneration Aborted.")
            return None

        _LOG.info("Summarized messages %d..%d into %d characters", start, end, len(summary.text))
        return summary

    async def _generate(self, prompt: str, settings: SummarySettings) -> str:
        max_tokens = settings.token_limit if settings.token_limit > 0 else None
        try:
            return await self.generator.generate(prompt, max_tokens=max_tokens)
        except Exception as exc:
            _LOG.error("Failed to get a response from the generator: %s", exc)
            raise GenerationError(str(exc)) from exc

    # ==================== Restore / regenerate ====================

    async def restore(self, index: int) -> list[Message]:
        """Replace the summary at *index* with its originals."""
        messages = self.messages()
        if index < 0 or index >= len(messages):
            raise RestoreError(f"No message at index {index}")
        originals = restore_originals(messages[index])
        self.store.splice_replace(index, 1, originals)
        await self._commit()
        self.selection.clear()
        _LOG.info("Restored %d original messages at %d", len(originals), index)
        return originals

    async def regenerate(self, index: int) -> bool:
        """Generate a fresh body for the summary at *index*.

        Returns False when there is no summary there or generation failed;
        on failure the previous body is kept.
        """
        messages = self.messages()
        summary = messages[index] if 0 <= index < len(messages) else None
        if not has_originals(summary):
            _LOG.debug("Regenerate skipped: message %d is not a summary", index)
            return False

        settings = copy.copy(self.settings)
        prompt = build_prompt(index, summary.originals, settings, messages)
        try:
            text = await self._generate(prompt, settings)
        except GenerationError as exc:
            self._report_error(f"Failed to regenerate summary {index}: {exc}")
            return False

        summary.text = text
        await self._commit()
        _LOG.info("Regenerated summary at %d", index)
        return True
