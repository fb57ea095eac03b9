"""Summary prompt construction."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .messages import Message
from .settings import SummarySettings


def _message_lines(messages: Iterable[Message]) -> list[str]:
    """Trimmed bodies of *messages*, skipping any that are blank."""
    lines = []
    for msg in messages:
        text = (msg.text or "").strip()
        if text:
            lines.append(text)
    return lines


def history_window(target_index: int, depth: int) -> range:
    """
    Return the indices of the messages used as historical context.

    Args:
        target_index: Position of the first summarised message
        depth: How many preceding messages to include; negative means all

    Returns:
        Range of conversation indices preceding target_index
    """
    start = 0
    if depth >= 0:
        start = max(0, target_index - depth)
    return range(start, max(0, target_index))


def build_prompt(
    target_index: int,
    originals: Sequence[Message],
    settings: SummarySettings,
    conversation: Sequence[Message],
) -> str:
    """
    Build the generation prompt for summarising *originals*.

    Args:
        target_index: Conversation index the summary will occupy
        originals: Messages to be summarised, in order
        settings: Prompt templates, markers and history depth
        conversation: The top-level conversation the history is read from

    Returns:
        Prompt text, segments joined with newlines
    """
    window = history_window(target_index, settings.historical_context_depth)
    history = [conversation[i] for i in window if i < len(conversation)]

    lines = [settings.start_prompt, settings.historical_context_start_marker]
    lines.extend(_message_lines(history))
    lines.append(settings.historical_context_end_marker)

    if settings.mid_prompt != "":
        lines.append(settings.mid_prompt)

    lines.append(settings.summarise_start_marker)
    lines.extend(_message_lines(originals))
    lines.append(settings.summarise_end_marker)

    if settings.end_prompt != "":
        lines.append(settings.end_prompt)

    return "\n".join(lines)
