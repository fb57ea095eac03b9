"""Plain-text rendering of a conversation and its expanded summaries."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .messages import Message, has_originals
from .navigation import DisclosureView, MessagePath
from .selection import Highlight, Selection

INDENT = "    "

HIGHLIGHT_MARKERS = {
    Highlight.SELECTED: ">",
    Highlight.BETWEEN: "|",
    Highlight.CLEARABLE: " ",
    Highlight.DEFAULT: " ",
}


def _body(text: str, indent: str, preview: int | None) -> list[str]:
    text = text or "(empty message)"
    if preview is not None and len(text) > preview:
        text = text[:preview].rstrip() + "..."
    return [indent + line for line in text.splitlines() or [""]]


def expand_paths(view: DisclosureView, paths: Iterable[MessagePath]) -> list[MessagePath]:
    """Expand each path along with every container above it.

    Returns the paths that could not be expanded.
    """
    missing = []
    for path in paths:
        for depth in range(1, len(path) + 1):
            prefix = MessagePath(path.indices[:depth])
            if view.is_expanded(prefix):
                continue
            if view.expand(prefix) is None:
                missing.append(path)
                break
    return missing


def _render_container(
    view: DisclosureView,
    path: MessagePath,
    count: int,
    depth: int,
    preview: int | None,
) -> list[str]:
    indent = INDENT * (depth + 1)
    arrow = "v" if view.is_expanded(path) else ">"
    lines = [f"{indent}{arrow} Original Messages ({count}) [{path}]"]
    for item in view.contents(path) or []:
        lines.append(f"{indent}  [{item.index}] {item.name}:")
        lines.extend(_body(item.text, indent + "    ", preview))
        if item.is_container:
            lines.extend(_render_container(view, item.path, item.original_count, depth + 1, preview))
    return lines


def render_conversation(
    messages: Sequence[Message],
    selection: Selection | None = None,
    view: DisclosureView | None = None,
    preview: int | None = None,
) -> str:
    """Render *messages* with selection markers and any expanded summaries."""
    selection = selection or Selection()
    view = view or DisclosureView(messages)
    lines = []
    for index, msg in enumerate(messages):
        marker = HIGHLIGHT_MARKERS[selection.highlight(index)]
        role = "user" if msg.is_user else "system" if msg.is_system else "char"
        lines.append(f"{marker}[{index}] {msg.name or 'Unknown'} ({role}):")
        lines.extend(_body(msg.text, INDENT, preview))
        if has_originals(msg):
            lines.extend(_render_container(view, MessagePath.of(index), len(msg.originals), 0, preview))
    return "\n".join(lines)
