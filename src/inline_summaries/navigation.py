"""Path addressing into nested summaries and lazy disclosure of their contents."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from .errors import PathResolutionError
from .messages import Message, has_originals

_LOG = logging.getLogger(__name__)

_PATH_SEPARATORS = re.compile(r"[./,]")


@dataclass(frozen=True)
class MessagePath:
    """Indices descending from a top-level message into nested originals.

    ``MessagePath((4, 0, 2))`` is the third original of the first original
    of the summary at position 4 in the conversation.
    """

    indices: tuple[int, ...] = ()

    def __post_init__(self) -> None:
        for index in self.indices:
            if not isinstance(index, int) or isinstance(index, bool) or index < 0:
                raise PathResolutionError(f"Invalid path element: {index!r}")

    @classmethod
    def of(cls, *indices: int) -> MessagePath:
        return cls(tuple(indices))

    @classmethod
    def parse(cls, text: str) -> MessagePath:
        """Parse ``"4.0.2"`` (``/`` and ``,`` also accepted) into a path."""
        text = text.strip()
        if not text:
            raise PathResolutionError("Empty message path")
        parts = _PATH_SEPARATORS.split(text)
        try:
            indices = tuple(int(part) for part in parts)
        except ValueError:
            raise PathResolutionError(f"Malformed message path: {text!r}") from None
        return cls(indices)

    def child(self, index: int) -> MessagePath:
        return MessagePath(self.indices + (index,))

    def is_prefix_of(self, other: MessagePath) -> bool:
        return other.indices[: len(self.indices)] == self.indices

    def __len__(self) -> int:
        return len(self.indices)

    def __iter__(self) -> Iterator[int]:
        return iter(self.indices)

    def __str__(self) -> str:
        return ".".join(str(i) for i in self.indices)


def resolve_path(messages: Sequence[Message], path: MessagePath | Sequence[int]) -> Message | None:
    """Return the message at *path*, or None if it does not exist.

    The first index must name a summary in *messages*; every further index
    selects from the current message's originals.
    """
    indices = tuple(path)
    if not indices:
        return None

    top, *rest = indices
    if top < 0 or top >= len(messages):
        _LOG.debug("Path %s: top-level index out of range", indices)
        return None

    message = messages[top]
    if not has_originals(message):
        _LOG.debug("Path %s: message %d is not a summary", indices, top)
        return None

    for index in rest:
        if not has_originals(message):
            _LOG.debug("Path %s: descended into a plain message", indices)
            return None
        originals = message.originals
        if index < 0 or index >= len(originals):
            _LOG.debug("Path %s: index %d out of range", indices, index)
            return None
        message = originals[index]

    return message


@dataclass(frozen=True)
class RenderedMessage:
    """One original as shown inside an expanded container."""

    index: int
    path: MessagePath
    depth: int
    name: str
    text: str
    original_count: int = 0

    @property
    def is_container(self) -> bool:
        return self.original_count > 0


class DisclosureView:
    """Tracks which summary containers are expanded and what they show.

    A container is addressed by the path of the summary whose originals it
    lists. Contents are built from the live conversation each time the
    container is expanded and dropped again on collapse; the conversation
    itself is never modified here.
    """

    def __init__(self, messages: Sequence[Message]):
        self._messages = messages
        self._expanded: dict[MessagePath, list[RenderedMessage]] = {}

    def bind(self, messages: Sequence[Message]) -> None:
        """Point the view at another conversation, collapsing everything."""
        self._messages = messages
        self.reset()

    def reset(self) -> None:
        self._expanded.clear()

    def is_expanded(self, path: MessagePath) -> bool:
        return path in self._expanded

    def expanded_paths(self) -> list[MessagePath]:
        return sorted(self._expanded, key=lambda p: p.indices)

    def contents(self, path: MessagePath) -> list[RenderedMessage] | None:
        return self._expanded.get(path)

    def expand(self, path: MessagePath) -> list[RenderedMessage] | None:
        """Materialize the originals under *path*; None if it is not a summary."""
        container = resolve_path(self._messages, path)
        if not has_originals(container):
            return None

        depth = len(path)
        rendered = []
        for index, original in enumerate(container.originals):
            rendered.append(
                RenderedMessage(
                    index=index,
                    path=path.child(index),
                    depth=depth,
                    name=original.name or "Unknown",
                    text=original.text or "(empty message)",
                    original_count=len(original.originals) if has_originals(original) else 0,
                )
            )
        self._expanded[path] = rendered
        return list(rendered)

    def collapse(self, path: MessagePath) -> None:
        """Discard the contents of *path* and of every container nested in it."""
        for expanded in list(self._expanded):
            if path.is_prefix_of(expanded):
                del self._expanded[expanded]

    def toggle(self, path: MessagePath) -> list[RenderedMessage] | None:
        """Expand a collapsed container or collapse an expanded one."""
        if self.is_expanded(path):
            self.collapse(path)
            return None
        return self.expand(path)
