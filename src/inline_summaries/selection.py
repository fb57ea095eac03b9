"""Range selection for summarization.

Start and end are set independently and never checked against each other
when set; only consumers of the range require ``end > start``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from .errors import ValidationError

_LOG = logging.getLogger(__name__)


class SelectionState(str, Enum):
    EMPTY = "empty"
    PARTIAL_START = "partial_start"
    PARTIAL_END = "partial_end"
    RANGE = "range"


class Highlight(str, Enum):
    """Visual state of a message relative to the current selection."""

    DEFAULT = "default"
    SELECTED = "selected"
    BETWEEN = "between"
    CLEARABLE = "clearable"


class Selection:
    """The in-progress range for one conversation.

    Every change notifies listeners so views can recompute highlights.
    """

    def __init__(self) -> None:
        self.start: int | None = None
        self.end: int | None = None
        self._listeners: list[Callable[[Selection], None]] = []

    # ==================== Listeners ====================

    def add_listener(self, listener: Callable[[Selection], None]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[Selection], None]) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                _LOG.exception("Selection listener %r failed", listener)

    # ==================== Transitions ====================

    def set_start(self, index: int) -> None:
        self.start = index
        self._notify()

    def set_end(self, index: int) -> None:
        self.end = index
        self._notify()

    def clear(self) -> None:
        self.start = None
        self.end = None
        self._notify()

    # ==================== Queries ====================

    @property
    def state(self) -> SelectionState:
        if self.start is None and self.end is None:
            return SelectionState.EMPTY
        if self.end is None:
            return SelectionState.PARTIAL_START
        if self.start is None:
            return SelectionState.PARTIAL_END
        return SelectionState.RANGE

    @property
    def is_valid_range(self) -> bool:
        return self.start is not None and self.end is not None and self.end > self.start

    def require_range(self) -> tuple[int, int]:
        """Return ``(start, end)`` or raise ValidationError for a degenerate range."""
        if not self.is_valid_range:
            raise ValidationError(f"Selection {self.start}..{self.end} is not a valid range")
        return self.start, self.end

    def contains(self, index: int) -> bool:
        """True if both bounds are set and *index* lies between them inclusive."""
        return (
            self.start is not None
            and self.end is not None
            and self.start <= index <= self.end
        )

    def highlight(self, index: int) -> Highlight:
        if index == self.start or index == self.end:
            return Highlight.SELECTED
        if self.contains(index):
            return Highlight.BETWEEN
        if self.start is not None or self.end is not None:
            return Highlight.CLEARABLE
        return Highlight.DEFAULT

    def __repr__(self) -> str:
        return f"Selection(start={self.start!r}, end={self.end!r})"
