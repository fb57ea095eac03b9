"""Message store interface consumed by the summarization workflow."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from .messages import Message

_LOG = logging.getLogger(__name__)


class MessageStore(Protocol):
    """Ordered, host-owned list of conversation messages.

    ``read_sequence`` returns the live list: edits to messages in it are
    persisted by the next ``commit``.
    """

    def read_sequence(self) -> list[Message]:
        ...

    def splice_replace(self, index: int, delete_count: int, insert: Sequence[Message]) -> None:
        ...

    async def commit(self) -> None:
        ...


class InMemoryMessageStore:
    """Message store that lives only in memory; commits are counted."""

    def __init__(self, messages: Sequence[Message] | None = None):
        self._messages: list[Message] = list(messages or [])
        self.commit_count = 0
        self.mutation_count = 0

    def read_sequence(self) -> list[Message]:
        return self._messages

    def splice_replace(self, index: int, delete_count: int, insert: Sequence[Message]) -> None:
        self._messages[index : index + delete_count] = list(insert)
        self.mutation_count += 1

    async def commit(self) -> None:
        self.commit_count += 1
        _LOG.debug("In-memory commit #%d (%d messages)", self.commit_count, len(self._messages))
