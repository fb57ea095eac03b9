"""Message types and the recursive summary tree.

A conversation is an ordered list of :class:`Message` objects. A
:class:`SummaryMessage` replaces a contiguous block of them and keeps the
replaced messages as ``originals``; those originals may be summaries too,
so the structure is a tree of unbounded depth.

Messages travel to and from the host as JSON objects::

    {"name": ..., "is_user": ..., "is_system": ..., "mes": ..., "extra": {...}}

with summary data stored at ``extra["ILS_Data"]["OriginalMessages"]``.
"""

from __future__ import annotations

import copy
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from .errors import RestoreError, ValidationError

EXTRA_DATA_KEY = "ILS_Data"
ORIGINAL_MESSAGES_KEY = "OriginalMessages"

SUMMARY_AUTHOR = "Summary"
GENERATING_PLACEHOLDER = "Generating..."
MANUAL_PLACEHOLDER = "[This is where I'd put the manual summary... if you wrote one!]"


@dataclass
class Message:
    """A single chat message.

    ``extra`` is the host's opaque extension map and ``attributes`` holds any
    other top-level fields the host stores (send dates, swipes, ...). Both
    are carried through untouched.
    """

    name: str
    text: str
    is_user: bool = False
    is_system: bool = False
    extra: dict[str, Any] = field(default_factory=dict)
    attributes: dict[str, Any] = field(default_factory=dict)

    @property
    def is_summary(self) -> bool:
        return False


@dataclass
class SummaryMessage(Message):
    """A message standing in for the ``originals`` it replaced."""

    originals: list[Message] | None = None

    @property
    def is_summary(self) -> bool:
        return bool(self.originals)


def has_originals(message: Message | None) -> bool:
    """Return True if *message* is a summary still holding its originals."""
    return isinstance(message, SummaryMessage) and bool(message.originals)


def create_summary(originals: Sequence[Message]) -> SummaryMessage:
    """Wrap *originals* in a new summary with a placeholder body."""
    if not originals:
        raise ValidationError("A summary must cover at least one message")
    return SummaryMessage(
        name=SUMMARY_AUTHOR,
        text=GENERATING_PLACEHOLDER,
        originals=list(originals),
    )


def restore_originals(summary: Message) -> list[Message]:
    """Detach and return the originals held by *summary*.

    The summary is left without originals, so the caller must remove it
    from the conversation in the same operation.
    """
    if not isinstance(summary, SummaryMessage):
        raise RestoreError("Message is not a summary")
    if not summary.originals:
        raise RestoreError("Summary has no original messages to restore")
    originals = summary.originals
    summary.originals = None
    return originals


# ==================== Wire format ====================

def message_from_dict(data: dict[str, Any]) -> Message:
    """Decode a host message object, recursing into nested originals."""
    fields = dict(data)
    name = fields.pop("name", "") or ""
    text = fields.pop("mes", "") or ""
    is_user = bool(fields.pop("is_user", False))
    is_system = bool(fields.pop("is_system", False))
    extra = copy.deepcopy(fields.pop("extra", None) or {})

    raw_originals = None
    summary_data = extra.get(EXTRA_DATA_KEY)
    if isinstance(summary_data, dict):
        summary_data = dict(summary_data)
        raw_originals = summary_data.pop(ORIGINAL_MESSAGES_KEY, None)
        if summary_data:
            extra[EXTRA_DATA_KEY] = summary_data
        else:
            del extra[EXTRA_DATA_KEY]

    if isinstance(raw_originals, list) and raw_originals:
        return SummaryMessage(
            name=name,
            text=text,
            is_user=is_user,
            is_system=is_system,
            extra=extra,
            attributes=fields,
            originals=[message_from_dict(item) for item in raw_originals],
        )
    return Message(
        name=name,
        text=text,
        is_user=is_user,
        is_system=is_system,
        extra=extra,
        attributes=fields,
    )


def message_to_dict(message: Message) -> dict[str, Any]:
    """Encode *message* (and any nested originals) as a host message object."""
    data: dict[str, Any] = copy.deepcopy(message.attributes)
    data["name"] = message.name
    data["is_user"] = message.is_user
    data["is_system"] = message.is_system
    data["mes"] = message.text

    extra = copy.deepcopy(message.extra)
    if has_originals(message):
        summary_data = dict(extra.get(EXTRA_DATA_KEY) or {})
        summary_data[ORIGINAL_MESSAGES_KEY] = [message_to_dict(m) for m in message.originals]
        extra[EXTRA_DATA_KEY] = summary_data
    data["extra"] = extra
    return data
