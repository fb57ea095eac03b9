"""Hierarchical, restorable summaries of chat transcripts."""

from .errors import (
    GenerationError,
    InlineSummaryError,
    PathResolutionError,
    RestoreError,
    RevertError,
    SwapError,
    ValidationError,
)
from .messages import Message, SummaryMessage, create_summary, has_originals, restore_originals
from .navigation import DisclosureView, MessagePath, resolve_path
from .orchestrator import InlineSummaries, SummaryMode
from .prompt_builder import build_prompt
from .selection import Highlight, Selection, SelectionState
from .settings import SummarySettings
from .store import InMemoryMessageStore, MessageStore

__all__ = [
    "GenerationError",
    "InlineSummaryError",
    "PathResolutionError",
    "RestoreError",
    "RevertError",
    "SwapError",
    "ValidationError",
    "Message",
    "SummaryMessage",
    "create_summary",
    "has_originals",
    "restore_originals",
    "DisclosureView",
    "MessagePath",
    "resolve_path",
    "InlineSummaries",
    "SummaryMode",
    "build_prompt",
    "Highlight",
    "Selection",
    "SelectionState",
    "SummarySettings",
    "InMemoryMessageStore",
    "MessageStore",
]
