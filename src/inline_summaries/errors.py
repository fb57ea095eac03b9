"""Exception types raised by the summary tree and its orchestration."""

from __future__ import annotations


class InlineSummaryError(RuntimeError):
    """Base class for all inline summary errors."""


class ValidationError(InlineSummaryError):
    """Raised when a selection is not a usable range for summarization."""


class GenerationError(InlineSummaryError):
    """Raised when the generation backend fails to produce text."""


class PathResolutionError(InlineSummaryError):
    """Raised when a textual message path cannot be parsed."""


class RestoreError(InlineSummaryError):
    """Raised when restoring a message that holds no originals."""


class SwapError(InlineSummaryError):
    """Raised when switching a generation profile or preset fails."""

    def __init__(self, *, kind: str, name: str, reason: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.reason = reason
        message = f"Failed to swap {kind} to: {name}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class RevertError(InlineSummaryError):
    """Raised (and reported, never propagated) when a swap cannot be undone."""

    def __init__(self, *, kind: str, name: str, reason: str | None = None) -> None:
        self.kind = kind
        self.name = name
        self.reason = reason
        message = f"Failed to restore {kind} to: {name}. Please check the {kind} manually."
        if reason:
            message += f" ({reason})"
        super().__init__(message)
