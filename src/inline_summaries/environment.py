"""Generation profiles, presets, and temporarily swapping between them.

A *profile* picks the backend (api + model); a *preset* picks sampling
parameters. Summaries can run under a different profile/preset than the
one normally active, which is switched back afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Protocol

from .errors import RevertError, SwapError
from .settings import NO_PROFILE, SummarySettings
from .storage import Database

_LOG = logging.getLogger(__name__)


class EnvironmentService(Protocol):
    """Something with a current named selection that can be switched."""

    kind: str

    def get_current(self) -> str:
        ...

    async def switch_to(self, name: str) -> None:
        """Switch to *name*, raising SwapError on failure."""
        ...

    def list_names(self) -> list[str]:
        ...


@dataclass
class GenerationProfile:
    name: str
    api: str
    model: str


@dataclass
class GenerationPreset:
    name: str
    temperature: float | None = None
    max_tokens: int | None = None


class _SqliteEnvironmentService:
    """Named entries in one table plus the active name in ``active_environment``."""

    kind = ""
    table = ""
    none_name = ""

    def __init__(self, db: Database):
        self.db = db

    def get_current(self) -> str:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT name FROM active_environment WHERE kind = ?", (self.kind,)
            ).fetchone()
        return row[0] if row else self.none_name

    def list_names(self) -> list[str]:
        with self.db.connect() as conn:
            cursor = conn.execute(f"SELECT name FROM {self.table} ORDER BY name ASC")
            return [row[0] for row in cursor.fetchall()]

    def _set_active(self, name: str) -> None:
        with self.db.connect() as conn:
            if name in ("", NO_PROFILE):
                conn.execute("DELETE FROM active_environment WHERE kind = ?", (self.kind,))
            else:
                conn.execute(
                    "INSERT OR REPLACE INTO active_environment (kind, name) VALUES (?, ?)",
                    (self.kind, name),
                )

    async def switch_to(self, name: str) -> None:
        if name not in ("", NO_PROFILE) and name not in self.list_names():
            raise SwapError(kind=self.kind, name=name, reason="not found")
        await asyncio.to_thread(self._set_active, name)
        _LOG.info("Active %s is now %r", self.kind, name or self.none_name)

    def remove(self, name: str) -> None:
        with self.db.connect() as conn:
            conn.execute(f"DELETE FROM {self.table} WHERE name = ?", (name,))


class ProfileService(_SqliteEnvironmentService):
    kind = "profile"
    table = "generation_profiles"
    none_name = NO_PROFILE

    def add(self, name: str, api: str, model: str) -> GenerationProfile:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO generation_profiles (name, api, model) VALUES (?, ?, ?)",
                (name, api, model),
            )
        return GenerationProfile(name, api, model)

    def get(self, name: str) -> GenerationProfile | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT name, api, model FROM generation_profiles WHERE name = ?", (name,)
            ).fetchone()
        return GenerationProfile(*row) if row else None

    def active(self) -> GenerationProfile | None:
        return self.get(self.get_current())


class PresetService(_SqliteEnvironmentService):
    kind = "preset"
    table = "generation_presets"
    none_name = ""

    def add(self, name: str, temperature: float | None = None, max_tokens: int | None = None) -> GenerationPreset:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO generation_presets (name, temperature, max_tokens) VALUES (?, ?, ?)",
                (name, temperature, max_tokens),
            )
        return GenerationPreset(name, temperature, max_tokens)

    def get(self, name: str) -> GenerationPreset | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT name, temperature, max_tokens FROM generation_presets WHERE name = ?", (name,)
            ).fetchone()
        return GenerationPreset(*row) if row else None

    def active(self) -> GenerationPreset | None:
        return self.get(self.get_current())


# ==================== Scoped swapping ====================

@dataclass
class PlannedSwap:
    service: EnvironmentService
    target: str


def planned_swaps(
    settings: SummarySettings,
    profiles: EnvironmentService | None,
    presets: EnvironmentService | None,
) -> list[PlannedSwap]:
    """The swaps *settings* ask for, profile first."""
    swaps = []
    if profiles is not None and settings.profile_swap_enabled:
        swaps.append(PlannedSwap(profiles, settings.profile_name))
    if presets is not None and settings.preset_swap_enabled:
        swaps.append(PlannedSwap(presets, settings.preset_name))
    return swaps


@asynccontextmanager
async def environment_swap(
    swaps: Sequence[PlannedSwap],
    report_error: Callable[[str], None] | None = None,
) -> AsyncIterator[None]:
    """Apply *swaps* for the duration of the block.

    Swaps are applied in order and undone in reverse order however the
    block exits. If a swap fails, the ones already applied are undone and
    SwapError is raised before the block runs. Failures while undoing are
    logged and reported but never raised.
    """
    performed: list[tuple[EnvironmentService, str]] = []
    try:
        for swap in swaps:
            kind = swap.service.kind
            try:
                previous = swap.service.get_current()
                await swap.service.switch_to(swap.target)
            except SwapError:
                _LOG.error("Failed to swap %s to %r", kind, swap.target)
                raise
            except Exception as exc:
                _LOG.error("Failed to swap %s to %r: %s", kind, swap.target, exc)
                raise SwapError(kind=kind, name=swap.target, reason=str(exc)) from exc
            performed.append((swap.service, previous))
            _LOG.debug("Swapped %s %r -> %r", kind, previous, swap.target)
        yield
    finally:
        await _revert(performed, report_error)


async def _revert(
    performed: list[tuple[EnvironmentService, str]],
    report_error: Callable[[str], None] | None,
) -> None:
    for service, previous in reversed(performed):
        try:
            await service.switch_to(previous)
        except Exception as exc:
            reason = exc.reason if isinstance(exc, SwapError) else str(exc)
            error = RevertError(kind=service.kind, name=previous, reason=reason)
            _LOG.error("%s", error)
            if report_error is not None:
                report_error(str(error))


def reconcile_settings(
    settings: SummarySettings,
    profiles: EnvironmentService,
    presets: EnvironmentService,
) -> list[str]:
    """Disable swaps whose saved profile/preset no longer exists.

    Returns warning texts for each setting changed; the caller persists
    *settings* when the list is non-empty.
    """
    warnings = []
    if settings.profile_name not in ("", NO_PROFILE) and settings.profile_name not in profiles.list_names():
        warnings.append(
            f"Saved profile {settings.profile_name!r} not found. "
            f"Using a different profile has been disabled and reverted to {NO_PROFILE}"
        )
        settings.use_different_profile = False
        settings.profile_name = NO_PROFILE
    if settings.preset_name != "" and settings.preset_name not in presets.list_names():
        warnings.append(
            f"Saved preset {settings.preset_name!r} not found. Using a different preset has been disabled."
        )
        settings.use_different_preset = False
    for warning in warnings:
        _LOG.warning("%s", warning)
    return warnings
