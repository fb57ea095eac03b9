"""Summary prompt settings and the default start prompt.

The default start prompt is non-secret text better kept in a file under
source control; everything else is a persisted key/value setting (see
``storage.SettingsRepository``).
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional


# --------------------- Default start prompt ---------------------

# Fallback default (used if no file is provided or readable).
_FALLBACK_START_PROMPT: str = (
    "You are summarising part of a roleplay chat so it can be replaced by a shorter record.\n\n"
    "What you are given\n"
    "• A historical context block with the messages that came before. Use it only to resolve names, places and references.\n"
    "• A block of content to summarise. Only this content goes into the summary.\n\n"
    "How to write the summary\n"
    "• Keep every plot point, decision, change in relationships, and piece of information a reader would need later.\n"
    "• Write in past tense and third person, in plain prose. No lists, headings, or commentary.\n"
    "• Do not invent events or continue the story.\n"
    "• Respond with the summary text only.\n"
)

NO_PROFILE = "<None>"

_START_PROMPT_CACHE: Optional[str] = None
_START_PROMPT_MTIME: Optional[float] = None
_START_PROMPT_PATH: Optional[Path] = None


def _project_root() -> Path:
    """Return the repository root path if determinable from this file.

    settings.py lives at src/inline_summaries/settings.py.
    repo root is two levels up from src/inline_summaries -> src -> repo.
    """
    return Path(__file__).resolve().parents[2]


def _candidate_prompt_paths() -> list[Path]:
    """Return possible paths for the default start prompt file.

    Priority order:
    1) INLINE_SUMMARIES_PROMPT_FILE (as-is); if relative, also try as repo-root-relative.
    2) config/default_prompt.txt (repo-root-relative).
    """
    env_val = os.getenv("INLINE_SUMMARIES_PROMPT_FILE", "").strip()
    candidates: list[Path] = []
    if env_val:
        p = Path(env_val).expanduser()
        candidates.append(p)
        if not p.is_absolute():
            candidates.append(_project_root() / p)
    candidates.append(_project_root() / "config" / "default_prompt.txt")
    return candidates


def get_default_start_prompt() -> str:
    """Load the default start prompt from a file if available.

    - If INLINE_SUMMARIES_PROMPT_FILE is set, use that path (absolute or repo-root-relative).
    - Else, try repo-root `config/default_prompt.txt`.
    - Fall back to the built-in prompt if none found/readable.

    Uses a simple mtime cache to avoid re-reading unchanged files.
    """
    global _START_PROMPT_CACHE, _START_PROMPT_MTIME, _START_PROMPT_PATH  # noqa: PLW0603

    for path in _candidate_prompt_paths():
        try:
            if path.exists() and path.is_file():
                mtime = path.stat().st_mtime
                if _START_PROMPT_PATH == path and _START_PROMPT_CACHE is not None and _START_PROMPT_MTIME == mtime:
                    return _START_PROMPT_CACHE
                text = path.read_text(encoding="utf-8")
                _START_PROMPT_CACHE = text
                _START_PROMPT_MTIME = mtime
                _START_PROMPT_PATH = path
                return text
        except OSError:
            continue
    return _FALLBACK_START_PROMPT


# --------------------- Persisted settings ---------------------

def _to_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return default


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass
class SummarySettings:
    """Everything that shapes the summary prompt and its environment."""

    start_prompt: str = ""
    mid_prompt: str = ""
    end_prompt: str = ""
    historical_context_depth: int = -1
    historical_context_start_marker: str = "<Historical_Context>"
    historical_context_end_marker: str = "</Historical_Context>"
    summarise_start_marker: str = "<Content_To_Summarise>"
    summarise_end_marker: str = "</Content_To_Summarise>"
    token_limit: int = 0
    use_different_profile: bool = False
    profile_name: str = NO_PROFILE
    use_different_preset: bool = False
    preset_name: str = ""

    def __post_init__(self) -> None:
        if not self.start_prompt:
            self.start_prompt = get_default_start_prompt()

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_mapping(cls, values: dict[str, Any]) -> SummarySettings:
        """Build settings from stored values, filling gaps with defaults."""
        settings = cls()
        for key, value in values.items():
            if key in cls.keys():
                settings.set(key, value)
        return settings

    def set(self, key: str, value: Any) -> None:
        """Assign one setting, coercing it to the setting's type."""
        if key not in self.keys():
            raise KeyError(f"Unknown setting: {key}")
        if key == "historical_context_depth":
            value = _to_int(value, -1)
        elif key == "token_limit":
            value = _to_int(value, 0)
        elif key in ("use_different_profile", "use_different_preset"):
            value = _to_bool(value)
        else:
            value = "" if value is None else str(value)
        setattr(self, key, value)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def profile_swap_enabled(self) -> bool:
        return self.use_different_profile and self.profile_name not in ("", NO_PROFILE)

    @property
    def preset_swap_enabled(self) -> bool:
        return self.use_different_preset and self.preset_name != ""
