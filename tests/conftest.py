"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from inline_summaries.errors import SwapError
from inline_summaries.messages import Message
from inline_summaries.settings import SummarySettings
from inline_summaries.storage import Database
from inline_summaries.store import InMemoryMessageStore


class DummyLLM:
    """Dummy LLM that returns predictable responses for testing."""

    def __init__(self, response: str = "A short summary."):
        self.response = response
        self.prompts: list[str] = []
        self.max_tokens: list[int | None] = []

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        self.max_tokens.append(max_tokens)
        return self.response


class FailingLLM:
    """LLM whose every call fails."""

    def __init__(self, error: Exception | None = None):
        self.error = error or RuntimeError("backend unavailable")
        self.calls = 0

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.calls += 1
        raise self.error


class FakeEnvironment:
    """In-memory profile/preset service that records every switch."""

    def __init__(self, kind: str, current: str, names=(), fail_on=(), log=None):
        self.kind = kind
        self.current = current
        self.names = list(names)
        self.fail_on = set(fail_on)
        self.log = log if log is not None else []

    def get_current(self) -> str:
        return self.current

    def list_names(self) -> list[str]:
        return list(self.names)

    async def switch_to(self, name: str) -> None:
        self.log.append((self.kind, name))
        if name in self.fail_on:
            raise SwapError(kind=self.kind, name=name)
        self.current = name


def make_messages(*texts: str) -> list[Message]:
    """Alternate user/character messages with the given bodies."""
    return [
        Message(name="User" if i % 2 == 0 else "Char", text=text, is_user=i % 2 == 0)
        for i, text in enumerate(texts)
    ]


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def db(temp_dir):
    """Create a database in a temporary directory."""
    return Database(temp_dir / "test.db")


@pytest.fixture
def settings():
    """Settings with a short, fixed start prompt."""
    return SummarySettings(start_prompt="Summarise this.")


@pytest.fixture
def three_messages():
    return make_messages("Hello there", "General Kenobi", "You are a bold one")


@pytest.fixture
def store(three_messages):
    return InMemoryMessageStore(three_messages)


@pytest.fixture
def dummy_llm():
    return DummyLLM()
