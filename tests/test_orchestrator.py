"""Tests for the summarize/restore/regenerate workflow."""

from __future__ import annotations

import asyncio

import pytest

from inline_summaries.errors import InlineSummaryError, RestoreError
from inline_summaries.messages import GENERATING_PLACEHOLDER, MANUAL_PLACEHOLDER, has_originals
from inline_summaries.navigation import MessagePath
from inline_summaries.orchestrator import InlineSummaries, SummaryMode, failure_text
from inline_summaries.selection import Highlight
from inline_summaries.store import InMemoryMessageStore

from conftest import DummyLLM, FailingLLM, FakeEnvironment, make_messages


class GatedLLM:
    """LLM that waits for the test to release it, recording what it saw."""

    def __init__(self, store: InMemoryMessageStore):
        self.store = store
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.seen_text = None
        self.seen_commits = None

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.seen_text = self.store.read_sequence()[0].text
        self.seen_commits = self.store.commit_count
        self.started.set()
        await self.release.wait()
        return "released"


def make_app(store, llm=None, settings=None, profiles=None, presets=None):
    errors = []
    app = InlineSummaries(
        generator=llm or DummyLLM(),
        settings=settings,
        profiles=profiles,
        presets=presets,
        report_error=errors.append,
    )
    app.open_conversation(store)
    return app, errors


def select(app, start, end):
    app.set_range_start(start)
    app.set_range_end(end)


class TestManualSummary:
    """Scenario: manual summary of three plain messages, then restore."""

    @pytest.mark.asyncio
    async def test_manual_summary_replaces_range(self, store, three_messages, settings):
        originals = list(three_messages)
        app, _ = make_app(store, settings=settings)
        select(app, 0, 2)

        summary = await app.summarize(SummaryMode.MANUAL)

        messages = store.read_sequence()
        assert len(messages) == 1
        assert messages[0] is summary
        assert summary.text == MANUAL_PLACEHOLDER
        assert summary.originals == originals
        assert store.commit_count == 1

    @pytest.mark.asyncio
    async def test_restore_returns_original_sequence(self, store, three_messages, settings):
        originals = list(three_messages)
        app, _ = make_app(store, settings=settings)
        select(app, 0, 2)
        await app.summarize(SummaryMode.MANUAL)

        restored = await app.restore(0)

        assert restored == originals
        assert store.read_sequence() == originals
        assert not any(has_originals(m) for m in store.read_sequence())

    @pytest.mark.asyncio
    async def test_summarize_clears_selection(self, store, settings):
        app, _ = make_app(store, settings=settings)
        select(app, 0, 1)

        await app.summarize(SummaryMode.MANUAL)

        assert app.selection.start is None
        assert app.selection.end is None
        assert app.highlight(0) == Highlight.DEFAULT

    @pytest.mark.asyncio
    async def test_partial_range_keeps_surrounding_messages(self, settings):
        store = InMemoryMessageStore(make_messages("a", "b", "c", "d", "e"))
        app, _ = make_app(store, settings=settings)
        select(app, 1, 3)

        await app.summarize(SummaryMode.MANUAL)

        texts = [m.text for m in store.read_sequence()]
        assert texts == ["a", MANUAL_PLACEHOLDER, "e"]
        assert [m.text for m in store.read_sequence()[1].originals] == ["b", "c", "d"]

    @pytest.mark.asyncio
    async def test_summaries_nest(self, settings):
        store = InMemoryMessageStore(make_messages("m0", "m1", "m2", "m3", "m4"))
        app, _ = make_app(store, settings=settings)

        select(app, 0, 1)
        await app.summarize(SummaryMode.MANUAL)
        select(app, 0, 2)
        await app.summarize(SummaryMode.MANUAL)

        messages = store.read_sequence()
        assert len(messages) == 2
        assert app.resolve_path(MessagePath.of(0, 0, 1)).text == "m1"
        assert app.resolve_path(MessagePath.of(0, 2)).text == "m3"

        # Restoring the outer summary brings back the inner one intact
        await app.restore(0)
        assert has_originals(store.read_sequence()[0])
        assert len(store.read_sequence()) == 4


class TestInvalidRanges:
    """A summarize call without a usable range changes nothing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "start,end",
        [(None, None), (0, None), (None, 2), (1, 1), (2, 0), (0, 3), (-1, 1)],
    )
    @pytest.mark.parametrize("mode", [SummaryMode.AI, SummaryMode.MANUAL])
    async def test_zero_mutations(self, store, settings, start, end, mode):
        llm = DummyLLM()
        app, errors = make_app(store, llm=llm, settings=settings)
        if start is not None:
            app.set_range_start(start)
        if end is not None:
            app.set_range_end(end)

        result = await app.summarize(mode)

        assert result is None
        assert store.mutation_count == 0
        assert store.commit_count == 0
        assert llm.prompts == []
        assert errors == []

    @pytest.mark.asyncio
    async def test_same_range_is_not_summarized_twice(self, store, settings):
        llm = GatedLLM(store)
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 0, 2)

        first = asyncio.ensure_future(app.summarize())
        await llm.started.wait()
        second = await app.summarize()
        llm.release.set()
        summary = await first

        assert second is None
        assert summary.text == "released"
        assert len(store.read_sequence()) == 1


class TestAISummary:
    """Tests for generated summaries."""

    @pytest.mark.asyncio
    async def test_generated_body(self, store, settings):
        llm = DummyLLM("They met and argued.")
        app, errors = make_app(store, llm=llm, settings=settings)
        select(app, 0, 2)

        summary = await app.summarize(SummaryMode.AI)

        assert summary.text == "They met and argued."
        assert store.read_sequence() == [summary]
        assert store.commit_count == 2
        assert errors == []
        assert "Hello there\nGeneral Kenobi\nYou are a bold one" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_placeholder_committed_before_generation_finishes(self, store, settings):
        llm = GatedLLM(store)
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 0, 2)

        task = asyncio.ensure_future(app.summarize())
        await llm.started.wait()

        assert store.read_sequence()[0].text == GENERATING_PLACEHOLDER
        assert llm.seen_commits == 1

        llm.release.set()
        summary = await task
        assert summary.text == "released"

    @pytest.mark.asyncio
    async def test_prompt_uses_preceding_history(self, settings):
        llm = DummyLLM()
        store = InMemoryMessageStore(make_messages("h0", "h1", "x", "y"))
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 2, 3)

        await app.summarize()

        assert llm.prompts[0].splitlines()[1:4] == ["<Historical_Context>", "h0", "h1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,expected", [(0, None), (250, 250)])
    async def test_token_limit(self, store, settings, limit, expected):
        llm = DummyLLM()
        settings.token_limit = limit
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 0, 1)

        await app.summarize()

        assert llm.max_tokens == [expected]

    @pytest.mark.asyncio
    async def test_generation_failure_leaves_diagnostic_summary(self, store, settings):
        llm = FailingLLM(RuntimeError("token budget exhausted"))
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 0, 2)

        summary = await app.summarize()

        messages = store.read_sequence()
        assert len(messages) == 1
        assert messages[0] is summary
        assert len(summary.originals) == 3
        assert summary.text.startswith("[Failed to get a response]")
        assert "token budget exhausted" in summary.text
        assert summary.text == failure_text(llm.error)


class TestEnvironmentSwaps:
    """Profile/preset swaps around AI summaries."""

    @pytest.fixture
    def swap_log(self):
        return []

    @pytest.fixture
    def profiles(self, swap_log):
        return FakeEnvironment("profile", "<None>", names=["cheap"], log=swap_log)

    @pytest.fixture
    def presets(self, swap_log):
        return FakeEnvironment("preset", "", names=["fast"], log=swap_log)

    @pytest.fixture
    def swap_settings(self, settings):
        settings.use_different_profile = True
        settings.profile_name = "cheap"
        settings.use_different_preset = True
        settings.preset_name = "fast"
        return settings

    @pytest.mark.asyncio
    async def test_swaps_applied_and_reverted_in_reverse(self, store, swap_settings, profiles, presets, swap_log):
        app, errors = make_app(store, settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        await app.summarize()

        assert swap_log == [("profile", "cheap"), ("preset", "fast"), ("preset", ""), ("profile", "<None>")]
        assert profiles.current == "<None>"
        assert presets.current == ""
        assert errors == []

    @pytest.mark.asyncio
    async def test_generation_runs_under_swapped_profile(self, store, swap_settings, profiles, presets):
        seen = []

        class RecordingLLM:
            async def generate(self, prompt, *, max_tokens=None):
                seen.append((profiles.current, presets.current))
                return "ok"

        app, _ = make_app(store, llm=RecordingLLM(), settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        await app.summarize()

        assert seen == [("cheap", "fast")]

    @pytest.mark.asyncio
    async def test_disabled_swaps_are_skipped(self, store, settings, profiles, presets, swap_log):
        settings.use_different_profile = True
        settings.profile_name = "<None>"
        settings.use_different_preset = False
        settings.preset_name = "fast"
        app, _ = make_app(store, settings=settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        await app.summarize()

        assert swap_log == []

    @pytest.mark.asyncio
    async def test_manual_summary_never_swaps(self, store, swap_settings, profiles, presets, swap_log):
        app, _ = make_app(store, settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        await app.summarize(SummaryMode.MANUAL)

        assert swap_log == []

    @pytest.mark.asyncio
    async def test_failed_swap_aborts_without_mutation(self, store, swap_settings, profiles, presets, swap_log):
        presets.fail_on = {"fast"}
        llm = DummyLLM()
        app, errors = make_app(store, llm=llm, settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        result = await app.summarize()

        assert result is None
        assert store.mutation_count == 0
        assert store.commit_count == 0
        assert llm.prompts == []
        # The profile swap that did succeed is undone
        assert swap_log == [("profile", "cheap"), ("preset", "fast"), ("profile", "<None>")]
        assert profiles.current == "<None>"
        assert errors == ["Failed to swap preset to: fast\nGeneration Aborted."]

    @pytest.mark.asyncio
    async def test_failed_profile_swap_skips_preset(self, store, swap_settings, profiles, presets, swap_log):
        profiles.fail_on = {"cheap"}
        app, errors = make_app(store, settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        assert await app.summarize() is None
        assert swap_log == [("profile", "cheap")]
        assert errors == ["Failed to swap profile to: cheap\nGeneration Aborted."]

    @pytest.mark.asyncio
    async def test_swaps_reverted_after_generation_failure(self, store, swap_settings, profiles, presets, swap_log):
        app, errors = make_app(store, llm=FailingLLM(), settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        summary = await app.summarize()

        assert summary.text.startswith("[Failed to get a response]")
        assert swap_log[-2:] == [("preset", ""), ("profile", "<None>")]
        assert profiles.current == "<None>"
        assert presets.current == ""

    @pytest.mark.asyncio
    async def test_revert_failure_is_reported_not_raised(self, store, swap_settings, profiles, presets):
        profiles.fail_on = {"<None>"}
        app, errors = make_app(store, settings=swap_settings, profiles=profiles, presets=presets)
        select(app, 0, 2)

        summary = await app.summarize()

        assert summary is not None
        assert summary.text == "A short summary."
        assert errors == ["Failed to restore profile to: <None>. Please check the profile manually."]


class TestRestore:
    """Tests for restore errors."""

    @pytest.mark.asyncio
    async def test_restore_plain_message_raises(self, store, settings):
        app, _ = make_app(store, settings=settings)
        with pytest.raises(RestoreError):
            await app.restore(0)
        assert store.mutation_count == 0

    @pytest.mark.asyncio
    async def test_restore_out_of_range_raises(self, store, settings):
        app, _ = make_app(store, settings=settings)
        with pytest.raises(RestoreError):
            await app.restore(7)

    @pytest.mark.asyncio
    async def test_restore_collapses_view(self, store, settings):
        app, _ = make_app(store, settings=settings)
        select(app, 0, 2)
        await app.summarize(SummaryMode.MANUAL)
        app.view.expand(MessagePath.of(0))

        await app.restore(0)

        assert app.view.expanded_paths() == []


class TestRegenerate:
    """Tests for regenerating a summary body."""

    @pytest.mark.asyncio
    async def test_regenerate_replaces_body(self, store, settings):
        llm = DummyLLM("fresh")
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 0, 2)
        await app.summarize(SummaryMode.MANUAL)
        commits = store.commit_count

        assert await app.regenerate(0) is True

        assert store.read_sequence()[0].text == "fresh"
        assert len(store.read_sequence()[0].originals) == 3
        assert store.commit_count == commits + 1
        assert "General Kenobi" in llm.prompts[0]

    @pytest.mark.asyncio
    async def test_regenerate_passes_token_limit(self, store, settings):
        llm = DummyLLM()
        settings.token_limit = 64
        app, _ = make_app(store, llm=llm, settings=settings)
        select(app, 0, 2)
        await app.summarize(SummaryMode.MANUAL)

        await app.regenerate(0)

        assert llm.max_tokens == [64]

    @pytest.mark.asyncio
    async def test_regenerate_failure_keeps_body(self, store, settings):
        app, errors = make_app(store, llm=FailingLLM(), settings=settings)
        select(app, 0, 2)
        await app.summarize(SummaryMode.MANUAL)
        commits = store.commit_count

        assert await app.regenerate(0) is False

        assert store.read_sequence()[0].text == MANUAL_PLACEHOLDER
        assert store.commit_count == commits
        assert len(errors) == 1
        assert "backend unavailable" in errors[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("index", [0, 5, -1])
    async def test_regenerate_non_summary(self, store, settings, index):
        llm = DummyLLM()
        app, _ = make_app(store, llm=llm, settings=settings)

        assert await app.regenerate(index) is False
        assert llm.prompts == []


class TestLifecycle:
    """Tests for opening, closing and change notification."""

    def test_no_conversation(self):
        app = InlineSummaries(generator=DummyLLM())
        with pytest.raises(InlineSummaryError):
            app.messages()

    def test_open_conversation_clears_selection(self, store, settings):
        app, _ = make_app(store, settings=settings)
        select(app, 0, 2)

        app.open_conversation(InMemoryMessageStore(make_messages("x")))

        assert app.selection.start is None
        assert [m.text for m in app.messages()] == ["x"]

    @pytest.mark.asyncio
    async def test_listeners_notified_on_changes(self, store, settings):
        calls = []
        app, _ = make_app(store, settings=settings)
        app.add_listener(lambda: calls.append("changed"))

        app.set_range_start(0)
        assert calls == ["changed"]
        app.set_range_end(2)
        await app.summarize(SummaryMode.MANUAL)

        # end set, commit, selection cleared
        assert len(calls) == 4

    def test_close_drops_listeners(self, store, settings):
        calls = []
        app, _ = make_app(store, settings=settings)
        app.add_listener(lambda: calls.append("changed"))

        app.close()
        app.set_range_start(0)

        assert calls == []
        with pytest.raises(InlineSummaryError):
            app.messages()
