"""Unit tests for query evaluation against a session repository."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from chat_search.search.ast_nodes import SearchNode
from chat_search.search.cancellation import CancellationToken
from chat_search.search.executor import MatchResult, SearchExecutor, iter_batches
from chat_search.search.options import SearchSettings
from chat_search.search.parser import parse_query
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData
from chat_search.store.repository import InMemorySessionRepository


async def _run(
    repo: InMemorySessionRepository,
    query: str | SearchNode,
    token: CancellationToken | None = None,
    **settings: object,
) -> MatchResult:
    node = parse_query(query) if isinstance(query, str) else query
    sessions = await repo.list_sessions()
    executor = SearchExecutor(
        sessions, repo, token or CancellationToken(), SearchSettings(**settings)
    )
    return await executor.execute(node)


class FlakyRepository(InMemorySessionRepository):
    """Repository whose message loads fail or stall for chosen sessions."""

    def __init__(self, *args, failing=(), slow=(), **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.failing = set(failing)
        self.slow = set(slow)

    async def get_messages(self, session_id: str) -> list[ChatMessage]:
        if session_id in self.failing:
            raise RuntimeError("disk on fire")
        if session_id in self.slow:
            await asyncio.sleep(5)
        return await super().get_messages(session_id)


def _flaky(**kwargs) -> FlakyRepository:
    """The two-session Paris corpus on a FlakyRepository."""
    repo = FlakyRepository(**kwargs)
    repo.add_session(
        ChatSession(id="S1", title="Trip to Paris", last_update=2000),
        [ChatMessage(id="m1", role="user", content="loved the Eiffel Tower")],
    )
    repo.add_session(
        ChatSession(id="S2", title="Notes", last_update=1000),
        [ChatMessage(id="m2", role="user", content="Paris Agreement review")],
    )
    return repo


class TestParisScenario:
    @pytest.mark.asyncio
    async def test_word_matches_title_and_message(self, sample_repository) -> None:
        result = await _run(sample_repository, "paris")
        assert result.matched is True
        assert result.sessions == {"S1", "S2"}
        assert result.matched_terms == ["paris"]

    @pytest.mark.asyncio
    async def test_title_scope(self, sample_repository) -> None:
        result = await _run(sample_repository, "标题:paris")
        assert result.sessions == {"S1"}

    @pytest.mark.asyncio
    async def test_and_intersects(self, sample_repository) -> None:
        result = await _run(sample_repository, "paris agreement")
        assert result.sessions == {"S2"}
        assert result.matched_terms == ["paris", "agreement"]

    @pytest.mark.asyncio
    async def test_or_unions(self, sample_repository) -> None:
        result = await _run(sample_repository, "paris|tower")
        assert result.sessions == {"S1", "S2"}
        assert result.matched_terms == ["paris", "tower"]

    @pytest.mark.asyncio
    async def test_exact_phrase(self, sample_repository) -> None:
        result = await _run(sample_repository, '"paris agreement"')
        assert result.sessions == {"S2"}

    @pytest.mark.asyncio
    async def test_exact_phrase_requires_contiguity(self, sample_repository) -> None:
        assert (await _run(sample_repository, "paris review")).sessions == {"S2"}
        assert (await _run(sample_repository, '"paris review"')).matched is False


class TestBooleanLogic:
    @pytest.mark.asyncio
    async def test_or_drops_unmatched_terms(self, sample_repository) -> None:
        result = await _run(sample_repository, "paris | zzz")
        assert result.sessions == {"S1", "S2"}
        assert result.matched_terms == ["paris"]

    @pytest.mark.asyncio
    async def test_or_of_nothing(self, sample_repository) -> None:
        result = await _run(sample_repository, "yyy | zzz")
        assert result == MatchResult.empty()

    @pytest.mark.asyncio
    async def test_and_with_unmatched_child_is_empty(self, sample_repository) -> None:
        result = await _run(sample_repository, "paris zzz")
        assert result.matched is False
        assert result.sessions == set()
        assert result.matched_terms == []

    @pytest.mark.asyncio
    async def test_and_with_disjoint_children(self, sample_repository) -> None:
        result = await _run(sample_repository, "title:paris agreement")
        assert result.matched is False
        assert result.sessions == set()

    @pytest.mark.asyncio
    async def test_and_short_circuit_skips_later_children(self, sample_repository) -> None:
        spy = AsyncMock(wraps=sample_repository.get_messages)
        sample_repository.get_messages = spy  # type: ignore[method-assign]

        result = await _run(sample_repository, "zzz paris")

        assert result.matched_terms == []
        # Only "zzz" was evaluated: one message load per session.
        assert spy.await_count == 2

    @pytest.mark.asyncio
    async def test_and_short_circuit_after_partial_match(self, sample_repository) -> None:
        spy = AsyncMock(wraps=sample_repository.get_messages)
        sample_repository.get_messages = spy  # type: ignore[method-assign]

        result = await _run(sample_repository, "trip agreement notes")

        assert result.matched is False
        assert result.sessions == set()
        assert result.matched_terms == ["trip", "agreement"]
        # "trip" loads S2 only (S1 hits on its title), "agreement" loads both.
        # Evaluating "notes" would have loaded S1 once more.
        assert spy.await_count == 3

    @pytest.mark.asyncio
    async def test_title_group(self, sample_repository) -> None:
        result = await _run(sample_repository, "title:(notes | paris)")
        assert result.sessions == {"S1", "S2"}
        assert result.matched_terms == ["notes", "paris"]

    @pytest.mark.asyncio
    async def test_title_only_never_loads_messages(self, sample_repository) -> None:
        sample_repository.get_messages = AsyncMock(side_effect=AssertionError)
        result = await _run(sample_repository, "title:trip")
        assert result.sessions == {"S1"}
        sample_repository.get_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_title_match_skips_message_load(self, sample_repository) -> None:
        spy = AsyncMock(wraps=sample_repository.get_messages)
        sample_repository.get_messages = spy  # type: ignore[method-assign]
        await _run(sample_repository, "trip")
        spy.assert_awaited_once_with("S2")


class TestMatching:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("term", ["", "   ", "\t"])
    async def test_blank_terms_never_match(self, sample_repository, term: str) -> None:
        assert (await _run(sample_repository, SearchNode.word(term))).matched is False
        assert (await _run(sample_repository, SearchNode.exact(term))).matched is False
        title_node = SearchNode.title(SearchNode.word(term))
        assert (await _run(sample_repository, title_node)).matched is False

    @pytest.mark.asyncio
    async def test_case_insensitive_by_default(self, sample_repository) -> None:
        assert (await _run(sample_repository, "PARIS")).sessions == {"S1", "S2"}

    @pytest.mark.asyncio
    async def test_case_sensitive(self, sample_repository) -> None:
        assert (await _run(sample_repository, "paris", case_sensitive=True)).matched is False
        result = await _run(sample_repository, "Paris", case_sensitive=True)
        assert result.sessions == {"S1", "S2"}

    @pytest.mark.asyncio
    async def test_multimodal_message_text(self) -> None:
        repo = InMemorySessionRepository()
        repo.add_session(
            ChatSession(id="S3", title="Pictures"),
            [
                ChatMessage(
                    id="m3",
                    role="user",
                    content=(
                        {"type": "image_url", "image_url": {"url": "data:paris"}},
                        {"type": "text", "text": "What is this building?"},
                    ),
                )
            ],
        )
        assert (await _run(repo, "building")).sessions == {"S3"}
        assert (await _run(repo, "data")).matched is False


class TestSystemPrompts:
    @pytest.fixture
    def repo(self, sample_repository, system_prompt) -> InMemorySessionRepository:
        sample_repository.add_session(
            ChatSession(id="S3", title="Planner", last_update=500),
            [],
            system_prompt,
        )
        return sample_repository

    @pytest.mark.asyncio
    async def test_system_prompt_searched(self, repo) -> None:
        result = await _run(repo, "travel")
        assert result.sessions == {"S3"}

    @pytest.mark.asyncio
    async def test_system_prompt_excluded(self, repo) -> None:
        result = await _run(repo, "travel", search_in_system_messages=False)
        assert result.matched is False

    @pytest.mark.asyncio
    async def test_empty_system_prompt(self) -> None:
        repo = InMemorySessionRepository()
        repo.add_session(ChatSession(id="S4", title="x"), [], SystemPromptData(text=""))
        assert (await _run(repo, "anything")).matched is False


class TestDegradation:
    @pytest.mark.asyncio
    async def test_failed_fetch_counts_as_no_match(self, caplog) -> None:
        repo = _flaky(failing={"S2"})
        with caplog.at_level(logging.WARNING, logger="chat_search.search.executor"):
            result = await _run(repo, "agreement | tower")
        assert result.sessions == {"S1"}
        assert result.matched_terms == ["tower"]
        assert "Failed to load messages for session S2" in caplog.text

    @pytest.mark.asyncio
    async def test_timed_out_fetch_counts_as_no_match(self) -> None:
        repo = _flaky(slow={"S2"})
        result = await _run(repo, "agreement | tower", fetch_timeout=0.05)
        assert result.sessions == {"S1"}

    @pytest.mark.asyncio
    async def test_failure_does_not_affect_title_match(self) -> None:
        repo = _flaky(failing={"S1", "S2"})
        result = await _run(repo, "paris")
        assert result.sessions == {"S1"}


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_before_start(self, sample_repository) -> None:
        token = CancellationToken()
        token.cancel()
        result = await _run(sample_repository, "paris", token=token)
        assert result == MatchResult.empty()

    @pytest.mark.asyncio
    async def test_cancelled_mid_search(self, sample_repository) -> None:
        token = CancellationToken()
        original = sample_repository.get_messages

        async def cancelling_get_messages(session_id: str) -> list[ChatMessage]:
            token.cancel()
            return await original(session_id)

        sample_repository.get_messages = cancelling_get_messages  # type: ignore[method-assign]
        result = await _run(sample_repository, "paris | agreement", token=token)
        assert result == MatchResult.empty()

    def test_parent_token(self) -> None:
        parent = CancellationToken()
        child = CancellationToken(parent=parent)
        assert child.cancelled is False
        parent.cancel()
        assert child.cancelled is True
        assert parent.cancelled is True


class TestBatching:
    def test_iter_batches(self) -> None:
        assert list(iter_batches([1, 2, 3, 4, 5], 2)) == [[1, 2], [3, 4], [5]]
        assert list(iter_batches([], 3)) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("batch_size", [1, 2, 100])
    async def test_batch_size_does_not_change_result(self, sample_repository, batch_size) -> None:
        result = await _run(sample_repository, "paris | tower", batch_size=batch_size)
        assert result.sessions == {"S1", "S2"}

    @pytest.mark.asyncio
    async def test_deterministic(self, sample_repository) -> None:
        first = await _run(sample_repository, "(paris | tower) review | title:trip")
        second = await _run(sample_repository, "(paris | tower) review | title:trip")
        assert first == second

    def test_invalid_settings(self) -> None:
        with pytest.raises(ValueError):
            SearchSettings(batch_size=0)
        with pytest.raises(ValueError):
            SearchSettings(fetch_timeout=0)
