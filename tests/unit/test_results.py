"""Unit tests for result building and classification."""

from __future__ import annotations

import pytest

from chat_search.search.ast_nodes import collect_terms
from chat_search.search.cancellation import CancellationToken
from chat_search.search.executor import MatchResult, SearchExecutor
from chat_search.search.options import SearchSettings
from chat_search.search.parser import parse_query
from chat_search.search.results import ResultBuilder, SearchResult, classify_match
from chat_search.store.records import ChatMessage, ChatSession, SystemPromptData
from chat_search.store.repository import InMemorySessionRepository


async def _search(repo, query: str, **settings) -> list[SearchResult]:
    node = parse_query(query)
    sessions = await repo.list_sessions()
    token = CancellationToken()
    search_settings = SearchSettings(**settings)
    match = await SearchExecutor(sessions, repo, token, search_settings).execute(node)
    builder = ResultBuilder(sessions, repo, token, search_settings)
    return await builder.build(match, collect_terms(node))


class TestClassifyMatch:
    def test_single_category(self) -> None:
        assert classify_match(["title"]) == "title"
        assert classify_match(["message"]) == "message"
        assert classify_match(["system"]) == "system"

    def test_multiple_categories(self) -> None:
        assert classify_match(["title", "message"]) == "multiple"
        assert classify_match(["message", "system"]) == "multiple"


class TestResultBuilder:
    @pytest.mark.asyncio
    async def test_paris_results(self, sample_repository) -> None:
        results = await _search(sample_repository, "paris")
        assert [r.session_id for r in results] == ["S1", "S2"]
        assert results[0].match_type == "title"
        assert results[0].topic == "Trip to Paris"
        assert results[0].matched_messages == []
        assert results[1].match_type == "message"
        assert [m.id for m in results[1].matched_messages] == ["m2"]

    @pytest.mark.asyncio
    async def test_title_scoped_query_reports_title(self, sample_repository) -> None:
        results = await _search(sample_repository, "标题:paris")
        assert len(results) == 1
        assert results[0].session_id == "S1"
        assert results[0].match_type == "title"

    @pytest.mark.asyncio
    async def test_matched_terms_in_vocabulary_order(self, sample_repository) -> None:
        results = await _search(sample_repository, "review | paris | tower")
        by_id = {r.session_id: r for r in results}
        assert by_id["S1"].matched_terms == ["paris", "tower"]
        assert by_id["S2"].matched_terms == ["review", "paris"]

    @pytest.mark.asyncio
    async def test_multiple_when_title_and_message_hit(self, sample_repository) -> None:
        results = await _search(sample_repository, "paris | tower")
        s1 = next(r for r in results if r.session_id == "S1")
        assert s1.match_type == "multiple"
        assert s1.matched_fields == ("title", "message")

    @pytest.mark.asyncio
    async def test_sorted_by_last_update_descending(self) -> None:
        repo = InMemorySessionRepository()
        for session_id, updated in [("a", 10), ("b", 30), ("c", 20), ("d", 30)]:
            repo.add_session(
                ChatSession(id=session_id, title=f"note {session_id}", last_update=updated)
            )
        results = await _search(repo, "note")
        # Ties keep snapshot order.
        assert [r.session_id for r in results] == ["b", "d", "c", "a"]

    @pytest.mark.asyncio
    async def test_system_prompt_result(self, sample_repository, system_prompt) -> None:
        sample_repository.add_session(
            ChatSession(id="S3", title="Planner", last_update=3000), [], system_prompt
        )
        results = await _search(sample_repository, "planner")
        assert results[0].session_id == "S3"
        assert results[0].match_type == "multiple"
        assert results[0].matched_system_message == system_prompt

        results = await _search(sample_repository, "travel")
        assert results[0].match_type == "system"

    @pytest.mark.asyncio
    async def test_system_prompt_excluded(self, sample_repository, system_prompt) -> None:
        sample_repository.add_session(
            ChatSession(id="S3", title="Planner", last_update=3000), [], system_prompt
        )
        results = await _search(sample_repository, "planner", search_in_system_messages=False)
        assert results[0].match_type == "title"
        assert results[0].matched_system_message is None

    @pytest.mark.asyncio
    async def test_no_match_builds_nothing(self, sample_repository) -> None:
        assert await _search(sample_repository, "zzz") == []

    @pytest.mark.asyncio
    async def test_cancelled_build_is_empty(self, sample_repository) -> None:
        sessions = await sample_repository.list_sessions()
        token = CancellationToken()
        token.cancel()
        builder = ResultBuilder(sessions, sample_repository, token)
        match = MatchResult(matched=True, sessions={"S1", "S2"}, matched_terms=["paris"])
        assert await builder.build(match, ["paris"]) == []

    @pytest.mark.asyncio
    async def test_failed_fetch_keeps_title_hit(self, sample_repository) -> None:
        async def broken(session_id: str) -> list[ChatMessage]:
            raise OSError("gone")

        sessions = await sample_repository.list_sessions()
        sample_repository.get_messages = broken  # type: ignore[method-assign]
        builder = ResultBuilder(sessions, sample_repository, CancellationToken())
        match = MatchResult(matched=True, sessions={"S1", "S2"}, matched_terms=["paris"])
        results = await builder.build(match, ["paris"])
        assert [r.session_id for r in results] == ["S1"]


class TestSearchResultDict:
    def test_to_dict(self) -> None:
        result = SearchResult(
            session_id="S1",
            topic="Trip",
            last_update=5,
            match_type="system",
            matched_terms=["trip"],
            matched_system_message=SystemPromptData(text="trip planner"),
            matched_fields=("system",),
        )
        data = result.to_dict()
        assert data["sessionId"] == "S1"
        assert data["matchType"] == "system"
        assert data["matchedMessages"] == []
        assert data["matchedSystemMessage"]["text"] == "trip planner"
