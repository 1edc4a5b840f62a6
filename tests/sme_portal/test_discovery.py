# tests/sme_portal/test_discovery.py
"""
Unit tests for the SME discovery agent.

Tests cover:
- Single-call completion when the model answers directly
- Two-call completion after the model invokes the search tool
- Search capability answers passed back as tool results
- Failure wrapping into DiscoveryFailed
"""
from unittest.mock import AsyncMock

import pytest

from sme_portal.discovery import SEARCH_TOOL, SmeDiscoveryAgent
from sme_portal.errors import DiscoveryFailed, ProviderError
from sme_portal.llm_client import ModelResponse, TextBlock, ToolResultBlock, ToolUseBlock
from sme_portal.search import ACKNOWLEDGMENT, AcknowledgingSearch, SearchCapability, SearchError

from portal_doubles import (
    SAMPLE_CANDIDATES_JSON,
    ScriptedProvider,
    text_response,
    tool_use_response,
)


class TestDirectAnswer:
    """Tests for the branch where the first call already returns text."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_single_call_returns_candidates(self):
        """Test that a text-only first answer is parsed without a second call."""
        provider = ScriptedProvider(tool_responses=[text_response(SAMPLE_CANDIDATES_JSON)])
        agent = SmeDiscoveryAgent(provider)

        candidates = await agent.discover("Armenia")

        assert [c["name"] for c in candidates] == ["Anush's Jams & Co.", "Gyumri Knits"]
        assert len(provider.tool_calls) == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_call_offers_search_tool(self):
        """Test that the first call offers the search tool and names the country."""
        provider = ScriptedProvider(tool_responses=[text_response("[]")])
        agent = SmeDiscoveryAgent(provider, max_tokens=1234)

        await agent.discover("Armenia")

        call = provider.tool_calls[0]
        assert call["tools"] == [SEARCH_TOOL]
        assert call["allow_tool_use"] is True
        assert call["max_tokens"] == 1234
        assert "Armenia" in call["system"]
        assert "site:facebook.com Armenia small business" in call["messages"][0].content

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_non_object_entries_dropped(self):
        """Test that array entries that are not objects are ignored."""
        provider = ScriptedProvider(
            tool_responses=[text_response('[{"name": "A"}, "stray", 42]')]
        )

        candidates = await SmeDiscoveryAgent(provider).discover("Armenia")

        assert candidates == [{"name": "A"}]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_array_is_success(self):
        """Test that an empty candidate list is not a failure."""
        provider = ScriptedProvider(tool_responses=[text_response("[]")])
        assert await SmeDiscoveryAgent(provider).discover("Armenia") == []


class TestSearchContinuation:
    """Tests for the branch where the model invokes the search tool."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tool_use_triggers_second_call(self):
        """Test that tool invocations lead to a second, tool-free call."""
        provider = ScriptedProvider(
            tool_responses=[
                tool_use_response("Armenia small business facebook page handmade"),
                text_response(SAMPLE_CANDIDATES_JSON),
            ]
        )
        agent = SmeDiscoveryAgent(provider)

        candidates = await agent.discover("Armenia")

        assert len(candidates) == 2
        assert len(provider.tool_calls) == 2
        second = provider.tool_calls[1]
        assert second["allow_tool_use"] is False
        assert "Based on the web search results" in second["system"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_call_replays_conversation(self):
        """Test that the second call carries request, first answer and tool results."""
        first = tool_use_response("query one", "query two")
        provider = ScriptedProvider(tool_responses=[first, text_response("[]")])

        await SmeDiscoveryAgent(provider).discover("Armenia")

        messages = provider.tool_calls[1]["messages"]
        assert [m.role for m in messages] == ["user", "assistant", "user"]
        assert messages[1].content == first.content

        results = messages[2].content
        assert all(isinstance(r, ToolResultBlock) for r in results)
        assert [r.tool_use_id for r in results] == ["toolu_1", "toolu_2"]
        assert all(r.content == ACKNOWLEDGMENT for r in results)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_search_capability_answers_each_query(self):
        """Test that a real search capability is consulted per invocation."""
        search = AsyncMock(spec=SearchCapability)
        search.search.side_effect = lambda q: f"results for {q}"
        provider = ScriptedProvider(
            tool_responses=[tool_use_response("a", "b"), text_response("[]")]
        )

        await SmeDiscoveryAgent(provider, search=search).discover("Armenia")

        assert [c.args[0] for c in search.search.await_args_list] == ["a", "b"]
        results = provider.tool_calls[1]["messages"][2].content
        assert [r.content for r in results] == ["results for a", "results for b"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mixed_text_and_tool_use_is_incomplete(self):
        """Test that text alongside a tool invocation still continues the exchange."""
        first = ModelResponse(
            content=[
                TextBlock(text="Let me search first."),
                ToolUseBlock(id="toolu_1", name="search", input={"query": "q"}),
            ],
            stop_reason="tool_use",
        )
        provider = ScriptedProvider(tool_responses=[first, text_response("[]")])

        await SmeDiscoveryAgent(provider).discover("Armenia")

        assert len(provider.tool_calls) == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_empty_first_answer_asks_again(self):
        """Test that a first answer with no blocks at all gets a second call."""
        provider = ScriptedProvider(
            tool_responses=[ModelResponse(content=[]), text_response('[{"name": "A"}]')]
        )

        candidates = await SmeDiscoveryAgent(provider).discover("Armenia")

        assert candidates == [{"name": "A"}]
        messages = provider.tool_calls[1]["messages"]
        assert [m.role for m in messages] == ["user", "user"]


class TestDiscoveryFailures:
    """Tests for failure wrapping."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unparseable_answer_fails(self):
        """Test that a non-JSON answer raises DiscoveryFailed."""
        provider = ScriptedProvider(tool_responses=[text_response("No businesses found.")])

        with pytest.raises(DiscoveryFailed) as exc_info:
            await SmeDiscoveryAgent(provider).discover("Armenia")

        assert exc_info.value.error == "Search agent failed"
        assert exc_info.value.status_code == 500

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_provider_error_fails(self):
        """Test that a provider failure raises DiscoveryFailed."""
        provider = ScriptedProvider(tool_responses=[ProviderError("quota exceeded")])

        with pytest.raises(DiscoveryFailed) as exc_info:
            await SmeDiscoveryAgent(provider).discover("Armenia")

        assert "quota exceeded" in exc_info.value.detail

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_second_call_without_text_fails(self):
        """Test that a second answer with no text raises DiscoveryFailed."""
        provider = ScriptedProvider(
            tool_responses=[tool_use_response("q"), tool_use_response("q again")]
        )

        with pytest.raises(DiscoveryFailed):
            await SmeDiscoveryAgent(provider).discover("Armenia")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_search_error_fails(self):
        """Test that a search backend failure raises DiscoveryFailed."""
        search = AsyncMock(spec=SearchCapability)
        search.search.side_effect = SearchError("firecrawl down")
        provider = ScriptedProvider(tool_responses=[tool_use_response("q")])

        with pytest.raises(DiscoveryFailed) as exc_info:
            await SmeDiscoveryAgent(provider, search=search).discover("Armenia")

        assert "firecrawl down" in exc_info.value.detail
        assert len(provider.tool_calls) == 1


class TestAcknowledgingSearch:
    """Tests for the no-op search capability."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_acknowledgment(self):
        """Test that every query is answered with the fixed acknowledgment."""
        assert await AcknowledgingSearch().search("anything") == "Search results retrieved."
