"""SME discovery agent.

Runs a bounded two-call conversation with the model provider: the first call
offers a ``search`` tool; if the model invokes it (or answers without text)
the search capability answers each invocation and a second call asks for the
final JSON array. The resulting text is reduced to a candidate list with
:func:`~sme_portal.extraction.extract_json_array`.
"""

from typing import Any, Optional

from .errors import DiscoveryFailed, GenerationFailed
from .extraction import extract_json_array
from .llm_client import Message, ModelProvider, ModelResponse, ToolResultBlock, ToolSpec
from .logging_utils import ContextAdapter, get_logger
from .prompts import discovery_synthesis_prompt, discovery_system_prompt, discovery_user_prompt
from .search import AcknowledgingSearch, SearchCapability, SearchError

logger = ContextAdapter(get_logger(__name__), {})

DEFAULT_DISCOVERY_MAX_TOKENS = 8000

SEARCH_TOOL = ToolSpec(
    name="search",
    description="Search the web for small businesses and their social media pages.",
    parameters={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "The search query to run."},
        },
        "required": ["query"],
    },
)


class SmeDiscoveryAgent:
    """Finds social-media-only small businesses in a country.

    Args:
        provider: Model provider used for both calls.
        search: Capability answering the model's search invocations.
            Defaults to :class:`~sme_portal.search.AcknowledgingSearch`.
        max_tokens: Response budget for each call.
    """

    def __init__(
        self,
        provider: ModelProvider,
        search: Optional[SearchCapability] = None,
        max_tokens: int = DEFAULT_DISCOVERY_MAX_TOKENS,
    ):
        self.provider = provider
        self.search = search or AcknowledgingSearch()
        self.max_tokens = max_tokens

    @staticmethod
    def _is_incomplete(response: ModelResponse) -> bool:
        return bool(response.tool_uses) or not response.text_blocks

    async def _answer_tool_uses(self, response: ModelResponse) -> list[ToolResultBlock]:
        results = []
        for tool_use in response.tool_uses:
            query = str(tool_use.input.get("query", "")) if isinstance(tool_use.input, dict) else ""
            logger.info("Model requested search", extra={"query": query})
            content = await self.search.search(query)
            results.append(ToolResultBlock(tool_use_id=tool_use.id, content=content))
        return results

    async def _converse(self, country_name: str) -> str:
        request = Message(role="user", content=discovery_user_prompt(country_name))

        first = await self.provider.complete_with_tools(
            system=discovery_system_prompt(country_name),
            messages=[request],
            tools=[SEARCH_TOOL],
            max_tokens=self.max_tokens,
        )
        if not self._is_incomplete(first):
            return first.text

        tool_results = await self._answer_tool_uses(first)
        logger.info(
            "Requesting final candidate list",
            extra={"tool_results": len(tool_results)},
        )

        conversation = [request]
        if tool_results:
            conversation.append(Message(role="assistant", content=first.content))
            conversation.append(Message(role="user", content=list(tool_results)))
        else:
            # Empty first answer: nothing to replay, ask again for the list
            conversation.append(Message(role="user", content="Return the JSON array now."))

        second = await self.provider.complete_with_tools(
            system=discovery_synthesis_prompt(country_name),
            messages=conversation,
            tools=[SEARCH_TOOL],
            max_tokens=self.max_tokens,
            allow_tool_use=False,
        )
        if not second.text_blocks:
            raise DiscoveryFailed("Model returned no text after search")
        return second.text

    async def discover(self, country_name: str) -> list[dict[str, Any]]:
        """Return the raw candidate records the model produced for ``country_name``.

        Raises:
            DiscoveryFailed: On provider, search or parse failure, or when
                the model never produces text.
        """
        try:
            text = await self._converse(country_name)
            candidates = extract_json_array(text)
        except DiscoveryFailed:
            raise
        except (GenerationFailed, SearchError) as e:
            logger.error("Discovery failed for %s: %s", country_name, e)
            raise DiscoveryFailed(str(e)) from e

        records = [c for c in candidates if isinstance(c, dict)]
        logger.info(
            "Discovered %d candidates for %s", len(records), country_name,
            extra={"candidates": len(records)},
        )
        return records
