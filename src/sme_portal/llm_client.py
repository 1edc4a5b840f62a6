# llm_client.py
"""Generative model clients used by the pipeline stages.

Two operations are exposed through :class:`ModelProvider`:

- ``complete`` - a single-turn call returning plain text.
- ``complete_with_tools`` - a tool-augmented call over a provider-neutral
  conversation, returning content blocks tagged as text or tool invocations.

Adapters exist for the OpenAI chat completions API and the Anthropic
messages API; :func:`create_provider` picks one from configuration.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from anthropic import AnthropicError, APITimeoutError as AnthropicTimeoutError, AsyncAnthropic
from openai import APITimeoutError as OpenAITimeoutError, AsyncOpenAI, OpenAIError

from .config import Config, ConfigError, config as default_config
from .errors import ProviderError
from .logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 4096


@dataclass
class TextBlock:
    """Plain text emitted by the model."""

    text: str
    type: str = "text"


@dataclass
class ToolUseBlock:
    """A request from the model to invoke a tool."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)
    type: str = "tool_use"


@dataclass
class ToolResultBlock:
    """The caller's answer to a :class:`ToolUseBlock`."""

    tool_use_id: str
    content: str
    type: str = "tool_result"


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass
class Message:
    """One conversation turn. ``content`` is either plain text or a list of blocks."""

    role: str
    content: Union[str, list[ContentBlock]]

    def blocks(self) -> list[ContentBlock]:
        if isinstance(self.content, str):
            return [TextBlock(text=self.content)]
        return list(self.content)


@dataclass
class ToolSpec:
    """A tool the model may invoke, described by a JSON schema for its input."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ModelResponse:
    """Content blocks returned by a tool-augmented call."""

    content: list[ContentBlock] = field(default_factory=list)
    stop_reason: Optional[str] = None

    @property
    def text_blocks(self) -> list[TextBlock]:
        return [b for b in self.content if isinstance(b, TextBlock)]

    @property
    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if isinstance(b, ToolUseBlock)]

    @property
    def text(self) -> str:
        return "".join(b.text for b in self.text_blocks)


class ModelProvider(ABC):
    """Black-box generative model used by the pipeline."""

    name: str = "provider"

    @abstractmethod
    async def complete(
        self,
        system: str,
        user: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """Run a single-turn completion and return the response text.

        Raises:
            ProviderError: On transport failure, timeout, or an empty answer.
        """

    @abstractmethod
    async def complete_with_tools(
        self,
        system: str,
        messages: list[Message],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        allow_tool_use: bool = True,
    ) -> ModelResponse:
        """Run a tool-augmented completion over a conversation.

        Args:
            system: System instruction.
            messages: Conversation so far.
            tools: Tools the model may invoke.
            max_tokens: Maximum tokens in the response.
            allow_tool_use: When False the tools stay declared (so earlier
                invocations in ``messages`` remain valid) but the model must
                answer in text.

        Raises:
            ProviderError: On transport failure or timeout.
        """

    async def close(self) -> None:
        """Release HTTP resources held by the underlying SDK client."""


class OpenAIProvider(ModelProvider):
    """Model provider backed by the OpenAI chat completions API."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or default_config.OPENAI_MODEL
        self.timeout = timeout or default_config.LLM_TIMEOUT_SECONDS
        # No SDK-level retries
        self._client = client or AsyncOpenAI(
            api_key=api_key or default_config.OPENAI_API_KEY,
            timeout=self.timeout,
            max_retries=0,
        )

    @staticmethod
    def _to_openai_messages(system: str, messages: list[Message]) -> list[dict[str, Any]]:
        converted: list[dict[str, Any]] = [{"role": "system", "content": system}]

        for message in messages:
            if isinstance(message.content, str):
                converted.append({"role": message.role, "content": message.content})
                continue

            text = "".join(b.text for b in message.content if isinstance(b, TextBlock))

            if message.role == "assistant":
                tool_calls = [
                    {
                        "id": b.id,
                        "type": "function",
                        "function": {"name": b.name, "arguments": json.dumps(b.input)},
                    }
                    for b in message.content
                    if isinstance(b, ToolUseBlock)
                ]
                entry: dict[str, Any] = {"role": "assistant", "content": text or None}
                if tool_calls:
                    entry["tool_calls"] = tool_calls
                converted.append(entry)
                continue

            # Tool results become dedicated "tool" messages in the OpenAI format
            for block in message.content:
                if isinstance(block, ToolResultBlock):
                    converted.append(
                        {
                            "role": "tool",
                            "tool_call_id": block.tool_use_id,
                            "content": block.content,
                        }
                    )
            if text:
                converted.append({"role": message.role, "content": text})

        return converted

    @staticmethod
    def _to_openai_tools(tools: list[ToolSpec]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for tool in tools
        ]

    async def _create(self, **kwargs: Any) -> Any:
        try:
            return await self._client.chat.completions.create(model=self.model, **kwargs)
        except OpenAITimeoutError as e:
            logger.error("OpenAI request timed out after %ss", self.timeout)
            raise ProviderError(f"Model call timed out after {self.timeout}s") from e
        except OpenAIError as e:
            logger.error("OpenAI request failed: %s", e)
            raise ProviderError(f"Model call failed: {e}") from e

    async def complete(
        self,
        system: str,
        user: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        response = await self._create(
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
        )

        if not response.choices:
            raise ProviderError("No choices in model response")
        content = response.choices[0].message.content
        if not content:
            raise ProviderError("Empty content in model response")

        logger.debug(
            "OpenAI completion finished",
            extra={"model": self.model, "usage": getattr(response, "usage", None)},
        )
        return content

    async def complete_with_tools(
        self,
        system: str,
        messages: list[Message],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        allow_tool_use: bool = True,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "max_tokens": max_tokens,
            "messages": self._to_openai_messages(system, messages),
        }
        if tools:
            kwargs["tools"] = self._to_openai_tools(tools)
            kwargs["tool_choice"] = "auto" if allow_tool_use else "none"

        response = await self._create(**kwargs)
        if not response.choices:
            raise ProviderError("No choices in model response")

        choice = response.choices[0]
        blocks: list[ContentBlock] = []
        if choice.message.content:
            blocks.append(TextBlock(text=choice.message.content))

        for call in choice.message.tool_calls or []:
            try:
                arguments = json.loads(call.function.arguments or "{}")
            except json.JSONDecodeError:
                arguments = {"raw": call.function.arguments}
            blocks.append(ToolUseBlock(id=call.id, name=call.function.name, input=arguments))

        return ModelResponse(content=blocks, stop_reason=choice.finish_reason)

    async def close(self) -> None:
        await self._client.close()


class AnthropicProvider(ModelProvider):
    """Model provider backed by the Anthropic messages API."""

    name = "anthropic"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model or default_config.ANTHROPIC_MODEL
        self.timeout = timeout or default_config.LLM_TIMEOUT_SECONDS
        self._client = client or AsyncAnthropic(
            api_key=api_key or default_config.ANTHROPIC_API_KEY,
            timeout=self.timeout,
            max_retries=0,
        )

    @staticmethod
    def _to_anthropic_block(block: ContentBlock) -> dict[str, Any]:
        if isinstance(block, ToolUseBlock):
            return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input}
        if isinstance(block, ToolResultBlock):
            return {
                "type": "tool_result",
                "tool_use_id": block.tool_use_id,
                "content": block.content,
            }
        return {"type": "text", "text": block.text}

    def _to_anthropic_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        converted = []
        for message in messages:
            if isinstance(message.content, str):
                converted.append({"role": message.role, "content": message.content})
            else:
                converted.append(
                    {
                        "role": message.role,
                        "content": [self._to_anthropic_block(b) for b in message.content],
                    }
                )
        return converted

    async def _create(self, **kwargs: Any) -> Any:
        try:
            return await self._client.messages.create(model=self.model, **kwargs)
        except AnthropicTimeoutError as e:
            logger.error("Anthropic request timed out after %ss", self.timeout)
            raise ProviderError(f"Model call timed out after {self.timeout}s") from e
        except AnthropicError as e:
            logger.error("Anthropic request failed: %s", e)
            raise ProviderError(f"Model call failed: {e}") from e

    @staticmethod
    def _parse_blocks(raw_blocks: list[Any]) -> list[ContentBlock]:
        blocks: list[ContentBlock] = []
        for block in raw_blocks:
            if block.type == "text":
                blocks.append(TextBlock(text=block.text))
            elif block.type == "tool_use":
                blocks.append(ToolUseBlock(id=block.id, name=block.name, input=dict(block.input or {})))
        return blocks

    async def complete(
        self,
        system: str,
        user: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        response = await self._create(
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": user}],
        )
        text = "".join(b.text for b in self._parse_blocks(response.content) if isinstance(b, TextBlock))
        if not text:
            raise ProviderError("Empty content in model response")

        logger.debug(
            "Anthropic completion finished",
            extra={"model": self.model, "stop_reason": response.stop_reason},
        )
        return text

    async def complete_with_tools(
        self,
        system: str,
        messages: list[Message],
        tools: Optional[list[ToolSpec]] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        allow_tool_use: bool = True,
    ) -> ModelResponse:
        kwargs: dict[str, Any] = {
            "max_tokens": max_tokens,
            "system": system,
            "messages": self._to_anthropic_messages(messages),
        }
        if tools:
            kwargs["tools"] = [
                {"name": t.name, "description": t.description, "input_schema": t.parameters}
                for t in tools
            ]
            kwargs["tool_choice"] = {"type": "auto" if allow_tool_use else "none"}

        response = await self._create(**kwargs)
        return ModelResponse(
            content=self._parse_blocks(response.content),
            stop_reason=response.stop_reason,
        )

    async def close(self) -> None:
        await self._client.close()


def create_provider(settings: Optional[Config] = None) -> ModelProvider:
    """Build the model provider selected by ``LLM_PROVIDER``.

    Raises:
        ConfigError: If the provider is unknown or its API key is missing.
    """
    settings = settings or default_config
    settings.validate_for_llm()

    if settings.LLM_PROVIDER == "anthropic":
        provider: ModelProvider = AnthropicProvider(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    elif settings.LLM_PROVIDER == "openai":
        provider = OpenAIProvider(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )
    else:
        raise ConfigError(f"Unknown LLM_PROVIDER: {settings.LLM_PROVIDER}")

    logger.info("Model provider initialized", extra={"provider": provider.name})
    return provider
