"""Provider protocol, response and stream item types."""

from __future__ import annotations

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from otter.types.messages import Message, ToolCall
from otter.types.tools import ToolDef


@dataclass(frozen=True, slots=True)
class Response:
    """A complete assistant response.

    Token counts of zero mean the backend did not report usage; the loop
    estimates them instead.
    """

    content: str = ""
    reasoning: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default=())
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""


@dataclass(frozen=True, slots=True)
class StreamChunk:
    """An incremental text fragment from a streaming response."""

    text: str


@dataclass(frozen=True, slots=True)
class StreamFinal:
    """The last item of a streaming response, carrying the aggregate."""

    response: Response


StreamItem = StreamChunk | StreamFinal


@runtime_checkable
class Provider(Protocol):
    """Protocol that all provider adapters must implement.

    Both methods raise on backend failure. ``chat_stream`` yields any number
    of :class:`StreamChunk` items followed by exactly one
    :class:`StreamFinal`.
    """

    @property
    def model_id(self) -> str:
        """The model identifier being used."""
        ...

    async def chat(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> Response:
        """Send the transcript and wait for the whole response."""
        ...

    def chat_stream(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> AsyncIterator[StreamItem]:
        """Send the transcript and stream the response."""
        ...


@runtime_checkable
class TokenEstimator(Protocol):
    """Estimates token cost for compaction and usage fallbacks."""

    def estimate(self, messages: Sequence[Message]) -> int:
        ...

    def estimate_output(self, text: str, tool_calls: Sequence[ToolCall]) -> int:
        ...


@dataclass(frozen=True, slots=True)
class ProviderSettings:
    """Connection settings for one configured backend."""

    name: str
    model: str
    api_key: str | None = None
    base_url: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


class ProviderError(Exception):
    """A backend call failed or returned something the adapter cannot use."""
