"""Transcript types for the otter agent loop."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

Role = Literal["system", "user", "assistant", "tool"]


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model.

    ``args`` is the raw argument payload exactly as the provider returned it.
    Only the tool named by ``name`` interprets it.
    """

    id: str
    name: str
    args: str = ""


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Textual outcome of a tool call, keyed by the call it answers."""

    tool_call_id: str
    content: str


@dataclass(frozen=True, slots=True)
class Message:
    """A single transcript entry.

    Assistant messages may carry ``tool_calls``; tool messages carry
    ``tool_results``. Messages are never mutated once appended.
    """

    role: Role
    content: str = ""
    reasoning: str = ""
    tool_calls: tuple[ToolCall, ...] = field(default=())
    tool_results: tuple[ToolResult, ...] = field(default=())

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls,
        content: str = "",
        tool_calls: tuple[ToolCall, ...] | list[ToolCall] = (),
        reasoning: str = "",
    ) -> Message:
        return cls(
            role="assistant",
            content=content,
            reasoning=reasoning,
            tool_calls=tuple(tool_calls),
        )

    @classmethod
    def tool(cls, results: tuple[ToolResult, ...] | list[ToolResult]) -> Message:
        return cls(role="tool", tool_results=tuple(results))
