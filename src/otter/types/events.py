"""Event types streamed from the agent loop to its consumer.

Every invocation produces zero or more intermediate events followed by
exactly one terminal event (:class:`Done` or :class:`Error`)::

    async for event in loop.run(history, "Fix the failing test"):
        match event:
            case TextDelta(text=t):
                print(t, end="")
            case ToolStart(name=name):
                print(f"[{name}]")
            case Done(full_text=t):
                ...
            case Error(message=m):
                ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from otter.types.messages import Message


class ErrorKind(Enum):
    """Why an invocation ended in :class:`Error`."""

    PROVIDER = "provider"  # backend unreachable or rejected the request
    MAX_STEPS = "max_steps"  # step budget exhausted
    CANCELLED = "cancelled"  # cancellation signal observed
    INTERNAL = "internal"  # unexpected failure inside the loop itself


@dataclass(frozen=True, slots=True)
class TextDelta:
    """Incremental output fragment from the model."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolStart:
    """A tool call is about to run."""

    id: str
    name: str
    args: str = ""


@dataclass(frozen=True, slots=True)
class ToolEnd:
    """A tool call finished. Exactly one of ``result`` / ``error`` is set."""

    id: str
    name: str
    result: str = ""
    error: str = ""

    @property
    def is_error(self) -> bool:
        return bool(self.error)


@dataclass(frozen=True, slots=True)
class CompactStart:
    """History compaction began."""

    tokens: int
    threshold: int


@dataclass(frozen=True, slots=True)
class CompactEnd:
    """History compaction succeeded."""

    before: int
    after: int


@dataclass(frozen=True, slots=True)
class Done:
    """Terminal: the model produced a final answer."""

    full_text: str
    input_tokens: int = 0
    output_tokens: int = 0
    messages: tuple[Message, ...] = field(default=())


@dataclass(frozen=True, slots=True)
class Error:
    """Terminal: the invocation stopped without a final answer."""

    message: str
    kind: ErrorKind = ErrorKind.PROVIDER


Event = TextDelta | ToolStart | ToolEnd | CompactStart | CompactEnd | Done | Error

TERMINAL_EVENTS = (Done, Error)


def is_terminal(event: Event) -> bool:
    """Return True for the single event that ends an invocation's stream."""
    return isinstance(event, TERMINAL_EVENTS)
