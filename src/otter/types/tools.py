"""Tool definition types and protocols."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class ToolParam:
    """One named argument in a tool's JSON-schema description."""

    name: str
    type: str  # "string", "integer", "boolean", "array", "object"
    description: str
    required: bool = True
    enum: tuple[str, ...] | None = None
    default: Any = None
    items: dict[str, Any] | None = None  # element schema when type == "array"


@dataclass(frozen=True, slots=True)
class ToolDef:
    """What the model sees of a tool: its name, purpose and arguments."""

    name: str
    description: str
    parameters: tuple[ToolParam, ...] = ()


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tools must implement.

    ``run`` receives the raw argument payload from the model and returns the
    tool's text output. Failures are signalled by raising; the agent loop
    turns the exception message into a result the model can read.
    """

    @property
    def definition(self) -> ToolDef:
        """Name, description and parameters advertised to the model."""
        ...

    async def run(self, raw_args: str) -> str:
        """Execute the tool with the raw argument payload."""
        ...
