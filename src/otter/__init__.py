"""otter: terminal coding agent core.

Usage:
    import otter

    async for event in otter.run("Fix the bug"):
        match event:
            case otter.TextDelta(text=t):
                print(t, end="")
            case otter.Done(full_text=t):
                print(f"Done: {t}")
"""

from otter.core.engine import build_loop, run
from otter.core.loop import AgentLoop, EventStream
from otter.tools.base import BaseTool
from otter.tools.registry import ToolRegistry
from otter.types.config import AgentConfig
from otter.types.events import (
    CompactEnd,
    CompactStart,
    Done,
    Error,
    ErrorKind,
    Event,
    TextDelta,
    ToolEnd,
    ToolStart,
    is_terminal,
)
from otter.types.messages import Message, ToolCall, ToolResult
from otter.types.providers import Provider, ProviderError, Response
from otter.types.tools import Tool, ToolDef, ToolParam

__version__ = "0.1.0"

__all__ = [
    # Core API
    "AgentLoop",
    "EventStream",
    "build_loop",
    "run",
    # Event types
    "CompactEnd",
    "CompactStart",
    "Done",
    "Error",
    "ErrorKind",
    "Event",
    "TextDelta",
    "ToolEnd",
    "ToolStart",
    "is_terminal",
    # Transcript
    "Message",
    "ToolCall",
    "ToolResult",
    # Configuration
    "AgentConfig",
    # Providers
    "Provider",
    "ProviderError",
    "Response",
    # Tools
    "BaseTool",
    "Tool",
    "ToolDef",
    "ToolParam",
    "ToolRegistry",
]
