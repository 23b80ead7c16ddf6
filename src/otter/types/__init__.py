"""Type definitions for otter."""

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
from otter.types.messages import Message, Role, ToolCall, ToolResult
from otter.types.providers import (
    Provider,
    ProviderError,
    ProviderSettings,
    Response,
    StreamChunk,
    StreamFinal,
    StreamItem,
    TokenEstimator,
)
from otter.types.tools import Tool, ToolDef, ToolParam

__all__ = [
    "AgentConfig",
    "CompactEnd",
    "CompactStart",
    "Done",
    "Error",
    "ErrorKind",
    "Event",
    "Message",
    "Provider",
    "ProviderError",
    "ProviderSettings",
    "Response",
    "Role",
    "StreamChunk",
    "StreamFinal",
    "StreamItem",
    "TextDelta",
    "TokenEstimator",
    "Tool",
    "ToolCall",
    "ToolDef",
    "ToolEnd",
    "ToolParam",
    "ToolResult",
    "ToolStart",
    "is_terminal",
]
