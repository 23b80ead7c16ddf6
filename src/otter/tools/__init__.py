"""otter tool system: base class, registry and output truncation."""

from otter.tools.base import TRUNCATION_MARKER, BaseTool, truncate_output
from otter.tools.registry import ToolRegistry

__all__ = [
    "BaseTool",
    "TRUNCATION_MARKER",
    "ToolRegistry",
    "truncate_output",
]
