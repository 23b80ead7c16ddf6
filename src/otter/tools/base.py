"""Base tool class and output truncation shared by the dispatcher."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from typing import Any

from otter.types.tools import ToolDef

TRUNCATION_MARKER = "\n... (truncated)"


def truncate_output(text: str, limit: int, marker: str = TRUNCATION_MARKER) -> str:
    """Cut *text* to *limit* code points and append *marker*.

    Text that already carries the marker after at most *limit* code points is
    returned unchanged, so truncating twice gives the same result as once.
    """
    if len(text) <= limit:
        return text
    if text.endswith(marker) and len(text) - len(marker) <= limit:
        return text
    return text[:limit] + marker


class BaseTool(ABC):
    """Base class for all tools."""

    @property
    @abstractmethod
    def definition(self) -> ToolDef:
        ...

    @abstractmethod
    async def run(self, raw_args: str) -> str:
        ...

    @property
    def name(self) -> str:
        return self.definition.name

    def _parse_args(self, raw_args: str) -> dict[str, Any]:
        """Decode a JSON object payload, raising ValueError on anything else."""
        if not raw_args.strip():
            raise ValueError("empty arguments")
        try:
            args = json.loads(raw_args)
        except json.JSONDecodeError as exc:
            raise ValueError(f"invalid arguments: {exc.msg}") from exc
        if not isinstance(args, dict):
            raise ValueError("arguments must be a JSON object")
        return args
