"""ToolRegistry: name-keyed lookup of the tools exposed to the model."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from otter.types.tools import Tool, ToolDef


class ToolRegistry:
    """Registers tools by definition name.

    The agent loop only reads from the registry while an invocation runs.

    Usage::

        registry = ToolRegistry([ShellTool(), ReadTool()])
        tool = registry.get("shell")
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._registry: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, tool: Tool) -> None:
        """Add a tool to the registry under its definition name."""
        self._registry[tool.definition.name] = tool

    def unregister(self, name: str) -> None:
        self._registry.pop(name, None)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, name: str) -> Tool | None:
        """Return the tool with the given name, or None."""
        return self._registry.get(name)

    def get_definitions(self) -> list[ToolDef]:
        """Return all registered tool definitions (for provider schema)."""
        return [tool.definition for tool in self._registry.values()]

    def describe(self) -> str:
        """One markdown bullet per tool, for the system prompt."""
        return "\n".join(
            f"- **{d.name}**: {d.description}" for d in self.get_definitions()
        )

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filter(self, names: Iterable[str]) -> ToolRegistry:
        """Return a new registry containing only the named tools.

        Tools not present in this registry are silently omitted.
        """
        filtered = ToolRegistry()
        for name in names:
            tool = self._registry.get(name)
            if tool is not None:
                filtered.register(tool)
        return filtered

    # ------------------------------------------------------------------
    # Dunder helpers
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._registry.values())

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={sorted(self._registry)})"
