"""Configuration types for otter."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class AgentConfig:
    """Knobs consumed by a single :class:`~otter.core.loop.AgentLoop`.

    The loop reads these once at construction; nothing is negotiated at
    runtime.
    """

    max_steps: int = 100
    stream: bool = False
    compact_threshold: int = 60_000  # estimated tokens
    compact_keep_recent: int = 6
    tool_result_max_chars: int = 4000
    summary_result_cap: int = 500  # per tool result, in the summarization input
    summary_timeout: float = 30.0  # seconds
    title_max_chars: int = 20
    event_buffer: int = 64
    system_prompt: str | None = None
    cwd: str | None = None

    def __post_init__(self) -> None:
        if self.max_steps < 1:
            raise ValueError("max_steps must be at least 1")
        if self.compact_keep_recent < 1:
            raise ValueError("compact_keep_recent must be at least 1")
        if self.event_buffer < 1:
            raise ValueError("event_buffer must be at least 1")
