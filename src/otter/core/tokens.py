"""Default token estimation: character based, no tokenizer download."""

from __future__ import annotations

from collections.abc import Sequence

from otter.types.messages import Message, ToolCall

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD = 4  # role + framing
TOOL_CALL_OVERHEAD = 4


def estimate_text_tokens(text: str) -> int:
    """Rough token count, approximately 4 characters per token."""
    return max(0, len(text) // CHARS_PER_TOKEN)


class CharTokenEstimator:
    """Estimates tokens from character counts.

    Intentionally imprecise; good enough for compaction thresholds and for
    filling in usage when a backend reports none. Not for billing.
    """

    def estimate(self, messages: Sequence[Message]) -> int:
        total = 0
        for msg in messages:
            total += estimate_text_tokens(msg.content) + MESSAGE_OVERHEAD
            total += estimate_text_tokens(msg.reasoning)
            for tc in msg.tool_calls:
                total += self._call_tokens(tc)
            for tr in msg.tool_results:
                total += estimate_text_tokens(tr.content) + TOOL_CALL_OVERHEAD
        return total

    def estimate_output(self, text: str, tool_calls: Sequence[ToolCall]) -> int:
        return estimate_text_tokens(text) + sum(self._call_tokens(tc) for tc in tool_calls)

    @staticmethod
    def _call_tokens(tc: ToolCall) -> int:
        return (
            estimate_text_tokens(tc.name)
            + estimate_text_tokens(tc.args)
            + TOOL_CALL_OVERHEAD
        )
