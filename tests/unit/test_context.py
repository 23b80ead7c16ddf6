"""Tests for otter.core.context: budget checks and compaction."""

from __future__ import annotations

import asyncio

import pytest

from otter.core.cancel import OperationCancelled
from otter.core.context import (
    SUMMARIZE_INSTRUCTION,
    SUMMARY_PREFIX,
    compact_messages,
    flatten_transcript,
    needs_compaction,
    summarize,
)
from otter.core.tokens import CharTokenEstimator
from otter.types.events import CompactEnd, CompactStart, Event
from otter.types.messages import Message, ToolCall, ToolResult
from tests.conftest import FailingMockProvider, MockProvider, MockTurn, SlowMockProvider


class FixedEstimator:
    """Reports a fixed token count for any transcript."""

    def __init__(self, tokens: int) -> None:
        self.tokens = tokens

    def estimate(self, messages):
        return self.tokens

    def estimate_output(self, text, tool_calls):
        return 0


def _transcript(n: int) -> list[Message]:
    """System message followed by *n* alternating user/assistant turns."""
    messages = [Message.system("system prompt")]
    for i in range(n):
        if i % 2 == 0:
            messages.append(Message.user(f"question {i}"))
        else:
            messages.append(Message.assistant(f"answer {i}"))
    return messages


class _Recorder:
    def __init__(self) -> None:
        self.events: list[Event] = []

    async def __call__(self, event: Event) -> None:
        self.events.append(event)


class TestNeedsCompaction:
    def test_below_threshold(self):
        assert not needs_compaction(_transcript(2), FixedEstimator(99), 100)

    def test_at_threshold(self):
        assert needs_compaction(_transcript(2), FixedEstimator(100), 100)

    def test_with_char_estimator(self):
        messages = [Message.system("s"), Message.user("x" * 4000)]
        assert needs_compaction(messages, CharTokenEstimator(), 1000)
        assert not needs_compaction(messages, CharTokenEstimator(), 2000)


class TestFlattenTranscript:
    def test_role_tagged_lines(self):
        messages = [
            Message.user("read main.py"),
            Message.assistant("Reading.", [ToolCall(id="c1", name="read", args='{"path": "main.py"}')]),
            Message.tool([ToolResult(tool_call_id="c1", content="print('hi')")]),
        ]

        text = flatten_transcript(messages)

        assert text == (
            "[user]: read main.py\n"
            "[assistant]: Reading.\n"
            '[tool_call c1]: read({"path": "main.py"})\n'
            "[tool]: \n"
            "[tool_result c1]: print('hi')\n"
        )

    def test_tool_results_capped(self):
        messages = [Message.tool([ToolResult(tool_call_id="c1", content="y" * 600)])]

        text = flatten_transcript(messages, result_cap=500)

        assert "[tool_result c1]: " + "y" * 500 + "...\n" in text

    def test_empty(self):
        assert flatten_transcript([]) == ""


class TestSummarize:
    @pytest.mark.asyncio
    async def test_sends_instruction_and_transcript(self):
        provider = MockProvider(turns=[MockTurn(text="  short summary \n")])
        middle = [Message.user("a"), Message.assistant("b")]

        summary = await summarize(provider, middle)

        assert summary == "short summary"
        sent = provider.calls[0]
        assert sent[0] == Message.system(SUMMARIZE_INSTRUCTION)
        assert sent[1] == Message.user(flatten_transcript(middle))
        assert provider.tool_defs[0] == []

    @pytest.mark.asyncio
    async def test_timeout(self):
        provider = SlowMockProvider(turns=[MockTurn(text="late")], delay=5.0)

        with pytest.raises(TimeoutError):
            await summarize(provider, [Message.user("a")], timeout=0.05)

    @pytest.mark.asyncio
    async def test_cancel_abandons_summary(self):
        provider = SlowMockProvider(turns=[MockTurn(text="late")], delay=5.0)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.01, cancel.set)

        with pytest.raises(OperationCancelled):
            await summarize(provider, [Message.user("a")], timeout=10.0, cancel=cancel)


class TestCompactMessages:
    @pytest.mark.asyncio
    async def test_under_threshold_is_noop(self):
        messages = _transcript(10)
        provider = MockProvider(turns=[MockTurn(text="unused")])
        emit = _Recorder()

        result = await compact_messages(
            messages, provider, FixedEstimator(10), emit, threshold=100, keep_recent=4,
        )

        assert result is messages
        assert emit.events == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_compacts_to_system_summary_and_recent(self):
        messages = _transcript(10)
        provider = MockProvider(turns=[MockTurn(text="we discussed ten things")])
        emit = _Recorder()
        estimator = CharTokenEstimator()

        result = await compact_messages(
            messages, provider, estimator, emit, threshold=1, keep_recent=4,
        )

        assert len(result) == 2 + 4
        assert result[0] is messages[0]
        assert result[1] == Message.user(SUMMARY_PREFIX + "we discussed ten things")
        assert result[2:] == messages[-4:]

        # Only the middle was summarized
        flattened = provider.calls[0][1].content
        assert "question 0" in flattened
        assert "system prompt" not in flattened
        assert "answer 9" not in flattened

        before = estimator.estimate(messages)
        assert emit.events == [
            CompactStart(tokens=before, threshold=1),
            CompactEnd(before=before, after=estimator.estimate(result)),
        ]

    @pytest.mark.asyncio
    async def test_input_list_not_mutated(self):
        messages = _transcript(10)
        snapshot = list(messages)
        provider = MockProvider(turns=[MockTurn(text="summary")])

        await compact_messages(
            messages, provider, FixedEstimator(500), _Recorder(), threshold=100, keep_recent=3,
        )

        assert messages == snapshot

    @pytest.mark.asyncio
    async def test_too_few_messages_to_compact(self):
        messages = _transcript(4)  # 5 messages total
        provider = MockProvider(turns=[MockTurn(text="unused")])
        emit = _Recorder()

        result = await compact_messages(
            messages, provider, FixedEstimator(500), emit, threshold=100, keep_recent=4,
        )

        assert result is messages
        assert emit.events == []
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_summary_failure_keeps_transcript(self):
        messages = _transcript(10)
        provider = FailingMockProvider(turns=[MockTurn(text="unused")], fail_count=1)
        emit = _Recorder()

        result = await compact_messages(
            messages, provider, FixedEstimator(500), emit, threshold=100, keep_recent=4,
        )

        assert result is messages
        assert emit.events == [CompactStart(tokens=500, threshold=100)]

    @pytest.mark.asyncio
    async def test_summary_timeout_keeps_transcript(self):
        messages = _transcript(10)
        provider = SlowMockProvider(turns=[MockTurn(text="late")], delay=5.0)
        emit = _Recorder()

        result = await compact_messages(
            messages, provider, FixedEstimator(500), emit,
            threshold=100, keep_recent=4, timeout=0.05,
        )

        assert result is messages
        assert [type(e) for e in emit.events] == [CompactStart]
