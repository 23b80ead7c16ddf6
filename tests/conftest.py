"""Test fixtures including MockProvider for deterministic testing."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from otter.tools.base import BaseTool
from otter.types.messages import Message, ToolCall
from otter.types.providers import Response, StreamChunk, StreamFinal, StreamItem
from otter.types.tools import ToolDef, ToolParam


@dataclass
class MockTurn:
    """A scripted turn for MockProvider.

    Specify text, tool_calls, or both for what the model should "respond" with.
    """

    text: str = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    # Each tool call: {"id": "c1", "name": "echo", "args": {"text": "hi"}}
    chunks: list[str] | None = None  # streaming split; defaults to [text]
    reasoning: str = ""
    input_tokens: int = 100
    output_tokens: int = 50


class MockProvider:
    """A deterministic mock provider for testing.

    Usage:
        provider = MockProvider(turns=[
            MockTurn(tool_calls=[{"id": "c1", "name": "echo", "args": {"text": "x"}}]),
            MockTurn(text="The tool said x."),
        ])

    Every call records the transcript it was given in ``calls``.
    """

    def __init__(self, turns: list[MockTurn], model: str = "mock-model"):
        self._turns = list(turns)
        self._turn_index = 0
        self._model = model
        self.calls: list[list[Message]] = []
        self.tool_defs: list[list[ToolDef]] = []

    @property
    def model_id(self) -> str:
        return self._model

    def _next_turn(self, messages: Sequence[Message], tools: Sequence[ToolDef]) -> MockTurn:
        self.calls.append(list(messages))
        self.tool_defs.append(list(tools))
        if self._turn_index >= len(self._turns):
            # No more turns: answer with nothing
            return MockTurn()
        turn = self._turns[self._turn_index]
        self._turn_index += 1
        return turn

    @staticmethod
    def _response(turn: MockTurn) -> Response:
        calls = []
        for tc in turn.tool_calls:
            args = tc.get("args", {})
            calls.append(ToolCall(
                id=tc["id"],
                name=tc["name"],
                args=args if isinstance(args, str) else json.dumps(args),
            ))
        return Response(
            content=turn.text,
            reasoning=turn.reasoning,
            tool_calls=tuple(calls),
            input_tokens=turn.input_tokens,
            output_tokens=turn.output_tokens,
            stop_reason="tool_use" if calls else "end_turn",
        )

    async def chat(self, messages: Sequence[Message], tools: Sequence[ToolDef]) -> Response:
        return self._response(self._next_turn(messages, tools))

    async def chat_stream(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> AsyncIterator[StreamItem]:
        """Yield scripted chunks for the current turn, then the final response."""
        turn = self._next_turn(messages, tools)
        chunks = turn.chunks if turn.chunks is not None else [turn.text]
        for chunk in chunks:
            if chunk:
                yield StreamChunk(text=chunk)
        yield StreamFinal(response=self._response(turn))


class FailingMockProvider(MockProvider):
    """A mock provider that raises ConnectionError on the first N calls."""

    def __init__(
        self,
        turns: list[MockTurn],
        fail_count: int = 1,
        model: str = "mock-model",
    ):
        super().__init__(turns, model=model)
        self._fail_count = fail_count
        self._call_count = 0

    async def chat(self, messages: Sequence[Message], tools: Sequence[ToolDef]) -> Response:
        self._call_count += 1
        if self._call_count <= self._fail_count:
            raise ConnectionError(f"Simulated failure #{self._call_count}")
        return await super().chat(messages, tools)


class SlowMockProvider(MockProvider):
    """A mock provider whose every call sleeps for ``delay`` seconds first."""

    def __init__(self, turns: list[MockTurn], delay: float = 10.0):
        super().__init__(turns)
        self._delay = delay

    async def chat(self, messages: Sequence[Message], tools: Sequence[ToolDef]) -> Response:
        await asyncio.sleep(self._delay)
        return await super().chat(messages, tools)

    async def chat_stream(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> AsyncIterator[StreamItem]:
        await asyncio.sleep(self._delay)
        async for item in super().chat_stream(messages, tools):
            yield item


class EchoTool(BaseTool):
    """Returns its ``text`` argument; records every payload it receives."""

    def __init__(self, name: str = "echo") -> None:
        self._name = name
        self.received: list[str] = []

    @property
    def definition(self) -> ToolDef:
        return ToolDef(
            name=self._name,
            description="Echo the given text back.",
            parameters=(ToolParam(name="text", type="string", description="Text to echo"),),
        )

    async def run(self, raw_args: str) -> str:
        self.received.append(raw_args)
        args = self._parse_args(raw_args)
        return str(args.get("text", ""))


class FailingTool(BaseTool):
    """Always raises with the configured message."""

    def __init__(self, message: str = "boom", name: str = "fail") -> None:
        self._message = message
        self._name = name

    @property
    def definition(self) -> ToolDef:
        return ToolDef(name=self._name, description="Always fails.")

    async def run(self, raw_args: str) -> str:
        raise RuntimeError(self._message)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep user config and OTTER_* / API-key env vars out of every test."""
    for name in (
        "OTTER_PROVIDER",
        "OTTER_MODEL",
        "OTTER_STREAM",
        "OTTER_MAX_STEPS",
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "otter-home"
    home.mkdir()
    monkeypatch.setenv("OTTER_HOME", str(home))
    return home


@pytest.fixture
def mock_provider() -> MockProvider:
    """A simple mock provider that responds with text."""
    return MockProvider(turns=[
        MockTurn(text="I can help with that."),
    ])


@pytest.fixture
def failing_mock_provider() -> FailingMockProvider:
    return FailingMockProvider(
        turns=[MockTurn(text="Recovered!")],
        fail_count=1,
    )
