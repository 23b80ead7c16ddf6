"""The core agent loop: orchestrates provider, tools, compaction and events."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import platform
from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

from otter.core.cancel import OperationCancelled, until_cancelled
from otter.core.context import compact_messages
from otter.core.tokens import CharTokenEstimator
from otter.tools.base import truncate_output
from otter.tools.registry import ToolRegistry
from otter.types.config import AgentConfig
from otter.types.events import (
    Done,
    Error,
    ErrorKind,
    Event,
    TextDelta,
    ToolEnd,
    ToolStart,
)
from otter.types.messages import Message, ToolCall, ToolResult
from otter.types.providers import (
    Provider,
    ProviderError,
    Response,
    StreamChunk,
    StreamFinal,
    TokenEstimator,
)
from otter.types.tools import ToolDef

logger = logging.getLogger(__name__)

UNKNOWN_TOOL = "unknown tool"
ERROR_PREFIX = "error: "
CANCELLED_MESSAGE = "cancelled"
MAX_STEPS_MESSAGE = "max steps reached"

TITLE_INSTRUCTION = (
    "Generate a very short title (max 15 chars) for this conversation in English. "
    "Reply with ONLY the title, no quotes, no explanation."
)

SYSTEM_PROMPT = """\
You are an AI coding assistant running in a terminal. You help users write, debug, \
and understand code by using tools to explore and modify their codebase.

## Environment

- Working directory: {cwd}
- OS: {os}
- Date: {date}

## Available Tools

{tools}

## How to Work

1. **Think, then act**: Understand root cause before fixing. Investigate instead of guessing.
2. **Read before modify**: Never modify code you haven't read.
3. **Small, correct changes**: Make minimal edits that match existing conventions.
4. **Verify**: After changes, run tests or build if available.
5. **Recover from errors**: If a tool call fails, read the error, adjust, and retry.

## Tool Efficiency

Minimize the number of tool calls. Combine operations where one command answers \
the question, and search for code before reading entire files.

## Response Style

- Be direct and concise. Skip preamble.
- Answer in the user's language.
- Reference code as file_path:line_number.

## Security

- Never commit or expose secrets/API keys.
- Don't run destructive commands without user confirmation.
"""

_CLOSED = object()


class _EventChannel:
    """Bounded single-producer queue that is closed exactly once."""

    def __init__(self, maxsize: int) -> None:
        self.queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)
        self.terminated = False
        self.closed = False

    async def send(self, event: Event) -> None:
        if self.closed:
            raise RuntimeError("send on closed event channel")
        if self.terminated:
            raise RuntimeError(f"event after terminal event: {event!r}")
        # Blocks while the buffer is full.
        await self.queue.put(event)
        if isinstance(event, (Done, Error)):
            self.terminated = True

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            await self.queue.put(_CLOSED)


class EventStream:
    """Async iterator over one invocation's events.

    Iteration ends when the producer closes the channel, which happens right
    after the terminal event. Leaving an ``async with`` block (or calling
    :meth:`aclose`) early cancels the producer.
    """

    def __init__(self, channel: _EventChannel, task: asyncio.Task[None]) -> None:
        self._channel = channel
        self._task = task
        self._finished = False

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> Event:
        if self._finished:
            raise StopAsyncIteration
        item = await self._channel.queue.get()
        if item is _CLOSED:
            self._finished = True
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Stop consuming; cancels the producer if it is still running."""
        self._finished = True
        if not self._task.done():
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task

    async def collect(self) -> list[Event]:
        """Drain the stream into a list."""
        return [event async for event in self]


class AgentLoop:
    """The core agent loop.

    Orchestrates: transcript -> model -> tool calls -> model -> ... -> final answer.
    Each :meth:`run` owns its own transcript and event channel; concurrent
    runs on the same loop object do not share state.
    """

    def __init__(
        self,
        provider: Provider,
        tools: ToolRegistry | None = None,
        config: AgentConfig | None = None,
        estimator: TokenEstimator | None = None,
    ) -> None:
        self._provider = provider
        self._tools = tools if tools is not None else ToolRegistry()
        self._config = config or AgentConfig()
        self._estimator = estimator or CharTokenEstimator()
        self._cwd = Path(self._config.cwd or ".").resolve()

    @property
    def config(self) -> AgentConfig:
        return self._config

    def system_prompt(self) -> str:
        """The system message that opens every transcript."""
        if self._config.system_prompt:
            return self._config.system_prompt
        return SYSTEM_PROMPT.format(
            cwd=self._cwd,
            os=platform.system().lower(),
            date=date.today().isoformat(),
            tools=self._tools.describe() or "(none)",
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run(
        self,
        history: Sequence[Message],
        user_input: str,
        cancel: asyncio.Event | None = None,
    ) -> EventStream:
        """Start one invocation and return its event stream.

        Must be called with a running event loop. The stream yields
        intermediate events followed by exactly one :class:`Done` or
        :class:`Error`, then ends.
        """
        channel = _EventChannel(self._config.event_buffer)
        task = asyncio.create_task(
            self._produce(
                channel,
                list(history),
                user_input,
                cancel if cancel is not None else asyncio.Event(),
            ),
        )
        return EventStream(channel, task)

    async def generate_title(self, text: str) -> str:
        """Ask the model for a short label for a conversation.

        Provider errors propagate to the caller.
        """
        messages = [Message.system(TITLE_INSTRUCTION), Message.user(text)]
        resp = await self._provider.chat(messages, [])
        title = resp.content.strip()
        # str slicing counts code points, never splitting a character.
        return title[: self._config.title_max_chars]

    # ------------------------------------------------------------------
    # Producer
    # ------------------------------------------------------------------

    async def _produce(
        self,
        channel: _EventChannel,
        history: list[Message],
        user_input: str,
        cancel: asyncio.Event,
    ) -> None:
        try:
            await self._steps(channel, history, user_input, cancel)
        except Exception as exc:
            logger.exception("agent loop failed")
            if not channel.terminated:
                await channel.send(Error(message=str(exc), kind=ErrorKind.INTERNAL))
        await channel.close()

    async def _steps(
        self,
        channel: _EventChannel,
        history: list[Message],
        user_input: str,
        cancel: asyncio.Event,
    ) -> None:
        messages = await self._build_messages(channel, history, user_input, cancel)
        tool_defs = self._tools.get_definitions()
        new_messages: list[Message] = []

        for step in range(self._config.max_steps):
            if cancel.is_set():
                await self._cancelled(channel, step)
                return

            logger.debug("step %d: calling provider with %d messages", step, len(messages))
            try:
                resp = await until_cancelled(self._call(channel, messages, tool_defs), cancel)
            except OperationCancelled:
                await self._cancelled(channel, step)
                return
            except Exception as exc:
                logger.error("provider call failed: %s", exc)
                await channel.send(
                    Error(message=str(exc) or type(exc).__name__, kind=ErrorKind.PROVIDER),
                )
                return
            if cancel.is_set():
                await self._cancelled(channel, step)
                return
            if not self._config.stream and resp.content:
                await channel.send(TextDelta(text=resp.content))

            assistant = Message.assistant(
                resp.content, resp.tool_calls, reasoning=resp.reasoning,
            )
            messages.append(assistant)
            new_messages.append(assistant)

            if not resp.tool_calls:
                await channel.send(self._done(resp, messages[:-1], new_messages))
                return

            try:
                results = await self._dispatch(channel, resp.tool_calls, cancel)
            except OperationCancelled:
                await self._cancelled(channel, step)
                return
            if not results:
                # Nothing new for the model to read; stop instead of re-asking.
                await channel.send(self._done(resp, messages[:-1], new_messages))
                return
            tool_msg = Message.tool(results)
            messages.append(tool_msg)
            new_messages.append(tool_msg)

        logger.warning("agent loop hit max_steps=%d", self._config.max_steps)
        await channel.send(Error(message=MAX_STEPS_MESSAGE, kind=ErrorKind.MAX_STEPS))

    async def _build_messages(
        self,
        channel: _EventChannel,
        history: list[Message],
        user_input: str,
        cancel: asyncio.Event,
    ) -> list[Message]:
        messages = [Message.system(self.system_prompt()), *history, Message.user(user_input)]
        return await compact_messages(
            messages,
            self._provider,
            self._estimator,
            channel.send,
            threshold=self._config.compact_threshold,
            keep_recent=self._config.compact_keep_recent,
            result_cap=self._config.summary_result_cap,
            timeout=self._config.summary_timeout,
            cancel=cancel,
        )

    async def _cancelled(self, channel: _EventChannel, step: int) -> None:
        logger.info("agent loop cancelled at step %d", step)
        await channel.send(Error(message=CANCELLED_MESSAGE, kind=ErrorKind.CANCELLED))

    def _done(
        self, resp: Response, sent: Sequence[Message], new_messages: list[Message],
    ) -> Done:
        input_tokens = resp.input_tokens or self._estimator.estimate(sent)
        output_tokens = resp.output_tokens or self._estimator.estimate_output(
            resp.content, resp.tool_calls,
        )
        return Done(
            full_text=resp.content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            messages=tuple(new_messages),
        )

    # ------------------------------------------------------------------
    # Provider call
    # ------------------------------------------------------------------

    async def _call(
        self, channel: _EventChannel, messages: list[Message], tool_defs: list[ToolDef],
    ) -> Response:
        if not self._config.stream:
            return await self._provider.chat(messages, tool_defs)

        final: Response | None = None
        async for item in self._provider.chat_stream(messages, tool_defs):
            match item:
                case StreamChunk(text=text):
                    if text:
                        await channel.send(TextDelta(text=text))
                case StreamFinal(response=response):
                    final = response
        if final is None:
            raise ProviderError("stream ended without a final response")
        return final

    # ------------------------------------------------------------------
    # Tool dispatch
    # ------------------------------------------------------------------

    async def _dispatch(
        self, channel: _EventChannel, calls: Sequence[ToolCall], cancel: asyncio.Event,
    ) -> list[ToolResult]:
        """Run tool calls one at a time, in the order the model issued them.

        Raises OperationCancelled as soon as *cancel* fires, abandoning the
        running tool and skipping the rest.
        """
        results: list[ToolResult] = []
        for tc in calls:
            if cancel.is_set():
                raise OperationCancelled("cancelled")
            await channel.send(ToolStart(id=tc.id, name=tc.name, args=tc.args))
            results.append(await self._run_tool(channel, tc, cancel))
        return results

    async def _run_tool(
        self, channel: _EventChannel, tc: ToolCall, cancel: asyncio.Event,
    ) -> ToolResult:
        tool = self._tools.get(tc.name)
        if tool is None:
            logger.warning("model requested unknown tool %r", tc.name)
            await channel.send(ToolEnd(id=tc.id, name=tc.name, error=UNKNOWN_TOOL))
            return ToolResult(tool_call_id=tc.id, content=ERROR_PREFIX + UNKNOWN_TOOL)

        logger.debug("running tool %s id=%s", tc.name, tc.id)
        try:
            output = await until_cancelled(tool.run(tc.args), cancel)
        except OperationCancelled:
            logger.info("tool %s abandoned on cancellation", tc.name)
            raise
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            logger.info("tool %s failed: %s", tc.name, message)
            await channel.send(ToolEnd(id=tc.id, name=tc.name, error=message))
            return ToolResult(tool_call_id=tc.id, content=ERROR_PREFIX + message)

        if not isinstance(output, str):
            logger.warning("tool %s returned %s, not str", tc.name, type(output).__name__)
            output = str(output)
        output = truncate_output(output, self._config.tool_result_max_chars)
        await channel.send(ToolEnd(id=tc.id, name=tc.name, result=output))
        return ToolResult(tool_call_id=tc.id, content=output)
