"""Base provider with shared retry logic, tool schema conversion and stream fallback."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from typing import Any

from otter.types.messages import Message
from otter.types.providers import Response, StreamChunk, StreamFinal, StreamItem
from otter.types.tools import ToolDef, ToolParam

logger = logging.getLogger(__name__)

# 429 rate limited, 529 overloaded
_TRANSIENT_STATUS: frozenset[int] = frozenset({429, 529})
_TRANSIENT_NAMES: frozenset[str] = frozenset({"RateLimitError", "OverloadedError"})
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.0  # seconds, doubled after every failed attempt


def _is_transient(exc: BaseException) -> bool:
    """Rate limits and overload are worth another attempt; nothing else is."""
    if type(exc).__name__ in _TRANSIENT_NAMES:
        return True
    return getattr(exc, "status_code", None) in _TRANSIENT_STATUS


class BaseProvider(ABC):
    """Shared plumbing for the SDK-backed adapters.

    Subclasses implement :meth:`chat`. Backends that can stream override
    :meth:`chat_stream`; otherwise the buffered answer is replayed as one
    chunk followed by the final response.
    """

    def __init__(self, model: str, max_tokens: int = 8192) -> None:
        self._model = model
        self._max_tokens = max_tokens

    @property
    def model_id(self) -> str:
        return self._model

    # ------------------------------------------------------------------
    # Provider protocol
    # ------------------------------------------------------------------

    @abstractmethod
    async def chat(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> Response:
        """Send the transcript and return the complete response."""
        ...

    async def chat_stream(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> AsyncIterator[StreamItem]:
        resp = await self.chat(messages, tools)
        if resp.content:
            yield StreamChunk(text=resp.content)
        yield StreamFinal(response=resp)

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _split_system(messages: Sequence[Message]) -> tuple[str, list[Message]]:
        """Separate system messages (joined) from the rest of the transcript."""
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        return system, [m for m in messages if m.role != "system"]

    @staticmethod
    def _pair_tool_results(messages: Sequence[Message]) -> list[Message]:
        """Inline tool results whose calls are no longer in the transcript.

        Compaction can summarize away the assistant turn that issued a call
        while keeping its result. Both APIs reject a result without its call,
        so orphans are re-sent as plain user text and an emptied tool message
        is dropped.
        """
        paired: list[Message] = []
        open_ids: set[str] = set()
        for msg in messages:
            if msg.role == "assistant":
                open_ids = {tc.id for tc in msg.tool_calls}
            elif msg.role == "tool":
                kept = [tr for tr in msg.tool_results if tr.tool_call_id in open_ids]
                orphans = [tr for tr in msg.tool_results if tr.tool_call_id not in open_ids]
                if kept:
                    paired.append(Message.tool(kept))
                if orphans:
                    logger.debug("inlining %d orphan tool results", len(orphans))
                    paired.append(Message.user("\n\n".join(
                        f"[tool result {tr.tool_call_id}]\n{tr.content}" for tr in orphans
                    )))
                open_ids = set()
                continue
            else:
                open_ids = set()
            paired.append(msg)
        return paired

    async def _retry_with_backoff(
        self,
        call: Callable[..., Awaitable[Any]],
        /,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Await ``call(*args, **kwargs)``, retrying transient backend errors.

        Waits ``_BACKOFF_BASE`` seconds before the first retry and doubles the
        wait each time. After ``_MAX_RETRIES`` retries the error propagates.
        """
        delay = _BACKOFF_BASE
        attempt = 0
        while True:
            try:
                return await call(*args, **kwargs)
            except Exception as exc:
                attempt += 1
                if attempt > _MAX_RETRIES or not _is_transient(exc):
                    raise
                logger.warning(
                    "%s from %s, retry %d/%d in %.1fs",
                    type(exc).__name__, self._model, attempt, _MAX_RETRIES, delay,
                )
                await asyncio.sleep(delay)
                delay *= 2

    def _make_tool_defs(self, tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        """Describe *tools* as ``{name, description, input_schema}`` dicts.

        This is Anthropic's shape already; the OpenAI adapter re-wraps it
        in a function envelope.
        """
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": self._object_schema(tool.parameters),
            }
            for tool in tools
        ]

    @classmethod
    def _object_schema(cls, params: Sequence[ToolParam]) -> dict[str, Any]:
        schema: dict[str, Any] = {
            "type": "object",
            "properties": {p.name: cls._param_schema(p) for p in params},
        }
        required = [p.name for p in params if p.required]
        if required:
            schema["required"] = required
        return schema

    @staticmethod
    def _param_schema(param: ToolParam) -> dict[str, Any]:
        prop: dict[str, Any] = {"type": param.type, "description": param.description}
        if param.enum is not None:
            prop["enum"] = list(param.enum)
        if param.default is not None:
            prop["default"] = param.default
        # OpenAI rejects array parameters without an items schema.
        if param.type == "array":
            prop["items"] = param.items or {"type": "string"}
        return prop
