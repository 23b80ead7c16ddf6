"""Anthropic/Claude provider adapter."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from otter.providers.base import BaseProvider
from otter.types.messages import Message, ToolCall
from otter.types.providers import Response, StreamChunk, StreamFinal, StreamItem
from otter.types.tools import ToolDef

logger = logging.getLogger(__name__)


class AnthropicProvider(BaseProvider):
    """Provider adapter for Anthropic's Claude models.

    Uses the official ``anthropic`` Python SDK (``AsyncAnthropic``). The
    system prompt travels in the dedicated ``system`` parameter; tool results
    are sent back as ``tool_result`` blocks inside a user message.

    Parameters
    ----------
    api_key:
        Anthropic API key.  When *None* the SDK will fall back to the
        ``ANTHROPIC_API_KEY`` environment variable.
    model:
        Model ID to use for completions (default ``"claude-sonnet-4-6"``).
    base_url:
        Optional proxy or self-hosted endpoint.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-sonnet-4-6",
        base_url: str | None = None,
        max_tokens: int = 8192,
    ) -> None:
        super().__init__(model, max_tokens=max_tokens)
        from anthropic import AsyncAnthropic

        kwargs: dict[str, Any] = {}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if base_url is not None:
            kwargs["base_url"] = base_url
        self._client = AsyncAnthropic(**kwargs)

    # ------------------------------------------------------------------
    # Provider protocol
    # ------------------------------------------------------------------

    async def chat(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> Response:
        request = self._build_request(messages, tools)
        logger.debug(
            "anthropic request model=%s messages=%d tools=%d",
            self._model, len(messages), len(tools),
        )
        final = await self._retry_with_backoff(self._client.messages.create, **request)
        return self._to_response(final)

    async def chat_stream(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> AsyncIterator[StreamItem]:
        request = self._build_request(messages, tools)
        # Streaming is lazy, so the request cannot be retried once chunks
        # have been forwarded; connection errors surface immediately.
        async with self._client.messages.stream(**request) as stream:
            async for text in stream.text_stream:
                if text:
                    yield StreamChunk(text=text)
            final = await stream.get_final_message()
        yield StreamFinal(response=self._to_response(final))

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    def _build_request(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> dict[str, Any]:
        system, rest = self._split_system(messages)
        request: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": self._to_anthropic_messages(rest),
        }
        if system:
            request["system"] = system
        if tools:
            # The generic schema already uses Anthropic's keys.
            request["tools"] = self._make_tool_defs(tools)
        return request

    def _to_anthropic_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert a (system-free) transcript to Anthropic's messages format."""
        result: list[dict[str, Any]] = []
        for msg in self._pair_tool_results(messages):
            if msg.role == "tool":
                result.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": tr.tool_call_id,
                                "content": tr.content,
                            }
                            for tr in msg.tool_results
                        ],
                    }
                )
            elif msg.role == "assistant":
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append(
                        {
                            "type": "tool_use",
                            "id": tc.id,
                            "name": tc.name,
                            "input": _decode_args(tc.args),
                        }
                    )
                if blocks:
                    result.append({"role": "assistant", "content": blocks})
            else:
                result.append({"role": "user", "content": msg.content})
        return result

    @staticmethod
    def _to_response(message: Any) -> Response:
        text: list[str] = []
        thinking: list[str] = []
        calls: list[ToolCall] = []
        for block in message.content:
            if block.type == "text":
                text.append(block.text)
            elif block.type == "thinking":
                thinking.append(block.thinking)
            elif block.type == "tool_use":
                calls.append(
                    ToolCall(id=block.id, name=block.name, args=json.dumps(block.input)),
                )
        usage = message.usage
        return Response(
            content="".join(text),
            reasoning="".join(thinking),
            tool_calls=tuple(calls),
            input_tokens=usage.input_tokens or 0,
            output_tokens=usage.output_tokens or 0,
            stop_reason=message.stop_reason or "",
        )


def _decode_args(raw: str) -> dict[str, Any]:
    """Anthropic wants tool input as an object; malformed payloads become {}."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("dropping non-JSON tool arguments %r", raw[:80])
        return {}
    return value if isinstance(value, dict) else {}
