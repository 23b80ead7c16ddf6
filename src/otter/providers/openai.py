"""OpenAI provider adapter.

Supports OpenAI models and any OpenAI-compatible endpoint (Ollama, Groq,
OpenRouter, DeepSeek, ...) by passing a custom ``base_url``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Sequence
from typing import Any

from otter.providers.base import BaseProvider
from otter.types.messages import Message, ToolCall
from otter.types.providers import (
    ProviderError,
    Response,
    StreamChunk,
    StreamFinal,
    StreamItem,
)
from otter.types.tools import ToolDef

logger = logging.getLogger(__name__)


class OpenAIProvider(BaseProvider):
    """Provider adapter for OpenAI-compatible chat completion APIs.

    Uses the official ``openai`` Python SDK (``AsyncOpenAI``).

    Parameters
    ----------
    api_key:
        OpenAI API key.  When *None* the SDK falls back to the
        ``OPENAI_API_KEY`` environment variable.
    model:
        Model ID to use for completions (default ``"gpt-4o"``).
    base_url:
        Optional custom base URL for OpenAI-compatible endpoints.
    headers:
        Extra HTTP headers sent with every request.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o",
        base_url: str | None = None,
        headers: dict[str, str] | None = None,
        max_tokens: int = 8192,
    ) -> None:
        super().__init__(model, max_tokens=max_tokens)
        from openai import AsyncOpenAI

        kwargs: dict[str, Any] = {}
        if api_key is not None:
            kwargs["api_key"] = api_key
        if base_url is not None:
            kwargs["base_url"] = base_url
        if headers:
            kwargs["default_headers"] = headers

        self._client = AsyncOpenAI(**kwargs)

    # ------------------------------------------------------------------
    # Provider protocol
    # ------------------------------------------------------------------

    async def chat(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> Response:
        """Run one non-streaming completion."""
        request = self._build_request(messages, tools)
        logger.debug(
            "openai request model=%s messages=%d tools=%d",
            self._model, len(messages), len(tools),
        )
        resp = await self._retry_with_backoff(
            self._client.chat.completions.create, **request,
        )

        if not resp.choices:
            raise ProviderError("no response choices")

        input_tokens = output_tokens = 0
        if resp.usage is not None:
            input_tokens = resp.usage.prompt_tokens or 0
            output_tokens = resp.usage.completion_tokens or 0
        logger.info(
            "openai response received prompt=%d completion=%d", input_tokens, output_tokens,
        )

        choice = resp.choices[0]
        msg = choice.message
        tool_calls = tuple(
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                args=tc.function.arguments or "",
            )
            for tc in (msg.tool_calls or [])
        )
        return Response(
            content=msg.content or "",
            # Non-standard field returned by DeepSeek-style reasoning backends.
            reasoning=getattr(msg, "reasoning_content", None) or "",
            tool_calls=tool_calls,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            stop_reason=choice.finish_reason or "",
        )

    async def chat_stream(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> AsyncIterator[StreamItem]:
        """Stream a completion, aggregating tool-call fragments by index."""
        request = self._build_request(messages, tools)
        stream = await self._retry_with_backoff(
            self._client.chat.completions.create,
            stream=True,
            stream_options={"include_usage": True},
            **request,
        )

        content: list[str] = []
        reasoning: list[str] = []
        # index -> [id, name, args]
        calls: dict[int, list[str]] = {}
        input_tokens = output_tokens = 0
        stop_reason = ""

        async for chunk in stream:
            # The final chunk has choices=[] and usage populated when
            # include_usage is set.
            usage = getattr(chunk, "usage", None)
            if usage is not None:
                input_tokens = usage.prompt_tokens or 0
                output_tokens = usage.completion_tokens or 0

            if not chunk.choices:
                continue
            choice = chunk.choices[0]
            delta = choice.delta

            if delta.content:
                content.append(delta.content)
                yield StreamChunk(text=delta.content)

            extra = getattr(delta, "reasoning_content", None)
            if extra:
                reasoning.append(extra)

            for tc in delta.tool_calls or []:
                entry = calls.setdefault(tc.index, ["", "", ""])
                if tc.id:
                    entry[0] = tc.id
                if tc.function is not None:
                    if tc.function.name:
                        entry[1] += tc.function.name
                    if tc.function.arguments:
                        entry[2] += tc.function.arguments

            if choice.finish_reason:
                stop_reason = choice.finish_reason

        yield StreamFinal(
            response=Response(
                content="".join(content),
                reasoning="".join(reasoning),
                tool_calls=tuple(
                    ToolCall(id=c[0], name=c[1], args=c[2])
                    for _, c in sorted(calls.items())
                ),
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                stop_reason=stop_reason,
            )
        )

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    def _build_request(
        self, messages: Sequence[Message], tools: Sequence[ToolDef],
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": self._model,
            "messages": self._to_openai_messages(messages),
        }
        if tools:
            request["tools"] = self._to_openai_tools(tools)

        # GPT-5+ and reasoning models (o1/o3/o4) use max_completion_tokens
        # instead of the legacy max_tokens parameter.
        model_lower = self._model.lower()
        if model_lower.startswith(("gpt-5", "o1", "o3", "o4")):
            request["max_completion_tokens"] = self._max_tokens
        else:
            request["max_tokens"] = self._max_tokens
        return request

    def _to_openai_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert a transcript to the OpenAI messages array.

        Tool messages expand into one ``role="tool"`` entry per result, which
        is how the API pairs results with the preceding ``tool_calls``.
        """
        result: list[dict[str, Any]] = []
        for msg in self._pair_tool_results(messages):
            if msg.role == "tool":
                for tr in msg.tool_results:
                    result.append(
                        {
                            "role": "tool",
                            "tool_call_id": tr.tool_call_id,
                            "content": tr.content,
                        }
                    )
            elif msg.role == "assistant":
                entry: dict[str, Any] = {
                    "role": "assistant",
                    "content": msg.content or None,
                }
                if msg.reasoning:
                    entry["reasoning_content"] = msg.reasoning
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {"name": tc.name, "arguments": tc.args or "{}"},
                        }
                        for tc in msg.tool_calls
                    ]
                result.append(entry)
            else:
                result.append({"role": msg.role, "content": msg.content})
        return result

    def _to_openai_tools(self, tools: Sequence[ToolDef]) -> list[dict[str, Any]]:
        """Wrap the generic tool schema in the OpenAI function envelope."""
        return [
            {
                "type": "function",
                "function": {
                    "name": t["name"],
                    "description": t["description"],
                    "parameters": t["input_schema"],
                },
            }
            for t in self._make_tool_defs(tools)
        ]
