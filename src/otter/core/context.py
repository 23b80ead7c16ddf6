"""Context management: token-budget checks and LLM-driven compaction."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from otter.core.cancel import until_cancelled
from otter.types.events import CompactEnd, CompactStart, Event
from otter.types.messages import Message
from otter.types.providers import Provider, TokenEstimator

logger = logging.getLogger(__name__)

SUMMARY_PREFIX = "[Previous conversation summary]\n"

SUMMARIZE_INSTRUCTION = (
    "Summarize the following conversation concisely. Preserve: key decisions, "
    "important file paths and code changes, current task context. Be brief but "
    "complete. Output only the summary."
)

Emit = Callable[[Event], Awaitable[None]]


def needs_compaction(
    messages: Sequence[Message],
    estimator: TokenEstimator,
    threshold: int,
) -> bool:
    """Check if the transcript meets or exceeds the token threshold."""
    return estimator.estimate(messages) >= threshold


def flatten_transcript(messages: Sequence[Message], result_cap: int = 500) -> str:
    """Render messages as role-tagged plain text for the summarizer.

    Tool results are cut to *result_cap* code points each so one large
    output cannot dominate the summarization input.
    """
    lines: list[str] = []
    for m in messages:
        lines.append(f"[{m.role}]: {m.content}")
        for tc in m.tool_calls:
            lines.append(f"[tool_call {tc.id}]: {tc.name}({tc.args})")
        for tr in m.tool_results:
            content = tr.content
            if len(content) > result_cap:
                content = content[:result_cap] + "..."
            lines.append(f"[tool_result {tr.tool_call_id}]: {content}")
    return "\n".join(lines) + "\n" if lines else ""


async def summarize(
    provider: Provider,
    messages: Sequence[Message],
    *,
    result_cap: int = 500,
    timeout: float = 30.0,
    cancel: asyncio.Event | None = None,
) -> str:
    """Ask the provider for a concise summary of *messages*.

    Raises TimeoutError after *timeout* seconds and OperationCancelled when
    *cancel* fires first. Provider errors propagate unchanged.
    """
    prompt = [
        Message.system(SUMMARIZE_INSTRUCTION),
        Message.user(flatten_transcript(messages, result_cap)),
    ]
    async with asyncio.timeout(timeout):
        resp = await until_cancelled(provider.chat(prompt, []), cancel)
    return resp.content.strip()


async def compact_messages(
    messages: list[Message],
    provider: Provider,
    estimator: TokenEstimator,
    emit: Emit,
    *,
    threshold: int,
    keep_recent: int,
    result_cap: int = 500,
    timeout: float = 30.0,
    cancel: asyncio.Event | None = None,
) -> list[Message]:
    """Compact *messages* when they are over budget.

    Strategy:
    1. Keep the system message and the last *keep_recent* messages verbatim
    2. Summarize everything in between with the provider
    3. Replace the middle with one synthetic user message carrying the summary

    Returns the compacted list, or *messages* itself when no compaction was
    needed, possible, or successful.
    """
    tokens = estimator.estimate(messages)
    if tokens < threshold:
        return messages
    if len(messages) <= keep_recent + 1:
        logger.debug("compaction skipped, nothing between system and recent messages")
        return messages

    logger.info("auto-compact triggered tokens=%d threshold=%d", tokens, threshold)
    await emit(CompactStart(tokens=tokens, threshold=threshold))

    system = messages[0]
    middle = messages[1:-keep_recent]
    recent = messages[-keep_recent:]

    try:
        summary = await summarize(
            provider, middle, result_cap=result_cap, timeout=timeout, cancel=cancel,
        )
    except Exception as exc:
        logger.warning("compact failed, using full history: %r", exc)
        return messages

    compacted = [system, Message.user(SUMMARY_PREFIX + summary), *recent]
    after = estimator.estimate(compacted)
    logger.info(
        "compact done before=%d after=%d summarized_msgs=%d", tokens, after, len(middle),
    )
    await emit(CompactEnd(before=tokens, after=after))
    return compacted
