"""Racing in-flight work against an invocation's cancellation signal."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import Any


class OperationCancelled(Exception):
    """The cancellation signal fired before the awaited work finished."""


async def until_cancelled(aw: Awaitable[Any], cancel: asyncio.Event | None) -> Any:
    """Await *aw*, abandoning it with :class:`OperationCancelled` if *cancel* fires first.

    The abandoned work is cancelled and allowed to unwind before this returns,
    so providers and tools that never look at the signal still stop at their
    next await.
    """
    if cancel is None:
        return await aw
    if cancel.is_set():
        if asyncio.iscoroutine(aw):
            aw.close()
        raise OperationCancelled("cancelled")

    work = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        waiter.cancel()
        if not work.done():
            work.cancel()
            await asyncio.wait({work})
    # Work that finished in the same tick as the signal still counts.
    if not work.done() or work.cancelled():
        raise OperationCancelled("cancelled")
    return work.result()
