"""Engine: wires config + provider + tools into a running agent loop."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Sequence

from otter.core.config import load_agent_config, load_toml_config, resolve_provider_settings
from otter.core.loop import AgentLoop
from otter.providers.registry import create_provider
from otter.tools.registry import ToolRegistry
from otter.types.events import Event
from otter.types.messages import Message
from otter.types.providers import Provider
from otter.types.tools import Tool


def build_loop(
    *,
    provider: str | None = None,
    model: str | None = None,
    tools: ToolRegistry | Iterable[Tool] | None = None,
    max_steps: int | None = None,
    stream: bool | None = None,
    cwd: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
    system_prompt: str | None = None,
    _provider: Provider | None = None,
) -> AgentLoop:
    """Resolve configuration and construct an :class:`AgentLoop`.

    Args:
        provider: Provider name ("anthropic", "openai"). Defaults from config.
        model: Model ID. Defaults from config, then the provider's default.
        tools: Tools to expose to the model.
        max_steps: Maximum provider round-trips per invocation.
        stream: Stream text deltas as they arrive.
        cwd: Working directory reported in the system prompt.
        api_key: Provider API key (or set via env var / config file).
        base_url: Override provider base URL.
        system_prompt: Override the default system prompt.
        _provider: Injected provider for testing (private).
    """
    data = load_toml_config(cwd)
    config = load_agent_config(
        data,
        max_steps=max_steps,
        stream=stream,
        cwd=cwd,
        system_prompt=system_prompt,
    )

    if _provider is not None:
        adapter: Provider = _provider
    else:
        settings = resolve_provider_settings(
            data, provider=provider, model=model, api_key=api_key, base_url=base_url,
        )
        adapter = create_provider(settings)

    if tools is None:
        registry = ToolRegistry()
    elif isinstance(tools, ToolRegistry):
        registry = tools
    else:
        registry = ToolRegistry(tools)

    return AgentLoop(provider=adapter, tools=registry, config=config)


async def run(
    prompt: str,
    *,
    history: Sequence[Message] = (),
    cancel: asyncio.Event | None = None,
    **kwargs: object,
) -> AsyncIterator[Event]:
    """Run the otter agent loop.

    This is the primary SDK entry point. Keyword arguments other than
    *history* and *cancel* are forwarded to :func:`build_loop`.

    Usage::

        async for event in otter.run("Fix the bug"):
            match event:
                case otter.TextDelta(text=t):
                    print(t, end="")
                case otter.Done(full_text=t):
                    print(f"Done: {t}")
    """
    loop = build_loop(**kwargs)  # type: ignore[arg-type]
    async with loop.run(history, prompt, cancel=cancel) as events:
        async for event in events:
            yield event
