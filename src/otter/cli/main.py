"""CLI entry point for otter."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from otter.cli.output import EventPrinter


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging to stderr")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """otter -- terminal coding agent.

    \b
    Usage:
      otter run "Explain what main.py does"
      otter run --stream -p openai -m gpt-4o "Summarize README.md"
      otter title "how do I rebase onto main?"
      otter config
    """
    ctx.ensure_object(dict)
    _setup_logging(verbose)


@cli.command("run")
@click.argument("prompt", nargs=-1, required=True)
@click.option("--provider", "-p", default=None, help="LLM provider (anthropic, openai)")
@click.option("--model", "-m", default=None, help="Model ID")
@click.option("--stream/--no-stream", default=None, help="Stream text as it arrives")
@click.option("--max-steps", type=int, default=None, help="Maximum provider round-trips")
@click.option("--cwd", default=None, help="Working directory")
@click.option("--api-key", default=None, help="Provider API key")
@click.option("--base-url", default=None, help="Provider base URL")
def run_cmd(
    prompt: tuple[str, ...],
    provider: str | None,
    model: str | None,
    stream: bool | None,
    max_steps: int | None,
    cwd: str | None,
    api_key: str | None,
    base_url: str | None,
) -> None:
    """Run the agent on PROMPT and print its events."""
    prompt_text = " ".join(prompt).strip()
    if not prompt_text:
        click.echo("Error: empty prompt", err=True)
        sys.exit(1)

    code = asyncio.run(_run_agent(
        prompt_text,
        provider=provider,
        model=model,
        stream=stream,
        max_steps=max_steps,
        cwd=cwd,
        api_key=api_key,
        base_url=base_url,
    ))
    sys.exit(code)


@cli.command("title")
@click.argument("text", nargs=-1, required=True)
@click.option("--provider", "-p", default=None, help="LLM provider (anthropic, openai)")
@click.option("--model", "-m", default=None, help="Model ID")
def title_cmd(text: tuple[str, ...], provider: str | None, model: str | None) -> None:
    """Generate a short title for TEXT."""
    from otter.core.engine import build_loop

    try:
        loop = build_loop(provider=provider, model=model)
        title = asyncio.run(loop.generate_title(" ".join(text)))
    except Exception as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(title)


@cli.command("config")
@click.option("--cwd", default=None, help="Working directory")
def config_cmd(cwd: str | None) -> None:
    """Show the resolved configuration."""
    from otter.core.config import load_agent_config, load_toml_config, resolve_provider_settings

    try:
        data = load_toml_config(cwd)
        settings = resolve_provider_settings(data)
        config = load_agent_config(data)
    except (KeyError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    table = Table(title="otter configuration", show_header=False)
    table.add_column("key", style="bold")
    table.add_column("value")
    table.add_row("provider", settings.name)
    table.add_row("model", settings.model)
    table.add_row("base_url", settings.base_url or "(default)")
    table.add_row("api_key", "set" if settings.api_key else "missing")
    table.add_row("stream", str(config.stream))
    table.add_row("max_steps", str(config.max_steps))
    table.add_row("compact_threshold", f"{config.compact_threshold:,}")
    table.add_row("compact_keep_recent", str(config.compact_keep_recent))
    Console().print(table)


async def _run_agent(
    prompt: str,
    *,
    provider: str | None,
    model: str | None,
    stream: bool | None,
    max_steps: int | None,
    cwd: str | None,
    api_key: str | None,
    base_url: str | None,
) -> int:
    """Run the agent, print its events and return the process exit code."""
    from otter.core.engine import build_loop

    try:
        loop = build_loop(
            provider=provider,
            model=model,
            stream=stream,
            max_steps=max_steps,
            cwd=cwd,
            api_key=api_key,
            base_url=base_url,
        )
    except (KeyError, ValueError) as exc:
        click.echo(f"Error: {exc}", err=True)
        return 1

    cancel = asyncio.Event()
    # Ctrl-C abandons the in-flight provider call or tool.
    with contextlib.suppress(NotImplementedError):
        asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel.set)

    printer = EventPrinter()
    async with loop.run([], prompt, cancel=cancel) as events:
        async for event in events:
            printer.print_event(event)
    return printer.exit_code


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
