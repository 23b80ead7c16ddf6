"""Tests for the otter CLI and its event printer."""

from __future__ import annotations

import io

from click.testing import CliRunner
from rich.console import Console

from otter.cli.main import cli
from otter.cli.output import EventPrinter
from otter.core.loop import AgentLoop
from otter.types.config import AgentConfig
from otter.types.events import (
    CompactEnd,
    CompactStart,
    Done,
    Error,
    ErrorKind,
    TextDelta,
    ToolEnd,
    ToolStart,
)
from tests.conftest import FailingMockProvider, MockProvider, MockTurn


def _patch_build_loop(monkeypatch, provider) -> dict:
    captured: dict = {}

    def fake_build_loop(**kwargs):
        captured.update(kwargs)
        return AgentLoop(provider=provider, config=AgentConfig(system_prompt="sys"))

    monkeypatch.setattr("otter.core.engine.build_loop", fake_build_loop)
    return captured


def _printer() -> tuple[EventPrinter, io.StringIO, io.StringIO]:
    out, err = io.StringIO(), io.StringIO()
    printer = EventPrinter(
        console=Console(file=err, width=200),
        stdout=Console(file=out, width=200),
    )
    return printer, out, err


class TestRunCommand:
    def test_prints_answer(self, monkeypatch):
        provider = MockProvider(turns=[MockTurn(text="Hello from otter")])
        captured = _patch_build_loop(monkeypatch, provider)

        result = CliRunner().invoke(cli, ["run", "--stream", "--max-steps", "5", "say", "hi"])

        assert result.exit_code == 0, result.output
        assert "Hello from otter" in result.output
        assert captured["stream"] is True
        assert captured["max_steps"] == 5
        assert provider.calls[0][-1].content == "say hi"

    def test_provider_failure_exit_code(self, monkeypatch):
        _patch_build_loop(monkeypatch, FailingMockProvider(turns=[], fail_count=1))

        result = CliRunner().invoke(cli, ["run", "hello"])

        assert result.exit_code == 1
        assert "Simulated failure #1" in result.output

    def test_unknown_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = CliRunner().invoke(cli, ["run", "--provider", "bogus", "hello"])

        assert result.exit_code == 1
        assert "Unknown provider" in result.output

    def test_requires_prompt(self):
        result = CliRunner().invoke(cli, ["run"])
        assert result.exit_code != 0

    def test_blank_prompt(self):
        result = CliRunner().invoke(cli, ["run", "  "])
        assert result.exit_code == 1
        assert "empty prompt" in result.output


class TestTitleCommand:
    def test_title(self, monkeypatch):
        _patch_build_loop(monkeypatch, MockProvider(turns=[MockTurn(text="Rebasing onto main branch")]))

        result = CliRunner().invoke(cli, ["title", "how", "do", "I", "rebase?"])

        assert result.exit_code == 0
        assert result.output.strip() == "Rebasing onto main b"

    def test_title_failure(self, monkeypatch):
        _patch_build_loop(monkeypatch, FailingMockProvider(turns=[], fail_count=1))

        result = CliRunner().invoke(cli, ["title", "anything"])

        assert result.exit_code == 1
        assert "Simulated failure" in result.output


class TestConfigCommand:
    def test_shows_resolved_settings(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        result = CliRunner().invoke(cli, ["config"])

        assert result.exit_code == 0
        assert "anthropic" in result.output
        assert "claude-sonnet-4-6" in result.output
        assert "missing" in result.output

    def test_unknown_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("OTTER_PROVIDER", "bogus")

        result = CliRunner().invoke(cli, ["config"])

        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "Unknown provider" in result.output


class TestEventPrinter:
    def test_text_goes_to_stdout(self):
        printer, out, err = _printer()

        printer.print_event(TextDelta(text="Hel"))
        printer.print_event(TextDelta(text="lo"))

        assert out.getvalue() == "Hello"
        assert err.getvalue() == ""

    def test_tool_events_go_to_stderr(self):
        printer, out, err = _printer()

        printer.print_event(ToolStart(id="c1", name="echo", args='{"text": "x"}'))
        printer.print_event(ToolEnd(id="c1", name="echo", result="x"))
        printer.print_event(ToolEnd(id="c2", name="nope", error="unknown tool"))

        text = err.getvalue()
        assert "echo" in text
        assert "error unknown tool" in text
        assert out.getvalue() == ""

    def test_compaction(self):
        printer, _, err = _printer()

        printer.print_event(CompactStart(tokens=61_000, threshold=60_000))
        printer.print_event(CompactEnd(before=61_000, after=2_000))

        assert "61,000 tokens >= 60,000" in err.getvalue()
        assert "61,000 -> 2,000" in err.getvalue()

    def test_done_reports_tokens(self):
        printer, _, err = _printer()

        printer.print_event(Done(full_text="ok", input_tokens=1200, output_tokens=34))

        assert "1,200 in / 34 out" in err.getvalue()
        assert printer.exit_code == 0

    def test_error_sets_exit_code(self):
        printer, _, err = _printer()

        printer.print_event(Error(message="max steps reached", kind=ErrorKind.MAX_STEPS))

        assert "Error: max steps reached" in err.getvalue()
        assert printer.exit_code == 1

    def test_cancelled_exit_code(self):
        printer, _, err = _printer()

        printer.print_event(Error(message="cancelled", kind=ErrorKind.CANCELLED))

        assert "Cancelled: cancelled" in err.getvalue()
        assert printer.exit_code == 130
