"""Rich-powered event printer for one-shot CLI runs."""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

from otter.types.events import (
    CompactEnd,
    CompactStart,
    Done,
    Error,
    ErrorKind,
    Event,
    TextDelta,
    ToolEnd,
    ToolStart,
)

STYLE_TOOL_NAME = "bold #a78bfa"      # violet, primary accent
STYLE_TOOL_DETAIL = "#7c7c8a"         # muted grey
STYLE_ERROR_LABEL = "bold #f87171"    # red
STYLE_ERROR_BODY = "#f87171"
STYLE_RESULT_DIM = "dim #7c7c8a"
STYLE_RESULT_LABEL = "bold #94a3b8"   # slate
STYLE_COMPACTION = "dim italic #94a3b8"

PREVIEW_CHARS = 200


class EventPrinter:
    """Prints assistant text to stdout and everything else to stderr."""

    def __init__(
        self,
        console: Console | None = None,
        stdout: Console | None = None,
    ) -> None:
        self._console = console or Console(stderr=True)
        self._stdout = stdout or Console()
        self.exit_code = 0

    def print_event(self, event: Event) -> None:
        match event:
            case TextDelta(text=text):
                self._stdout.print(text, end="", highlight=False, markup=False)
            case ToolStart(name=name, args=args):
                line = Text("\n▸ ")
                line.append(name, style=STYLE_TOOL_NAME)
                if args:
                    line.append(f" {_preview(args, 80)}", style=STYLE_TOOL_DETAIL)
                self._console.print(line)
            case ToolEnd(error=error) if error:
                line = Text("  error ", style=STYLE_ERROR_LABEL)
                line.append(_preview(error), style=STYLE_ERROR_BODY)
                self._console.print(line)
            case ToolEnd(result=result):
                self._console.print(Text(f"  {_preview(result)}", style=STYLE_RESULT_DIM))
            case CompactStart(tokens=tokens, threshold=threshold):
                self._console.print(
                    Text(
                        f"[Compacting: {tokens:,} tokens >= {threshold:,}]",
                        style=STYLE_COMPACTION,
                    )
                )
            case CompactEnd(before=before, after=after):
                self._console.print(
                    Text(f"[Compacted: {before:,} -> {after:,} tokens]", style=STYLE_COMPACTION)
                )
            case Done(input_tokens=tin, output_tokens=tout):
                self._stdout.print()
                line = Text("Tokens: ", style=STYLE_RESULT_LABEL)
                line.append(f"{tin:,} in / {tout:,} out", style=STYLE_TOOL_DETAIL)
                self._console.print(line)
            case Error(message=message, kind=kind):
                self._stdout.print()
                label = "Cancelled" if kind is ErrorKind.CANCELLED else "Error"
                line = Text(f"{label}: ", style=STYLE_ERROR_LABEL)
                line.append(message, style=STYLE_ERROR_BODY)
                self._console.print(line)
                self.exit_code = 130 if kind is ErrorKind.CANCELLED else 1


def _preview(text: str, limit: int = PREVIEW_CHARS) -> str:
    first = text.strip().replace("\n", " ")
    return first if len(first) <= limit else first[:limit] + "..."
