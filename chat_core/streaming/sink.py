"""Display sink and reply accumulator.

Fragments are written as they arrive with no separators and flushed one
by one; buffering a line before printing would defeat streaming.
"""

from typing import List, Optional, Protocol

from rich.console import Console

from chat_core.domain.models import ContentDelta, StreamEvent


class DisplaySink(Protocol):
    """Where the assistant reply goes."""

    def begin_reply(self) -> None:
        ...

    def write(self, text: str) -> None:
        ...

    def end_reply(self) -> None:
        ...


class TerminalSink:
    """Writes the reply to a rich Console.

    The label and the "thinking..." placeholder are styled through rich;
    fragments go straight to the console's file so they are not wrapped,
    highlighted or interpreted as markup.
    """

    LABEL = "🤖 Assistant: "
    PLACEHOLDER = "thinking..."

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()
        self._placeholder_shown = False

    def begin_reply(self) -> None:
        self._console.print(self.LABEL, style="bold green", end="")
        if self._console.is_terminal:
            self._console.print(self.PLACEHOLDER, style="dim", end="")
            self._placeholder_shown = True
        self._console.file.flush()

    def write(self, text: str) -> None:
        if not text:
            return
        out = self._console.file
        if self._placeholder_shown:
            # back to column 0, erase the placeholder, redraw the label
            out.write("\r\x1b[K")
            self._console.print(self.LABEL, style="bold green", end="")
            self._placeholder_shown = False
        out.write(text)
        out.flush()

    def end_reply(self) -> None:
        if self._placeholder_shown:
            self._console.file.write("\r\x1b[K")
            self._console.print(self.LABEL, style="bold green", end="")
            self._placeholder_shown = False
        self._console.file.write("\n")
        self._console.file.flush()


class ReplyAccumulator:
    """Folds content deltas into the full assistant reply."""

    def __init__(self):
        self._parts: List[str] = []

    def feed(self, event: StreamEvent) -> None:
        if isinstance(event, ContentDelta):
            self._parts.append(event.text)

    @property
    def text(self) -> str:
        return "".join(self._parts)
