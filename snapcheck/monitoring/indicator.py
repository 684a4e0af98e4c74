"""
Status indicator rendered on the console.

Shows the number of running tests and switches to an error state when a
test fails.
"""

from typing import Optional

from rich.console import Console

from snapcheck.core.interfaces import StatusIndicator

RUNNING_COLOR = "blue"
ERROR_COLOR = "red"


class ConsoleStatusIndicator(StatusIndicator):
    """Prints indicator changes as single rich-formatted status lines."""

    def __init__(self, console: Optional[Console] = None, quiet: bool = False) -> None:
        self.console = console or Console(stderr=True)
        self.quiet = quiet
        self.text = ""
        self.color = RUNNING_COLOR
        self.title = ""

    def _render(self) -> None:
        if self.quiet:
            return
        label = self.text or "idle"
        suffix = f" [dim]{self.title}[/dim]" if self.title else ""
        self.console.print(f"[bold {self.color}]snapcheck[/bold {self.color}] {label}{suffix}")

    def set_text(self, text: str) -> None:
        self.text = text
        self._render()

    def set_color(self, color: str) -> None:
        self.color = color

    def set_title(self, title: str) -> None:
        self.title = title
