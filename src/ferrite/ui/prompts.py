"""Interactive questions asked by fchat and fimg."""

from typing import Optional, Sequence

import typer
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm, Prompt

from .console import console as default_console

EDITOR_TEMPLATE = ""


class TerminalPrompts:
    """Reads user input from the terminal with Rich prompts."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or default_console

    def line(self) -> str:
        """Read one line of chat input. Raises EOFError at end of input."""
        return Prompt.ask("[bold green]>[/bold green]", console=self.console, show_default=False, default="")

    def text(self, label: str) -> str:
        return Prompt.ask(escape(label), console=self.console)

    def confirm(self, question: str, default: bool = False) -> bool:
        return Confirm.ask(escape(question), console=self.console, default=default)

    def select(self, title: str, options: Sequence[str]) -> int:
        """Show a numbered list and return the index of the chosen option."""
        self.console.print(f"[bold]{escape(title)}[/bold]")
        for index, option in enumerate(options, start=1):
            self.console.print(f"  [green]{index}.[/green] {escape(option)}")

        choice = Prompt.ask(
            "Number",
            console=self.console,
            choices=[str(index) for index in range(1, len(options) + 1)],
            default="1",
        )
        return int(choice) - 1

    def editor(self) -> Optional[str]:
        """Open ``$EDITOR`` and return what was written, or None when nothing was saved."""
        return typer.edit(EDITOR_TEMPLATE, require_save=True)
