"""Rich consoles and answer printing shared by the commands."""

from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from ..core.completion import Answer
from ..core.web import Citation

# Answers go to stdout, diagnostics to stderr
console = Console(emoji=False)
err_console = Console(stderr=True, emoji=False)


def print_error(message: str, hint: Optional[str] = None, target: Optional[Console] = None) -> None:
    target = target or err_console
    target.print(f"[red]Error:[/red] {escape(message)}")
    if hint and hint != message:
        target.print(f"[dim]{escape(hint)}[/dim]")


def print_plain(text: str, target: Optional[Console] = None, end: str = "\n") -> None:
    """Print text verbatim: no markup, emoji codes, highlighting or wrapping."""
    (target or console).print(text, end=end, markup=False, emoji=False, highlight=False, soft_wrap=True)


def print_sources(citations: Sequence[Citation], target: Optional[Console] = None) -> None:
    if not citations:
        return
    target = target or console
    print_plain("", target)
    print_plain("Sources:", target)
    for index, citation in enumerate(citations, start=1):
        if citation.title:
            print_plain(f"{index}. {citation.title} - {citation.url}", target)
        else:
            print_plain(f"{index}. {citation.url}", target)


class AnswerPrinter:
    """Writes streamed deltas as they arrive and finishes the answer."""

    def __init__(self, target: Optional[Console] = None):
        self.target = target or console
        self.wrote_delta = False

    def write(self, text: str) -> None:
        if not text:
            return
        self.wrote_delta = True
        print_plain(text, self.target, end="")

    def finish(self, answer: Answer) -> None:
        if answer.streamed or self.wrote_delta:
            print_plain("", self.target)
        else:
            print_plain(answer.text.strip(), self.target)
        print_sources(answer.citations, self.target)
