"""Terminal implementation of the destroy :class:`Prompter` using ``rich``."""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console
from rich.prompt import Confirm, Prompt

from tf_pipeline._pipeline_models import EnvironmentChoice

QUIT_CHOICE = "q"


class ConsolePrompter:
    """Ask the operator through the terminal; EOF counts as declining."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def select(
        self, title: str, description: str, options: Sequence[EnvironmentChoice]
    ) -> EnvironmentChoice | None:
        self.console.print(f"[bold]{title}[/bold]")
        self.console.print(description)
        for index, option in enumerate(options, start=1):
            self.console.print(f"  {index}. {option.label}")
        choices = [str(index) for index in range(1, len(options) + 1)] + [QUIT_CHOICE]
        try:
            answer = Prompt.ask(
                f"Choice ({QUIT_CHOICE} to cancel)", choices=choices, console=self.console
            )
        except EOFError:
            return None
        if answer == QUIT_CHOICE:
            return None
        return options[int(answer) - 1]

    def confirm(
        self, title: str, description: str, *, affirmative: str, negative: str
    ) -> bool:
        self.console.print(f"[bold red]{title}[/bold red]")
        self.console.print(description)
        try:
            return Confirm.ask(
                f"{affirmative}? (no = {negative})", default=False, console=self.console
            )
        except EOFError:
            return False

    def text(
        self, title: str, description: str, *, error: str | None
    ) -> str | None:
        if error:
            self.console.print(f"[red]{error}[/red]")
        self.console.print(f"[bold]{title}[/bold]")
        try:
            answer = Prompt.ask(description, console=self.console)
        except EOFError:
            return None
        return answer
