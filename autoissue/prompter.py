"""
User interaction seam.

The pipeline only talks to a Prompter. The console implementation uses
rich prompts; tests substitute a scripted one.
"""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.prompt import Confirm, Prompt


class Prompter(Protocol):
    def choose(self, prompt: str, options: list[str]) -> str:
        """Return one of `options`."""
        ...

    def ask(self, prompt: str) -> str:
        """Free text, possibly empty."""
        ...

    def confirm(self, prompt: str) -> bool:
        ...


class ConsolePrompter:
    """Blocking prompts on the terminal. Numbered menus, Enter picks the first."""

    def __init__(self, console: Console):
        self.console = console

    def choose(self, prompt: str, options: list[str]) -> str:
        self.console.print(f"[bold]{prompt}[/]")
        for i, option in enumerate(options, 1):
            self.console.print(f"  [cyan]{i})[/] {option}")
        picked = Prompt.ask(
            ">",
            choices=[str(i) for i in range(1, len(options) + 1)],
            default="1",
            console=self.console,
            show_choices=False,
        )
        return options[int(picked) - 1]

    def ask(self, prompt: str) -> str:
        return Prompt.ask(f"[bold]{prompt}[/]", default="", console=self.console, show_default=False).strip()

    def confirm(self, prompt: str) -> bool:
        return Confirm.ask(f"[bold]{prompt}[/]", default=False, console=self.console)
