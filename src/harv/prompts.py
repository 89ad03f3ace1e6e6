"""Interactive input surface.

Everything that asks the user a question goes through a :class:`Prompter`.
The terminal implementation is built on click prompts and rich output; the
scripted implementation replays queued answers and is what tests inject.
"""

from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable, Iterable, Sequence, TypeVar

import click
from rich.console import Console

from harv.errors import UserCancelledError

F = TypeVar("F", bound=Callable[..., Any])

FooterFn = Callable[[Sequence[int]], str]


class Prompter(ABC):
    """Capabilities the core needs from an interactive user."""

    @abstractmethod
    def select(self, message: str, items: Sequence[str], default: int = 0) -> int:
        """Pick one item; returns its index."""

    @abstractmethod
    def confirm(self, message: str, default: bool = False) -> bool:
        """Yes/no question."""

    @abstractmethod
    def multi_select(
        self,
        message: str,
        items: Sequence[str],
        defaults: Sequence[bool] | None = None,
        footer: FooterFn | None = None,
    ) -> list[int]:
        """Pick any number of items; returns their indices in list order.

        ``footer`` renders a summary line (such as a running total) for the
        current selection.
        """

    @abstractmethod
    def text(self, message: str, default: str | None = None) -> str:
        """Single line of free text."""

    @abstractmethod
    def multiline(self, message: str) -> str:
        """Several lines of free text."""

    @abstractmethod
    def fuzzy_select(self, message: str, items: Sequence[str]) -> int:
        """Pick one item from a searchable list; returns its index."""


def fuzzy_filter(query: str, items: Sequence[str]) -> list[int]:
    """Return indices of items containing every whitespace-separated term of ``query``."""
    terms = query.lower().split()
    return [
        index for index, item in enumerate(items) if all(term in item.lower() for term in terms)
    ]


def parse_selection(answer: str, count: int) -> list[int]:
    """Parse ``"1,3-4"``, ``"all"`` or ``"none"`` into zero-based indices."""
    answer = answer.strip().lower()
    if answer in ("all", "*"):
        return list(range(count))
    if answer in ("none", "-", ""):
        return []

    chosen: set[int] = set()
    for part in answer.replace(" ", ",").split(","):
        if not part:
            continue
        if "-" in part:
            low, _, high = part.partition("-")
            numbers = range(int(low), int(high) + 1)
        else:
            numbers = range(int(part), int(part) + 1)
        for number in numbers:
            if not 1 <= number <= count:
                raise ValueError(f"{number} is out of range")
            chosen.add(number - 1)
    return sorted(chosen)


def _cancellable(func: F) -> F:
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (click.Abort, EOFError, KeyboardInterrupt) as e:
            raise UserCancelledError() from e

    return wrapper  # type: ignore[return-value]


class TerminalPrompter(Prompter):
    """Prompter backed by the real terminal."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def _print_items(self, items: Sequence[str], marks: Sequence[bool] | None = None) -> None:
        for number, item in enumerate(items, start=1):
            if marks is None:
                self.console.print(f"  [cyan]{number:>3}[/cyan]  {item}", highlight=False)
            else:
                box = "[green]\\[x][/green]" if marks[number - 1] else "[ ]"
                self.console.print(f"  {box} [cyan]{number:>3}[/cyan]  {item}", highlight=False)

    @_cancellable
    def select(self, message: str, items: Sequence[str], default: int = 0) -> int:
        self.console.print(f"[bold]{message}[/bold]")
        self._print_items(items)
        number = click.prompt(
            "Choice", type=click.IntRange(1, len(items)), default=default + 1
        )
        return number - 1

    @_cancellable
    def confirm(self, message: str, default: bool = False) -> bool:
        return click.confirm(message, default=default)

    @_cancellable
    def multi_select(
        self,
        message: str,
        items: Sequence[str],
        defaults: Sequence[bool] | None = None,
        footer: FooterFn | None = None,
    ) -> list[int]:
        marks = list(defaults) if defaults is not None else [True] * len(items)
        self.console.print(f"[bold]{message}[/bold]")
        self._print_items(items, marks)
        if footer is not None:
            self.console.print(footer([i for i, mark in enumerate(marks) if mark]))

        default = "all" if all(marks) else ",".join(
            str(i + 1) for i, mark in enumerate(marks) if mark
        ) or "none"
        while True:
            answer = click.prompt("Select entries (e.g. 1,3-4, all, none)", default=default)
            try:
                chosen = parse_selection(answer, len(items))
            except ValueError as e:
                self.console.print(f"[red]Invalid selection: {e}[/red]")
                continue
            if footer is not None:
                self.console.print(footer(chosen))
            return chosen

    @_cancellable
    def text(self, message: str, default: str | None = None) -> str:
        return click.prompt(message, default=default, show_default=default is not None)

    @_cancellable
    def multiline(self, message: str) -> str:
        self.console.print(f"[bold]{message}[/bold] [dim](finish with an empty line)[/dim]")
        lines = []
        while True:
            line = click.prompt("", default="", show_default=False, prompt_suffix="> ")
            if not line.strip():
                break
            lines.append(line)
        return "\n".join(lines)

    @_cancellable
    def fuzzy_select(self, message: str, items: Sequence[str]) -> int:
        while True:
            query = click.prompt(
                f"{message} (type to filter, Enter for all)", default="", show_default=False
            )
            matches = fuzzy_filter(query, items)
            if not matches:
                self.console.print(f"[yellow]Nothing matches '{query}'[/yellow]")
                continue
            if len(matches) == 1:
                self.console.print(f"Selected: {items[matches[0]]}", highlight=False)
                return matches[0]
            picked = self.select(message, [items[i] for i in matches])
            return matches[picked]


class ScriptedPrompter(Prompter):
    """Prompter that replays queued answers, for tests and non-interactive use.

    Each call pops the next answer. Select-style answers may be an index or a
    substring of the wanted item. Every question is recorded in ``calls``.
    """

    def __init__(self, answers: Iterable[Any] = ()) -> None:
        self.answers = deque(answers)
        self.calls: list[tuple[str, str, list[str]]] = []
        self.footers: list[str] = []

    def _next(self, kind: str, message: str, items: Sequence[str] = ()) -> Any:
        self.calls.append((kind, message, list(items)))
        if not self.answers:
            raise UserCancelledError(f"No scripted answer for {kind}: {message}")
        return self.answers.popleft()

    @staticmethod
    def _index(answer: Any, items: Sequence[str]) -> int:
        if isinstance(answer, int):
            return answer
        for index, item in enumerate(items):
            if answer in item:
                return index
        raise UserCancelledError(f"No item matches scripted answer {answer!r}")

    def select(self, message: str, items: Sequence[str], default: int = 0) -> int:
        return self._index(self._next("select", message, items), items)

    def confirm(self, message: str, default: bool = False) -> bool:
        return bool(self._next("confirm", message))

    def multi_select(
        self,
        message: str,
        items: Sequence[str],
        defaults: Sequence[bool] | None = None,
        footer: FooterFn | None = None,
    ) -> list[int]:
        answer = self._next("multi_select", message, items)
        if answer == "all":
            chosen = list(range(len(items)))
        else:
            chosen = sorted(self._index(a, items) for a in answer)
        if footer is not None:
            self.footers.append(footer(chosen))
        return chosen

    def text(self, message: str, default: str | None = None) -> str:
        answer = self._next("text", message)
        if answer is None:
            return default or ""
        return str(answer)

    def multiline(self, message: str) -> str:
        return str(self._next("multiline", message))

    def fuzzy_select(self, message: str, items: Sequence[str]) -> int:
        return self._index(self._next("fuzzy_select", message, items), items)

    def asked(self, kind: str) -> list[str]:
        """Return the messages of every question of one kind."""
        return [message for call_kind, message, _ in self.calls if call_kind == kind]


__all__ = [
    "Prompter",
    "ScriptedPrompter",
    "TerminalPrompter",
    "fuzzy_filter",
    "parse_selection",
]
