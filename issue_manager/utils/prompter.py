"""
Front-end primitives used by the interactive steps.

The pipeline only ever needs three things from a human:
- text: free-text input (optionally masked)
- select: one choice from an ordered list, optionally with a write-in escape
- confirm: yes/no

RichPrompter asks on the terminal. ScriptedPrompter replays prepared answers so
the same flow can run unattended (CI, agents, tests).
"""

from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol, Sequence, Tuple

import yaml
from rich.console import Console
from rich.prompt import Confirm, Prompt

from .errors import ConfigError

WRITE_IN_LABEL = "Other (write in)"

Choice = Tuple[str, str]


class Prompter(Protocol):
    def text(self, message: str, default: Optional[str] = None, password: bool = False) -> str: ...

    def select(
        self, message: str, choices: Sequence[Choice], allow_write_in: bool = False
    ) -> str: ...

    def confirm(self, message: str, default: bool = True) -> bool: ...


class RichPrompter:
    """Terminal prompts rendered with rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def text(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        kwargs: dict = {"console": self.console, "password": password}
        if default is not None:
            kwargs["default"] = default
        return (Prompt.ask(message, **kwargs) or "").strip()

    def select(
        self, message: str, choices: Sequence[Choice], allow_write_in: bool = False
    ) -> str:
        labels = [label for label, _ in choices]
        if allow_write_in:
            labels.append(WRITE_IN_LABEL)

        self.console.print(f"[bold]{message}[/]")
        for i, label in enumerate(labels, start=1):
            self.console.print(f"  [cyan]{i}.[/] {label}")

        picked = Prompt.ask(
            "Choose",
            console=self.console,
            choices=[str(i) for i in range(1, len(labels) + 1)],
            show_choices=False,
        )
        index = int(picked) - 1
        if index == len(choices):
            return self.text("Your answer")
        return choices[index][1]

    def confirm(self, message: str, default: bool = True) -> bool:
        return Confirm.ask(message, console=self.console, default=default)


class ScriptedPrompter:
    """Replays a queue of prepared answers, in order."""

    def __init__(self, answers: Iterable[Any] = ()):
        self.answers: List[Any] = list(answers)
        self.asked: List[str] = []

    @classmethod
    def from_file(cls, path: Path) -> "ScriptedPrompter":
        """Load answers from a YAML list."""
        try:
            data = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read answers file {path}: {e}") from e
        if data is None:
            data = []
        if not isinstance(data, list):
            raise ConfigError(f"Answers file {path} must contain a YAML list")
        return cls(data)

    def _next(self, message: str) -> Optional[Any]:
        self.asked.append(message)
        if not self.answers:
            return None
        return self.answers.pop(0)

    def text(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        answer = self._next(message)
        if answer is None:
            return default or ""
        return str(answer).strip()

    def select(
        self, message: str, choices: Sequence[Choice], allow_write_in: bool = False
    ) -> str:
        answer = self._next(message)
        if answer is None:
            raise ConfigError(f"No scripted answer left for: {message}")

        answer = str(answer).strip()
        for label, value in choices:
            if answer in (value, label):
                return value
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1][1]
        if allow_write_in:
            return answer
        raise ConfigError(f"Scripted answer '{answer}' is not a choice for: {message}")

    def confirm(self, message: str, default: bool = True) -> bool:
        answer = self._next(message)
        if answer is None:
            return default
        if isinstance(answer, bool):
            return answer
        return str(answer).strip().lower() in ("y", "yes", "true", "1")
