"""User-facing output.

Everything the user is meant to read goes through ``logger``; debug traces use
the standard ``logging`` module instead.
"""

from rich.console import Console
from rich.text import Text

__all__ = ["Logger", "console", "err_console", "logger"]

console = Console(soft_wrap=True, highlight=False)
err_console = Console(stderr=True, soft_wrap=True, highlight=False)


class Logger:
    """
    Leveled output over two rich consoles.

    ``log`` and ``info`` go to stdout, ``warn`` and ``error`` to stderr. Messages are
    printed as plain text so that TOML snippets or ``[brackets]`` are never read as
    rich markup.
    """

    def __init__(self, out: Console | None = None, err: Console | None = None) -> None:
        self.out = out or console
        self.err = err or err_console

    def log(self, *args: object) -> None:
        self.out.print(Text(" ".join(str(a) for a in args)))

    def info(self, *args: object) -> None:
        self.log(*args)

    def warn(self, message: str, *notes: str) -> None:
        text = Text("▲ ", style="yellow")
        text.append("[WARNING]", style="bold black on yellow")
        text.append(" ")
        text.append(message, style="bold")
        self.err.print(text)
        self._print_notes(notes)

    def error(self, message: str, *notes: str) -> None:
        text = Text("✘ ", style="red")
        text.append("[ERROR]", style="bold white on red")
        text.append(" ")
        text.append(message, style="bold")
        self.err.print(text)
        self._print_notes(notes)

    def _print_notes(self, notes: tuple[str, ...]) -> None:
        for note in notes:
            self.err.print()
            self.err.print(Text("\n".join(f"  {line}" for line in note.splitlines())))
        self.err.print()


logger = Logger()
