"""Rich-based logging helpers shared by the session engine and the CLI."""

from __future__ import annotations

from dataclasses import dataclass, field

from rich.console import Console
from rich.theme import Theme

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim",
    }
)

# Rendered tables own stdout, so log lines always go to stderr.
_stderr_console = Console(stderr=True, theme=_THEME, highlight=False)


@dataclass(slots=True)
class Logger:
    """Styled one-line messages on stderr; ``debug`` prints only when verbose."""

    verbose: bool = False
    console: Console = field(default=_stderr_console, repr=False)

    def info(self, message: str) -> None:
        self._emit("info", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def error(self, message: str) -> None:
        self._emit("error", message)

    def debug(self, message: str) -> None:
        if self.verbose:
            self._emit("debug", message)

    def _emit(self, level: str, message: str) -> None:
        # Data values end up in messages; never interpret them as Rich markup.
        self.console.print(message, style=level, markup=False)


def get_logger(verbose: bool = False) -> Logger:
    """Return a Logger writing to the shared stderr console."""
    return Logger(verbose=verbose)
