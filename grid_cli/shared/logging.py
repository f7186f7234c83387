"""Rich-based logging helpers shared across grid-edit commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme
from rich.traceback import install

install(show_locals=False)

_THEME = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "success": "bold green",
        "debug": "dim",
        "pending": "italic blue",
        "deleted": "strike red",
    }
)

# stdout carries rendered grids and JSON payloads; stderr carries log chatter.
# Highlighting stays off so cell values (e.g. "INV-2024-001") are printed without
# injected ANSI sequences, which keeps CLI output assertions stable under FORCE_COLOR.
_stdout_console = Console(theme=_THEME, highlight=False)
_stderr_console = Console(stderr=True, theme=_THEME, highlight=False)
_verbose_console = Console(stderr=True, theme=_THEME, highlight=False)

LIBRARY_LOGGER = "grid_cli"


@dataclass(slots=True)
class Logger:
    """Lightweight logger facade backed by Rich consoles."""

    verbose: bool = False

    @property
    def console(self) -> Console:
        return _stdout_console

    def info(self, message: str) -> None:
        _stderr_console.print(message, style="info", markup=False)

    def success(self, message: str) -> None:
        _stderr_console.print(message, style="success", markup=False)

    def warning(self, message: str) -> None:
        _stderr_console.print(message, style="warning", markup=False)

    def error(self, message: str) -> None:
        _stderr_console.print(message, style="error", markup=False)

    def debug(self, message: str) -> None:
        if self.verbose:
            _verbose_console.print(message, style="debug", markup=False)


def configure_library_logging(verbose: bool = False) -> None:
    """Route ``logging`` records from the core modules to the stderr console.

    Core modules log through the standard library so they stay usable without
    the CLI; this attaches a single RichHandler to the package logger.
    """

    library_logger = logging.getLogger(LIBRARY_LOGGER)
    library_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if any(isinstance(handler, RichHandler) for handler in library_logger.handlers):
        return
    handler = RichHandler(
        console=_verbose_console,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=False,
    )
    library_logger.addHandler(handler)
    library_logger.propagate = False


def get_logger(verbose: bool = False) -> Logger:
    """Return a configured Logger instance."""
    configure_library_logging(verbose)
    return Logger(verbose=verbose)
