"""Rich panels and messages printed by the rbstubs commands."""
import sys
from typing import Union

import typer
from rich.console import Console, RenderableType
from rich.markup import escape
from rich.panel import Panel

from rbstubs.utils.exceptions import (
    RbStubsException, StubSyntaxError, StubsNotFoundError, VersionParseError, IndexLookupError,
)
from . import get_panel_box, CONSOLE_WIDTH


SEVERITY_STYLES = {
    "error": "red",
    "warning": "yellow",
    "info": "cyan",
}

_SETTINGS_HINT = (
    "Pass [bright_blue]--stubs-dir PATH[/bright_blue], set [bright_blue]RBSTUBS_STUBS_DIR[/bright_blue] "
    "or add [bright_blue]STUBS_DIR=[/bright_blue] to a [bright_blue].rbstubs[/bright_blue] file."
)


def format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KB"):
        if size < 1024:
            return f"{int(size)}B" if unit == "B" else f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}MB"


def _error_body(error: RbStubsException) -> str:
    message = escape(error.message)
    if isinstance(error, StubsNotFoundError):
        return f"{message}\n\n{_SETTINGS_HINT}"
    if isinstance(error, StubSyntaxError):
        where = f"{error.filename}:{error.line}" if error.line else error.filename
        return f"[dim]{escape(where)}[/dim]\n{message}"
    if isinstance(error, VersionParseError):
        return f"{message}\n\n[dim]Expected a version like 3.3 or 2.7.6[/dim]"
    return message


# (exception type, panel title, border style); first match wins
_ERROR_PANELS = (
    (StubsNotFoundError, "Stubs Not Found", "red"),
    (StubSyntaxError, "Syntax Error", "red"),
    (VersionParseError, "Invalid Ruby Version", "red"),
    (IndexLookupError, "Not Found", "yellow"),
)


class OutputHelper:
    if hasattr(sys.stdout, 'reconfigure'):
        sys.stdout.reconfigure(encoding='utf-8', errors='replace')

    _console = Console()

    @staticmethod
    def print_panel(content: Union[str, RenderableType], title: str = "", border_style: str = "blue"):
        OutputHelper._console.print(Panel(
            content,
            title=title,
            title_align="left",
            border_style=border_style,
            box=get_panel_box(),
            expand=True,
            width=CONSOLE_WIDTH,
        ))

    @staticmethod
    def print_command_help(help_text: str):
        """Print a command help panel and exit."""
        console = Console(width=CONSOLE_WIDTH)
        console.print(Panel(help_text, border_style="dim", box=get_panel_box(), width=CONSOLE_WIDTH))
        console.print()
        raise typer.Exit()

    @staticmethod
    def print_diagnostic(diagnostic):
        style = SEVERITY_STYLES.get(diagnostic.severity.value, "white")
        OutputHelper._console.print(
            f"[dim]{escape(diagnostic.location())}[/dim] "
            f"[{style}]{diagnostic.code}[/{style}] {escape(diagnostic.message)}",
            soft_wrap=True,
        )

    @staticmethod
    def handle_error(error: Exception, context: str = "Error") -> bool:
        """
        Print a panel for an rbstubs error.

        Returns False for any other exception so the caller re-raises it.
        ``context`` titles errors that have no panel of their own.
        """
        if not isinstance(error, RbStubsException):
            return False

        title, style = context, "red"
        for error_type, panel_title, panel_style in _ERROR_PANELS:
            if isinstance(error, error_type):
                title, style = panel_title, panel_style
                break
        OutputHelper.print_panel(_error_body(error), title=title, border_style=style)
        return True
