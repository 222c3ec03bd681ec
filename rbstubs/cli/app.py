import logging
import os
import sys
from typing import Optional
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel

from rbstubs import __version__
from rbstubs.utils.constants import ENV_DEBUG
from .helpers.output import OutputHelper, get_panel_box, CONSOLE_WIDTH
from .config import STATE, _set_global_options


try:
    import typer.rich_utils

    def _patched_get_rich_console(stderr: bool = False):
        return Console(width=CONSOLE_WIDTH, legacy_windows=False, stderr=stderr)

    typer.rich_utils._get_rich_console = _patched_get_rich_console
except ImportError:
    pass


import importlib
import importlib.util

import click


def _click_namespaces():
    """``(package, exceptions module)`` for click and for typer's vendored copy when present."""
    namespaces = [(click, click.exceptions)]
    if importlib.util.find_spec("typer._click") is not None:
        namespaces.append((importlib.import_module("typer._click"), importlib.import_module("typer._click.exceptions")))
    return namespaces


_CLICK_NAMESPACES = _click_namespaces()
_USAGE_ERRORS = tuple(exceptions.UsageError for _, exceptions in _CLICK_NAMESPACES)
_EXITS = tuple(exceptions.Exit for _, exceptions in _CLICK_NAMESPACES)
_ABORTS = tuple(exceptions.Abort for _, exceptions in _CLICK_NAMESPACES)

# Option and argument problems get the command's own synopsis in the error panel
_PARAM_ERROR_MARKERS = (
    "no such option",
    "missing option",
    "missing argument",
    "invalid value",
    "requires an argument",
    "got unexpected",
)


def _split_params(command):
    options = [p for p in command.params
               if getattr(p, "param_type_name", "") == "option" and not getattr(p, "hidden", False)]
    arguments = [p for p in command.params if getattr(p, "param_type_name", "") == "argument"]
    return options, arguments


def _synopsis(name, options, arguments) -> str:
    words = ["rbstubs", name]
    if options:
        words.append("[[cyan]OPTIONS[/cyan]]")
    for arg in arguments:
        label = arg.name.upper()
        words.append(f"[yellow]{label}[/yellow]" if arg.required else f"[yellow][{label}][/yellow]")
    return " ".join(words)


def _option_row(opt) -> str:
    flags = ", ".join(opt.opts)
    value = opt.metavar
    if not value and not opt.is_flag and opt.type is not None:
        value = opt.type.name.upper()
    if value:
        flags = f"{flags} [green]{value}[/green]"
    text = opt.help or ""
    if len(text) > 40:
        text = text[:37] + "..."
    return f"  {flags:<25} {text}"


def _command_synopsis(ctx) -> Optional[str]:
    """Short help block for the failing subcommand, or None at top level."""
    if ctx is None or ctx.command is None or ctx.parent is None:
        return None

    command = ctx.command
    options, arguments = _split_params(command)
    out = []
    if command.help:
        out += [command.help.strip().splitlines()[0], ""]
    out += ["[bold cyan]Usage:[/bold cyan]", "  " + _synopsis(ctx.info_name, options, arguments), ""]
    if options:
        out.append("[bold cyan]Options:[/bold cyan]")
        out.extend(_option_row(opt) for opt in options)
        out.append("")
    if arguments:
        out.append("[bold cyan]Arguments:[/bold cyan]")
        for arg in arguments:
            tag = "[red][required][/red]" if arg.required else "[dim][optional][/dim]"
            out.append(f"  [yellow]{arg.name}[/yellow]  {tag}")
    return "\n".join(out).rstrip()


def _show_usage_error(self, file=None):
    message = self.format_message()
    body = None
    if any(marker in message.lower() for marker in _PARAM_ERROR_MARKERS):
        body = _command_synopsis(self.ctx)
    if body is None:
        if self.ctx is not None and self.ctx.parent is not None:
            body = f"[bold cyan]Usage:[/bold cyan] rbstubs {self.ctx.info_name} [OPTIONS] [ARGS]..."
        else:
            body = "[bold cyan]Usage:[/bold cyan] rbstubs [OPTIONS] COMMAND [ARGS]..."

    Console(width=CONSOLE_WIDTH, file=file or sys.stderr).print(Panel(
        f"{body}\n\n[red]{escape(message)}[/red]",
        title="Error",
        border_style="red",
        box=get_panel_box(),
        width=CONSOLE_WIDTH,
    ))


for _module, _exceptions in _CLICK_NAMESPACES:
    _module.Context.get_usage = lambda self: ""
    _exceptions.UsageError.show = _show_usage_error


# =============================================================================
# Logging
# =============================================================================

def _configure_logging(verbose: bool = False):
    """Route ``rbstubs.*`` loggers to stderr through rich."""
    level = logging.DEBUG if verbose or os.environ.get(ENV_DEBUG) else logging.WARNING
    logger = logging.getLogger("rbstubs")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(width=CONSOLE_WIDTH, stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=False,
    pretty_exceptions_show_locals=False,
    pretty_exceptions_enable=False,
    help="Ruby core stub toolkit."
)


_GLOBAL_OPTION_ROWS = (
    ("-d, --stubs-dir", "PATH", "Directory holding rubystubsXY folders"),
    ("-r, --ruby", "VERSION", "Ruby version [dim](3.3, 2.7.6)[/dim]"),
    ("-V, --verbose", "", "Debug logging"),
)


def _command_groups():
    """Visible commands keyed by their help panel, in registration order."""
    groups = {}
    for info in app.registered_commands:
        if info.hidden or info.callback is None:
            continue
        name = info.name or info.callback.__name__.replace("_", "-")
        summary = (info.callback.__doc__ or "").strip().splitlines()
        groups.setdefault(info.rich_help_panel or "Commands", []).append(
            (name, summary[0].rstrip(".") if summary else "")
        )
    return groups


def _print_main_help():
    out = [
        "[bold]Ruby core stub toolkit[/bold]",
        "[dim]Parse, check, format and query rubystubsXY documentation stubs[/dim]",
        "",
        "[bold cyan]Usage:[/bold cyan]",
        "  rbstubs [yellow][OPTIONS][/yellow] [green]COMMAND[/green] [[dim]ARGS[/dim]]...",
        "",
        "[bold cyan]Global Options:[/bold cyan]",
    ]
    for flags, metavar, text in _GLOBAL_OPTION_ROWS:
        plain = f"{flags} {metavar}".rstrip()
        styled = f"[yellow]{flags}[/yellow]" + (f" [cyan]{metavar}[/cyan]" if metavar else "")
        out.append(f"  {styled}{' ' * (22 - len(plain))} {text}")

    for panel, commands in _command_groups().items():
        out += ["", f"[bold cyan]{panel}:[/bold cyan]"]
        out.extend(f"  [green]{name:<12}[/green] {summary}" for name, summary in commands)

    out += ["", "[dim]Use 'rbstubs COMMAND --help' for detailed help on each command.[/dim]"]
    OutputHelper.print_panel("\n".join(out), title="rbstubs", border_style="bright_blue")


# =============================================================================
# App Callback
# =============================================================================

@app.callback(invoke_without_command=True)
def cli(
    ctx: typer.Context,
    global_stubs_dir: Optional[str] = typer.Option(
        None,
        "--stubs-dir", "-d",
        help="Directory holding rubystubsXY folders",
        is_eager=True
    ),
    global_ruby: Optional[str] = typer.Option(
        None,
        "--ruby", "-r",
        help="Ruby version to load stubs for (e.g., 3.3)",
        is_eager=True
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-V",
        help="Enable debug logging"
    ),
    show_help: bool = typer.Option(
        False,
        "--help",
        is_eager=True,
        expose_value=True,
        help="Show this message and exit."
    )
):
    """
    Ruby core stub toolkit.

    Use 'rbstubs --ruby 3.3 show String#upcase' to look up documentation.
    """

    STATE.reset()
    _set_global_options(global_stubs_dir, global_ruby, verbose)
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj.update(global_stubs_dir=global_stubs_dir, global_ruby=global_ruby)

    if show_help or ctx.invoked_subcommand is None:
        _print_main_help()
        raise typer.Exit()


# =============================================================================
# Command registration
# =============================================================================
from .commands import inspect, query, utility  # noqa: E402

_command_modules = (inspect, query, utility)


# =============================================================================
# Main Entry Point
# =============================================================================

def _print_version():
    OutputHelper.print_panel(
        f"[bright_blue]rbstubs[/bright_blue] version [bright_green]{__version__}[/bright_green]",
        title="Version",
        border_style="green"
    )


_SHORTCUTS = {
    "--version": _print_version,
    "-v": _print_version,
    "--help": _print_main_help,
    "-h": _print_main_help,
}


def main():
    args = sys.argv[1:]
    if not args or (len(args) == 1 and args[0] in _SHORTCUTS):
        _SHORTCUTS.get(args[0] if args else "--help")()
        sys.exit(0)

    try:
        result = app(standalone_mode=False)
        exit_code = result if isinstance(result, int) else 0
    except _USAGE_ERRORS as e:
        e.show()
        exit_code = e.exit_code
    except _EXITS as e:
        exit_code = e.exit_code
    except _ABORTS:
        print()
        exit_code = 1
    except KeyboardInterrupt:
        print()
        exit_code = 130
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
