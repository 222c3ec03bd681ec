import os
from typing import Optional

import typer
from rich.markup import escape

from rbstubs import __version__
from rbstubs.stubs import available_versions, write_export
from rbstubs.utils.constants import CONFIG_FILE_NAME
from rbstubs.utils.exceptions import CLIError, RbStubsException
from rbstubs.utils.version import SUPPORTED_RUBY_VERSIONS, MinorVersion
from ..helpers import OutputHelper, StoreManager
from ..helpers.output import format_size
from ..config import ConfigManager, _resolve_settings
from ..workspace import _load_stub_set, _load_index, _fail
from ..app import app


@app.command(name="version", hidden=True)
def version_cmd(
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Show rbstubs version information.

    Alias: rbstubs -v
    """
    if show_help:
        OutputHelper.print_command_help("""\
Show rbstubs version information.

[bold cyan]Usage:[/bold cyan]
  rbstubs version
  rbstubs -v                [dim]# Short alias[/dim]""")

    OutputHelper.print_panel(
        f"rbstubs [green]{__version__}[/green]",
        title="Version",
        border_style="cyan"
    )


@app.command(rich_help_panel="Stub Sets")
def versions(
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    List supported Ruby versions and the stubs on disk.
    """
    if show_help:
        OutputHelper.print_command_help("""\
List supported Ruby versions and the stubs on disk.

[bold cyan]Usage:[/bold cyan]
  rbstubs versions
  rbstubs -d ~/rubystubs versions""")

    try:
        state = _resolve_settings()
    except RbStubsException as e:
        _fail(e)

    on_disk = set(available_versions(state.stubs_root))
    lines = [
        f"Stubs root: [bright_blue]{escape(state.stubs_root)}[/bright_blue] [dim]({state.stubs_root_source})[/dim]",
        f"Selected:   [bright_green]Ruby {state.ruby_version}[/bright_green] [dim]({state.ruby_version_source})[/dim]",
        "",
    ]
    for version in SUPPORTED_RUBY_VERSIONS:
        marker = "[green]installed[/green]" if version in on_disk else "[dim]missing[/dim]"
        selected = " [bright_green]*[/bright_green]" if version == state.ruby_version else ""
        lines.append(f"  {str(version):<6} {version.directory_name:<14} {marker}{selected}")
    for version in sorted(on_disk - set(SUPPORTED_RUBY_VERSIONS)):
        lines.append(f"  {str(version):<6} {version.directory_name:<14} [yellow]unsupported[/yellow]")

    OutputHelper.print_panel("\n".join(lines), title="Ruby Versions", border_style="cyan")


@app.command(rich_help_panel="Stub Sets")
def stats(
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Count declarations in the selected stub set.
    """
    if show_help:
        OutputHelper.print_command_help("""\
Count declarations in the selected stub set.

[bold cyan]Usage:[/bold cyan]
  rbstubs stats
  rbstubs --ruby 2.7 stats""")

    try:
        stub_set = _load_stub_set()
        counts = _load_index().stats()
    except RbStubsException as e:
        _fail(e)

    labels = [
        ("files", "Files"),
        ("classes", "Classes"),
        ("modules", "Modules"),
        ("methods", "Methods"),
        ("instance_methods", "  instance"),
        ("singleton_methods", "  singleton"),
        ("constants", "Constants"),
        ("aliases", "Aliases"),
        ("globals", "Globals"),
    ]
    lines = [f"[dim]{escape(stub_set.directory)}[/dim]", ""]
    lines.extend(f"{label:<14} [bright_green]{counts[key]:>7}[/bright_green]" for key, label in labels)
    if stub_set.errors:
        lines.append(f"{'Skipped':<14} [yellow]{len(stub_set.errors):>7}[/yellow]")

    OutputHelper.print_panel(
        "\n".join(lines),
        title=f"Ruby {stub_set.version or '?'}",
        border_style="cyan"
    )


@app.command(rich_help_panel="Stub Sets")
def export(
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file (.json or .json.gz)"),
    gzip_output: bool = typer.Option(False, "--gzip", "-z", help="Compress even without a .gz suffix"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Export the selected stub set as JSON.
    """
    if show_help:
        OutputHelper.print_command_help("""\
Export the selected stub set as JSON.

[bold cyan]Usage:[/bold cyan]
  rbstubs export
  rbstubs export -o [yellow]FILE[/yellow]

[bold cyan]Options:[/bold cyan]
  [yellow]-o, --output FILE[/yellow]     Default: ./rubystubsXY.json
  [yellow]-z, --gzip[/yellow]            Compress [dim](implied by a .gz suffix)[/dim]

[bold cyan]Examples:[/bold cyan]
  rbstubs --ruby 3.3 export
  rbstubs export -o core.json.gz""")

    try:
        stub_set = _load_stub_set()
        version = stub_set.version or _resolve_settings().ruby_version
        path = output or StoreManager.export_path(version)
        write_export(stub_set, path, compress=True if gzip_output else None)
    except RbStubsException as e:
        _fail(e)

    OutputHelper.print_panel(
        f"Exported Ruby {version} to [green]{escape(path)}[/green] [dim]({format_size(os.path.getsize(path))})[/dim]",
        title="Export",
        border_style="green"
    )


@app.command(rich_help_panel="Stub Sets")
def init(
    stubs_dir: Optional[str] = typer.Option(None, "--stubs", help="STUBS_DIR to record"),
    ruby: Optional[str] = typer.Option(None, "--ruby-version", help="RUBY_VERSION to record"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Write a .rbstubs settings file.
    """
    if show_help:
        OutputHelper.print_command_help("""\
Write a .rbstubs settings file in the current directory.

[bold cyan]Usage:[/bold cyan]
  rbstubs init --stubs [yellow]PATH[/yellow] --ruby-version [yellow]VERSION[/yellow]

[bold cyan]Options:[/bold cyan]
  [yellow]--stubs PATH[/yellow]           Directory holding rubystubsXY folders
  [yellow]--ruby-version VERSION[/yellow] Ruby version, e.g. 3.3
  [yellow]-f, --force[/yellow]            Overwrite an existing .rbstubs""")

    config_path = os.path.join(os.getcwd(), CONFIG_FILE_NAME)
    try:
        if os.path.exists(config_path) and not force:
            raise CLIError(f"{config_path} already exists (use --force to overwrite)")
        version = MinorVersion.parse(ruby) if ruby else None
        ConfigManager.write(config_path, stubs_dir, str(version) if version else None)
    except RbStubsException as e:
        _fail(e)

    OutputHelper.print_panel(
        f"Wrote [green]{escape(config_path)}[/green]",
        title="Init",
        border_style="green"
    )
