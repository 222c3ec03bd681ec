import os
from typing import Optional

import typer
from rich.markup import escape

from rbstubs.utils.exceptions import IndexLookupError, RbStubsException
from ..helpers import OutputHelper
from ..workspace import _load_index, _fail
from ..app import app


def _print_completions(items, title: str):
    if not items:
        OutputHelper.print_panel("[dim]No matches[/dim]", title=title, border_style="dim")
        return
    width = max(len(item.label) for item in items) + 2
    lines = [
        f"[green]{escape(item.label.ljust(width))}[/green][dim]{item.kind:<8}[/dim] {escape(item.detail)}"
        for item in items
    ]
    OutputHelper.print_panel("\n".join(lines), title=title, border_style="cyan")


@app.command(rich_help_panel="Queries")
def show(
    query: str = typer.Argument("", help="String#upcase, File.open, Errno::ENOENT, $stdout"),
    namespace: str = typer.Option("", "--namespace", "-n", help="Lexical scope for constant lookup"),
    markdown: bool = typer.Option(False, "--markdown", "-m", help="Print hover markdown"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Show the signature and documentation of a declaration.
    """
    if show_help or not query:
        OutputHelper.print_command_help("""\
Show the signature and documentation of a declaration.

[bold cyan]Usage:[/bold cyan]
  rbstubs show [yellow]QUERY[/yellow]
  rbstubs show -m [yellow]QUERY[/yellow]          [dim]# Hover markdown[/dim]

[bold cyan]Queries:[/bold cyan]
  [yellow]Class#method[/yellow]   Instance method
  [yellow]Class.method[/yellow]   Class method
  [yellow]A::B[/yellow]           Class, module or constant
  [yellow]$name[/yellow]          Global variable

[bold cyan]Examples:[/bold cyan]
  rbstubs show String#upcase
  rbstubs --ruby 2.7 show File.open
  rbstubs show -n Net HTTP""")

    try:
        info = _load_index().hover(query, namespace)
        if info is None:
            raise IndexLookupError(f"No declaration found for {query}")
    except RbStubsException as e:
        _fail(e)

    if markdown:
        typer.echo(info.render_markdown())
        return

    content = f"[bold]{escape(info.signature)}[/bold]"
    if info.doc_text:
        content += f"\n\n{escape(info.doc_text)}"
    if info.location:
        path, line = info.location
        content += f"\n\n[dim]Defined in {escape(os.path.basename(path))}:{line}[/dim]"
    OutputHelper.print_panel(content, title=escape(info.title), border_style="cyan")


@app.command(rich_help_panel="Queries")
def complete(
    owner: str = typer.Argument("", help="Class or module"),
    prefix: str = typer.Argument("", help="Method name prefix"),
    singleton: bool = typer.Option(False, "--singleton", "-s", help="Class methods instead of instance methods"),
    private: bool = typer.Option(False, "--private", help="Include private methods"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum number of results"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    List methods callable on a class or module.
    """
    if show_help or not owner:
        OutputHelper.print_command_help("""\
List methods callable on a class or module, own methods first.

[bold cyan]Usage:[/bold cyan]
  rbstubs complete [yellow]OWNER[/yellow] [[yellow]PREFIX[/yellow]]

[bold cyan]Options:[/bold cyan]
  [yellow]-s, --singleton[/yellow]       Class methods
  [yellow]--private[/yellow]             Include private methods
  [yellow]-l, --limit N[/yellow]         Show at most N results

[bold cyan]Examples:[/bold cyan]
  rbstubs complete String up
  rbstubs complete -s File ex
  rbstubs complete -l 10 Array""")

    try:
        items = _load_index().complete(owner, prefix, singleton=singleton, include_private=private, limit=limit)
    except RbStubsException as e:
        _fail(e)

    separator = "." if singleton else "#"
    _print_completions(items, f"{escape(owner)}{separator}{escape(prefix)}")


@app.command(rich_help_panel="Queries")
def constants(
    prefix: str = typer.Argument("", help="Constant prefix, e.g. Err or Errno::E"),
    namespace: str = typer.Option("", "--namespace", "-n", help="Lexical scope to complete from"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Maximum number of results"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    List classes, modules and constants matching a prefix.
    """
    if show_help:
        OutputHelper.print_command_help("""\
List classes, modules and constants matching a prefix.

[bold cyan]Usage:[/bold cyan]
  rbstubs constants [[yellow]PREFIX[/yellow]]

[bold cyan]Options:[/bold cyan]
  [yellow]-n, --namespace NS[/yellow]    Complete as if written inside NS
  [yellow]-l, --limit N[/yellow]         Show at most N results

[bold cyan]Examples:[/bold cyan]
  rbstubs constants Str
  rbstubs constants Errno::EA
  rbstubs constants -n Process CLOCK""")

    try:
        items = _load_index().complete_constant(prefix, namespace, limit=limit)
    except RbStubsException as e:
        _fail(e)

    _print_completions(items, escape(prefix) or "Constants")


@app.command(rich_help_panel="Queries")
def ancestors(
    name: str = typer.Argument("", help="Class or module"),
    singleton: bool = typer.Option(False, "--singleton", "-s", help="Class method lookup chain"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Show the method lookup chain of a class or module.
    """
    if show_help or not name:
        OutputHelper.print_command_help("""\
Show the method lookup chain of a class or module.

[bold cyan]Usage:[/bold cyan]
  rbstubs ancestors [yellow]NAME[/yellow]
  rbstubs ancestors -s [yellow]NAME[/yellow]      [dim]# Singleton class chain[/dim]

[bold cyan]Examples:[/bold cyan]
  rbstubs ancestors Integer
  rbstubs ancestors -s File""")

    try:
        index = _load_index()
        if singleton:
            chain = [(str(entry), entry.name) for entry in index.singleton_ancestors(name)]
        else:
            chain = [(entry, entry) for entry in index.ancestors(name)]
    except RbStubsException as e:
        _fail(e)

    lines = []
    for label, scope_name in chain:
        style = "green" if scope_name in index else "dim"
        lines.append(f"[{style}]{escape(label)}[/{style}]")
    OutputHelper.print_panel("\n".join(lines), title=f"Ancestors of {escape(name)}", border_style="cyan")
