import os
from typing import List, Optional

import typer
from rich.markup import escape
from rich.tree import Tree

from rbstubs.stubs import (
    AliasStub, AttributeStub, ConstantStub, GlobalVariableStub, MethodStub,
    MixinStub, ScopeStub, Severity, SingletonClassBlock, StubFile, StubValidator, Visibility,
    compress_stub_text, parse_stub, read_stub_text, render_stub, write_stub_bytes,
)
from rbstubs.utils.exceptions import RbStubsException, ValidationError
from ..helpers import OutputHelper
from ..workspace import _stubs_directory, _fail
from ..app import app


# ============================================================================
# outline
# ============================================================================

def _first_doc_line(doc: List[str]) -> str:
    for line in doc:
        if line.strip():
            return line.strip()
    return ""


def _member_label(member, in_singleton_class: bool = False) -> Optional[str]:
    if isinstance(member, ScopeStub):
        label = f"[cyan]{member.kind}[/cyan] [bold]{escape(member.qualified_name)}[/bold]"
        if member.superclass:
            label += f" [dim]< {escape(member.superclass)}[/dim]"
        return label
    if isinstance(member, MethodStub):
        prefix = "self." if member.singleton and not in_singleton_class else ""
        label = f"[green]def[/green] {escape(prefix + member.name + member.signature.render())}"
        if member.visibility != Visibility.PUBLIC:
            label += f" [dim]({member.visibility.value})[/dim]"
        return label
    if isinstance(member, (ConstantStub, GlobalVariableStub)):
        return f"[magenta]{escape(member.name)}[/magenta]"
    if isinstance(member, AliasStub):
        return f"[yellow]alias[/yellow] {escape(member.new_name)} {escape(member.old_name)}"
    if isinstance(member, AttributeStub):
        return f"[green]{member.kind}[/green] " + ", ".join(f":{escape(n)}" for n in member.names)
    if isinstance(member, MixinStub):
        return f"[blue]{member.kind}[/blue] {escape(member.module_name)}"
    if isinstance(member, SingletonClassBlock):
        return "[cyan]class << self[/cyan]"
    return None


def _add_members(node: Tree, members: list, docs: bool, in_singleton_class: bool = False):
    for member in members:
        label = _member_label(member, in_singleton_class)
        if label is None:
            continue
        if docs and getattr(member, "doc", None):
            summary = _first_doc_line(member.doc)
            if summary:
                label += f"  [dim]{escape(summary)}[/dim]"
        child = node.add(label)
        if isinstance(member, ScopeStub):
            _add_members(child, member.members, docs)
        elif isinstance(member, SingletonClassBlock):
            _add_members(child, member.members, docs, in_singleton_class=True)


def _outline_tree(stub_file: StubFile, docs: bool = False) -> Tree:
    tree = Tree(f"[bold]{escape(os.path.basename(stub_file.path))}[/bold]", guide_style="dim")
    _add_members(tree, stub_file.members, docs)
    return tree


@app.command(rich_help_panel="Stub Files")
def outline(
    file: str = typer.Argument("", help="Stub file (.rb or .rb.gz)"),
    docs: bool = typer.Option(False, "--docs", help="Show the first line of each doc-comment"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Show the declarations of a stub file as a tree.
    """
    if show_help or not file:
        OutputHelper.print_command_help("""\
Show the declarations of a stub file as a tree.

[bold cyan]Usage:[/bold cyan]
  rbstubs outline [yellow]FILE[/yellow]
  rbstubs outline --docs [yellow]FILE[/yellow]   [dim]# With doc summaries[/dim]

[bold cyan]Arguments:[/bold cyan]
  [yellow]FILE[/yellow]      Stub file, plain or gzip-compressed [red][required][/red]

[bold cyan]Examples:[/bold cyan]
  rbstubs outline rubystubs33/string.rb
  rbstubs outline --docs rubystubs27/kernel.rb.gz""")

    try:
        stub_file = parse_stub(read_stub_text(file), file)
    except RbStubsException as e:
        _fail(e)

    scopes = sum(1 for _ in stub_file.scopes())
    methods = sum(1 for _, m in stub_file.walk() if isinstance(m, MethodStub))
    OutputHelper.print_panel(
        _outline_tree(stub_file, docs),
        title=f"Outline ({scopes} scopes, {methods} methods)",
        border_style="cyan"
    )


# ============================================================================
# check
# ============================================================================

@app.command(rich_help_panel="Stub Files")
def check(
    path: Optional[str] = typer.Argument(None, help="Stub file or directory"),
    select: Optional[List[str]] = typer.Option(None, "--select", "-s", help="Only run these rules"),
    ignore: Optional[List[str]] = typer.Option(None, "--ignore", "-i", help="Skip these rules"),
    strict: bool = typer.Option(False, "--strict", help="Fail on warnings too"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Check stub files for format problems.
    """
    if show_help:
        OutputHelper.print_command_help("""\
Check stub files for format problems.

Without [yellow]PATH[/yellow] the stub directory of the selected Ruby version is checked.

[bold cyan]Usage:[/bold cyan]
  rbstubs check [[yellow]PATH[/yellow]]

[bold cyan]Options:[/bold cyan]
  [yellow]-s, --select RULE[/yellow]     Only run RULE [dim](repeatable)[/dim]
  [yellow]-i, --ignore RULE[/yellow]     Skip RULE [dim](repeatable)[/dim]
  [yellow]--strict[/yellow]              Exit with status 1 on warnings

[bold cyan]Rules:[/bold cyan]
  [green]RS000[/green]  File does not parse
  [green]RS001[/green]  Declaration without doc-comment
  [green]RS002[/green]  Class or module declared twice
  [green]RS003[/green]  Malformed parameter list
  [green]RS004[/green]  Method declared twice
  [green]RS005[/green]  Alias of an undeclared method
  [green]RS006[/green]  Constant with a literal value

[bold cyan]Examples:[/bold cyan]
  rbstubs --ruby 3.3 check
  rbstubs check -i RS001 rubystubs27/""")

    try:
        validator = StubValidator(rules=select or None, ignore=ignore or None)
    except ValueError as e:
        _fail(ValidationError(str(e)), "Invalid Rule")

    try:
        target = path or _stubs_directory()
        if os.path.isdir(target):
            report = validator.check_directory(target)
        elif os.path.isfile(target):
            report = validator.check_paths([target])
        else:
            raise ValidationError(f"No such file or directory: {target}")
    except RbStubsException as e:
        _fail(e)

    for diagnostic in report.sorted():
        OutputHelper.print_diagnostic(diagnostic)

    errors = report.count(Severity.ERROR)
    warnings = report.count(Severity.WARNING)
    infos = report.count(Severity.INFO)
    failed = errors > 0 or (strict and warnings > 0)

    OutputHelper.print_panel(
        f"{report.files_checked} file(s) checked: "
        f"[red]{errors}[/red] error(s), [yellow]{warnings}[/yellow] warning(s), [cyan]{infos}[/cyan] info",
        title="Check Failed" if failed else "Check Passed",
        border_style="red" if failed else "green"
    )
    if failed:
        raise typer.Exit(1)


# ============================================================================
# fmt
# ============================================================================

@app.command(rich_help_panel="Stub Files")
def fmt(
    file: str = typer.Argument("", help="Stub file (.rb or .rb.gz)"),
    check_only: bool = typer.Option(False, "--check", help="Exit with status 1 if the file would change"),
    write: bool = typer.Option(False, "--write", "-w", help="Rewrite the file in place"),
    show_help: bool = typer.Option(False, "--help", "-h", is_eager=True, hidden=True)
):
    """
    Regenerate a stub file in canonical layout.
    """
    if show_help or not file:
        OutputHelper.print_command_help("""\
Regenerate a stub file in canonical layout.

Prints the result unless [yellow]--check[/yellow] or [yellow]--write[/yellow] is given.

[bold cyan]Usage:[/bold cyan]
  rbstubs fmt [yellow]FILE[/yellow]
  rbstubs fmt --check [yellow]FILE[/yellow]   [dim]# Report only[/dim]
  rbstubs fmt -w [yellow]FILE[/yellow]        [dim]# Rewrite in place[/dim]

[bold cyan]Arguments:[/bold cyan]
  [yellow]FILE[/yellow]      Stub file, plain or gzip-compressed [red][required][/red]""")

    try:
        original = read_stub_text(file)
        rendered = render_stub(parse_stub(original, file))
    except RbStubsException as e:
        _fail(e)

    changed = rendered != original

    if check_only:
        if changed:
            OutputHelper.print_panel(
                f"[yellow]{escape(file)}[/yellow] would be reformatted.",
                title="Format",
                border_style="yellow"
            )
            raise typer.Exit(1)
        OutputHelper.print_panel(f"{escape(file)} is already formatted.", title="Format", border_style="green")
        return

    if write:
        if changed:
            data = compress_stub_text(rendered) if file.endswith(".gz") else rendered.encode("utf-8")
            try:
                write_stub_bytes(file, data)
            except RbStubsException as e:
                _fail(e)
            OutputHelper.print_panel(f"Reformatted [green]{escape(file)}[/green]", title="Format", border_style="green")
        else:
            OutputHelper.print_panel(f"{escape(file)} unchanged.", title="Format", border_style="dim")
        return

    typer.echo(rendered, nl=False)
