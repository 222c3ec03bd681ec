"""Format checks over parsed stub files."""
import logging
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional

from rbstubs.utils.constants import PLACEHOLDER_VALUE
from rbstubs.utils.exceptions import LoaderError, StubSyntaxError
from .model import (
    AliasStub, AttributeStub, ConstantStub, DOCUMENTED_MEMBERS, GlobalVariableStub,
    MethodStub, ScopeStub, StubFile,
)
from .signature import check_signature


logger = logging.getLogger(__name__)


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class Diagnostic:
    code: str
    severity: Severity
    message: str
    filename: str = "<stub>"
    line: Optional[int] = None

    def location(self) -> str:
        return f"{self.filename}:{self.line}" if self.line else self.filename

    def __str__(self):
        return f"{self.location()}: {self.code} {self.severity.value}: {self.message}"


@dataclass
class DiagnosticReport:
    diagnostics: List[Diagnostic] = field(default_factory=list)
    files_checked: int = 0

    def extend(self, items: Iterable[Diagnostic]):
        self.diagnostics.extend(items)

    def count(self, severity: Severity) -> int:
        return sum(1 for d in self.diagnostics if d.severity == severity)

    @property
    def has_errors(self) -> bool:
        return self.count(Severity.ERROR) > 0

    def by_code(self) -> Dict[str, int]:
        return dict(Counter(d.code for d in self.diagnostics))

    def sorted(self) -> List[Diagnostic]:
        return sorted(self.diagnostics, key=lambda d: (d.filename, d.line or 0, d.code))


def _owner(scope: Optional[ScopeStub]) -> str:
    return scope.qualified_name if scope else "(top level)"


def _member_label(scope: Optional[ScopeStub], member) -> str:
    owner = scope.qualified_name if scope else ""
    if isinstance(member, ScopeStub):
        return f"{member.kind} {member.qualified_name}"
    if isinstance(member, MethodStub):
        return f"method {member.display_name(owner)}"
    if isinstance(member, ConstantStub):
        return f"constant {owner + '::' if owner else ''}{member.name}"
    if isinstance(member, GlobalVariableStub):
        return f"global {member.name}"
    if isinstance(member, AttributeStub):
        return f"{member.kind} {', '.join(member.names)} in {_owner(scope)}"
    return type(member).__name__


# ============================================================================
# Rules
# ============================================================================

def check_documented(stub_file: StubFile) -> Iterable[Diagnostic]:
    """RS001: every declaration has a preceding comment block."""
    for scope, member in stub_file.walk():
        if isinstance(member, DOCUMENTED_MEMBERS) and not any(line.strip() for line in member.doc):
            yield Diagnostic(
                "RS001", Severity.WARNING,
                f"{_member_label(scope, member)} has no doc-comment",
                stub_file.path, member.line,
            )


def check_unique_scopes(stub_file: StubFile) -> Iterable[Diagnostic]:
    """RS002: a scope is declared once per parent within a file."""
    seen = {}
    for scope in stub_file.scopes():
        name = scope.qualified_name
        if name in seen:
            yield Diagnostic(
                "RS002", Severity.ERROR,
                f"{scope.kind} {name} already declared at line {seen[name]}",
                stub_file.path, scope.line,
            )
        else:
            seen[name] = scope.line


def check_signatures(stub_file: StubFile) -> Iterable[Diagnostic]:
    """RS003: parameter lists are well-formed."""
    for scope, member in stub_file.walk():
        if isinstance(member, MethodStub):
            for problem in check_signature(member.signature):
                yield Diagnostic(
                    "RS003", Severity.ERROR,
                    f"{member.display_name(scope.qualified_name if scope else '')}: {problem}",
                    stub_file.path, member.line,
                )


def check_duplicate_methods(stub_file: StubFile) -> Iterable[Diagnostic]:
    """RS004: a method is declared once per scope."""
    top_level = [m for m in stub_file.members if isinstance(m, MethodStub)]
    containers = [(None, top_level)] + [(s, s.methods()) for s in stub_file.scopes()]
    for scope, methods in containers:
        seen = {}
        for member in methods:
            key = (member.name, member.singleton)
            if key in seen:
                yield Diagnostic(
                    "RS004", Severity.WARNING,
                    f"{member.display_name(scope.qualified_name if scope else '')} "
                    f"already declared at line {seen[key]}",
                    stub_file.path, member.line,
                )
            else:
                seen[key] = member.line


def check_alias_targets(stub_file: StubFile) -> Iterable[Diagnostic]:
    """RS005: aliases point at a method declared in the same scope.

    Instance aliases are checked against instance methods and aliases in
    ``class << self`` against singleton methods; a side with no methods in
    the file is skipped.
    """
    for scope in stub_file.scopes():
        for singleton in (False, True):
            methods = {m.name for m in scope.methods() if m.singleton == singleton}
            if not singleton:
                for attribute in scope.attributes():
                    methods.update(m.name for m in attribute.method_stubs())
            if not methods:
                continue
            aliases = [a for a in scope.aliases() if a.singleton == singleton]
            methods.update(a.new_name for a in aliases)
            for alias in aliases:
                if alias.old_name not in methods:
                    owner = f"the singleton class of {scope.qualified_name}" if singleton else scope.qualified_name
                    yield Diagnostic(
                        "RS005", Severity.WARNING,
                        f"alias {alias.new_name} refers to {alias.old_name}, "
                        f"which {owner} does not declare",
                        stub_file.path, alias.line,
                    )


def check_placeholder_values(stub_file: StubFile) -> Iterable[Diagnostic]:
    """RS006: constants use the ``_`` placeholder rather than a literal."""
    for scope, member in stub_file.walk():
        if isinstance(member, (ConstantStub, GlobalVariableStub)) and member.value != PLACEHOLDER_VALUE:
            yield Diagnostic(
                "RS006", Severity.INFO,
                f"{_member_label(scope, member)} has a literal value ({member.value})",
                stub_file.path, member.line,
            )


RULES: Dict[str, Callable[[StubFile], Iterable[Diagnostic]]] = {
    "RS001": check_documented,
    "RS002": check_unique_scopes,
    "RS003": check_signatures,
    "RS004": check_duplicate_methods,
    "RS005": check_alias_targets,
    "RS006": check_placeholder_values,
}


class StubValidator:
    def __init__(self, rules: Iterable[str] = None, ignore: Iterable[str] = None):
        selected = list(rules) if rules else list(RULES)
        unknown = [code for code in selected if code not in RULES]
        if unknown:
            raise ValueError(f"Unknown rule(s): {', '.join(unknown)}")
        ignored = set(ignore or ())
        self.rules = [code for code in selected if code not in ignored]

    def check(self, stub_file: StubFile) -> List[Diagnostic]:
        diagnostics = []
        for code in self.rules:
            diagnostics.extend(RULES[code](stub_file))
        return diagnostics

    def check_source(self, source: str, filename: str = "<stub>") -> List[Diagnostic]:
        from .parser import parse_stub
        try:
            return self.check(parse_stub(source, filename))
        except StubSyntaxError as e:
            return [Diagnostic("RS000", Severity.ERROR, e.message, e.filename, e.line)]

    def check_paths(self, paths: Iterable[str]) -> DiagnosticReport:
        from .parser import parse_file

        report = DiagnosticReport()
        for path in paths:
            report.files_checked += 1
            try:
                stub_file = parse_file(path)
            except StubSyntaxError as e:
                report.diagnostics.append(Diagnostic("RS000", Severity.ERROR, e.message, e.filename, e.line))
                continue
            except LoaderError as e:
                report.diagnostics.append(Diagnostic("RS000", Severity.ERROR, e.message, str(path)))
                continue
            report.extend(self.check(stub_file))
        logger.debug("Checked %d files, %d diagnostics", report.files_checked, len(report.diagnostics))
        return report

    def check_directory(self, directory: str) -> DiagnosticReport:
        from .loader import stub_files
        return self.check_paths(stub_files(directory))
