"""Line classification for Ruby stub files.

Stub files are line oriented: every statement fits on one physical line
and method bodies are always empty, so each line is classified on its own.
"""
import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, List, Optional

from rbstubs.utils.exceptions import StubSyntaxError


class LineKind(Enum):
    BLANK = auto()
    COMMENT = auto()
    MAGIC = auto()
    CLASS = auto()
    SINGLETON_CLASS = auto()
    MODULE = auto()
    DEF = auto()
    END = auto()
    CONSTANT = auto()
    GLOBAL = auto()
    ALIAS = auto()
    MIXIN = auto()
    ATTRIBUTE = auto()
    VISIBILITY = auto()


@dataclass
class Line:
    kind: LineKind
    number: int
    indent: int
    text: str
    match: Optional[re.Match] = None

    def group(self, name: str) -> Optional[str]:
        return self.match.group(name) if self.match else None


_CONST_PATH = r'(?:::)?[A-Z]\w*(?:::[A-Z]\w*)*'
CONSTANT_PATH = re.compile(rf'^{_CONST_PATH}$')

# Superclasses and mixins may be arbitrary expressions such as
# "rb_cObject" or "IO.generic_readable"; they are kept verbatim
_REFERENCE = r'(?:::)?[A-Za-z_]\w*(?:::[A-Z]\w*)*(?:\.[A-Za-z_]\w*[?!]?)*'

# Longest operators first
_OPERATOR_NAMES = (
    r'\[\]=|\[\]|<=>|===|==|=~|!=|!~|\*\*|\+@|-@|~@|!@|<<|>>|<=|>='
    r'|[+\-*/%<>!~^&|`]'
)
METHOD_NAME = rf'(?:{_OPERATOR_NAMES}|[A-Za-z_]\w*[?!=]?)'

_MAGIC = re.compile(
    r'^#\s*(?:-\*-\s*)?(?:frozen_string_literal|encoding|coding|warn_indent|warn_past_scope|shareable_constant_value)\s*:',
    re.IGNORECASE,
)

_PATTERNS = (
    (LineKind.SINGLETON_CLASS, re.compile(r'^class\s*<<\s*self\s*$')),
    (LineKind.CLASS, re.compile(
        rf'^class\s+(?P<name>{_CONST_PATH})(?:\s*<\s*(?P<superclass>{_REFERENCE}))?\s*(?P<inline_end>;\s*end)?\s*$')),
    (LineKind.MODULE, re.compile(
        rf'^module\s+(?P<name>{_CONST_PATH})\s*(?P<inline_end>;\s*end)?\s*$')),
    (LineKind.END, re.compile(r'^end\s*$')),
    (LineKind.DEF, re.compile(
        rf'^def\s+(?P<singleton>self\.)?(?P<name>{METHOD_NAME})(?P<rest>.*)$')),
    (LineKind.ALIAS, re.compile(
        rf'^alias\s+:?(?P<new>{METHOD_NAME})\s+:?(?P<old>{METHOD_NAME})\s*$')),
    (LineKind.MIXIN, re.compile(
        rf'^(?P<kind>include|extend|prepend)\s+(?P<names>{_REFERENCE}(?:\s*,\s*{_REFERENCE})*)\s*$')),
    (LineKind.ATTRIBUTE, re.compile(
        r'^(?P<kind>attr_reader|attr_writer|attr_accessor)\s+(?P<names>:\w+[?!]?(?:\s*,\s*:\w+[?!]?)*)\s*$')),
    (LineKind.VISIBILITY, re.compile(r'^(?P<visibility>private|protected|public)\s*$')),
    (LineKind.CONSTANT, re.compile(r'^(?P<name>[A-Z]\w*)\s*=(?![=~])\s*(?P<value>.+?)\s*$')),
    (LineKind.GLOBAL, re.compile(
        r'''^(?P<name>\$(?:-\w|\w+|[!"$&'*+,./0:;<=>?@\\_`~]))\s*=(?!=)\s*(?P<value>.+?)\s*$''')),
)

# Body forms that may follow a method name in a def header
_DEF_BODY = (
    re.compile(r'^\s*;\s*end\s*$'),
    re.compile(r'^\s+end\s*$'),
    re.compile(r'^\s*\((?P<params>.*)\)\s*;?\s*end\s*$'),
    re.compile(r'^\s+(?P<params>.+?)\s*;\s*end\s*$'),
    re.compile(r'^\s+(?P<params>.+?)\s+end\s*$'),
)


def split_def_rest(rest: str) -> Optional[str]:
    """Return the parameter text after a method name, or None if the body is not empty."""
    for pattern in _DEF_BODY:
        match = pattern.match(rest)
        if match:
            return (match.groupdict().get("params") or "").strip()
    return None


def comment_text(stripped: str) -> str:
    """Strip the ``#`` marker and one following space."""
    text = stripped[1:]
    if text.startswith(" "):
        text = text[1:]
    return text.rstrip()


class StubLexer:
    def __init__(self, source: str, filename: str = "<stub>"):
        self.source = source
        self.filename = filename

    def error(self, message: str, line: int) -> StubSyntaxError:
        return StubSyntaxError(message, self.filename, line)

    def tokens(self) -> Iterator[Line]:
        seen_statement = False
        for number, raw in enumerate(self.source.splitlines(), start=1):
            stripped = raw.strip()
            indent = len(raw) - len(raw.lstrip())

            if not stripped:
                yield Line(LineKind.BLANK, number, indent, "")
                continue

            if stripped.startswith("#"):
                if not seen_statement and _MAGIC.match(stripped):
                    yield Line(LineKind.MAGIC, number, indent, comment_text(stripped))
                else:
                    yield Line(LineKind.COMMENT, number, indent, comment_text(stripped))
                continue

            seen_statement = True
            for kind, pattern in _PATTERNS:
                match = pattern.match(stripped)
                if match:
                    yield Line(kind, number, indent, stripped, match)
                    break
            else:
                raise self.error(f"Unrecognized statement: {stripped}", number)

    def lines(self) -> List[Line]:
        return list(self.tokens())
