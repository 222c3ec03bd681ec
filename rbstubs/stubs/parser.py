"""Build a :class:`StubFile` from stub source text."""
import logging
import re
from typing import List, Optional

from rbstubs.utils.exceptions import SignatureError, StubSyntaxError
from .lexer import Line, LineKind, StubLexer, split_def_rest
from .model import (
    AliasStub, AttributeStub, ConstantStub, FreeComment, GlobalVariableStub,
    MethodStub, MixinStub, ScopeStub, SingletonClassBlock, StubFile, Visibility, VisibilityMarker,
)
from .signature import parse_signature


logger = logging.getLogger(__name__)

# Statements allowed inside "class << self"
_SINGLETON_BLOCK_KINDS = (LineKind.DEF, LineKind.ALIAS, LineKind.VISIBILITY, LineKind.END)


class _Frame:
    """An open scope (or ``class << self`` block) while parsing."""

    def __init__(self, scope: Optional[ScopeStub], members: list, opened_at: int = 0,
                 singleton_block: bool = False):
        self.scope = scope
        self.members = members
        self.opened_at = opened_at
        self.singleton_block = singleton_block
        self.visibility = Visibility.PUBLIC

    @property
    def qualified_name(self) -> str:
        return self.scope.qualified_name if self.scope else ""

    @property
    def label(self) -> str:
        if self.singleton_block:
            return f"class << self in {self.qualified_name}"
        return f"{self.scope.kind} {self.qualified_name}"


class StubParser:
    def __init__(self, source: str, filename: str = "<stub>"):
        self.source = source
        self.filename = filename
        self._pending: List[str] = []
        self._pending_line: Optional[int] = None
        self._detached = False

    def error(self, message: str, line: int) -> StubSyntaxError:
        return StubSyntaxError(message, self.filename, line)

    # ------------------------------------------------------------------
    # Doc-comment bookkeeping
    # ------------------------------------------------------------------

    def _flush_free(self, frame: _Frame):
        if self._pending:
            frame.members.append(FreeComment(self._pending, line=self._pending_line))
        self._pending = []
        self._pending_line = None
        self._detached = False

    def _take_doc(self, frame: _Frame) -> List[str]:
        if self._detached:
            self._flush_free(frame)
        doc = self._pending
        self._pending = []
        self._pending_line = None
        self._detached = False
        return doc

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self) -> StubFile:
        stub_file = StubFile(path=self.filename)
        stack = [_Frame(None, stub_file.members)]

        for line in StubLexer(self.source, self.filename).tokens():
            frame = stack[-1]
            kind = line.kind

            if kind == LineKind.BLANK:
                if self._pending:
                    self._detached = True
                continue

            if kind == LineKind.MAGIC:
                if len(stack) == 1 and not stub_file.members and not self._pending:
                    stub_file.magic_comments.append(line.text)
                    continue
                kind = LineKind.COMMENT

            if kind == LineKind.COMMENT:
                if self._detached:
                    self._flush_free(frame)
                if not self._pending:
                    self._pending_line = line.number
                self._pending.append(line.text)
                continue

            if kind == LineKind.END:
                if len(stack) == 1:
                    raise self.error("Unexpected 'end' with no open class or module", line.number)
                self._flush_free(frame)
                stack.pop()
                continue

            if kind == LineKind.SINGLETON_CLASS:
                if frame.scope is None or frame.singleton_block:
                    raise self.error("'class << self' is only supported directly inside a class or module", line.number)
                block = SingletonClassBlock(doc=self._take_doc(frame), line=line.number)
                frame.members.append(block)
                stack.append(_Frame(frame.scope, block.members, line.number, singleton_block=True))
                continue

            if frame.singleton_block and kind not in _SINGLETON_BLOCK_KINDS:
                raise self.error(f"Unsupported statement inside class << self: {line.text}", line.number)

            if kind in (LineKind.CLASS, LineKind.MODULE):
                scope = self._scope(line, frame)
                frame.members.append(scope)
                if not line.group("inline_end"):
                    stack.append(_Frame(scope, scope.members, line.number))
                continue

            member = self._member(line, frame)
            if isinstance(member, list):
                frame.members.extend(member)
            else:
                frame.members.append(member)

        frame = stack[-1]
        self._flush_free(frame)
        if len(stack) > 1:
            raise self.error(
                f"Missing 'end' for {frame.label} opened at line {frame.opened_at}",
                len(self.source.splitlines()),
            )

        logger.debug("Parsed %s: %d declarations", self.filename, len(stub_file.declarations()))
        return stub_file

    def _scope(self, line: Line, frame: _Frame) -> ScopeStub:
        kind = "class" if line.kind == LineKind.CLASS else "module"
        return ScopeStub(
            kind=kind,
            name=line.group("name"),
            namespace=frame.qualified_name,
            superclass=line.group("superclass") if kind == "class" else None,
            doc=self._take_doc(frame),
            line=line.number,
        )

    def _member(self, line: Line, frame: _Frame):
        kind = line.kind

        if kind == LineKind.DEF:
            params = split_def_rest(line.group("rest"))
            if params is None:
                raise self.error(f"Method body must be empty: {line.text}", line.number)
            try:
                signature = parse_signature(params)
            except SignatureError as e:
                raise self.error(e.message, line.number) from e
            if frame.singleton_block and line.group("singleton"):
                raise self.error(f"'def self.' inside class << self: {line.text}", line.number)
            singleton = frame.singleton_block or bool(line.group("singleton"))
            return MethodStub(
                name=line.group("name"),
                signature=signature,
                singleton=singleton,
                visibility=Visibility.PUBLIC if line.group("singleton") else frame.visibility,
                doc=self._take_doc(frame),
                line=line.number,
            )

        if kind == LineKind.CONSTANT:
            return ConstantStub(line.group("name"), line.group("value"), self._take_doc(frame), line.number)

        if kind == LineKind.GLOBAL:
            return GlobalVariableStub(line.group("name"), line.group("value"), self._take_doc(frame), line.number)

        if kind == LineKind.ALIAS:
            return AliasStub(line.group("new"), line.group("old"), self._take_doc(frame), line.number,
                             singleton=frame.singleton_block)

        if kind == LineKind.ATTRIBUTE:
            names = [n.strip().lstrip(":") for n in line.group("names").split(",")]
            return AttributeStub(line.group("kind"), names, self._take_doc(frame), line.number)

        if kind == LineKind.MIXIN:
            self._flush_free(frame)
            names = [n.strip() for n in re.split(r'\s*,\s*', line.group("names"))]
            # "include A, B" inserts B first, then A
            return [MixinStub(line.group("kind"), name, line.number) for name in reversed(names)]

        if kind == LineKind.VISIBILITY:
            self._flush_free(frame)
            visibility = Visibility(line.group("visibility"))
            frame.visibility = visibility
            return VisibilityMarker(visibility, line.number)

        raise self.error(f"Unexpected statement: {line.text}", line.number)


def parse_stub(source: str, filename: str = "<stub>") -> StubFile:
    return StubParser(source, filename).parse()


def parse_file(path: str) -> StubFile:
    """Parse a stub file from disk; gzip-compressed files are read transparently."""
    from .loader import read_stub_text
    return parse_stub(read_stub_text(path), str(path))
