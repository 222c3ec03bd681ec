"""Regenerate stub source text from a parsed :class:`StubFile`."""
from typing import List

from rbstubs.utils.constants import DEFAULT_INDENT
from .model import (
    AliasStub, AttributeStub, ConstantStub, FreeComment, GlobalVariableStub,
    MethodStub, MixinStub, ScopeStub, SingletonClassBlock, StubFile, VisibilityMarker,
)


class StubWriter:
    def __init__(self, indent: str = DEFAULT_INDENT):
        self.indent = indent

    def render(self, stub_file: StubFile) -> str:
        out: List[str] = []
        for magic in stub_file.magic_comments:
            out.append(f"# {magic}")
        if stub_file.magic_comments and stub_file.members:
            out.append("")
        self._members(stub_file.members, 0, out)
        return "\n".join(out) + "\n"

    def _comment(self, lines: List[str], depth: int, out: List[str]):
        pad = self.indent * depth
        for text in lines:
            out.append(f"{pad}# {text}" if text else f"{pad}#")

    def _members(self, members: list, depth: int, out: List[str]):
        for i, member in enumerate(members):
            if i:
                out.append("")
            self._member(member, depth, out)

    def _member(self, member, depth: int, out: List[str]):
        pad = self.indent * depth

        if isinstance(member, FreeComment):
            self._comment(member.lines, depth, out)
            return
        if isinstance(member, VisibilityMarker):
            out.append(f"{pad}{member.visibility.value}")
            return
        if isinstance(member, MixinStub):
            out.append(f"{pad}{member.kind} {member.module_name}")
            return

        self._comment(member.doc, depth, out)

        if isinstance(member, ScopeStub):
            header = f"{member.kind} {member.name}"
            if member.superclass:
                header += f" < {member.superclass}"
            out.append(pad + header)
            self._members(member.members, depth + 1, out)
            out.append(f"{pad}end")
        elif isinstance(member, SingletonClassBlock):
            out.append(f"{pad}class << self")
            inner_pad = pad + self.indent
            for i, inner in enumerate(member.members):
                if i:
                    out.append("")
                if isinstance(inner, MethodStub):
                    self._comment(inner.doc, depth + 1, out)
                    out.append(inner_pad + render_def(inner, in_singleton_class=True))
                else:
                    self._member(inner, depth + 1, out)
            out.append(f"{pad}end")
        elif isinstance(member, MethodStub):
            out.append(pad + render_def(member))
        elif isinstance(member, (ConstantStub, GlobalVariableStub)):
            out.append(f"{pad}{member.name} = {member.value}")
        elif isinstance(member, AliasStub):
            out.append(f"{pad}alias {member.new_name} {member.old_name}")
        elif isinstance(member, AttributeStub):
            names = ", ".join(f":{name}" for name in member.names)
            out.append(f"{pad}{member.kind} {names}")
        else:
            raise TypeError(f"Cannot render {type(member).__name__}")


def render_def(method: MethodStub, in_singleton_class: bool = False) -> str:
    prefix = "self." if method.singleton and not in_singleton_class else ""
    if method.signature.parameters:
        return f"def {prefix}{method.name}{method.signature.render()} end"
    return f"def {prefix}{method.name}; end"


def render_stub(stub_file: StubFile, indent: str = DEFAULT_INDENT) -> str:
    return StubWriter(indent).render(stub_file)
