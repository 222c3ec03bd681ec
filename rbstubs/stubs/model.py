"""
Documentation records extracted from Ruby stub files.

A stub file is a tree of scopes (``class``/``module``) whose members are
empty declarations carrying a doc-comment. Every record keeps the source
line it came from; line numbers never take part in equality so that a
regenerated file compares equal to the one it came from.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, List, Optional, Tuple, Union


class ParameterKind(Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    REST = "rest"
    POST = "post"
    KEYWORD = "keyword"
    KEYWORD_OPTIONAL = "keyword_optional"
    KEYWORD_REST = "keyword_rest"
    NO_KEYWORDS = "no_keywords"
    BLOCK = "block"
    FORWARD = "forward"


POSITIONAL_KINDS = (ParameterKind.REQUIRED, ParameterKind.OPTIONAL, ParameterKind.REST, ParameterKind.POST)
KEYWORD_KINDS = (ParameterKind.KEYWORD, ParameterKind.KEYWORD_OPTIONAL, ParameterKind.KEYWORD_REST)


class Visibility(Enum):
    PUBLIC = "public"
    PROTECTED = "protected"
    PRIVATE = "private"


@dataclass
class Parameter:
    name: str
    kind: ParameterKind
    default: Optional[str] = None

    def render(self) -> str:
        kind = self.kind
        if kind in (ParameterKind.REQUIRED, ParameterKind.POST):
            return self.name
        if kind == ParameterKind.OPTIONAL:
            return f"{self.name} = {self.default}"
        if kind == ParameterKind.REST:
            return f"*{self.name}"
        if kind == ParameterKind.KEYWORD:
            return f"{self.name}:"
        if kind == ParameterKind.KEYWORD_OPTIONAL:
            return f"{self.name}: {self.default}"
        if kind == ParameterKind.KEYWORD_REST:
            return f"**{self.name}"
        if kind == ParameterKind.NO_KEYWORDS:
            return "**nil"
        if kind == ParameterKind.BLOCK:
            return f"&{self.name}"
        return "..."


@dataclass
class Signature:
    parameters: List[Parameter] = field(default_factory=list)

    def render(self) -> str:
        if not self.parameters:
            return ""
        return "(" + ", ".join(p.render() for p in self.parameters) + ")"

    def count(self, *kinds: ParameterKind) -> int:
        return sum(1 for p in self.parameters if p.kind in kinds)

    @property
    def arity(self) -> int:
        """Ruby's Method#arity for this parameter list.

        Keywords count as one extra argument, mandatory only when a
        required keyword exists.
        """
        required = self.count(ParameterKind.REQUIRED, ParameterKind.POST)
        if self.count(ParameterKind.KEYWORD):
            required += 1
        optional = self.count(ParameterKind.OPTIONAL, ParameterKind.REST, ParameterKind.FORWARD) > 0
        if not self.count(ParameterKind.KEYWORD) and self.count(ParameterKind.KEYWORD_OPTIONAL, ParameterKind.KEYWORD_REST):
            optional = True
        return -(required + 1) if optional else required

    @property
    def accepts_block(self) -> bool:
        return self.count(ParameterKind.BLOCK, ParameterKind.FORWARD) > 0

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.parameters if p.name]


@dataclass
class MethodStub:
    name: str
    signature: Signature = field(default_factory=Signature)
    singleton: bool = False
    visibility: Visibility = Visibility.PUBLIC
    doc: List[str] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)

    def display_name(self, owner: str = "") -> str:
        separator = "." if self.singleton else "#"
        return f"{owner}{separator}{self.name}" if owner else self.name

    def render_header(self, owner: str = "") -> str:
        return self.display_name(owner) + self.signature.render()


@dataclass
class ConstantStub:
    name: str
    value: str = "_"
    doc: List[str] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)


@dataclass
class GlobalVariableStub:
    name: str
    value: str = "_"
    doc: List[str] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)


@dataclass
class AliasStub:
    new_name: str
    old_name: str
    doc: List[str] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)
    singleton: bool = False


@dataclass
class AttributeStub:
    """``attr_reader``/``attr_writer``/``attr_accessor`` declarations."""
    kind: str
    names: List[str]
    doc: List[str] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)

    def method_stubs(self, visibility: Visibility = Visibility.PUBLIC) -> List[MethodStub]:
        methods = []
        for name in self.names:
            if self.kind in ("attr_reader", "attr_accessor"):
                methods.append(MethodStub(name, visibility=visibility, doc=list(self.doc), line=self.line))
            if self.kind in ("attr_writer", "attr_accessor"):
                setter = Signature([Parameter("value", ParameterKind.REQUIRED)])
                methods.append(MethodStub(f"{name}=", setter, visibility=visibility, doc=list(self.doc), line=self.line))
        return methods


@dataclass
class MixinStub:
    kind: str
    module_name: str
    line: Optional[int] = field(default=None, compare=False)


@dataclass
class VisibilityMarker:
    visibility: Visibility
    line: Optional[int] = field(default=None, compare=False)


@dataclass
class FreeComment:
    """A comment block not attached to any declaration."""
    lines: List[str]
    line: Optional[int] = field(default=None, compare=False)


@dataclass
class SingletonClassBlock:
    """A ``class << self`` block; its defs and aliases belong to the enclosing scope's singleton class."""
    doc: List[str] = field(default_factory=list)
    members: List["Member"] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)


@dataclass
class ScopeStub:
    kind: str
    name: str
    namespace: str = ""
    superclass: Optional[str] = None
    doc: List[str] = field(default_factory=list)
    members: List["Member"] = field(default_factory=list)
    line: Optional[int] = field(default=None, compare=False)

    @property
    def qualified_name(self) -> str:
        name = self.name[2:] if self.name.startswith("::") else self.name
        if self.name.startswith("::") or not self.namespace:
            return name
        return f"{self.namespace}::{name}"

    @property
    def is_class(self) -> bool:
        return self.kind == "class"

    def _of(self, cls) -> list:
        found = []
        for member in self.members:
            if isinstance(member, SingletonClassBlock):
                found.extend(m for m in member.members if isinstance(m, cls))
            elif isinstance(member, cls):
                found.append(member)
        return found

    def methods(self) -> List[MethodStub]:
        return self._of(MethodStub)

    def instance_methods(self) -> List[MethodStub]:
        return [m for m in self.methods() if not m.singleton]

    def singleton_methods(self) -> List[MethodStub]:
        return [m for m in self.methods() if m.singleton]

    def constants(self) -> List[ConstantStub]:
        return self._of(ConstantStub)

    def aliases(self) -> List[AliasStub]:
        return self._of(AliasStub)

    def attributes(self) -> List[AttributeStub]:
        return self._of(AttributeStub)

    def mixins(self, kind: str = None) -> List[MixinStub]:
        return [m for m in self._of(MixinStub) if kind is None or m.kind == kind]

    def scopes(self) -> List["ScopeStub"]:
        return self._of(ScopeStub)

    def find_method(self, name: str, singleton: Optional[bool] = None) -> Optional[MethodStub]:
        for method in self.methods():
            if method.name == name and (singleton is None or method.singleton == singleton):
                return method
        return None

    def find_constant(self, name: str) -> Optional[ConstantStub]:
        for constant in self.constants():
            if constant.name == name:
                return constant
        return None


Member = Union[
    ScopeStub, MethodStub, ConstantStub, GlobalVariableStub, AliasStub,
    AttributeStub, MixinStub, VisibilityMarker, FreeComment, SingletonClassBlock,
]

DOCUMENTED_MEMBERS = (ScopeStub, MethodStub, ConstantStub, GlobalVariableStub, AttributeStub)


@dataclass
class StubFile:
    path: str = field(default="<stub>", compare=False)
    magic_comments: List[str] = field(default_factory=list)
    members: List[Member] = field(default_factory=list)

    def scopes(self) -> Iterator[ScopeStub]:
        """Every scope in the file, depth first."""
        stack = [m for m in reversed(self.members) if isinstance(m, ScopeStub)]
        while stack:
            scope = stack.pop()
            yield scope
            stack.extend(reversed(scope.scopes()))

    def walk(self) -> Iterator[Tuple[Optional[ScopeStub], Member]]:
        """Yield ``(enclosing scope, member)`` pairs depth first; top level has scope ``None``.

        Members of a ``class << self`` block are yielded with the scope that holds the block.
        """
        def _walk(scope, members):
            for member in members:
                yield scope, member
                if isinstance(member, ScopeStub):
                    yield from _walk(member, member.members)
                elif isinstance(member, SingletonClassBlock):
                    yield from _walk(scope, member.members)
        yield from _walk(None, self.members)

    def declarations(self) -> List[Tuple[str, str]]:
        """Flat ``(owner, name)`` list of declarations in source order."""
        out = []
        for scope, member in self.walk():
            owner = scope.qualified_name if scope else ""
            if isinstance(member, ScopeStub):
                out.append((owner, member.qualified_name))
            elif isinstance(member, MethodStub):
                out.append((owner, member.display_name(owner)))
            elif isinstance(member, (ConstantStub, GlobalVariableStub)):
                out.append((owner, member.name))
            elif isinstance(member, AliasStub):
                out.append((owner, member.new_name))
            elif isinstance(member, AttributeStub):
                out.extend((owner, name) for name in member.names)
        return out
