"""
Queryable index over parsed stub files.

Scopes reopened in several files are merged under their qualified name.
Lookups follow Ruby's method resolution order:

    instance:   prepends (last first) -> scope -> includes (last first) -> superclass chain
    singleton:  #<Class:C> -> extends -> #<Class:superclass> ... -> Class -> Module -> Object ...
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from rbstubs.utils.exceptions import IndexLookupError
from .lexer import CONSTANT_PATH
from .model import (
    AliasStub, AttributeStub, ConstantStub, FreeComment, GlobalVariableStub, MethodStub,
    MixinStub, ScopeStub, SingletonClassBlock, StubFile, Visibility, VisibilityMarker,
)


logger = logging.getLogger(__name__)

TOP_LEVEL_OWNER = "Object"

# Superclasses of core classes, used when the class itself is not indexed
_IMPLICIT_SUPERCLASSES = {
    "Object": "BasicObject",
    "Module": "Object",
    "Class": "Module",
}

# Guard against alias cycles ("alias a b" + "alias b a")
_MAX_ALIAS_HOPS = 8

# (stub file path, 1-based line)
Location = Tuple[str, int]


@dataclass
class IndexedScope:
    qualified_name: str
    kind: str
    namespace: str = ""
    superclass: Optional[str] = None
    doc: List[str] = field(default_factory=list)
    methods: List[MethodStub] = field(default_factory=list)
    constants: List[ConstantStub] = field(default_factory=list)
    aliases: List[AliasStub] = field(default_factory=list)
    includes: List[str] = field(default_factory=list)
    extends: List[str] = field(default_factory=list)
    prepends: List[str] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    location: Optional[Location] = None

    @property
    def name(self) -> str:
        return self.qualified_name.rsplit("::", 1)[-1]

    def own_method(self, name: str, singleton: bool = False) -> Optional[MethodStub]:
        # Later definitions win, as when a class is reopened
        for method in reversed(self.methods):
            if method.name == name and method.singleton == singleton:
                return method
        return None

    def own_alias(self, name: str, singleton: bool = False) -> Optional[AliasStub]:
        for alias in reversed(self.aliases):
            if alias.new_name == name and alias.singleton == singleton:
                return alias
        return None

    def own_constant(self, name: str) -> Optional[ConstantStub]:
        for constant in reversed(self.constants):
            if constant.name == name:
                return constant
        return None


@dataclass(frozen=True)
class Ancestor:
    name: str
    singleton: bool = False

    def __str__(self):
        return f"#<Class:{self.name}>" if self.singleton else self.name


@dataclass
class MethodMatch:
    owner: str
    method: MethodStub
    name: str
    alias_of: Optional[str] = None
    alias_doc: List[str] = field(default_factory=list)
    depth: int = 0
    alias: Optional[AliasStub] = None

    @property
    def display_name(self) -> str:
        separator = "." if self.method.singleton else "#"
        return f"{self.owner}{separator}{self.name}"

    @property
    def header(self) -> str:
        return self.display_name + self.method.signature.render()

    @property
    def doc(self) -> List[str]:
        return self.alias_doc or self.method.doc


@dataclass
class HoverInfo:
    kind: str
    title: str
    signature: str
    doc: List[str] = field(default_factory=list)
    location: Optional[Location] = None

    @property
    def doc_text(self) -> str:
        return "\n".join(self.doc).strip("\n")

    def render_markdown(self) -> str:
        text = f"```ruby\n{self.signature}\n```"
        if self.doc_text:
            text += "\n\n" + self.doc_text
        return text


@dataclass
class CompletionItem:
    label: str
    kind: str
    detail: str
    owner: str
    depth: int = 0


def _matches(label: str, prefix: str) -> bool:
    return label.startswith(prefix) or label.lower().startswith(prefix.lower())


def _rank(items: List[CompletionItem], prefix: str, limit: Optional[int]) -> List[CompletionItem]:
    items.sort(key=lambda item: (
        0 if item.label.startswith(prefix) else 1,
        item.depth,
        len(item.label),
        item.label,
    ))
    return items[:limit] if limit else items


def _parent_of(qualified_name: str) -> str:
    return qualified_name.rsplit("::", 1)[0] if "::" in qualified_name else ""


class StubIndex:
    def __init__(self):
        self._scopes: Dict[str, IndexedScope] = {}
        self._children: Dict[str, List[str]] = {}
        self._globals: Dict[str, GlobalVariableStub] = {}
        # id of each indexed record -> stub file it came from
        self._origins: Dict[int, str] = {}
        self.files: List[str] = []

    @classmethod
    def from_stub_set(cls, stub_set) -> "StubIndex":
        index = cls()
        for stub_file in stub_set.files:
            index.add_file(stub_file)
        return index

    @classmethod
    def from_files(cls, stub_files) -> "StubIndex":
        index = cls()
        for stub_file in stub_files:
            index.add_file(stub_file)
        return index

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_file(self, stub_file: StubFile):
        self.files.append(stub_file.path)
        top_level = [m for m in stub_file.members if not isinstance(m, ScopeStub)]
        if any(not isinstance(m, (GlobalVariableStub, FreeComment, VisibilityMarker)) for m in top_level):
            owner = self._ensure(TOP_LEVEL_OWNER, "class", "")
            self._index_members(owner, top_level, stub_file.path, Visibility.PRIVATE)
        else:
            self._index_members(None, top_level, stub_file.path)

        for scope in stub_file.scopes():
            self._add_scope(scope, stub_file.path)

    def _ensure(self, qualified_name: str, kind: str, namespace: str) -> IndexedScope:
        indexed = self._scopes.get(qualified_name)
        if indexed is None:
            indexed = IndexedScope(qualified_name, kind, namespace)
            self._scopes[qualified_name] = indexed
            self._children.setdefault(_parent_of(qualified_name), []).append(qualified_name)
        return indexed

    def _add_scope(self, scope: ScopeStub, path: str):
        indexed = self._ensure(scope.qualified_name, scope.kind, scope.namespace)
        if indexed.kind != scope.kind:
            logger.warning("%s reopened as %s in %s (was %s)", scope.qualified_name, scope.kind, path, indexed.kind)
        if scope.superclass and not CONSTANT_PATH.match(scope.superclass):
            logger.debug("%s: superclass %s of %s is not a constant, skipped", path, scope.superclass,
                         scope.qualified_name)
        elif indexed.superclass is None and scope.superclass:
            indexed.superclass = scope.superclass
            indexed.namespace = scope.namespace
        # The documented opening is the one reported as the definition
        if indexed.location is None or (not indexed.doc and scope.doc):
            indexed.location = (path, scope.line)
        if not indexed.doc and scope.doc:
            indexed.doc = scope.doc
        if path not in indexed.sources:
            indexed.sources.append(path)
        self._index_members(indexed, scope.members, path)

    def _record(self, member, path: str):
        self._origins[id(member)] = path
        return member

    def _index_members(self, indexed: Optional[IndexedScope], members: list, path: str,
                       default_visibility: Visibility = Visibility.PUBLIC):
        visibility = default_visibility
        for member in members:
            if isinstance(member, GlobalVariableStub):
                self._globals[member.name] = self._record(member, path)
            elif indexed is None:
                continue
            elif isinstance(member, VisibilityMarker):
                visibility = member.visibility
            elif isinstance(member, SingletonClassBlock):
                self._index_members(indexed, member.members, path)
            elif isinstance(member, MethodStub):
                if default_visibility != Visibility.PUBLIC and not member.singleton:
                    member = replace(member, visibility=visibility)
                indexed.methods.append(self._record(member, path))
            elif isinstance(member, AttributeStub):
                indexed.methods.extend(self._record(m, path) for m in member.method_stubs(visibility))
            elif isinstance(member, ConstantStub):
                indexed.constants.append(self._record(member, path))
            elif isinstance(member, AliasStub):
                indexed.aliases.append(self._record(member, path))
            elif isinstance(member, MixinStub):
                if not CONSTANT_PATH.match(member.module_name):
                    logger.debug("%s: %s %s in %s is not a constant, skipped", path, member.kind,
                                 member.module_name, indexed.qualified_name)
                    continue
                {"include": indexed.includes, "extend": indexed.extends, "prepend": indexed.prepends}[member.kind].append(
                    member.module_name)

    def _location_of(self, record) -> Optional[Location]:
        path = self._origins.get(id(record))
        if path is None or record.line is None:
            return None
        return path, record.line

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def __contains__(self, qualified_name: str) -> bool:
        return qualified_name in self._scopes

    def __len__(self) -> int:
        return len(self._scopes)

    def scopes(self) -> Iterator[IndexedScope]:
        return iter(self._scopes.values())

    def get(self, qualified_name: str) -> Optional[IndexedScope]:
        return self._scopes.get(qualified_name)

    def globals(self) -> List[GlobalVariableStub]:
        return list(self._globals.values())

    def resolve(self, name: str, namespace: str = "") -> Optional[str]:
        """Resolve a constant path from ``namespace`` outward, as Ruby's lexical lookup does."""
        if not name:
            return None
        if name.startswith("::"):
            name = name[2:]
            return name if name in self._scopes else None
        parts = namespace.split("::") if namespace else []
        for i in range(len(parts), -1, -1):
            candidate = "::".join(parts[:i] + [name])
            if candidate in self._scopes:
                return candidate
        return None

    def scope(self, name: str, namespace: str = "") -> IndexedScope:
        """
        Raises:
            IndexLookupError: If ``name`` does not resolve to an indexed scope.
        """
        qualified_name = self.resolve(name, namespace)
        if qualified_name is None:
            raise IndexLookupError(f"Unknown class or module: {name}")
        return self._scopes[qualified_name]

    def _resolve_reference(self, name: str, namespace: str) -> str:
        return self.resolve(name, namespace) or name.lstrip(":")

    def superclass_of(self, qualified_name: str) -> Optional[str]:
        indexed = self._scopes.get(qualified_name)
        if indexed is None:
            return _IMPLICIT_SUPERCLASSES.get(qualified_name)
        if indexed.kind != "class" or qualified_name == "BasicObject":
            return None
        if indexed.superclass:
            return self._resolve_reference(indexed.superclass, indexed.namespace)
        return _IMPLICIT_SUPERCLASSES.get(qualified_name, "Object")

    # ------------------------------------------------------------------
    # Ancestors
    # ------------------------------------------------------------------

    def _linearize(self, qualified_name: str, visiting: frozenset) -> List[str]:
        if qualified_name in visiting:
            return []
        visiting = visiting | {qualified_name}

        superclass = self.superclass_of(qualified_name)
        tail = self._linearize(superclass, visiting) if superclass else []

        # A module already in the superclass chain is not included again
        seen = set(tail)
        head: List[str] = []

        def _take(entries):
            for entry in entries:
                if entry not in seen:
                    seen.add(entry)
                    head.append(entry)

        indexed = self._scopes.get(qualified_name)
        if indexed:
            for module in reversed(indexed.prepends):
                _take(self._linearize(self._resolve_reference(module, qualified_name), visiting))
        _take([qualified_name])
        if indexed:
            for module in reversed(indexed.includes):
                _take(self._linearize(self._resolve_reference(module, qualified_name), visiting))
        return head + tail

    def _instance_chain(self, qualified_name: str) -> List[str]:
        return self._linearize(qualified_name, frozenset())

    def ancestors(self, name: str, namespace: str = "") -> List[str]:
        """Instance method lookup order for ``name``."""
        return self._instance_chain(self.scope(name, namespace).qualified_name)

    def singleton_ancestors(self, name: str, namespace: str = "") -> List[Ancestor]:
        """Class method lookup order for ``name``."""
        indexed = self.scope(name, namespace)
        chain: List[Ancestor] = []
        seen = set()

        def _add(ancestor: Ancestor):
            if ancestor not in seen:
                seen.add(ancestor)
                chain.append(ancestor)

        current = indexed.qualified_name
        visited = set()
        while current and current not in visited:
            visited.add(current)
            _add(Ancestor(current, singleton=True))
            scope = self._scopes.get(current)
            if scope:
                for module in reversed(scope.extends):
                    for entry in self._instance_chain(self._resolve_reference(module, current)):
                        _add(Ancestor(entry))
            if indexed.kind != "class":
                break
            current = self.superclass_of(current)

        for entry in self._instance_chain("Class" if indexed.kind == "class" else "Module"):
            _add(Ancestor(entry))
        return chain

    def _method_chain(self, qualified_name: str, singleton: bool) -> List[Ancestor]:
        if singleton:
            return self.singleton_ancestors(qualified_name)
        return [Ancestor(entry) for entry in self._instance_chain(qualified_name)]

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    def _lookup_in_chain(self, chain: List[Ancestor], name: str, start: int, hops: int) -> Optional[MethodMatch]:
        for depth in range(start, len(chain)):
            entry = chain[depth]
            indexed = self._scopes.get(entry.name)
            if indexed is None:
                continue
            method = indexed.own_method(name, entry.singleton)
            if method:
                return MethodMatch(entry.name, method, name, depth=depth)
            if hops <= 0:
                continue
            alias = indexed.own_alias(name, entry.singleton)
            if alias:
                target = self._lookup_in_chain(chain, alias.old_name, depth, hops - 1)
                if target:
                    return MethodMatch(entry.name, target.method, name, alias.old_name, alias.doc, depth, alias=alias)
        return None

    def lookup_method(self, owner: str, name: str, singleton: bool = False, namespace: str = "") -> Optional[MethodMatch]:
        qualified_name = self.scope(owner, namespace).qualified_name
        chain = self._method_chain(qualified_name, singleton)
        return self._lookup_in_chain(chain, name, 0, _MAX_ALIAS_HOPS)

    def lookup_constant(self, path: str, namespace: str = "") -> Optional[Tuple[str, ConstantStub]]:
        """Find ``Owner::NAME`` (or a bare ``NAME`` through the lexical scopes)."""
        head, _, name = path.rpartition("::")
        if head or path.startswith("::"):
            owners = [self.resolve(head, namespace)] if head else [TOP_LEVEL_OWNER]
        else:
            parts = namespace.split("::") if namespace else []
            owners = ["::".join(parts[:i]) for i in range(len(parts), 0, -1)] + [TOP_LEVEL_OWNER]

        for owner in owners:
            if not owner or owner not in self._scopes:
                continue
            for ancestor in self._instance_chain(owner):
                indexed = self._scopes.get(ancestor)
                constant = indexed.own_constant(name) if indexed else None
                if constant:
                    return ancestor, constant
        return None

    # ------------------------------------------------------------------
    # Hover
    # ------------------------------------------------------------------

    def hover(self, query: str, namespace: str = "") -> Optional[HoverInfo]:
        """Hover text for ``Foo::Bar``, ``String#upcase``, ``File.open``, ``Errno::ENOENT`` or ``$stdout``."""
        query = query.strip()
        if not query:
            return None

        if query.startswith("$"):
            variable = self._globals.get(query)
            if variable is None:
                return None
            return HoverInfo("global", query, query, variable.doc, self._location_of(variable))

        owner, method_name, singleton = None, None, False
        if "#" in query:
            owner, _, method_name = query.partition("#")
        elif "." in query.lstrip("."):
            owner, _, method_name = query.rpartition(".")
            singleton = True

        if method_name:
            try:
                match = self.lookup_method(owner, method_name, singleton, namespace)
            except IndexLookupError:
                return None
            if match is None:
                return None
            title = match.display_name
            if match.alias_of:
                title += f" (alias of {match.alias_of})"
            return HoverInfo("method", title, f"def {match.header}", match.doc,
                             self._location_of(match.alias or match.method))

        qualified_name = self.resolve(query, namespace)
        if qualified_name:
            indexed = self._scopes[qualified_name]
            signature = f"{indexed.kind} {qualified_name}"
            superclass = self.superclass_of(qualified_name) if indexed.superclass else None
            if superclass:
                signature += f" < {superclass}"
            return HoverInfo(indexed.kind, qualified_name, signature, indexed.doc, indexed.location)

        found = self.lookup_constant(query, namespace)
        if found:
            owner, constant = found
            title = constant.name if owner == TOP_LEVEL_OWNER else f"{owner}::{constant.name}"
            return HoverInfo("constant", title, f"{title} = {constant.value}", constant.doc,
                             self._location_of(constant))
        return None

    def definition(self, query: str, namespace: str = "") -> Optional[Location]:
        """``(path, line)`` where the scope, method, constant or global named by ``query`` is declared."""
        info = self.hover(query, namespace)
        return info.location if info else None

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def complete(self, owner: str, prefix: str = "", singleton: bool = False,
                 include_private: bool = False, limit: Optional[int] = None,
                 namespace: str = "") -> List[CompletionItem]:
        """Methods callable on ``owner`` (instances, or the class itself with ``singleton``)."""
        qualified_name = self.scope(owner, namespace).qualified_name
        seen = set()
        items = []
        for depth, entry in enumerate(self._method_chain(qualified_name, singleton)):
            indexed = self._scopes.get(entry.name)
            if indexed is None:
                continue
            for method in indexed.methods:
                if method.singleton != entry.singleton or method.name in seen:
                    continue
                seen.add(method.name)
                effective = indexed.own_method(method.name, entry.singleton)
                if effective.visibility == Visibility.PRIVATE and not include_private:
                    continue
                if _matches(method.name, prefix):
                    items.append(CompletionItem(
                        method.name, "method", effective.render_header(entry.name), entry.name, depth))
            separator = "." if entry.singleton else "#"
            for alias in indexed.aliases:
                if alias.singleton != entry.singleton or alias.new_name in seen:
                    continue
                seen.add(alias.new_name)
                if _matches(alias.new_name, prefix):
                    items.append(CompletionItem(
                        alias.new_name, "alias", f"alias of {entry.name}{separator}{alias.old_name}", entry.name, depth))
        return _rank(items, prefix, limit)

    def complete_constant(self, prefix: str = "", namespace: str = "", limit: Optional[int] = None) -> List[CompletionItem]:
        """Classes, modules and constants visible from ``namespace`` that match ``prefix``."""
        if "::" in prefix:
            head, _, partial = prefix.rpartition("::")
            if head:
                base = self.resolve(head, namespace)
                containers = [(base, 0)] if base else []
            else:
                containers = [("", 0)]
            label_prefix = prefix[: len(prefix) - len(partial)]
        else:
            partial = prefix
            parts = namespace.split("::") if namespace else []
            containers = [("::".join(parts[:i]), len(parts) - i) for i in range(len(parts), -1, -1)]
            label_prefix = ""

        seen = set()
        items = []
        for container, distance in containers:
            for child in self._children.get(container, []):
                short = child.rsplit("::", 1)[-1]
                if short in seen:
                    continue
                seen.add(short)
                if _matches(short, partial):
                    items.append(CompletionItem(
                        label_prefix + short, self._scopes[child].kind, child, container, distance))
            indexed = self._scopes.get(container or TOP_LEVEL_OWNER)
            if indexed is None:
                continue
            for constant in indexed.constants:
                if constant.name in seen:
                    continue
                seen.add(constant.name)
                if _matches(constant.name, partial):
                    detail = f"{indexed.qualified_name}::{constant.name}" if container else constant.name
                    items.append(CompletionItem(
                        label_prefix + constant.name, "constant", detail, indexed.qualified_name, distance))

        return _rank(items, label_prefix + partial, limit)

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def namespaces(self, root: str = "") -> Dict[str, dict]:
        """Nested ``{name: {child: {...}}}`` tree of scopes under ``root``."""
        return {
            child.rsplit("::", 1)[-1]: self.namespaces(child)
            for child in sorted(self._children.get(root, []))
        }

    def stats(self) -> Dict[str, int]:
        scopes = list(self._scopes.values())
        methods = [m for s in scopes for m in s.methods]
        return {
            "files": len(self.files),
            "classes": sum(1 for s in scopes if s.kind == "class"),
            "modules": sum(1 for s in scopes if s.kind == "module"),
            "methods": len(methods),
            "instance_methods": sum(1 for m in methods if not m.singleton),
            "singleton_methods": sum(1 for m in methods if m.singleton),
            "constants": sum(len(s.constants) for s in scopes),
            "aliases": sum(len(s.aliases) for s in scopes),
            "globals": len(self._globals),
        }
