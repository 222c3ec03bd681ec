"""JSON export of a loaded stub set."""
import gzip
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from rbstubs import __version__
from .index import IndexedScope, StubIndex
from .loader import StubSet, write_stub_bytes
from .model import MethodStub


logger = logging.getLogger(__name__)


def _method_to_dict(method: MethodStub) -> Dict[str, Any]:
    return {
        "name": method.name,
        "singleton": method.singleton,
        "visibility": method.visibility.value,
        "signature": method.signature.render(),
        "arity": method.signature.arity,
        "parameters": [
            {"name": p.name, "kind": p.kind.value, "default": p.default}
            for p in method.signature.parameters
        ],
        "doc": "\n".join(method.doc),
    }


def _scope_to_dict(scope: IndexedScope) -> Dict[str, Any]:
    return {
        "kind": scope.kind,
        "superclass": scope.superclass,
        "includes": list(scope.includes),
        "extends": list(scope.extends),
        "prepends": list(scope.prepends),
        "doc": "\n".join(scope.doc),
        "methods": [_method_to_dict(m) for m in scope.methods],
        "aliases": [{"name": a.new_name, "target": a.old_name, "singleton": a.singleton} for a in scope.aliases],
        "constants": [
            {"name": c.name, "value": c.value, "doc": "\n".join(c.doc)}
            for c in scope.constants
        ],
        "sources": [os.path.basename(path) for path in scope.sources],
    }


def stub_set_to_dict(stub_set: StubSet, index: Optional[StubIndex] = None) -> Dict[str, Any]:
    index = index or StubIndex.from_stub_set(stub_set)
    stats = index.stats()
    return {
        "version": str(stub_set.version) if stub_set.version else None,
        "metadata": {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "generator_version": __version__,
            "class_count": stats["classes"] + stats["modules"],
            "method_count": stats["methods"],
            "constant_count": stats["constants"],
            "sources": [os.path.basename(f.path) for f in stub_set.files],
            "warnings": [str(e) for e in stub_set.errors],
        },
        "classes": {scope.qualified_name: _scope_to_dict(scope) for scope in index.scopes()},
        "globals": {
            g.name: {"value": g.value, "doc": "\n".join(g.doc)} for g in index.globals()
        },
    }


def write_export(stub_set: StubSet, path: str, compress: Optional[bool] = None) -> str:
    """Write the export to ``path`` atomically; gzip when ``compress`` or the path ends in ``.gz``.

    Raises:
        LoaderError: If the file cannot be written.
    """
    if compress is None:
        compress = str(path).endswith(".gz")
    data = json.dumps(stub_set_to_dict(stub_set), ensure_ascii=False, indent=2).encode("utf-8")
    if compress:
        data = gzip.compress(data)

    write_stub_bytes(path, data)
    logger.info("Wrote %d bytes to %s", len(data), path)
    return str(path)
