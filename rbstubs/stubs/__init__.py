from .model import (
    ParameterKind, Parameter, Signature, Visibility,
    MethodStub, ConstantStub, GlobalVariableStub, AliasStub, AttributeStub,
    MixinStub, VisibilityMarker, FreeComment, SingletonClassBlock, ScopeStub, StubFile,
)
from .signature import split_parameters, parse_signature, check_signature
from .lexer import LineKind, StubLexer
from .parser import StubParser, parse_stub, parse_file
from .writer import StubWriter, render_stub
from .validator import Severity, Diagnostic, DiagnosticReport, StubValidator, RULES
from .loader import (
    StubLoader, StubSet, find_stubs_directory, available_versions, stub_files,
    read_stub_text, write_stub_bytes, compress_stub_text, decompress_stub_data, compress_if_beneficial,
)
from .index import StubIndex, IndexedScope, Ancestor, MethodMatch, HoverInfo, CompletionItem
from .export import stub_set_to_dict, write_export

__all__ = [
    "ParameterKind", "Parameter", "Signature", "Visibility",
    "MethodStub", "ConstantStub", "GlobalVariableStub", "AliasStub", "AttributeStub",
    "MixinStub", "VisibilityMarker", "FreeComment", "SingletonClassBlock", "ScopeStub", "StubFile",
    "split_parameters", "parse_signature", "check_signature",
    "LineKind", "StubLexer",
    "StubParser", "parse_stub", "parse_file",
    "StubWriter", "render_stub",
    "Severity", "Diagnostic", "DiagnosticReport", "StubValidator", "RULES",
    "StubLoader", "StubSet", "find_stubs_directory", "available_versions", "stub_files",
    "read_stub_text", "write_stub_bytes", "compress_stub_text", "decompress_stub_data", "compress_if_beneficial",
    "StubIndex", "IndexedScope", "Ancestor", "MethodMatch", "HoverInfo", "CompletionItem",
    "stub_set_to_dict", "write_export",
]
