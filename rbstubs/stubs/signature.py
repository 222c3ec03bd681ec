"""Parameter list parsing for ``def`` declarations."""
import re
from typing import List

from rbstubs.utils.exceptions import SignatureError
from .model import KEYWORD_KINDS, Parameter, ParameterKind, Signature


_IDENT = r'[a-z_][A-Za-z0-9_]*'
_KEYWORD = re.compile(rf'^({_IDENT}):(?!:)\s*(.*)$', re.DOTALL)
_OPTIONAL = re.compile(rf'^({_IDENT})\s*=\s*(.+)$', re.DOTALL)
_REQUIRED = re.compile(rf'^{_IDENT}$')
_SPLAT_NAME = re.compile(rf'^(?:{_IDENT})?$')

_OPENERS = {"(": ")", "[": "]", "{": "}"}

# Canonical order of parameter kinds in a Ruby parameter list
_RANK = {
    ParameterKind.REQUIRED: 0,
    ParameterKind.OPTIONAL: 1,
    ParameterKind.REST: 2,
    ParameterKind.POST: 3,
    ParameterKind.KEYWORD: 4,
    ParameterKind.KEYWORD_OPTIONAL: 4,
    ParameterKind.KEYWORD_REST: 5,
    ParameterKind.NO_KEYWORDS: 5,
    ParameterKind.BLOCK: 6,
    ParameterKind.FORWARD: 6,
}


def split_parameters(text: str) -> List[str]:
    """Split a parameter list on top-level commas.

    Brackets and quoted strings (with backslash escapes) are kept intact,
    so defaults such as ``{}``, ``[1, 2]`` or ``"a,b"`` survive. ``$``
    and the character after it form one token, which keeps special
    globals like ``$,``, ``$;`` and ``$"`` whole.

    Raises:
        SignatureError: On unbalanced brackets or an unterminated string.
    """
    pieces = []
    current = []
    stack = []
    quote = None
    escaped = False

    chars = iter(text)
    for ch in chars:
        if quote:
            current.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == quote:
                quote = None
            continue
        if ch == "$":
            current.append(ch)
            current.append(next(chars, ""))
            continue
        if ch in ("'", '"'):
            quote = ch
        elif ch in _OPENERS:
            stack.append(_OPENERS[ch])
        elif ch in _OPENERS.values():
            if not stack or stack.pop() != ch:
                raise SignatureError(f"Unbalanced '{ch}' in parameter list: {text}")
        elif ch == "," and not stack:
            pieces.append("".join(current).strip())
            current = []
            continue
        current.append(ch)

    if quote:
        raise SignatureError(f"Unterminated string in parameter list: {text}")
    if stack:
        raise SignatureError(f"Missing '{stack[-1]}' in parameter list: {text}")

    tail = "".join(current).strip()
    if pieces or tail:
        pieces.append(tail)
    return pieces


def _parse_parameter(piece: str, after_optional: bool) -> Parameter:
    if not piece:
        raise SignatureError("Empty parameter")
    if piece == "...":
        return Parameter("", ParameterKind.FORWARD)
    if piece.replace(" ", "") == "**nil":
        return Parameter("", ParameterKind.NO_KEYWORDS)

    for marker, kind in (("**", ParameterKind.KEYWORD_REST), ("*", ParameterKind.REST), ("&", ParameterKind.BLOCK)):
        if piece.startswith(marker):
            name = piece[len(marker):].strip()
            if not _SPLAT_NAME.match(name):
                raise SignatureError(f"Invalid parameter: {piece}")
            return Parameter(name, kind)

    match = _KEYWORD.match(piece)
    if match:
        default = match.group(2).strip()
        if default:
            return Parameter(match.group(1), ParameterKind.KEYWORD_OPTIONAL, default)
        return Parameter(match.group(1), ParameterKind.KEYWORD)

    match = _OPTIONAL.match(piece)
    if match:
        return Parameter(match.group(1), ParameterKind.OPTIONAL, match.group(2).strip())

    # Destructuring parameters such as "(key, value)" are positional
    if _REQUIRED.match(piece) or (piece.startswith("(") and piece.endswith(")")):
        return Parameter(piece, ParameterKind.POST if after_optional else ParameterKind.REQUIRED)

    raise SignatureError(f"Invalid parameter: {piece}")


def parse_signature(text: str) -> Signature:
    """Parse the text between the parentheses of a ``def`` header."""
    parameters = []
    after_optional = False
    for piece in split_parameters(text or ""):
        parameter = _parse_parameter(piece, after_optional)
        if parameter.kind in (ParameterKind.OPTIONAL, ParameterKind.REST):
            after_optional = True
        parameters.append(parameter)
    return Signature(parameters)


def _label(parameter: Parameter) -> str:
    kind = parameter.kind.value.replace("_", " ")
    return f"{kind} parameter '{parameter.render()}'"


def check_signature(signature: Signature) -> List[str]:
    """Return the problems that make a parameter list invalid Ruby (empty when valid)."""
    problems = []
    params = signature.parameters

    seen = set()
    for p in params:
        if not p.name or p.name.startswith("_") or p.name.startswith("("):
            continue
        if p.name in seen:
            problems.append(f"duplicate parameter name '{p.name}'")
        seen.add(p.name)

    if signature.count(ParameterKind.REST) > 1:
        problems.append("more than one rest parameter")
    if signature.count(ParameterKind.KEYWORD_REST, ParameterKind.NO_KEYWORDS) > 1:
        problems.append("more than one keyword rest parameter")
    if signature.count(ParameterKind.BLOCK) > 1:
        problems.append("more than one block parameter")
    if signature.count(ParameterKind.FORWARD) > 1:
        problems.append("more than one '...' parameter")

    # Compare each parameter against the highest-ranked one before it
    highest = None
    for p in params:
        if highest is not None:
            if highest.kind in (ParameterKind.BLOCK, ParameterKind.FORWARD):
                problems.append(f"{_label(p)} after {_label(highest)}")
            elif _RANK[p.kind] < _RANK[highest.kind]:
                problems.append(f"{_label(p)} after {_label(highest)}")
        if highest is None or _RANK[p.kind] >= _RANK[highest.kind]:
            highest = p

    if signature.count(ParameterKind.FORWARD) and signature.count(ParameterKind.REST, ParameterKind.BLOCK, *KEYWORD_KINDS):
        problems.append("'...' cannot be combined with rest, keyword or block parameters")

    if signature.count(ParameterKind.NO_KEYWORDS) and signature.count(*KEYWORD_KINDS):
        problems.append("'**nil' cannot be combined with keyword parameters")

    return problems
