"""
Syntax detectors for guest snippets.

Every predicate runs over the redacted view from :func:`sanitize`, so text
inside strings, templates, regexes and comments can never trigger a match.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import NamedTuple

from .scanner import sanitize

_ANCHOR = r"(?:^|[;}])[ \t]*"

_MODULE_PATTERNS = [
    re.compile(_ANCHOR + r"import\s+(?:type\s+)?[\w$*{]", re.MULTILINE),
    re.compile(_ANCHOR + r'import\s*""', re.MULTILINE),
    re.compile(
        _ANCHOR
        + r"export\s+(?:default|const|let|var|function|async|class|type|interface|enum)\b",
        re.MULTILINE,
    ),
    re.compile(_ANCHOR + r"export\s*[{*]", re.MULTILINE),
]

_PRIMITIVE_TYPES = r"(?:string|number|boolean|any|unknown|void|never|object|bigint|symbol|null|undefined)"
_TYPE_NAME = rf"(?:{_PRIMITIVE_TYPES}|[A-Z][\w$]*)"

_TYPE_PATTERNS = [
    # interface Foo { / interface Foo<T> extends Bar {
    re.compile(
        r"^[ \t]*(?:export\s+)?(?:declare\s+)?interface\s+[A-Za-z_$][\w$]*\s*(?:<[^>\n]*>)?\s*(?:extends\s+[^{\n]+)?\{",
        re.MULTILINE,
    ),
    # type Foo = ...
    re.compile(
        r"^[ \t]*(?:export\s+)?(?:declare\s+)?type\s+[A-Za-z_$][\w$]*\s*(?:<[^>\n]*>)?\s*=",
        re.MULTILINE,
    ),
    # const x: T
    re.compile(r"\b(?:const|let|var)\s+[A-Za-z_$][\w$]*\s*:\s*[A-Za-z_${\[(]"),
    # (x: number / (x?: Foo
    re.compile(rf"\(\s*[A-Za-z_$][\w$]*\??\s*:\s*{_TYPE_NAME}\b"),
    # function f(a, b: T)
    re.compile(r"\bfunction\b[\w$\s]*\([^()]*\b[\w$]+\??\s*:\s*[A-Za-z_$]"),
    # ): Promise<void> { / ): string =>
    re.compile(r"\)\s*:\s*(?!return\b|await\b|new\b)[\w$][\w$<>\[\]|,.\s]*?\s*(?:\{|=>)"),
    # x as Foo
    re.compile(rf"[\w$)\]]\s+as\s+(?:const\b|{_TYPE_NAME}\b)"),
    # new Map<string, number>(
    re.compile(
        r"\b[A-Za-z_$][\w$]*<\s*"
        r"[A-Za-z_$][\w$]*(?:<\s*[A-Za-z_$][\w$]*(?:\[\])*\s*>)?(?:\[\])*"
        r"(?:\s*(?:,|\|(?!\|))\s*[A-Za-z_$][\w$]*(?:<\s*[A-Za-z_$][\w$]*(?:\[\])*\s*>)?(?:\[\])*)*"
        r"\s*>\s*\("
    ),
    re.compile(r"\b(?:private|public|protected|readonly)\s+[A-Za-z_$][\w$]*\s*[:;=,)]"),
    re.compile(r"^[ \t]*(?:export\s+)?(?:const\s+)?enum\s+[A-Za-z_$][\w$]*\s*\{", re.MULTILINE),
]

# Module lines may contain `as` aliases that are not casts.
_MODULE_LINE = re.compile(r"^[ \t]*(?:import|export)\b[^\n]*$", re.MULTILINE)

_MARKUP_PATTERNS = [
    re.compile(
        r"(?<![\w$])<([A-Za-z][\w.]*)(?:\s+[\w:-]+(?:\s*=\s*(?:\"\"|\{[^}\n]*\}))?)*\s*/?>"
    ),
    re.compile(r"</[A-Za-z][\w.]*\s*>"),
    re.compile(r"<>|</>"),
]

_IMPORT_CLAUSE = re.compile(r"\bimport\s+(?:type\s+)?([^;]*?)\s*\bfrom\s*\"\"", re.DOTALL)

_IDENT = re.compile(r"^[A-Za-z_$][\w$]*$")


class CapabilityCall(NamedTuple):
    """A ``<capability>.<method>(`` call site.

    ``first_argument_is_object`` is None when the call has no arguments
    or starts with a spread.
    """

    capability: str
    method: str
    first_argument_is_object: bool | None


def has_module_syntax(source: str) -> bool:
    view = sanitize(source)
    return any(pattern.search(view) for pattern in _MODULE_PATTERNS)


def has_type_syntax(source: str) -> bool:
    view = _MODULE_LINE.sub("", sanitize(source))
    return any(pattern.search(view) for pattern in _TYPE_PATTERNS)


def has_markup_syntax(source: str) -> bool:
    view = sanitize(source)
    return any(pattern.search(view) for pattern in _MARKUP_PATTERNS)


def imported_names(source: str) -> list[str]:
    """Local names bound by the snippet's ``import ... from`` clauses."""
    names: list[str] = []
    for match in _IMPORT_CLAUSE.finditer(sanitize(source)):
        clause = match.group(1)
        braced = re.search(r"\{([^}]*)\}", clause)
        if braced:
            for item in braced.group(1).split(","):
                parts = item.split()
                if parts and parts[0] == "type":
                    parts = parts[1:]
                if not parts:
                    continue
                name = parts[-1] if "as" in parts else parts[0]
                if _IDENT.match(name):
                    names.append(name)
            clause = clause[: braced.start()] + clause[braced.end() :]
        for item in clause.split(","):
            parts = item.split()
            if not parts:
                continue
            name = parts[-1]
            if _IDENT.match(name) and name not in ("as", "type"):
                names.append(name)
    return list(dict.fromkeys(names))


def capability_calls(source: str, capabilities: Iterable[str]) -> list[CapabilityCall]:
    """Every call on one of *capabilities*, in source order."""
    names = "|".join(re.escape(name) for name in capabilities)
    if not names:
        return []
    pattern = re.compile(
        rf"(?<![\w$.])({names})\s*\??\.\s*([A-Za-z_$][\w$]*)\s*\(\s*(\)|\{{|\.\.\.)?"
    )
    calls = []
    for match in pattern.finditer(sanitize(source)):
        opener = match.group(3)
        if opener in (")", "..."):
            is_object = None
        else:
            is_object = opener == "{"
        calls.append(CapabilityCall(match.group(1), match.group(2), is_object))
    return calls
