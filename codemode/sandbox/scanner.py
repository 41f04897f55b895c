"""
Region scanner for guest snippets.

Classifies every character of a snippet as code, comment or literal in a
single left-to-right pass. Syntax detection runs over the redacted view built
from these regions, so text inside strings, regexes, templates and comments
never looks like code.

Whether a ``/`` starts a regex or is a division operator is decided from the
last significant code character (and the keyword before it). This is a
heuristic, not an expression grammar: ``a++ / 2`` is read as a regex start.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum


class RegionKind(str, Enum):
    """Kinds of source regions."""

    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    REGEX = "regex"
    TEMPLATE = "template"
    STRING = "string"

    @property
    def is_comment(self) -> bool:
        return self in (RegionKind.LINE_COMMENT, RegionKind.BLOCK_COMMENT)

    @property
    def is_literal(self) -> bool:
        return self in (RegionKind.REGEX, RegionKind.TEMPLATE, RegionKind.STRING)


@dataclass(frozen=True, slots=True)
class Region:
    """A half-open ``[start, end)`` slice of the source with its kind."""

    kind: RegionKind
    start: int
    end: int

    def text(self, source: str) -> str:
        return source[self.start : self.end]


LITERAL_PLACEHOLDER = '""'
COMMENT_PLACEHOLDER = " "

# A "/" after one of these starts a regex literal.
_REGEX_PRECEDERS = frozenset("=([,;:!&|?+-*/%{}<>~^")

# Keywords after which an expression (and so a regex) may start.
_REGEX_KEYWORDS = frozenset(
    {
        "return",
        "typeof",
        "case",
        "do",
        "else",
        "in",
        "of",
        "void",
        "yield",
        "await",
        "delete",
        "throw",
        "new",
        "instanceof",
    }
)

_IN_TEMPLATE = -1

_OPENERS = frozenset("([{")
_CLOSERS = frozenset(")]}")


def _is_ident_char(ch: str) -> bool:
    return ch.isalnum() or ch in "_$"


def _skip_quoted(source: str, i: int) -> int:
    """Return the index after the string literal opening at *i*.

    An unescaped raw newline ends an unterminated string so the rest of the
    snippet is not swallowed.
    """
    quote = source[i]
    n = len(source)
    i += 1
    while i < n:
        ch = source[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if ch == "\n":
            return i
        i += 1
    return n


def _skip_line_comment(source: str, i: int) -> int:
    end = source.find("\n", i)
    return len(source) if end < 0 else end


def _skip_block_comment(source: str, i: int) -> int:
    end = source.find("*/", i + 2)
    return len(source) if end < 0 else end + 2


def _skip_template(source: str, i: int) -> int:
    """Return the index after the template literal opening at *i*.

    The stack holds ``_IN_TEMPLATE`` for template text and a brace depth for
    every open ``${`` expression. Quotes and templates opened inside an
    expression are consumed with the same rules before expression scanning
    resumes.
    """
    n = len(source)
    stack = [_IN_TEMPLATE]
    i += 1
    while i < n:
        ch = source[i]
        if stack[-1] == _IN_TEMPLATE:
            if ch == "\\":
                i += 2
                continue
            if ch == "`":
                stack.pop()
                i += 1
                if not stack:
                    return i
                continue
            if ch == "$" and source.startswith("{", i + 1):
                stack.append(0)
                i += 2
                continue
            i += 1
            continue

        if ch in "'\"":
            i = _skip_quoted(source, i)
            continue
        if ch == "`":
            stack.append(_IN_TEMPLATE)
            i += 1
            continue
        if ch == "/" and source.startswith("*", i + 1):
            i = _skip_block_comment(source, i)
            continue
        if ch == "/" and source.startswith("/", i + 1):
            i = _skip_line_comment(source, i)
            continue
        if ch == "{":
            stack[-1] += 1
        elif ch == "}":
            if stack[-1] == 0:
                stack.pop()
            else:
                stack[-1] -= 1
        i += 1
    return n


def _skip_regex(source: str, i: int) -> int:
    """Return the index after the regex literal opening at *i*, or -1.

    -1 means the candidate hit a line end before closing and is not a regex.
    """
    n = len(source)
    in_class = False
    i += 1
    while i < n:
        ch = source[i]
        if ch == "\\":
            if source.startswith("\n", i + 1):
                return -1
            i += 2
            continue
        if ch == "\n":
            return -1
        if in_class:
            if ch == "]":
                in_class = False
        elif ch == "[":
            in_class = True
        elif ch == "/":
            i += 1
            while i < n and source[i].isalpha():
                i += 1
            return i
        i += 1
    return -1


class _Scanner:
    def __init__(self, source: str):
        self.source = source
        self.regions: list[Region] = []
        self.code_start = 0
        self.last_significant = -1
        self.last_was_literal = False

    def _emit(self, kind: RegionKind, start: int, end: int) -> None:
        if self.code_start < start:
            self.regions.append(Region(RegionKind.CODE, self.code_start, start))
        self.regions.append(Region(kind, start, end))
        self.code_start = end
        if kind.is_literal:
            self.last_was_literal = True

    def _regex_allowed(self) -> bool:
        if self.last_was_literal:
            return False
        if self.last_significant < 0:
            return True
        ch = self.source[self.last_significant]
        if ch in _REGEX_PRECEDERS:
            return True
        if _is_ident_char(ch):
            start = self.last_significant
            while start > 0 and _is_ident_char(self.source[start - 1]):
                start -= 1
            return self.source[start : self.last_significant + 1] in _REGEX_KEYWORDS
        return False

    def run(self) -> list[Region]:
        source = self.source
        n = len(source)
        i = 0
        while i < n:
            ch = source[i]
            nxt = source[i + 1] if i + 1 < n else ""
            if ch == "/" and nxt == "/":
                end = _skip_line_comment(source, i)
                self._emit(RegionKind.LINE_COMMENT, i, end)
            elif ch == "/" and nxt == "*":
                end = _skip_block_comment(source, i)
                self._emit(RegionKind.BLOCK_COMMENT, i, end)
            elif ch in "'\"":
                end = _skip_quoted(source, i)
                self._emit(RegionKind.STRING, i, end)
            elif ch == "`":
                end = _skip_template(source, i)
                self._emit(RegionKind.TEMPLATE, i, end)
            elif ch == "/" and self._regex_allowed() and (end := _skip_regex(source, i)) > 0:
                self._emit(RegionKind.REGEX, i, end)
            else:
                if not ch.isspace():
                    self.last_significant = i
                    self.last_was_literal = False
                i += 1
                continue
            i = end

        if self.code_start < n:
            self.regions.append(Region(RegionKind.CODE, self.code_start, n))
        return self.regions


def scan(source: str) -> list[Region]:
    """Split *source* into contiguous, ordered regions covering all of it."""
    return _Scanner(source).run()


def sanitize(source: str, regions: list[Region] | None = None) -> str:
    """
    Build the redacted view of *source*.

    Code is copied unchanged. Comments become one space and literals become
    ``""``; newlines inside a redacted region are re-emitted so the line
    count of the result equals the line count of the input.
    """
    if regions is None:
        regions = scan(source)
    parts: list[str] = []
    for region in regions:
        text = region.text(source)
        if region.kind is RegionKind.CODE:
            parts.append(text)
            continue
        placeholder = COMMENT_PLACEHOLDER if region.kind.is_comment else LITERAL_PLACEHOLDER
        parts.append(placeholder + "\n" * text.count("\n"))
    return "".join(parts)


def count_newlines(text: str) -> int:
    return text.count("\n")


def region_at(regions: list[Region], index: int) -> Region | None:
    """Return the region containing *index*, if any."""
    lo, hi = 0, len(regions)
    while lo < hi:
        mid = (lo + hi) // 2
        region = regions[mid]
        if index < region.start:
            hi = mid
        elif index >= region.end:
            lo = mid + 1
        else:
            return region
    return None


def is_code_at(regions: list[Region], index: int) -> bool:
    region = region_at(regions, index)
    return region is not None and region.kind is RegionKind.CODE


def _code_positions(source: str, regions: list[Region], start: int) -> Iterator[int]:
    for region in regions:
        if region.end <= start or region.kind is not RegionKind.CODE:
            continue
        yield from range(max(region.start, start), region.end)


def find_closing(source: str, open_index: int, regions: list[Region] | None = None) -> int:
    """Index of the bracket closing the one at *open_index*, or -1."""
    if regions is None:
        regions = scan(source)
    depth = 0
    for pos in _code_positions(source, regions, open_index):
        ch = source[pos]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return pos
    return -1


def argument_spans(
    source: str, open_index: int, regions: list[Region] | None = None
) -> tuple[list[tuple[int, int]], int]:
    """
    Locate the top-level arguments of the ``(`` at *open_index*.

    Returns whitespace-trimmed ``(start, end)`` spans and the index of the
    closing ``)``, or ``([], -1)`` when the parentheses are unbalanced.
    """
    if regions is None:
        regions = scan(source)
    depth = 0
    boundaries = [open_index]
    for pos in _code_positions(source, regions, open_index):
        ch = source[pos]
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                boundaries.append(pos)
                spans = []
                for k in range(len(boundaries) - 1):
                    start, end = boundaries[k] + 1, boundaries[k + 1]
                    while start < end and source[start].isspace():
                        start += 1
                    while end > start and source[end - 1].isspace():
                        end -= 1
                    spans.append((start, end))
                if len(spans) == 1 and spans[0][0] == spans[0][1]:
                    spans = []
                return spans, pos
        elif ch == "," and depth == 1:
            boundaries.append(pos)
    return [], -1


def split_arguments(
    source: str, open_index: int, regions: list[Region] | None = None
) -> tuple[list[str], int]:
    """Like :func:`argument_spans` but returns the argument texts."""
    spans, close = argument_spans(source, open_index, regions)
    return [source[start:end] for start, end in spans], close
