"""
Source transformer for guest snippets.

Turns author-style JavaScript (ES module syntax, CommonJS ``require``,
synchronous ``fs`` calls, positional filesystem calls, light TypeScript and a
wrapping IIFE) into code the sandbox context runs directly.

Stages rewrite the raw text in a fixed order:

1. remove ``import`` statements
2. normalize ``export`` forms
3. remove ``require(...)`` statements
4. replace synchronous ``fs`` primitives with a run-time guidance error
5. rewrite positional ``filesystem`` calls to the object form
6. strip single-line type annotations and declarations
7. unwrap a sole top-level IIFE

The sequence is repeated until the text stops changing, so a later stage
exposing input for an earlier one still converges.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable

from ..core.logging import get_logger
from .scanner import (
    Region,
    argument_spans,
    find_closing,
    is_code_at,
    scan,
)

logger = get_logger(__name__)

MAX_PASSES = 10

PRELUDE_MARKER = "/* codemode:path-wrapper */"

# Stage 1: imports
_IMPORT_FROM = re.compile(
    r"^[ \t]*import\s+(?:type\s+)?[^;'\"`]*?\s*\bfrom\s*(['\"])[^'\"\n]+\1[ \t]*;?[ \t]*",
    re.MULTILINE,
)
_IMPORT_BARE = re.compile(r"^[ \t]*import\s*(['\"])[^'\"\n]+\1[ \t]*;?[ \t]*", re.MULTILINE)

# Stage 2: exports
_EXPORT_DEFAULT = re.compile(r"(^|[;}])([ \t]*)export\s+default\s+", re.MULTILINE)
_EXPORT_LIST = re.compile(
    r"(^|[;}])[ \t]*export\s*(?:type\s*)?\{[^}]*\}\s*(?:from\s*(['\"])[^'\"\n]+\2)?[ \t]*;?[ \t]*",
    re.MULTILINE,
)
_EXPORT_STAR = re.compile(
    r"(^|[;}])[ \t]*export\s*\*\s*(?:as\s+[\w$]+\s+)?from\s*(['\"])[^'\"\n]+\2[ \t]*;?[ \t]*",
    re.MULTILINE,
)
_EXPORT_DECL = re.compile(
    r"(^|[;}])([ \t]*)export\s+"
    r"(?=(?:const|let|var|function|async|class|type|interface|enum|declare|abstract)\b)",
    re.MULTILINE,
)

# Stage 3: require
_REQUIRE_DECL = re.compile(
    r"^[ \t]*(?:const|let|var)\s+[^=;\n]+?=\s*require\s*\(\s*(['\"`])[^'\"`\n]+\1\s*\)"
    r"(?:\s*\.\s*[\w$]+)*[ \t]*(?:;|$)[ \t]*",
    re.MULTILINE,
)
_REQUIRE_BARE = re.compile(
    r"^[ \t]*require\s*\(\s*(['\"`])[^'\"`\n]+\1\s*\)[ \t]*(?:;|$)[ \t]*",
    re.MULTILINE,
)

# Stage 4: synchronous fs
_READ_HINT = "await filesystem.readFile({ path })"
_WRITE_HINT = "await filesystem.writeFile({ path, content })"
_SEARCH_HINT = "await filesystem.searchFiles({ path, pattern })"

SYNC_FS_GUIDANCE = {
    "readFileSync": _READ_HINT,
    "writeFileSync": _WRITE_HINT,
    "appendFileSync": _WRITE_HINT,
    "existsSync": _SEARCH_HINT,
    "statSync": _SEARCH_HINT,
    "readdirSync": _SEARCH_HINT,
    "mkdirSync": _WRITE_HINT + " (parent directories are created automatically)",
    "unlinkSync": _WRITE_HINT + " (deleting files is not supported)",
    "rmSync": _WRITE_HINT + " (deleting files is not supported)",
}

_SYNC_FS = re.compile(
    r"(?<![\w$.])(?:fs|fsSync|require\s*\(\s*(['\"])(?:node:)?fs\1\s*\))\s*\.\s*("
    + "|".join(SYNC_FS_GUIDANCE)
    + r")\s*\("
)

# Stage 5: positional filesystem calls
_LEGACY_CALL = re.compile(r"(?<![\w$.])filesystem\s*\.\s*(readFile|writeFile|searchFiles)\s*\(")
_LEGACY_KEYS = {
    "readFile": ("path",),
    "writeFile": ("path", "content"),
    "searchFiles": ("path", "pattern", "recursive"),
}

_PRELUDE_TEMPLATE = (
    "const filesystem = " + PRELUDE_MARKER + " ((fs, root) => { "
    "const resolve = (p) => { "
    'if (typeof p !== "string" || p.startsWith("/") || /^[A-Za-z]:/.test(p)) { return p; } '
    'return root.replace(/\\/+$/, "") + "/" + p.replace(/^\\.\\//, ""); }; '
    "const wrap = (name) => (args) => { "
    'if (args && typeof args === "object") { args = Object.assign({}, args, { path: resolve(args.path) }); } '
    "return fs[name](args); }; "
    'return { readFile: wrap("readFile"), writeFile: wrap("writeFile"), searchFiles: wrap("searchFiles") }; '
    "})(globalThis.filesystem, {root});"
)

# Stage 6: types
_VAR_ANNOTATION = re.compile(
    r"\b(const|let|var)(\s+[A-Za-z_$][\w$]*)\s*:\s*(?:[^=;\n]|=>)+?\s*=(?!>)"
)
_UNINITIALIZED_ANNOTATION = re.compile(r"\b(let|var)(\s+[A-Za-z_$][\w$]*)\s*:\s*[^=;\n]+?\s*;")
_AS_CAST = re.compile(
    r"(?<=[\w$)\]])[ \t]+as[ \t]+(?:const|[A-Za-z_$][\w$.]*(?:<[^<>\n]*>)?(?:\[\])*)"
    r"(?=[ \t]*(?:[);,\]}]|$))",
    re.MULTILINE,
)
_FUNCTION_GENERICS = re.compile(r"\b(function\s*\*?\s*[\w$]*)\s*<[^<>()\n]*>\s*\(")
# Single-line only: `type X = {` and unions continued on the next line are kept.
_TYPE_ALIAS = re.compile(
    r"^[ \t]*(?:declare\s+)?type\s+[A-Za-z_$][\w$]*\s*(?:<[^>\n]*>)?[ \t]*=[ \t]*"
    r"(?:[^\s;{}]|\{[^{}\n]*\})(?:[^;\n{}]|\{[^{}\n]*\})*;?[ \t]*$(?!\n[ \t]*[|&])",
    re.MULTILINE,
)
_INTERFACE = re.compile(
    r"^[ \t]*(?:declare\s+)?interface\s+[A-Za-z_$][\w$]*\s*(?:<[^>\n]*>)?"
    r"(?:\s+extends\s+[^{\n]+)?\s*\{[^{}\n]*\}[ \t]*;?[ \t]*$",
    re.MULTILINE,
)
_SIGNATURE_TAIL = re.compile(
    r"[ \t]*(?::[ \t]*(?=[\w$(\[])(?P<type>(?:[^{};=\n]|=>)+?)[ \t]*)?(?=\{|=>)"
)
_MODIFIERS = re.compile(r"^(?:(?:public|private|protected|readonly|override)\s+)+(?=[\w${\[.])")
_PARAM_NAME = re.compile(r"^(?:\.\.\.)?(?:[A-Za-z_$][\w$]*|\{.*\}|\[.*\])\s*\??$", re.DOTALL)

# Stage 7: IIFE
_IIFE_HEAD = re.compile(
    r"(?:(?:await|return)\s+)?\(\s*(?:async\s*)?"
    r"(?:\(\s*\)\s*=>|function\s*[\w$]*\s*\(\s*\))\s*\{"
)
_IIFE_TAIL = re.compile(r"\s*\)\s*\(\s*\)\s*;?\s*")


def _top_level_index(text: str, target: str, start: int = 0) -> int:
    """
    Index of *target* outside brackets, or -1.

    When looking for ``:`` an ``=`` found first means the parameter has a
    default value and no annotation, so -1 is returned.
    """
    depth = 0
    i = start
    while i < len(text):
        ch = text[i]
        if ch == "=" and text.startswith(">", i + 1):
            i += 2
            continue
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
        elif depth == 0 and ch == target:
            return i
        elif depth == 0 and target == ":" and ch == "=":
            return -1
        i += 1
    return -1


def strip_parameter(param: str) -> str:
    """Drop the access modifier and type annotation from one parameter."""
    stripped = _MODIFIERS.sub("", param)
    colon = _top_level_index(stripped, ":")
    if colon < 0:
        return stripped
    name = stripped[:colon].rstrip()
    if not _PARAM_NAME.match(name):
        return param
    name = name.rstrip("?").rstrip()
    default = _top_level_index(stripped, "=", colon + 1)
    if default < 0:
        return name
    return f"{name} = {stripped[default + 1 :].strip()}"


class SourceTransformer:
    """
    Rewrites guest snippets into directly runnable code.

    Args:
        projects_root: Root that relative filesystem paths resolve against
        region_aware: Only rewrite matches that start in a code region
    """

    def __init__(self, projects_root: str = "/projects", region_aware: bool = False):
        self.projects_root = projects_root
        self.region_aware = region_aware
        self._stages: list[Callable[[str], str]] = [
            self.remove_imports,
            self.normalize_exports,
            self.remove_requires,
            self.replace_sync_fs,
            self.rewrite_legacy_calls,
            self.strip_types,
            self.unwrap_iife,
        ]

    @property
    def prelude(self) -> str:
        return _PRELUDE_TEMPLATE.replace("{root}", json.dumps(self.projects_root))

    def transform(self, source: str) -> str:
        """Apply every stage until the snippet stops changing."""
        current = source
        for passes in range(1, MAX_PASSES + 1):
            updated = current
            for stage in self._stages:
                updated = stage(updated)
            if updated == current:
                break
            current = updated
        logger.debug(f"Transformed snippet in {passes} pass(es)")
        return current

    def _sub(self, pattern: re.Pattern[str], repl: str | Callable, source: str) -> str:
        if not self.region_aware:
            return pattern.sub(repl, source)

        regions = scan(source)

        def guarded(match: re.Match[str]) -> str:
            text = match.group(0)
            offset = match.start() + len(text) - len(text.lstrip())
            if offset < len(source) and not is_code_at(regions, offset):
                return text
            return repl(match) if callable(repl) else match.expand(repl)

        return pattern.sub(guarded, source)

    # Stage 1

    def remove_imports(self, source: str) -> str:
        source = self._sub(_IMPORT_FROM, "", source)
        return self._sub(_IMPORT_BARE, "", source)

    # Stage 2

    def normalize_exports(self, source: str) -> str:
        source = self._sub(_EXPORT_LIST, r"\1", source)
        source = self._sub(_EXPORT_STAR, r"\1", source)
        source = self._sub(_EXPORT_DEFAULT, r"\1\2", source)
        return self._sub(_EXPORT_DECL, r"\1\2", source)

    # Stage 3

    def remove_requires(self, source: str) -> str:
        source = self._sub(_REQUIRE_DECL, "", source)
        return self._sub(_REQUIRE_BARE, "", source)

    # Stage 4

    def replace_sync_fs(self, source: str) -> str:
        def thrower(match: re.Match[str]) -> str:
            primitive = match.group(2)
            message = (
                f"fs.{primitive} is not available in the sandbox. "
                f"Use {SYNC_FS_GUIDANCE[primitive]} instead."
            )
            return f"(() => {{ throw new Error({json.dumps(message)}); }})("

        return self._sub(_SYNC_FS, thrower, source)

    # Stage 5

    def rewrite_legacy_calls(self, source: str) -> str:
        """Positional ``filesystem`` calls become object calls; calls quoted in literals are left alone."""
        regions: list[Region] | None = None
        parts: list[str] = []
        last = 0
        for match in _LEGACY_CALL.finditer(source):
            if match.start() < last:
                continue
            if regions is None:
                regions = scan(source)
            open_index = match.end() - 1
            if not is_code_at(regions, open_index):
                continue
            spans, close = argument_spans(source, open_index, regions)
            if close < 0 or not spans:
                continue
            args = [source[start:end] for start, end in spans]
            if not args[0] or args[0].startswith("{"):
                continue
            if any(arg.startswith("...") for arg in args):
                continue

            keys = _LEGACY_KEYS[match.group(1)]
            fields = [f"{key}: {value}" for key, value in zip(keys, args) if value]
            parts.append(source[last : open_index + 1])
            parts.append("{ " + ", ".join(fields) + " })")
            last = close + 1

        if not parts:
            return source
        parts.append(source[last:])
        rewritten = "".join(parts)
        if PRELUDE_MARKER not in rewritten:
            rewritten = self.prelude + "\n" + rewritten
        return rewritten

    # Stage 6

    def strip_types(self, source: str) -> str:
        source = self._sub(_TYPE_ALIAS, "", source)
        source = self._sub(_INTERFACE, "", source)
        source = self._sub(_VAR_ANNOTATION, r"\1\2 =", source)
        source = self._sub(_UNINITIALIZED_ANNOTATION, r"\1\2;", source)
        source = self._sub(_FUNCTION_GENERICS, r"\1(", source)
        source = self._strip_signatures(source)
        return self._sub(_AS_CAST, "", source)

    def _strip_signatures(self, source: str) -> str:
        """Strip parameter and return annotations from function signatures.

        A parenthesized list counts as a signature when it is followed on the
        same line by ``{`` or ``=>``, optionally after a ``: Type``.
        """
        regions = scan(source)
        parts: list[str] = []
        last = 0
        i = 0
        while True:
            open_index = source.find("(", i)
            if open_index < 0:
                break
            if not is_code_at(regions, open_index):
                i = open_index + 1
                continue
            spans, close = argument_spans(source, open_index, regions)
            if close < 0:
                i = open_index + 1
                continue
            tail = _SIGNATURE_TAIL.match(source, close + 1)
            if tail is None:
                i = open_index + 1
                continue

            for start, end in spans:
                param = source[start:end]
                stripped = strip_parameter(param)
                if stripped != param:
                    parts.append(source[last:start])
                    parts.append(stripped)
                    last = end
            if tail.group("type"):
                parts.append(source[last : close + 1])
                parts.append(" ")
                last = tail.end()
            i = max(close + 1, tail.end())

        if not parts:
            return source
        parts.append(source[last:])
        return "".join(parts)

    # Stage 7

    def unwrap_iife(self, source: str) -> str:
        prefix = ""
        body = source
        if source.startswith("const filesystem = " + PRELUDE_MARKER):
            newline = source.find("\n")
            if newline < 0:
                return source
            prefix, body = source[: newline + 1], source[newline + 1 :]

        while True:
            unwrapped = self._unwrap_once(body)
            if unwrapped is None:
                break
            body = unwrapped
        return prefix + body

    @staticmethod
    def _unwrap_once(body: str) -> str | None:
        text = body.strip()
        head = _IIFE_HEAD.match(text)
        if head is None:
            return None
        brace = head.end() - 1
        regions = scan(text)
        close = find_closing(text, brace, regions)
        if close < 0:
            return None
        tail = _IIFE_TAIL.fullmatch(text, close + 1)
        if tail is None:
            return None
        return text[brace + 1 : close]


_default_transformer = SourceTransformer()


def transform(source: str, projects_root: str = "/projects", region_aware: bool = False) -> str:
    """Transform *source* with a transformer for *projects_root*."""
    if projects_root == "/projects" and not region_aware:
        return _default_transformer.transform(source)
    return SourceTransformer(projects_root, region_aware).transform(source)
