"""
Outcome classifier for failed executions.

Re-examines the original snippet after a guest failure and turns the raw
error into an author-facing remediation message. Rules run in a fixed order
and a later match replaces the message chosen by an earlier one.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping

from .detectors import (
    capability_calls,
    has_markup_syntax,
    has_module_syntax,
    has_type_syntax,
    imported_names,
)

_UNEXPECTED_TOKEN = re.compile(
    r"Unexpected token|Cannot use import statement|Unexpected reserved word"
)
_MARKUP_ERROR = re.compile(
    r"Unexpected token '<'|Unexpected token <|Unexpected identifier|Invalid or unexpected token"
)
_NOT_DEFINED = re.compile(r"^([A-Za-z_$][\w$]*) is not defined")

CALL_SHAPES = {
    "filesystem": {
        "readFile": "{ path }",
        "writeFile": "{ path, content }",
        "searchFiles": "{ path, pattern, recursive }",
    },
    "bestcase": {
        "saveBestCase": "{ projectName, category, description, files, tags }",
        "loadBestCase": "{ id }",
        "listBestCases": "",
        "searchBestCases": "{ keywords, category, minTotalScore }",
    },
    "guides": {
        "searchGuides": "{ keywords }",
        "loadGuide": "{ id }",
        "combineGuides": "{ ids }",
    },
    "metadata": {
        "analyzeFile": "{ filePath, content }",
        "quickClassify": "{ filePath, content }",
        "healthCheck": "",
    },
}

Rule = Callable[[str, str], "str | None"]


def call_shape(capability: str, method: str) -> str:
    shape = CALL_SHAPES.get(capability, {}).get(method, "{ ... }")
    return f"await {capability}.{method}({shape})"


def _message(cause: str, raw_error: str, before: str, after: str) -> str:
    return f"{cause}\nError: {raw_error}\n\nBefore:\n  {before}\nAfter:\n  {after}"


class OutcomeClassifier:
    """
    Builds remediation messages from a raw guest error.

    Args:
        manifest: Method names per bound capability
    """

    def __init__(self, manifest: Mapping[str, list[str]] | None = None):
        if manifest is None:
            manifest = {name: list(methods) for name, methods in CALL_SHAPES.items()}
        self.manifest = {name: list(methods) for name, methods in manifest.items()}
        self._rules: list[Rule] = [
            self._module_syntax,
            self._markup_syntax,
            self._type_syntax,
            self._unknown_method,
            self._positional_call,
        ]

    def classify(self, raw_error: str, original: str) -> str:
        message = raw_error
        for rule in self._rules:
            remediation = rule(raw_error, original)
            if remediation is not None:
                message = remediation
        return message

    def _module_syntax(self, raw_error: str, original: str) -> str | None:
        matched = bool(_UNEXPECTED_TOKEN.search(raw_error)) and has_module_syntax(original)
        if not matched:
            undefined = _NOT_DEFINED.match(raw_error)
            matched = undefined is not None and undefined.group(1) in imported_names(original)
        if not matched:
            return None
        return _message(
            "Module syntax (import/export) is not supported in the sandbox: "
            "capabilities are already in scope and the last value must be returned.",
            raw_error,
            "import { x } from 'module'; export default x;",
            "const { content } = await filesystem.readFile({ path: 'src/x.js' }); return content;",
        )

    def _markup_syntax(self, raw_error: str, original: str) -> str | None:
        if not (_MARKUP_ERROR.search(raw_error) and has_markup_syntax(original)):
            return None
        return _message(
            "Markup (JSX/HTML/Vue template) cannot appear as code; wrap it in a string.",
            raw_error,
            "const page = <template><div>Hello</div></template>;",
            "const page = `<template><div>Hello</div></template>`;",
        )

    def _type_syntax(self, raw_error: str, original: str) -> str | None:
        if not has_type_syntax(original):
            return None
        return _message(
            "TypeScript type syntax is not supported; the sandbox runs plain JavaScript "
            "(type text inside strings is fine).",
            raw_error,
            "interface Props { id: number }\n  const load = async (id: number): Promise<Props> => { ... }",
            "const load = async (id) => { ... }",
        )

    def _unknown_method(self, raw_error: str, original: str) -> str | None:
        for call in capability_calls(original, self.manifest):
            methods = self.manifest[call.capability]
            if call.method in methods:
                continue
            shapes = "\n  ".join(call_shape(call.capability, m) for m in methods)
            return (
                f"{call.capability}.{call.method} is not a sandbox capability method. "
                f"Available {call.capability} methods: {', '.join(methods)}\n"
                f"Error: {raw_error}\n\nCall shapes:\n  {shapes}"
            )
        return None

    def _positional_call(self, raw_error: str, original: str) -> str | None:
        for call in capability_calls(original, self.manifest):
            if call.method not in self.manifest[call.capability]:
                continue
            if call.first_argument_is_object is not False:
                continue
            return _message(
                f"{call.capability}.{call.method} takes a single object parameter, "
                "not positional arguments.",
                raw_error,
                f"await {call.capability}.{call.method}('value')",
                call_shape(call.capability, call.method),
            )
        return None


def classify(raw_error: str, original: str, manifest: Mapping[str, list[str]] | None = None) -> str:
    """Remediation message for *raw_error*, or *raw_error* when nothing applies."""
    return OutcomeClassifier(manifest).classify(raw_error, original)
