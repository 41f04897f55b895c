"""
Metadata analyzer exposed to guest code as ``metadata``.

A pattern-based stand-in for an LLM-backed analyzer: it classifies a source
file from its path and content without any model call.
"""

from __future__ import annotations

import re
from typing import Any, Callable

from ..core.exceptions import CapabilityError

_FRAMEWORK_MARKERS = {
    "vue": re.compile(r"from\s+['\"]vue['\"]|<template>|defineComponent|defineProps"),
    "nuxt3": re.compile(r"#app|#imports|useNuxtApp|useFetch|useAsyncData|definePageMeta"),
    "pinia": re.compile(r"from\s+['\"]pinia['\"]|defineStore"),
    "react": re.compile(r"from\s+['\"]react['\"]|useState\(|useEffect\("),
    "vueuse": re.compile(r"@vueuse/"),
    "lodash": re.compile(r"from\s+['\"]lodash"),
}

_API_MARKERS = [
    ("grpc", re.compile(r"grpc|connect-web|_pb['\"]|createPromiseClient|createClient\(")),
    ("openapi", re.compile(r"openapi|swagger", re.IGNORECASE)),
    ("rest", re.compile(r"\bfetch\(|\$fetch\(|axios|useFetch\(")),
]

_COMPOSABLE_CALL = re.compile(r"\b(use[A-Z][\w$]*)\s*\(")
_COMPONENT_TAG = re.compile(r"<([A-Z][\w]*|[a-z]+-[\w-]+)[\s/>]")
_TRY = re.compile(r"\btry\s*\{")
_CATCH = re.compile(r"\.catch\(|\bcatch\s*\(")
_TYPE_HINT = re.compile(r"\binterface\s+\w+|\btype\s+\w+\s*=|:\s*(?:string|number|boolean)\b")


def _coerce(params: Any, content: Any, method: str) -> tuple[str, str]:
    if isinstance(params, str):
        return params, str(content or "")
    if not isinstance(params, dict):
        raise CapabilityError(f"metadata.{method} expects {{ filePath, content }}")
    file_path = str(params.get("filePath") or params.get("path") or "")
    text = params.get("content")
    if not isinstance(text, str):
        raise CapabilityError(f"metadata.{method} requires 'content' to be a string")
    return file_path, text


def infer_category(file_path: str) -> str:
    path = file_path.replace("\\", "/").lower()
    name = path.rsplit("/", 1)[-1]
    if "/pages/" in path or path.startswith("pages/"):
        return "page"
    if path.endswith(".vue") or path.endswith(".tsx") or "/components/" in path:
        return "component"
    if "/composables/" in path or re.match(r"use[a-z]", name):
        return "composable"
    if "/api/" in path or "/services/" in path or "client" in name:
        return "api"
    if "/utils/" in path or "/helpers/" in path:
        return "utility"
    return "other"


class HeuristicMetadataAnalyzer:
    """Regex-based file classifier."""

    name = "metadata"

    def guest_methods(self) -> dict[str, Callable[..., Any]]:
        return {
            "analyzeFile": self.analyze_file,
            "quickClassify": self.quick_classify,
            "healthCheck": self.health_check,
        }

    def quick_classify(self, params: Any, content: Any = None) -> dict[str, Any]:
        file_path, text = _coerce(params, content, "quickClassify")
        category = infer_category(file_path)
        lines = text.count("\n") + 1 if text else 0
        has_api = self._api_type(text) != "none"
        has_components = bool(_COMPONENT_TAG.search(text))
        return {
            "category": category,
            "hasAPI": has_api,
            "hasComponents": has_components,
            "worthDeepAnalysis": has_api or has_components or lines > 50,
            "estimatedComplexity": self._complexity(lines),
        }

    def analyze_file(self, params: Any, content: Any = None) -> dict[str, Any]:
        file_path, text = _coerce(params, content, "analyzeFile")
        lines = text.count("\n") + 1 if text else 0
        frameworks = [name for name, marker in _FRAMEWORK_MARKERS.items() if marker.search(text)]
        try_blocks = len(_TRY.findall(text))
        catches = len(_CATCH.findall(text))

        if try_blocks + catches == 0:
            error_handling = "none"
        elif try_blocks + catches < 3:
            error_handling = "basic"
        else:
            error_handling = "good"

        type_hints = len(_TYPE_HINT.findall(text))
        if type_hints == 0:
            type_definitions = "poor"
        elif type_hints < 5:
            type_definitions = "basic"
        else:
            type_definitions = "good"

        result: dict[str, Any] = {
            "filePath": file_path,
            "category": infer_category(file_path),
            "frameworks": frameworks,
            "apiType": self._api_type(text),
            "composablesUsed": sorted(set(_COMPOSABLE_CALL.findall(text))),
            "complexity": self._complexity(lines),
            "errorHandling": error_handling,
            "typeDefinitions": type_definitions,
            "hasDocumentation": "/**" in text,
            "linesOfCode": lines,
        }
        if result["category"] == "component":
            result["componentsUsed"] = sorted(set(_COMPONENT_TAG.findall(text)))
        return result

    def health_check(self) -> dict[str, Any]:
        return {"ok": True, "analyzer": "heuristic"}

    @staticmethod
    def _api_type(text: str) -> str:
        for api_type, marker in _API_MARKERS:
            if marker.search(text):
                return api_type
        return "none"

    @staticmethod
    def _complexity(lines: int) -> str:
        if lines < 100:
            return "low"
        if lines < 300:
            return "medium"
        return "high"
