"""
Best-case store exposed to guest code as ``bestcase``.

Each best case (a curated code example with its files and scores) is one JSON
document named ``<id>.json`` in the store directory. Concurrent writers race
on the directory; the store adds no locking.
"""

from __future__ import annotations

import json
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from ..core.exceptions import CapabilityError
from ..core.logging import get_logger

logger = get_logger(__name__)

_SAFE_ID = re.compile(r"^[\w.-]+$")


def _summary(case: dict[str, Any]) -> dict[str, Any]:
    meta = case.get("metadata") or {}
    item = {
        "id": case.get("id"),
        "projectName": case.get("projectName"),
        "category": case.get("category"),
        "description": case.get("description", ""),
        "createdAt": meta.get("createdAt"),
        "updatedAt": meta.get("updatedAt"),
        "tags": list(meta.get("tags") or []),
    }
    for key in ("scores", "totalScore", "excellentIn"):
        if case.get(key) is not None:
            item[key] = case[key]
    return item


class BestCaseStore:
    """JSON-document store of best cases."""

    name = "bestcase"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def guest_methods(self) -> dict[str, Callable[..., Any]]:
        return {
            "saveBestCase": self.save_best_case,
            "loadBestCase": self.load_best_case,
            "listBestCases": self.list_best_cases,
            "searchBestCases": self.search_best_cases,
        }

    def _path_for(self, case_id: str) -> Path:
        if not _SAFE_ID.match(case_id) or case_id in (".", ".."):
            raise CapabilityError(f"Invalid best case id: {case_id!r}")
        return self.directory / f"{case_id}.json"

    def _iter_cases(self) -> list[dict[str, Any]]:
        if not self.directory.is_dir():
            return []
        cases = []
        for file in sorted(self.directory.glob("*.json")):
            try:
                cases.append(json.loads(file.read_text(encoding="utf-8")))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping unreadable best case {file.name}: {e}")
        return cases

    def save_best_case(self, params: dict[str, Any]) -> dict[str, Any]:
        if not isinstance(params, dict):
            raise CapabilityError("bestcase.saveBestCase expects an object parameter")
        project = params.get("projectName")
        category = params.get("category")
        if not project or not category:
            raise CapabilityError("bestcase.saveBestCase requires 'projectName' and 'category'")

        safe_project = re.sub(r"[^\w.-]+", "-", str(project))
        safe_category = re.sub(r"[^\w.-]+", "-", str(category))
        case_id = f"{safe_project}-{safe_category}-{int(time.time() * 1000)}"
        now = datetime.now(timezone.utc).isoformat()
        document = {
            "id": case_id,
            "projectName": project,
            "category": category,
            "description": params.get("description", ""),
            "files": list(params.get("files") or []),
            "patterns": dict(params.get("patterns") or {}),
            "metadata": {"createdAt": now, "updatedAt": now, "tags": list(params.get("tags") or [])},
        }
        for key in ("scores", "totalScore", "excellentIn"):
            if params.get(key) is not None:
                document[key] = params[key]

        path = self._path_for(case_id)
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.info(f"Saved best case {case_id}")
        return {"id": case_id, "success": True}

    def load_best_case(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        case_id = params.get("id")
        if case_id:
            path = self._path_for(str(case_id))
            if not path.is_file():
                return {"bestCase": None}
            return {"bestCase": json.loads(path.read_text(encoding="utf-8"))}

        for case in self._iter_cases():
            if params.get("projectName") and case.get("projectName") != params["projectName"]:
                continue
            if params.get("category") and case.get("category") != params["category"]:
                continue
            return {"bestCase": case}
        return {"bestCase": None}

    def list_best_cases(self) -> dict[str, Any]:
        items = [_summary(case) for case in self._iter_cases()]
        items.sort(key=lambda item: item.get("updatedAt") or "", reverse=True)
        items.sort(key=lambda item: item.get("totalScore") or 0, reverse=True)
        return {"bestcases": items, "total": len(items)}

    def search_best_cases(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        keywords = [str(k).lower() for k in params.get("keywords") or []]
        tags = set(params.get("tags") or [])
        min_score = params.get("minTotalScore")

        matches = []
        for case in self._iter_cases():
            summary = _summary(case)
            if params.get("category") and case.get("category") != params["category"]:
                continue
            if params.get("projectName") and case.get("projectName") != params["projectName"]:
                continue
            if tags and not tags.intersection(summary["tags"]):
                continue
            if min_score is not None and (case.get("totalScore") or 0) < min_score:
                continue
            if keywords:
                haystack = " ".join(
                    str(part)
                    for part in (
                        case.get("projectName"),
                        case.get("category"),
                        case.get("description"),
                        *summary["tags"],
                    )
                ).lower()
                if not any(keyword in haystack for keyword in keywords):
                    continue
            matches.append(summary)

        matches.sort(key=lambda item: item.get("totalScore") or 0, reverse=True)
        return {"ids": [m["id"] for m in matches], "summary": matches, "total": len(matches)}
