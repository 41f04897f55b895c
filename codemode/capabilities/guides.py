"""
Guide store exposed to guest code as ``guides``.

Guides are markdown files with optional YAML front matter::

    ---
    id: api-connection
    summary: Calling the backend
    tags: [api, grpc]
    priority: 80
    scope: project
    mandatory: false
    ---
    # body...
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from ..core.exceptions import CapabilityError, CapabilityNotFoundError
from ..core.logging import get_logger

logger = get_logger(__name__)

_FRONT_MATTER = re.compile(r"\A---\n(.*?)\n---[ \t]*(?:\n|\Z)", re.DOTALL)
_HEADING = re.compile(r"^#+\s+(.+)$", re.MULTILINE)

SCOPE_ORDER = {"project": 4, "repo": 3, "org": 2, "global": 1}


@dataclass
class Guide:
    id: str
    summary: str
    content: str
    file_path: str
    tags: list[str] = field(default_factory=list)
    priority: int = 50
    scope: str = "global"
    version: str = "1.0"
    mandatory: bool = False
    requires: list[str] = field(default_factory=list)
    excludes: list[str] = field(default_factory=list)

    def to_guest(self) -> dict[str, Any]:
        data = asdict(self)
        data["filePath"] = data.pop("file_path")
        return data


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return [str(v) for v in value]


def parse_guide(text: str, relative_path: str) -> Guide:
    """Parse one markdown guide; front matter keys override derived defaults."""
    text = text.replace("\r\n", "\n")
    meta: dict[str, Any] = {}
    body = text
    match = _FRONT_MATTER.match(text)
    if match:
        try:
            loaded = yaml.safe_load(match.group(1))
        except yaml.YAMLError as e:
            raise CapabilityError(f"Invalid front matter in {relative_path}: {e}") from e
        if isinstance(loaded, dict):
            meta = loaded
        body = text[match.end() :]
    body = body.strip()

    heading = _HEADING.search(body)
    stem = Path(relative_path).stem
    try:
        priority = int(meta.get("priority", 50))
    except (TypeError, ValueError):
        priority = 50

    return Guide(
        id=str(meta.get("id") or stem),
        summary=str(meta.get("summary") or meta.get("title") or (heading.group(1) if heading else stem)),
        content=body,
        file_path=relative_path,
        tags=_as_list(meta.get("tags") or meta.get("keywords")),
        priority=priority,
        scope=str(meta.get("scope") or "global"),
        version=str(meta.get("version") or "1.0"),
        mandatory=bool(meta.get("mandatory", False)),
        requires=_as_list(meta.get("requires")),
        excludes=_as_list(meta.get("excludes")),
    )


class GuideStore:
    """Markdown guides indexed from a directory tree on every call."""

    name = "guides"

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)

    def guest_methods(self) -> dict[str, Callable[..., Any]]:
        return {
            "searchGuides": self.search_guides,
            "loadGuide": self.load_guide,
            "combineGuides": self.combine_guides,
        }

    def index(self) -> list[Guide]:
        if not self.directory.is_dir():
            return []
        guides = []
        for file in sorted(self.directory.rglob("*.md")):
            relative = file.relative_to(self.directory).as_posix()
            try:
                guides.append(parse_guide(file.read_text(encoding="utf-8"), relative))
            except (OSError, CapabilityError) as e:
                logger.warning(f"Skipping guide {relative}: {e}")
        return guides

    def search_guides(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        keywords = [str(k).lower() for k in _as_list(params.get("keywords"))]
        limit = int(params.get("limit") or 10)

        scored = []
        for guide in self.index():
            tags = [t.lower() for t in guide.tags]
            summary = guide.summary.lower()
            content = guide.content.lower()
            matched = 0.0
            for keyword in keywords:
                if any(keyword in tag for tag in tags):
                    matched += 15
                if keyword in summary:
                    matched += 10
                if keyword in content:
                    matched += 5
            if keywords and matched == 0:
                continue
            score = matched + guide.priority / 10
            scored.append((score, guide))

        scored.sort(key=lambda pair: pair[0], reverse=True)
        return {
            "guides": [
                {
                    "id": guide.id,
                    "score": score,
                    "summary": guide.summary,
                    "filePath": guide.file_path,
                    "tags": guide.tags,
                    "priority": guide.priority,
                }
                for score, guide in scored[:limit]
            ]
        }

    def load_guide(self, params: dict[str, Any]) -> dict[str, Any]:
        guide_id = params.get("id") if isinstance(params, dict) else None
        if not guide_id:
            raise CapabilityError("guides.loadGuide requires an 'id'")
        for guide in self.index():
            if guide.id == guide_id:
                return {"guide": guide.to_guest()}
        raise CapabilityNotFoundError(f"guide {guide_id}")

    def combine_guides(self, params: dict[str, Any] | None = None) -> dict[str, Any]:
        params = params or {}
        guides = self.index()
        by_id = {guide.id: guide for guide in guides}

        requested_ids = [g.id for g in guides if g.mandatory] + _as_list(params.get("ids"))
        requested = [by_id[i] for i in dict.fromkeys(requested_ids) if i in by_id]
        requested.sort(key=lambda g: g.version, reverse=True)
        requested.sort(key=lambda g: (SCOPE_ORDER.get(g.scope, 0), g.priority), reverse=True)

        requested_set = {g.id for g in requested}
        selected: list[Guide] = []
        for guide in requested:
            if any(other.id in guide.excludes for other in selected):
                continue
            if not all(req in requested_set for req in guide.requires):
                continue
            selected.append(guide)

        result: dict[str, Any] = {
            "combined": "\n\n---\n\n".join(f"# {g.summary}\n\n{g.content}" for g in selected),
            "usedGuides": [
                {"id": g.id, "priority": g.priority, "version": g.version, "scope": g.scope}
                for g in selected
            ],
        }
        reminders = [f"{g.id}: {g.summary}" for g in selected if g.mandatory]
        if reminders:
            result["mandatoryReminders"] = reminders
        return result
