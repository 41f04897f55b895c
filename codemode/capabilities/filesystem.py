"""
Filesystem capability exposed to guest code as ``filesystem``.
"""

from __future__ import annotations

import fnmatch
import re
from pathlib import Path
from typing import Any, Callable

from ..core.exceptions import CapabilityError, CapabilityNotFoundError
from ..core.logging import get_logger

logger = get_logger(__name__)

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def _require_path(params: Any, method: str) -> str:
    if not isinstance(params, dict):
        raise CapabilityError(
            f"filesystem.{method} expects an object parameter, e.g. filesystem.{method}({{ path }})"
        )
    path = params.get("path")
    if not isinstance(path, str) or not path:
        raise CapabilityError(f"filesystem.{method} requires a non-empty 'path' string")
    return path


class FilesystemCapability:
    """
    File access rooted at the projects directory.

    Relative paths (not ``/``-rooted and without a drive letter) resolve
    against ``projects_root``. When ``host_projects_path`` is set, paths under
    it are translated to the same location under ``projects_root``.
    """

    name = "filesystem"

    def __init__(self, projects_root: str = "/projects", host_projects_path: str | None = None):
        self.projects_root = projects_root.rstrip("/") or "/"
        self.host_projects_path = host_projects_path

    def guest_methods(self) -> dict[str, Callable[..., Any]]:
        return {
            "readFile": self.read_file,
            "writeFile": self.write_file,
            "searchFiles": self.search_files,
        }

    def resolve_path(self, path: str) -> str:
        normalized = path.replace("\\", "/")
        if self.host_projects_path:
            host = self.host_projects_path.replace("\\", "/").rstrip("/")
            if normalized == host or normalized.startswith(host + "/"):
                return self.projects_root + normalized[len(host) :]
        if normalized.startswith("/") or _DRIVE_PREFIX.match(normalized):
            return normalized
        if normalized.startswith("./"):
            normalized = normalized[2:]
        return f"{self.projects_root.rstrip('/')}/{normalized}"

    def read_file(self, params: dict[str, Any]) -> dict[str, Any]:
        target = Path(self.resolve_path(_require_path(params, "readFile")))
        if not target.is_file():
            raise CapabilityNotFoundError(str(target))
        try:
            content = target.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            content = target.read_text(encoding="utf-8", errors="replace")
        return {"content": content, "size": len(content)}

    def write_file(self, params: dict[str, Any]) -> dict[str, Any]:
        target = Path(self.resolve_path(_require_path(params, "writeFile")))
        content = params.get("content", "")
        if not isinstance(content, str):
            raise CapabilityError("filesystem.writeFile requires 'content' to be a string")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        logger.debug(f"Wrote {len(content)} chars to {target}")
        return {"success": True, "path": str(target)}

    def search_files(self, params: dict[str, Any]) -> dict[str, Any]:
        root = Path(self.resolve_path(_require_path(params, "searchFiles")))
        pattern = params.get("pattern") or None
        recursive = bool(params.get("recursive", False))
        if not root.is_dir():
            raise CapabilityNotFoundError(str(root))

        files: list[dict[str, Any]] = []
        pending = [root]
        while pending:
            directory = pending.pop(0)
            for entry in sorted(directory.iterdir(), key=lambda p: p.name):
                is_dir = entry.is_dir()
                if pattern is None or fnmatch.fnmatchcase(entry.name, pattern):
                    try:
                        size = entry.stat().st_size
                    except FileNotFoundError:
                        # dangling symlink
                        size = entry.lstat().st_size
                    files.append(
                        {
                            "path": str(entry),
                            "name": entry.name,
                            "size": size,
                            "isDirectory": is_dir,
                        }
                    )
                if recursive and is_dir and not entry.is_symlink():
                    pending.append(entry)
        return {"files": files}
