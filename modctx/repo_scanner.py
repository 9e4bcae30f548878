"""Sorted, scope-restricted file listings for a compilation run."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Tuple

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".idea",
    ".modctx-cache",
    "node_modules",
    "__pycache__",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_KIND_BY_SUFFIX = {
    ".php": "php",
    ".phtml": "template",
    ".xml": "xml",
    ".json": "json",
    ".js": "javascript",
    ".less": "stylesheet",
    ".css": "stylesheet",
    ".html": "template",
    ".csv": "i18n",
    ".graphqls": "graphql",
}


@dataclass(frozen=True)
class ScannedFile:
    """A file below one of the configured scopes."""

    path: str
    size: int
    kind: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


def detect_kind(path: str) -> str:
    suffix = os.path.splitext(path)[1].lower()
    return _KIND_BY_SUFFIX.get(suffix, "other")


def _iter_files(root: Path, scope: str) -> Iterator[Path]:
    base = root / scope
    if not base.is_dir():
        return
    for dirpath, dirnames, filenames in os.walk(base):
        # in-place sort fixes traversal order
        dirnames[:] = sorted(name for name in dirnames if name not in _EXCLUDED_DIRS)
        current = Path(dirpath)
        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            yield current / filename


class ScopeScanner:
    """Lists files under the configured scopes once per run and memoizes them."""

    def __init__(self, root: Path) -> None:
        root = Path(root).expanduser().resolve()
        if not root.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")
        self.root = root
        self._lock = threading.Lock()
        self._listings: Dict[Tuple[str, ...], List[ScannedFile]] = {}

    def files(self, scopes: Sequence[str]) -> List[ScannedFile]:
        key = tuple(sorted({scope.strip("/") for scope in scopes if scope.strip("/")}))
        with self._lock:
            cached = self._listings.get(key)
            if cached is not None:
                return cached
        listing: Dict[str, ScannedFile] = {}
        for scope in key:
            for path in _iter_files(self.root, scope):
                rel_path = path.relative_to(self.root).as_posix()
                listing[rel_path] = ScannedFile(
                    path=rel_path,
                    size=path.stat().st_size,
                    kind=detect_kind(rel_path),
                )
        result = [listing[name] for name in sorted(listing)]
        with self._lock:
            self._listings[key] = result
        return result

    def named(self, scopes: Sequence[str], filename: str) -> List[ScannedFile]:
        """Return scoped files whose basename equals ``filename``."""
        return [item for item in self.files(scopes) if item.name == filename]

    def matching(self, scopes: Sequence[str], suffix: str) -> List[ScannedFile]:
        """Return scoped files whose relative path ends with ``suffix``."""
        return [item for item in self.files(scopes) if item.path.endswith(suffix)]

    def read_text(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8", errors="replace")


__all__ = ["ScannedFile", "ScopeScanner", "detect_kind"]
