"""Cross-run cache for version-control churn counts."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ..git.churn import ChurnData
from ..git.head import UNKNOWN_COMMIT, read_head_commit

_CACHE_VERSION = 1
CACHE_DIRNAME = ".modctx-cache"


def scopes_hash(scopes: Sequence[str]) -> str:
    return hashlib.sha1("|".join(sorted(scopes)).encode("utf-8")).hexdigest()


class ChurnCache:
    """Stores churn data keyed by (HEAD commit, window, scope-set hash).

    A read whose key differs from the stored key in any part is a miss, as is
    an unreadable or foreign payload.
    """

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = Path(repo_root)
        self.path = self.repo_root / CACHE_DIRNAME / "churn.json"

    def key(self, window_days: int, scopes: Sequence[str]) -> Dict[str, Any]:
        return {
            "head": read_head_commit(self.repo_root),
            "window_days": int(window_days),
            "scopes_hash": scopes_hash(scopes),
        }

    def read(self, window_days: int, scopes: Sequence[str]) -> Optional[ChurnData]:
        key = self.key(window_days, scopes)
        if key["head"] == UNKNOWN_COMMIT:
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError):
            return None
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return None
        if data.get("key") != key:
            return None
        counts = data.get("change_counts")
        stamps = data.get("last_modified")
        if not isinstance(counts, dict) or not isinstance(stamps, dict):
            return None
        try:
            change_counts = {str(path): int(value) for path, value in counts.items()}
        except (TypeError, ValueError):
            return None
        return ChurnData(
            change_counts=change_counts,
            last_modified={str(path): str(value) for path, value in stamps.items()},
        )

    def write(self, window_days: int, scopes: Sequence[str], data: ChurnData) -> bool:
        key = self.key(window_days, scopes)
        if key["head"] == UNKNOWN_COMMIT:
            return False
        payload = {
            "version": _CACHE_VERSION,
            "key": key,
            "change_counts": data.change_counts,
            "last_modified": data.last_modified,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        ignore = self.path.parent / ".gitignore"
        if not ignore.exists():
            ignore.write_text("*\n", encoding="utf-8")
        self.path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        return True

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


__all__ = ["CACHE_DIRNAME", "ChurnCache", "scopes_hash"]
