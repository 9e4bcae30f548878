"""Per-file and per-module change frequency."""

from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from ..git.churn import ChurnData, ChurnSource, GitChurnSource
from ..identity.evidence import GIT, Evidence
from ..stores.churn_cache import ChurnCache
from .base import ExtractionContext, Extractor


class GitChurnExtractor(Extractor):
    name = "git_churn"
    view = "history"
    description = "Change counts within the configured window, per file and module."

    def __init__(self, source: ChurnSource | None = None) -> None:
        super().__init__()
        self.source: ChurnSource = source or GitChurnSource()
        self.cache_hit: Optional[bool] = None

    def skip_reason(self, context: ExtractionContext) -> Optional[str]:
        if not context.config.churn.enabled:
            return "churn collection disabled by configuration"
        if not (context.repo_path / ".git").exists():
            return "repository has no git metadata"
        return None

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        settings = self.context.config.churn
        cache = ChurnCache(repo_path) if settings.cache else None

        data: ChurnData | None = cache.read(settings.window_days, scopes) if cache else None
        self.cache_hit = data is not None
        if data is None:
            data = self.source.collect(repo_path, scopes, settings.window_days)
            if cache is not None:
                cache.write(settings.window_days, scopes, data)
        self.logger.info(
            "Churn for %d files (%s)", len(data.change_counts), "cached" if self.cache_hit else "computed"
        )

        files: List[Dict[str, Any]] = []
        per_module: Dict[str, List[int]] = defaultdict(list)
        for path, count in sorted(data.change_counts.items()):
            module_id = self.resolver.resolve_file(path)
            per_module[module_id].append(count)
            files.append(
                {
                    "path": path,
                    "change_count": count,
                    "last_modified": data.last_modified.get(path),
                    "module_id": module_id,
                    "evidence": [
                        Evidence.of(
                            GIT, path, note=f"{count} change(s) in {settings.window_days} days"
                        ).to_dict()
                    ],
                }
            )
        modules = [
            {"module_id": module_id, "churn_total": sum(counts), "file_count": len(counts)}
            for module_id, counts in sorted(per_module.items())
        ]
        return {"window_days": settings.window_days, "files": files, "modules": modules}

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("files", []))


__all__ = ["GitChurnExtractor"]
