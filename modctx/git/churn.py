"""Change-frequency counts from version control."""

from __future__ import annotations

import subprocess
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Protocol, Sequence

from ..logging import get_logger


@dataclass(frozen=True)
class ChurnData:
    """Per-file change counts and last-modified timestamps."""

    change_counts: Dict[str, int] = field(default_factory=dict)
    last_modified: Dict[str, str] = field(default_factory=dict)


class ChurnSource(Protocol):
    """Adapter that counts changes per file within a time window."""

    def collect(self, repo_root: Path, scopes: Sequence[str], window_days: int) -> ChurnData:
        ...


Runner = Callable[..., str]

_STAMP_MARKER = "@@modctx-commit "


class GitChurnSource:
    """Counts changes with ``git log``; the process runner is injectable."""

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner or self._default_runner
        self._logger = get_logger("git.churn")

    def collect(self, repo_root: Path, scopes: Sequence[str], window_days: int) -> ChurnData:
        """Count changes and last-modified stamps from a single ``git log`` pass."""
        output = self._runner(
            [
                "git",
                "log",
                "--name-only",
                f"--pretty=format:{_STAMP_MARKER}%aI",
                "--diff-filter=AMRC",
                f"--since={window_days} days ago",
                "--",
                *scopes,
            ],
            cwd=repo_root,
        )
        counts: Counter[str] = Counter()
        last_modified: Dict[str, str] = {}
        stamp = ""
        for raw in output.splitlines():
            line = raw.strip()
            if not line:
                continue
            if line.startswith(_STAMP_MARKER):
                stamp = line[len(_STAMP_MARKER) :]
                continue
            counts[line] += 1
            # newest commit first
            if stamp:
                last_modified.setdefault(line, stamp)
        self._logger.debug("Counted churn for %d files", len(counts))
        return ChurnData(
            change_counts=dict(sorted(counts.items())),
            last_modified=dict(sorted(last_modified.items())),
        )

    @staticmethod
    def _default_runner(args: Iterable[str], *, cwd: Path) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            capture_output=True,
        )
        return completed.stdout


__all__ = ["ChurnData", "ChurnSource", "GitChurnSource"]
