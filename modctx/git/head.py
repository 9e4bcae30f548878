"""Read the checked-out commit without shelling out to git."""

from __future__ import annotations

from pathlib import Path

UNKNOWN_COMMIT = "unknown"


def read_head_commit(repo_root: Path) -> str:
    """Return the commit HEAD points at, following one symbolic ref.

    Packed refs are consulted when the loose ref file is absent. Any missing or
    unreadable piece yields ``"unknown"``.
    """
    git_dir = Path(repo_root) / ".git"
    head_file = git_dir / "HEAD"
    try:
        head = head_file.read_text(encoding="utf-8").strip()
    except OSError:
        return UNKNOWN_COMMIT
    if not head:
        return UNKNOWN_COMMIT
    if not head.startswith("ref:"):
        return head

    ref = head[len("ref:") :].strip()
    try:
        value = (git_dir / ref).read_text(encoding="utf-8").strip()
    except OSError:
        value = _packed_ref(git_dir, ref)
    return value or UNKNOWN_COMMIT


def _packed_ref(git_dir: Path, ref: str) -> str:
    try:
        lines = (git_dir / "packed-refs").read_text(encoding="utf-8").splitlines()
    except OSError:
        return ""
    for line in lines:
        if not line or line.startswith(("#", "^")):
            continue
        sha, _, name = line.partition(" ")
        if name.strip() == ref:
            return sha.strip()
    return ""


__all__ = ["UNKNOWN_COMMIT", "read_head_commit"]
