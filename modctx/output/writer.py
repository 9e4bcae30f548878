"""Persist canonical artifacts and the bundle manifest."""

from __future__ import annotations

import hashlib
import json
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence

from .. import __version__
from ..logging import get_logger
from .canonical import encode

SCHEMA_VERSION = "1.0"


@dataclass(frozen=True)
class WrittenArtifact:
    """Bookkeeping for one file emitted into the bundle."""

    name: str
    path: str
    size: int
    sha256: str
    derived: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "size": self.size,
            "sha256": self.sha256,
            "derived": self.derived,
        }


class ArtifactWriter:
    """Writes every artifact through the canonicalizer into ``output_dir``."""

    def __init__(
        self,
        output_dir: Path,
        *,
        repo_commit: str,
        scopes: Sequence[str],
        target: str,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.repo_commit = repo_commit
        self.scopes = list(scopes)
        self.target = target
        self._lock = threading.Lock()
        self._written: Dict[str, WrittenArtifact] = {}
        self._logger = get_logger("writer")

    def write(
        self,
        name: str,
        data: Mapping[str, Any],
        *,
        relative: str | None = None,
        derived: bool = False,
    ) -> WrittenArtifact:
        """Canonicalize ``data`` with bundle metadata and write it to disk."""
        payload = dict(data)
        payload["metadata"] = {
            "artifact": name,
            "compiler_version": __version__,
            "repo_commit": self.repo_commit,
            "schema_version": SCHEMA_VERSION,
            "scopes": self.scopes,
            "target": self.target,
        }
        return self._persist(name, relative or f"{name}.json", encode(payload), derived)

    def _persist(
        self, name: str, relative: str, content: bytes, derived: bool
    ) -> WrittenArtifact:
        target = self.output_dir / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
        artifact = WrittenArtifact(
            name=name,
            path=relative,
            size=len(content),
            sha256=hashlib.sha256(content).hexdigest(),
            derived=derived,
        )
        with self._lock:
            self._written[relative] = artifact
        self._logger.debug("Wrote %s (%d bytes)", relative, len(content))
        return artifact

    @property
    def written(self) -> List[WrittenArtifact]:
        with self._lock:
            return [self._written[key] for key in sorted(self._written)]

    def write_manifest(
        self,
        *,
        producers: Sequence[Mapping[str, Any]],
        warnings_summary: Mapping[str, Any],
        validation: Mapping[str, Any] | None,
        duration_seconds: float,
        settings: Mapping[str, Any],
    ) -> WrittenArtifact:
        names = [str(item["name"]) for item in producers]
        counts = {str(item["name"]): int(item.get("item_count", 0)) for item in producers}
        manifest = {
            "compiler_version": __version__,
            "schema_version": SCHEMA_VERSION,
            "repo_commit": self.repo_commit,
            "generated_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "duration_seconds": round(duration_seconds, 3),
            "scopes": self.scopes,
            "target": self.target,
            "build_hash": build_hash(self.repo_commit, self.scopes, self.target, names, counts),
            "extractors": list(producers),
            "files": [artifact.to_dict() for artifact in self.written],
            "warnings_summary": dict(warnings_summary),
            "validation": dict(validation) if validation is not None else None,
            "settings": dict(settings),
        }
        content = encode(manifest)
        return self._persist("manifest", "manifest.json", content, False)


def build_hash(
    commit: str,
    scopes: Sequence[str],
    target: str,
    producer_names: Sequence[str],
    item_counts: Mapping[str, int],
) -> str:
    """Content hash over what determines the bundle's shape."""
    basis = json.dumps(
        [commit, sorted(scopes), target, sorted(producer_names), dict(sorted(item_counts.items()))],
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(basis.encode("utf-8")).hexdigest()[:16]


__all__ = ["ArtifactWriter", "SCHEMA_VERSION", "WrittenArtifact", "build_hash"]
