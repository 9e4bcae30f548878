"""Provenance records attached to every derived fact."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

XML = "xml"
SOURCE = "source"
MANIFEST = "manifest"
GIT = "git"
INFERENCE = "inference"
FILESYSTEM = "filesystem"

EVIDENCE_KINDS = (XML, SOURCE, MANIFEST, GIT, INFERENCE, FILESYSTEM)

_DEFAULT_CONFIDENCE = {
    XML: 1.0,
    SOURCE: 1.0,
    MANIFEST: 1.0,
    GIT: 0.9,
    INFERENCE: 0.5,
    FILESYSTEM: 0.9,
}


@dataclass(frozen=True)
class Evidence:
    """Justifies one derived fact with a source locator and confidence."""

    kind: str
    source_file: str
    line_start: int | None = None
    line_end: int | None = None
    confidence: float = 1.0
    note: str = ""

    def __post_init__(self) -> None:
        clamped = max(0.0, min(1.0, float(self.confidence)))
        object.__setattr__(self, "confidence", clamped)
        if self.line_start is not None and self.line_end is None:
            object.__setattr__(self, "line_end", self.line_start)

    @classmethod
    def of(
        cls,
        kind: str,
        source_file: str,
        *,
        line: int | None = None,
        note: str = "",
        confidence: float | None = None,
    ) -> "Evidence":
        if kind not in _DEFAULT_CONFIDENCE:
            raise ValueError(f"Unknown evidence kind: {kind}")
        score = _DEFAULT_CONFIDENCE[kind] if confidence is None else confidence
        return cls(
            kind=kind,
            source_file=source_file,
            line_start=line,
            confidence=score,
            note=note,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "type": self.kind,
            "source_file": self.source_file,
            "confidence": round(self.confidence, 3),
        }
        if self.line_start is not None:
            payload["source_span"] = {
                "line_start": self.line_start,
                "line_end": self.line_end,
            }
        if self.note:
            payload["notes"] = self.note
        return payload


def aggregate_confidence(items: Iterable[Evidence | Mapping[str, Any]]) -> float:
    """Combine independent confidences as ``1 - prod(1 - c)``; 0 when empty."""
    remaining = 1.0
    seen = False
    for item in items:
        seen = True
        if isinstance(item, Evidence):
            value = item.confidence
        else:
            value = float(item.get("confidence", 0.0) or 0.0)
        remaining *= 1.0 - max(0.0, min(1.0, value))
    if not seen:
        return 0.0
    return round(1.0 - remaining, 3)


def cap_evidence(
    items: Sequence[Evidence], limit: int
) -> Tuple[List[Evidence], bool, int]:
    """Keep at most ``limit`` evidence items (highest confidence first).

    Returns the kept items, whether anything was dropped and the original count.
    """
    total = len(items)
    ordered = sorted(
        items,
        key=lambda ev: (-ev.confidence, ev.source_file, ev.line_start or 0, ev.kind),
    )
    if limit <= 0 or total <= limit:
        return ordered, False, total
    return ordered[:limit], True, total


__all__ = [
    "EVIDENCE_KINDS",
    "Evidence",
    "FILESYSTEM",
    "GIT",
    "INFERENCE",
    "MANIFEST",
    "SOURCE",
    "XML",
    "aggregate_confidence",
    "cap_evidence",
]
