"""Run-scoped warning ledger and integrity scoring."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Sequence

UNRESOLVED_SYMBOL = "unresolved_symbol"
AMBIGUOUS_OVERRIDE = "ambiguous_override"
INVALID_CONFIG_FILE = "invalid_config_file"
MISSING_MODULE = "missing_module"
UNRESOLVED_FILE = "unresolved_file"
GENERAL = "general"

CATEGORIES = (
    UNRESOLVED_SYMBOL,
    AMBIGUOUS_OVERRIDE,
    INVALID_CONFIG_FILE,
    MISSING_MODULE,
    UNRESOLVED_FILE,
    GENERAL,
)

_NOTES = {
    UNRESOLVED_SYMBOL: "{count} symbol reference(s) could not be mapped to a module",
    AMBIGUOUS_OVERRIDE: "{count} override target(s) are preferred by more than one module",
    INVALID_CONFIG_FILE: "{count} configuration file(s) could not be parsed",
    MISSING_MODULE: "{count} declared module dependency(ies) were not found in scope",
    UNRESOLVED_FILE: "{count} source file(s) are not owned by any module",
    GENERAL: "{count} other warning(s) were reported",
}


class LedgerError(RuntimeError):
    """Raised when the ledger is used out of order."""


@dataclass(frozen=True)
class Warning:
    """One categorized finding attributed to the component that raised it."""

    category: str
    message: str
    producer: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category,
            "message": self.message,
            "producer": self.producer,
        }


class WarningLedger:
    """Collects warnings from every producer and derives the integrity score.

    Pending warnings are drained per producer when its result is finalized.
    The per-category tally survives draining, so the score always reflects the
    whole run while each warning is still reported exactly once.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: List[Warning] = []
        self._counts: Counter[str] = Counter()
        self._total_symbols: int | None = None
        self._total_targets: int | None = None

    def add(self, category: str, message: str, producer: str = GENERAL) -> Warning:
        if category not in CATEGORIES:
            category = GENERAL
        warning = Warning(category=category, message=message, producer=producer)
        with self._lock:
            self._pending.append(warning)
            self._counts[category] += 1
        return warning

    def drain(self, producer: str) -> List[Warning]:
        """Remove and return the pending warnings raised by ``producer``."""
        with self._lock:
            taken = [item for item in self._pending if item.producer == producer]
            self._pending = [item for item in self._pending if item.producer != producer]
        return taken

    def pending(self) -> List[Warning]:
        with self._lock:
            return list(self._pending)

    def count_by_category(self) -> Dict[str, int]:
        with self._lock:
            return {category: self._counts.get(category, 0) for category in CATEGORIES}

    def set_totals(self, total_symbols: int, total_targets: int) -> None:
        """Record the denominators once all extraction has completed."""
        with self._lock:
            if self._total_symbols is not None:
                raise LedgerError("Integrity totals have already been set for this run")
            self._total_symbols = max(1, int(total_symbols))
            self._total_targets = max(1, int(total_targets))

    @property
    def totals_set(self) -> bool:
        return self._total_symbols is not None

    def integrity_score(self) -> float:
        if self._total_symbols is None or self._total_targets is None:
            return 1.0
        counts = self.count_by_category()
        penalty = 0.0
        penalty += min(0.4, counts[UNRESOLVED_SYMBOL] / self._total_symbols * 0.4)
        penalty += min(0.2, counts[AMBIGUOUS_OVERRIDE] / self._total_targets * 0.2)
        penalty += min(0.3, counts[INVALID_CONFIG_FILE] * 0.1)
        penalty += min(0.1, counts[MISSING_MODULE] * 0.05)
        return round(max(0.0, min(1.0, 1.0 - penalty)), 3)

    def dampen(self, raw_score: float) -> Dict[str, float]:
        integrity = self.integrity_score()
        return {
            "raw_score": round(raw_score, 4),
            "final_score": round(raw_score * integrity, 4),
            "integrity_score_used": integrity,
        }

    def summary(self) -> Dict[str, Any]:
        counts = self.count_by_category()
        score = self.integrity_score()
        return {
            "counts": counts,
            "total": sum(counts.values()),
            "analysis_integrity_score": score,
            "degraded": score < 1.0,
            "integrity_basis": {
                "total_symbols": self._total_symbols or 0,
                "total_targets": self._total_targets or 0,
            },
            "integrity_notes": _notes(counts),
        }


def percentile_leq(value: float, population: Sequence[float]) -> float:
    """Fraction of ``population`` that is ``<= value``."""
    if not population:
        return 0.0
    if len(population) == 1:
        return 1.0
    below = sum(1 for item in population if item <= value)
    return round(below / len(population), 4)


def _notes(counts: Dict[str, int]) -> List[str]:
    notes = [
        _NOTES[category].format(count=counts[category])
        for category in CATEGORIES
        if counts.get(category)
    ]
    return notes or ["No integrity concerns detected"]


def serialise_warnings(warnings: Iterable[Warning]) -> List[Dict[str, str]]:
    return [warning.to_dict() for warning in warnings]


__all__ = [
    "AMBIGUOUS_OVERRIDE",
    "CATEGORIES",
    "GENERAL",
    "INVALID_CONFIG_FILE",
    "LedgerError",
    "MISSING_MODULE",
    "UNRESOLVED_FILE",
    "UNRESOLVED_SYMBOL",
    "Warning",
    "WarningLedger",
    "percentile_leq",
    "serialise_warnings",
]
