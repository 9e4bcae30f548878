"""Extractor interface, run context and per-run outcomes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from ..config import CompilerConfig
from ..identity import ids
from ..identity.ledger import (
    AMBIGUOUS_OVERRIDE,
    INVALID_CONFIG_FILE,
    MISSING_MODULE,
    UNRESOLVED_FILE,
    UNRESOLVED_SYMBOL,
    Warning,
    WarningLedger,
)
from ..identity.module_resolver import ModuleResolver
from ..logging import get_logger
from ..repo_scanner import ScopeScanner
from ..utils import SourceParseError


@dataclass
class ExtractionContext:
    """Run-scoped collaborators shared by every extractor."""

    repo_path: Path
    config: CompilerConfig
    scanner: ScopeScanner
    resolver: ModuleResolver
    ledger: WarningLedger


class Extractor(ABC):
    """Produces one artifact of typed records from the repository."""

    name: str = ""
    view: str = "facts"
    description: str = ""

    def __init__(self) -> None:
        self._context: Optional[ExtractionContext] = None
        self.logger = get_logger(f"extractors.{self.name or type(self).__name__}")

    def bind(self, context: ExtractionContext) -> None:
        self._context = context

    @property
    def context(self) -> ExtractionContext:
        if self._context is None:
            raise RuntimeError(f"Extractor '{self.name}' used before bind()")
        return self._context

    def skip_reason(self, context: ExtractionContext) -> Optional[str]:
        """Return why this extractor should not run, or None to run it."""
        return None

    @abstractmethod
    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        """Return the artifact payload for ``repo_path`` restricted to ``scopes``."""

    def item_count(self, data: Mapping[str, Any]) -> int:
        return sum(len(value) for value in data.values() if isinstance(value, (list, dict)))

    # ------------------------------------------------------------------
    # Helpers for subclasses

    @property
    def resolver(self) -> ModuleResolver:
        return self.context.resolver

    @property
    def evidence_cap(self) -> int:
        return self.context.config.max_evidence_per_edge

    def warn(self, category: str, message: str) -> None:
        self.context.ledger.add(category, message, self.name)

    def warn_unresolved_symbol(self, symbol: str, where: str) -> None:
        self.warn(UNRESOLVED_SYMBOL, f"Cannot resolve module for {symbol} ({where})")

    def warn_unresolved_file(self, path: str) -> None:
        self.warn(UNRESOLVED_FILE, f"No module owns {path}")

    def warn_ambiguous(self, target: str, candidates: Sequence[str], area: str) -> None:
        listed = ", ".join(sorted(candidates))
        self.warn(
            AMBIGUOUS_OVERRIDE,
            f"{target} is overridden in area '{area}' by several modules: {listed}",
        )

    def warn_missing_module(self, module_id: str, required_by: str) -> None:
        self.warn(MISSING_MODULE, f"{required_by} depends on {module_id}, which is not in scope")

    def warn_invalid(self, error: SourceParseError) -> None:
        self.warn(INVALID_CONFIG_FILE, str(error))

    def owner_of_symbol(self, symbol: str, where: str) -> str:
        """Resolve ``symbol`` and warn when no module can be found."""
        module_id = self.resolver.resolve_class(symbol)
        if module_id == ids.UNKNOWN:
            self.warn_unresolved_symbol(symbol, where)
        return module_id

    def config_files(self, scopes: Sequence[str], filename: str) -> List[str]:
        """Paths of ``etc/<filename>`` and ``etc/<area>/<filename>`` below scopes."""
        found = []
        for item in self.context.scanner.named(scopes, filename):
            parts = item.path.split("/")
            if len(parts) >= 2 and parts[-2] == "etc":
                found.append(item.path)
            elif len(parts) >= 3 and parts[-3] == "etc":
                found.append(item.path)
        return found

    def area_of(self, relative: str) -> str:
        """``.../etc/frontend/di.xml`` -> ``frontend``; ``.../etc/di.xml`` -> ``global``."""
        parts = relative.split("/")
        if len(parts) >= 3 and parts[-3] == "etc":
            return parts[-2]
        return "global"


@dataclass
class Extracted:
    name: str
    view: str
    data: Mapping[str, Any]
    item_count: int
    duration_ms: float
    warnings: List[Warning] = field(default_factory=list)

    status = "ok"


@dataclass
class Failed:
    name: str
    view: str
    error: str
    duration_ms: float
    warnings: List[Warning] = field(default_factory=list)

    status = "error"


@dataclass
class Skipped:
    name: str
    view: str
    reason: str

    status = "skipped"


Outcome = Union[Extracted, Failed, Skipped]


def outcome_summary(outcome: Outcome) -> Dict[str, Any]:
    """Manifest entry describing how one producer finished."""
    entry: Dict[str, Any] = {
        "name": outcome.name,
        "view": outcome.view,
        "status": outcome.status,
        "item_count": 0,
        "duration_ms": 0.0,
        "reason": None,
        "error": None,
        "warnings": [],
    }
    if isinstance(outcome, Extracted):
        entry["item_count"] = outcome.item_count
        entry["duration_ms"] = outcome.duration_ms
        entry["warnings"] = [warning.to_dict() for warning in outcome.warnings]
    elif isinstance(outcome, Failed):
        entry["duration_ms"] = outcome.duration_ms
        entry["error"] = outcome.error
        entry["warnings"] = [warning.to_dict() for warning in outcome.warnings]
    else:
        entry["reason"] = outcome.reason
    return entry


__all__ = [
    "Extracted",
    "ExtractionContext",
    "Extractor",
    "Failed",
    "Outcome",
    "Skipped",
    "outcome_summary",
]
