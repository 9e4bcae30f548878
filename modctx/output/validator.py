"""Post-build validation of the compiled bundle."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from ..config import CompilerConfig
from ..identity import ids
from ..indexes.builder import Facts
from ..logging import get_logger
from .canonical import canonicalize, dumps
from .writer import WrittenArtifact

ERROR = "error"
WARNING = "warning"
INFO = "info"

EVIDENCE_SAMPLE_SIZE = 20

# artifact -> collection whose items must each carry an evidence list
EVIDENCE_PATHS: Dict[str, str] = {
    "module_graph": "edges",
    "plugin_chains": "plugins",
    "event_graph": "events",
    "di_resolution_map": "resolutions",
    "route_map": "routes",
    "cron_map": "cron_jobs",
    "cli_commands": "commands",
    "api_surface": "endpoints",
    "symbol_index": "symbols",
}


class BundleValidator:
    """Runs once after every extractor and derived artifact has been written."""

    def __init__(self, config: CompilerConfig, output_dir: Path) -> None:
        self.config = config
        self.output_dir = Path(output_dir)
        self.results: List[Dict[str, str]] = []
        self._logger = get_logger("validator")

    def validate(
        self,
        facts: Facts,
        reverse_index: Mapping[str, Any],
        emitted_edge_types: Iterable[str],
        written: Sequence[WrittenArtifact],
        *,
        skip_reproducibility: bool = False,
    ) -> Dict[str, Any]:
        self.results = []
        self.check_edge_weights(set(emitted_edge_types))
        self.check_evidence(facts)
        self.check_references(facts, reverse_index)
        self.check_module_count(facts, reverse_index)
        self.check_size(written)
        if skip_reproducibility:
            self._add(INFO, "determinism_skipped", "Reproducibility check skipped for this build")
        else:
            self.check_reproducibility(written)
        return self.report()

    def report(self) -> Dict[str, Any]:
        errors = [item for item in self.results if item["level"] == ERROR]
        warnings = [item for item in self.results if item["level"] == WARNING]
        info = [item for item in self.results if item["level"] == INFO]
        return {"passed": not errors, "errors": errors, "warnings": warnings, "info": info}

    # ------------------------------------------------------------------

    def check_edge_weights(self, emitted: set[str]) -> None:
        for edge_type in self.config.centrality_edge_types:
            if edge_type not in self.config.edge_weights:
                self._add(
                    ERROR,
                    "centrality_missing_weight",
                    f"Centrality edge type '{edge_type}' has no entry in edge_weights",
                )
        if not emitted:
            return
        for edge_type in sorted(self.config.edge_weights):
            if edge_type not in emitted:
                self._add(
                    WARNING,
                    "edge_weight_never_emitted",
                    f"edge_weights.{edge_type} is configured but no producer emitted that edge type",
                )

    def check_evidence(self, facts: Facts) -> None:
        for artifact, collection in EVIDENCE_PATHS.items():
            items = (facts.get(artifact) or {}).get(collection)
            if not isinstance(items, list) or not items:
                continue
            sample = items[:EVIDENCE_SAMPLE_SIZE]
            missing = sum(
                1 for item in sample if not isinstance(item, dict) or not isinstance(item.get("evidence"), list)
            )
            if missing:
                self._add(
                    WARNING,
                    "missing_evidence",
                    f"Extractor '{artifact}': {missing}/{len(sample)} sampled items in '{collection}' lack 'evidence'",
                )

    def check_references(self, facts: Facts, reverse_index: Mapping[str, Any]) -> None:
        if not reverse_index:
            return
        module_ids = _ids(facts, "module_graph", "modules", "module_id")
        file_ids = _ids(facts, "file_index", "files", "file_id")
        event_ids = _ids(facts, "event_graph", "events", "event_id")
        route_ids = _ids(facts, "route_map", "routes", "route_id")

        by_symbol = reverse_index.get("by_symbol") or {}
        if file_ids is not None:
            orphans = sum(
                1 for entry in by_symbol.values() if entry.get("file_id") and entry["file_id"] not in file_ids
            )
            self._orphans("reverse_index_orphan_files", orphans, "symbol(s) in by_symbol reference files not in file_index")
        if module_ids is not None:
            orphans = sum(
                1
                for entry in by_symbol.values()
                if entry.get("module_id") not in (None, "", ids.UNKNOWN) and entry["module_id"] not in module_ids
            )
            self._orphans("reverse_index_orphan_modules", orphans, "symbol(s) in by_symbol reference modules not in module_graph")
        if event_ids is not None:
            orphans = sum(1 for key in reverse_index.get("by_event") or {} if key not in event_ids)
            self._orphans("reverse_index_orphan_events", orphans, "event(s) in by_event not found in event_graph")
        if route_ids is not None:
            orphans = sum(1 for key in reverse_index.get("by_route") or {} if key not in route_ids)
            self._orphans("reverse_index_orphan_routes", orphans, "route(s) in by_route not found in route_map")

    def check_module_count(self, facts: Facts, reverse_index: Mapping[str, Any]) -> None:
        module_ids = _ids(facts, "module_graph", "modules", "module_id")
        if module_ids is None:
            return
        indexed = set((reverse_index.get("by_module") or {}).keys())
        extra = sorted(indexed - module_ids)
        absent = sorted(module_ids - indexed)
        if extra:
            self._add(
                WARNING,
                "module_count_delta",
                f"{len(extra)} module(s) in reverse_index but not in module_graph: {', '.join(extra[:5])}",
            )
        if absent:
            self._add(
                WARNING,
                "module_count_delta",
                f"{len(absent)} module(s) in module_graph but not in reverse_index: {', '.join(absent[:5])}",
            )

    def check_size(self, written: Sequence[WrittenArtifact]) -> None:
        derived = [artifact for artifact in written if artifact.derived]
        if not derived:
            return
        largest = max(derived, key=lambda artifact: (artifact.size, artifact.path))
        limit = self.config.max_reverse_index_bytes
        if largest.size > limit:
            self._add(
                WARNING,
                "reverse_index_size_exceeded",
                f"{largest.path} is {largest.size / (1024 * 1024):.1f} MB "
                f"(limit: {self.config.max_reverse_index_size_mb:g} MB)",
            )

    def check_reproducibility(self, written: Sequence[WrittenArtifact]) -> None:
        for artifact in written:
            if not artifact.path.endswith(".json"):
                continue
            path = self.output_dir / artifact.path
            if not path.is_file():
                continue
            raw = path.read_bytes()
            try:
                data = json.loads(raw.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError):
                self._add(ERROR, "determinism_invalid_json", f"File '{artifact.path}' is not valid JSON")
                continue
            if dumps(canonicalize(data)).encode("utf-8") != raw:
                self._add(
                    ERROR,
                    "determinism_mismatch",
                    f"File '{artifact.path}' changes when re-canonicalized and re-serialized",
                )

    # ------------------------------------------------------------------

    def _orphans(self, rule: str, count: int, message: str) -> None:
        if count:
            self._add(WARNING, rule, f"{count} {message}")

    def _add(self, level: str, rule: str, message: str) -> None:
        log = self._logger.warning if level == ERROR else self._logger.debug
        log("%s: %s", rule, message)
        self.results.append({"level": level, "rule": rule, "message": message})


def _ids(facts: Facts, artifact: str, collection: str, key: str) -> set[str] | None:
    if artifact not in facts:
        return None
    items = facts[artifact].get(collection) or []
    return {str(item[key]) for item in items if isinstance(item, dict) and key in item}


__all__ = ["BundleValidator", "EVIDENCE_PATHS", "EVIDENCE_SAMPLE_SIZE"]
