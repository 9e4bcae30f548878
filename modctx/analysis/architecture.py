"""Module-level coupling, centrality, modifiability risk and debt items."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Set, Tuple

from ..config import CompilerConfig
from ..identity.evidence import INFERENCE, Evidence
from ..identity.ledger import WarningLedger, percentile_leq
from ..indexes.builder import Facts, collect_edges
from ..logging import get_logger
from ..models import DebtItem

GOD_MODULE_CONNECTIONS = 10
HIGH_RISK_THRESHOLD = 0.7

RISK_WEIGHTS = {
    "coupling_refs": 0.20,
    "plugin_count": 0.20,
    "core_override_count": 0.15,
    "churn_total": 0.15,
    "debt_count": 0.15,
    "file_count": 0.15,
}

_SEVERITY_RANK = {"high": 0, "medium": 1, "low": 2}

_logger = get_logger("analysis")


class ArchitectureAnalyzer:
    """Derives per-module metrics from the aggregated fact set.

    Completeness-sensitive scores are dampened by the ledger's integrity score,
    which scales every module alike and so never changes their ranking.
    """

    def __init__(self, facts: Facts, config: CompilerConfig, ledger: WarningLedger) -> None:
        self.facts = facts
        self.config = config
        self.ledger = ledger

    def analyze(self) -> Dict[str, Any]:
        modules = sorted(
            item["module_id"]
            for item in self.facts.get("module_graph", {}).get("modules", [])
            if isinstance(item, dict) and "module_id" in item
        )
        known = set(modules)
        edges = [
            edge
            for edge in collect_edges(self.facts)
            if edge["from"] in known and edge["to"] in known and edge["from"] != edge["to"]
        ]

        debt = self.debt_items(modules, edges)
        debt_counts: Dict[str, int] = defaultdict(int)
        for item in debt:
            for module_id in item.modules or [item.module_id]:
                debt_counts[module_id] += 1

        coupling = self.coupling(modules, edges)
        centrality = self.centrality(modules, edges)
        signals = self.risk_signals(modules, edges, debt_counts)
        risk = weighted_risk(signals)

        records = []
        for module_id in modules:
            records.append(
                {
                    "module_id": module_id,
                    "coupling": coupling[module_id],
                    "centrality": centrality[module_id],
                    "signals": signals[module_id],
                    "risk_score": risk[module_id],
                    "high_risk": risk[module_id] >= HIGH_RISK_THRESHOLD,
                }
            )
        _logger.debug("Computed metrics for %d modules, %d debt items", len(records), len(debt))
        return {
            "modules": records,
            "debt_items": [item.to_dict() for item in debt],
            "integrity_score": self.ledger.integrity_score(),
            "summary": {
                "module_count": len(records),
                "high_risk_modules": sum(1 for record in records if record["high_risk"]),
                "debt_item_count": len(debt),
            },
        }

    # ------------------------------------------------------------------

    def coupling(self, modules: List[str], edges: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        result: Dict[str, Dict[str, Any]] = {module_id: {} for module_id in modules}
        for subset, edge_types in sorted(self.config.coupling_metric_subsets.items()):
            wanted = set(edge_types)
            incoming: Dict[str, Set[str]] = defaultdict(set)
            outgoing: Dict[str, Set[str]] = defaultdict(set)
            for edge in edges:
                if edge["edge_type"] in wanted:
                    outgoing[edge["from"]].add(edge["to"])
                    incoming[edge["to"]].add(edge["from"])
            for module_id in modules:
                afferent = len(incoming[module_id])
                efferent = len(outgoing[module_id])
                total = afferent + efferent
                result[module_id][subset] = {
                    "afferent": afferent,
                    "efferent": efferent,
                    "instability": round(efferent / total, 4) if total else 0.0,
                }
        return result

    def centrality(self, modules: List[str], edges: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        wanted = set(self.config.centrality_edge_types)
        degree: Dict[str, float] = {module_id: 0.0 for module_id in modules}
        for edge in edges:
            if edge["edge_type"] not in wanted:
                continue
            weight = self.config.edge_weights.get(edge["edge_type"], 0.0)
            degree[edge["from"]] += weight
            degree[edge["to"]] += weight
        peak = max(degree.values(), default=0.0)
        raw = {module_id: (value / peak if peak else 0.0) for module_id, value in degree.items()}
        population = list(raw.values())
        result: Dict[str, Dict[str, Any]] = {}
        for module_id in modules:
            entry: Dict[str, Any] = dict(self.ledger.dampen(raw[module_id]))
            entry["weighted_degree"] = round(degree[module_id], 4)
            entry["percentile"] = percentile_leq(raw[module_id], population)
            result[module_id] = entry
        return result

    def risk_signals(
        self,
        modules: List[str],
        edges: List[Dict[str, Any]],
        debt_counts: Mapping[str, int],
    ) -> Dict[str, Dict[str, int]]:
        neighbours: Dict[str, Set[str]] = defaultdict(set)
        for edge in edges:
            neighbours[edge["from"]].add(edge["to"])
            neighbours[edge["to"]].add(edge["from"])

        symbol_modules = {
            item["class_id"]: item.get("module_id")
            for item in self.facts.get("symbol_index", {}).get("symbols", [])
            if isinstance(item, dict) and "class_id" in item
        }
        plugins: Dict[str, int] = defaultdict(int)
        overrides: Dict[str, int] = defaultdict(int)
        core_prefix = self.config.core_vendor.lower() + "\\"
        for plugin in self.facts.get("plugin_chains", {}).get("plugins", []):
            target = str(plugin.get("target_class") or "").lower()
            owner = symbol_modules.get(target)
            if owner:
                plugins[owner] += 1
            if target.startswith(core_prefix):
                overrides[str(plugin.get("declared_by"))] += 1
        for resolution in self.facts.get("di_resolution_map", {}).get("resolutions", []):
            if resolution.get("is_core_override"):
                overrides[str(resolution.get("declared_by"))] += 1

        churn = {
            item["module_id"]: int(item.get("churn_total", 0))
            for item in self.facts.get("git_churn", {}).get("modules", [])
            if isinstance(item, dict) and "module_id" in item
        }
        files: Dict[str, int] = defaultdict(int)
        for item in self.facts.get("file_index", {}).get("files", []):
            files[str(item.get("module_id"))] += 1

        return {
            module_id: {
                "coupling_refs": len(neighbours[module_id]),
                "plugin_count": plugins[module_id],
                "core_override_count": overrides[module_id],
                "churn_total": churn.get(module_id, 0),
                "debt_count": debt_counts.get(module_id, 0),
                "file_count": files[module_id],
            }
            for module_id in modules
        }

    def debt_items(self, modules: List[str], edges: List[Dict[str, Any]]) -> List[DebtItem]:
        items: List[DebtItem] = []
        paths = {
            item["module_id"]: item.get("path") or item["module_id"]
            for item in self.facts.get("module_graph", {}).get("modules", [])
            if isinstance(item, dict) and "module_id" in item
        }

        graph: Dict[str, Set[str]] = {module_id: set() for module_id in modules}
        neighbours: Dict[str, Set[str]] = defaultdict(set)
        for edge in edges:
            graph[edge["from"]].add(edge["to"])
            neighbours[edge["from"]].add(edge["to"])
            neighbours[edge["to"]].add(edge["from"])

        for component in strongly_connected(graph):
            if len(component) < 2:
                continue
            members = sorted(component)
            items.append(
                _debt(
                    "circular_dependency",
                    "high",
                    members[0],
                    f"Modules depend on each other in a cycle: {', '.join(members)}",
                    members,
                    [Evidence.of(INFERENCE, paths[member], note="dependency cycle member") for member in members],
                )
            )

        for module_id in modules:
            count = len(neighbours[module_id])
            if count > GOD_MODULE_CONNECTIONS:
                items.append(
                    _debt(
                        "god_module",
                        "medium",
                        module_id,
                        f"{module_id} is connected to {count} other modules",
                        [module_id],
                        [Evidence.of(INFERENCE, paths[module_id], note=f"{count} connections")],
                    )
                )

        grouped: Dict[Tuple[str, str], Dict[str, List[Dict[str, Any]]]] = defaultdict(lambda: defaultdict(list))
        for resolution in self.facts.get("di_resolution_map", {}).get("resolutions", []):
            key = (str(resolution.get("di_target_id")), str(resolution.get("area")))
            grouped[key][str(resolution.get("declared_by"))].extend(resolution.get("evidence") or [])
        for (target, area), declarers in sorted(grouped.items()):
            if len(declarers) < 2:
                continue
            members = sorted(declarers)
            item = _debt(
                "multiple_override",
                "medium",
                members[0],
                f"{target} is overridden in area '{area}' by {len(members)} modules",
                members,
                [],
            )
            item.evidence = [
                Evidence(
                    kind=str(evidence.get("type", INFERENCE)),
                    source_file=str(evidence.get("source_file", "")),
                    line_start=(evidence.get("source_span") or {}).get("line_start"),
                    confidence=float(evidence.get("confidence", 0.5)),
                    note=str(evidence.get("notes", "")),
                )
                for member in members
                for evidence in declarers[member]
            ]
            items.append(item)

        return sorted(items, key=lambda item: (item.severity_rank, item.module_id, item.debt_type))


def weighted_risk(signals: Mapping[str, Mapping[str, int]]) -> Dict[str, float]:
    """Weighted sum of signals, each normalised by its maximum across modules."""
    peaks = {
        name: max((values[name] for values in signals.values()), default=0)
        for name in RISK_WEIGHTS
    }
    scores: Dict[str, float] = {}
    for module_id, values in signals.items():
        total = 0.0
        for name, weight in RISK_WEIGHTS.items():
            if peaks[name]:
                total += weight * (values[name] / peaks[name])
        scores[module_id] = round(min(1.0, total), 3)
    return scores


def strongly_connected(graph: Mapping[str, Set[str]]) -> List[List[str]]:
    """Tarjan's algorithm, iterative, visiting nodes in sorted order."""
    index_of: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    on_stack: Set[str] = set()
    stack: List[str] = []
    components: List[List[str]] = []
    counter = 0

    for root in sorted(graph):
        if root in index_of:
            continue
        work: List[Tuple[str, List[str]]] = [(root, sorted(graph.get(root, ())))]
        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        while work:
            node, pending = work[-1]
            if pending:
                nxt = pending.pop(0)
                if nxt not in index_of:
                    index_of[nxt] = lowlink[nxt] = counter
                    counter += 1
                    stack.append(nxt)
                    on_stack.add(nxt)
                    work.append((nxt, sorted(graph.get(nxt, ()))))
                elif nxt in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[nxt])
                continue
            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index_of[node]:
                component: List[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))
    return components


def _debt(
    debt_type: str,
    severity: str,
    module_id: str,
    description: str,
    modules: List[str],
    evidence: List[Evidence],
) -> DebtItem:
    return DebtItem(
        debt_type=debt_type,
        severity=severity,
        severity_rank=_SEVERITY_RANK[severity],
        module_id=module_id,
        description=description,
        modules=modules,
        evidence=evidence,
    )


__all__ = ["ArchitectureAnalyzer", "RISK_WEIGHTS", "strongly_connected", "weighted_risk"]
