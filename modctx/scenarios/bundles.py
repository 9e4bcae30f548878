"""Self-contained scenario bundles plus the coverage report."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from ..identity import ids
from ..indexes.builder import Facts
from ..logging import get_logger
from .seeds import API, CLI, CRON, ROUTE, ScenarioSeed, ScenarioSeedResolver, seed_id
from .tracer import API as API_PATH
from .tracer import CLI_COMMAND, CONTROLLER
from .tracer import CRON as CRON_PATH

NO_MATCHING_ROUTE_ID = "no_matching_route_id"
JOB_SYMBOL_NOT_DECLARED = "job_symbol_not_declared"
COMMAND_SYMBOL_NOT_DECLARED = "command_symbol_not_declared"
ENDPOINT_NOT_DECLARED = "endpoint_not_declared"
MISSING_ENTRY_SYMBOL = "missing_entry_symbol"
UNSUPPORTED_ENTRY_TYPE = "unsupported_entry_type"

REASON_CODES = (
    NO_MATCHING_ROUTE_ID,
    JOB_SYMBOL_NOT_DECLARED,
    COMMAND_SYMBOL_NOT_DECLARED,
    ENDPOINT_NOT_DECLARED,
    MISSING_ENTRY_SYMBOL,
    UNSUPPORTED_ENTRY_TYPE,
)

_STEP_KINDS = {
    CONTROLLER: "http_request",
    CRON_PATH: "scheduled_task",
    CLI_COMMAND: "cli_command",
    API_PATH: "api_call",
}

_logger = get_logger("scenarios")


@dataclass
class ScenarioSet:
    bundles: Dict[str, Dict[str, Any]]
    coverage: Dict[str, Any]
    seeds: List[ScenarioSeed] = field(default_factory=list)


class ScenarioBundleGenerator:
    """Matches execution paths to seeds and assembles one bundle per scenario."""

    def __init__(
        self,
        facts: Facts,
        reverse_index: Mapping[str, Any],
        architecture: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.facts = facts
        self.reverse_index = reverse_index
        self.architecture = architecture or {}

    def generate(self, paths: Sequence[Mapping[str, Any]]) -> ScenarioSet:
        seeds = ScenarioSeedResolver(self.facts).resolve()
        lookup = self._seed_lookup(seeds)
        module_risk = {
            item["module_id"]: float(item.get("risk_score", 0.0))
            for item in self.architecture.get("modules") or []
            if isinstance(item, dict) and "module_id" in item
        }
        modules = {
            item["module_id"]: item
            for item in (self.facts.get("module_graph") or {}).get("modules") or []
            if isinstance(item, dict) and "module_id" in item
        }
        debt = [item for item in self.architecture.get("debt_items") or [] if isinstance(item, dict)]
        violations = [
            item
            for item in (self.facts.get("layer_classification") or {}).get("violations") or []
            if isinstance(item, dict)
        ]

        bundles: Dict[str, Dict[str, Any]] = {}
        matched: Dict[str, bool] = {}
        unmatched_details: Dict[str, Dict[str, Any]] = {}

        for path in paths:
            label = ids.scenario_stem(str(path.get("scenario") or ids.UNKNOWN))
            entry_type = str(path.get("entry_type") or ids.UNKNOWN)
            entry_class = str(path.get("entry_class") or "")
            seed = self._match(path, lookup)
            if matched.get(label) and seed is None:
                continue

            affected = self._affected_modules(path)
            bundle = {
                "scenario": label,
                "entry_point": {
                    "type": entry_type,
                    "class": entry_class,
                    "module": path.get("module_id") or ids.UNKNOWN,
                    "area": path.get("area"),
                    "route_id": path.get("route_id"),
                    "step_kind": _STEP_KINDS.get(entry_type, ids.UNKNOWN),
                },
                "execution_chain": {
                    "resolved_class": path.get("resolved_class") or entry_class,
                    "di_chain": chain_steps(path.get("di_chain") or []),
                    "plugin_stack": list(path.get("plugin_stack") or []),
                    "observer_triggers": list(path.get("observer_triggers") or []),
                    "complexity": dict(path.get("complexity") or {}),
                },
                "affected_modules": affected,
                "dependency_slice": [
                    {
                        "module": module_id,
                        "path": modules[module_id].get("path", ""),
                        "dependencies": list(modules[module_id].get("dependencies") or []),
                    }
                    for module_id in affected
                    if module_id in modules
                ],
                "risk": assess_risk(path, affected, module_risk, debt, violations),
                "qa_concerns": qa_concerns(path, affected, violations),
                "module_refs": self._module_refs(affected),
            }
            if seed is not None:
                bundle["scenario_id"] = seed.id
                bundle["canonical_entry"] = dict(seed.shape)
                matched[label] = True
                unmatched_details.pop(label, None)
            else:
                bundle["scenario_id"] = seed_id({"type": entry_type, "class": entry_class})
                bundle["canonical_entry"] = None
                matched.setdefault(label, False)
                unmatched_details.setdefault(
                    label,
                    {
                        "scenario": label,
                        "scenario_id": bundle["scenario_id"],
                        "entry_type": entry_type,
                        "reason_code": unmatched_reason(entry_type, entry_class),
                    },
                )
            bundles[label] = bundle

        unmatched_by_type: Dict[str, int] = {}
        for detail in unmatched_details.values():
            unmatched_by_type[detail["entry_type"]] = unmatched_by_type.get(detail["entry_type"], 0) + 1
        coverage = {
            "total_seeds": len(seeds),
            "total_scenarios": len(bundles),
            "matched": sum(1 for value in matched.values() if value),
            "unmatched": sum(1 for value in matched.values() if not value),
            "unmatched_by_type": unmatched_by_type,
            "unmatched_details": [unmatched_details[key] for key in sorted(unmatched_details)],
        }
        _logger.debug(
            "Assembled %d scenarios (%d matched) from %d seeds",
            coverage["total_scenarios"],
            coverage["matched"],
            coverage["total_seeds"],
        )
        return ScenarioSet(bundles=bundles, coverage=coverage, seeds=seeds)

    # ------------------------------------------------------------------

    def _seed_lookup(self, seeds: Iterable[ScenarioSeed]) -> Dict[str, ScenarioSeed]:
        """Keys: every seed shape, plus the owning class (and method) of a job or command."""
        by_shape: Dict[str, ScenarioSeed] = {}
        for seed in seeds:
            shape = seed.shape
            if seed.type == ROUTE:
                by_shape[f"route:{shape['route_id']}"] = seed
            elif seed.type == CRON:
                by_shape[f"cron:{shape['group']}:{shape['cron_id']}"] = seed
            elif seed.type == CLI:
                by_shape[f"cli:{shape['command_name']}"] = seed
            elif seed.type == API:
                by_shape[f"api:{shape['method']} {shape['path']}"] = seed

        lookup = dict(by_shape)
        for job in (self.facts.get("cron_map") or {}).get("cron_jobs") or []:
            seed = by_shape.get(f"cron:{job.get('group') or 'default'}:{job.get('cron_id')}")
            if seed is not None and job.get("instance"):
                class_key = f"cron_class:{ids.class_id(job['instance'])}"
                lookup.setdefault(f"{class_key}:{job.get('method') or ''}", seed)
                lookup.setdefault(class_key, seed)
        for command in (self.facts.get("cli_commands") or {}).get("commands") or []:
            seed = by_shape.get(f"cli:{command.get('command_name')}")
            if seed is not None and command.get("command_class"):
                lookup.setdefault(f"cli_class:{ids.class_id(command['command_class'])}", seed)
        return lookup

    def _match(self, path: Mapping[str, Any], lookup: Mapping[str, ScenarioSeed]) -> Optional[ScenarioSeed]:
        entry_type = path.get("entry_type")
        entry_class = str(path.get("entry_class") or "")
        if entry_type == CONTROLLER and path.get("route_id"):
            return lookup.get(f"route:{path['route_id']}")
        if entry_type == CRON_PATH and path.get("cron_id"):
            return lookup.get(f"cron:{path.get('cron_group') or 'default'}:{path['cron_id']}")
        if entry_type == CRON_PATH and entry_class:
            class_key = f"cron_class:{ids.class_id(entry_class)}"
            if path.get("entry_method"):
                return lookup.get(f"{class_key}:{path['entry_method']}") or lookup.get(class_key)
            return lookup.get(class_key)
        if entry_type == CLI_COMMAND and path.get("command_name"):
            return lookup.get(f"cli:{path['command_name']}")
        if entry_type == CLI_COMMAND and entry_class:
            return lookup.get(f"cli_class:{ids.class_id(entry_class)}")
        if entry_type == API_PATH and path.get("http_method") and path.get("http_path"):
            return lookup.get(f"api:{str(path['http_method']).upper()} {path['http_path']}")
        return None

    def _affected_modules(self, path: Mapping[str, Any]) -> List[str]:
        modules: Set[str] = set()
        entry_module = path.get("module_id")
        if entry_module:
            modules.add(str(entry_module))
        classes = [step.get("resolved_to") for step in path.get("di_chain") or []]
        classes.extend(plugin.get("plugin_class") for plugin in path.get("plugin_stack") or [])
        for trigger in path.get("observer_triggers") or []:
            classes.extend(observer.get("observer_class") for observer in trigger.get("observers") or [])
        for symbol in classes:
            module_id = ids.module_id_from_symbol(str(symbol or ""))
            if module_id != ids.UNKNOWN:
                modules.add(module_id)
        return sorted(modules)

    def _module_refs(self, modules: Sequence[str]) -> Dict[str, Dict[str, int]]:
        by_module = self.reverse_index.get("by_module") or {}
        refs: Dict[str, Dict[str, int]] = {}
        for module_id in modules:
            entry = by_module.get(module_id)
            if entry is None:
                continue
            refs[module_id] = {
                "class_count": len(entry.get("classes") or []),
                "route_count": len(entry.get("routes") or []),
                "debt_count": len(entry.get("debt_items") or []),
                "edge_count": len(entry.get("edges") or []),
            }
        return refs


def assess_risk(
    path: Mapping[str, Any],
    affected: Sequence[str],
    module_risk: Mapping[str, float],
    debt: Sequence[Mapping[str, Any]],
    violations: Sequence[Mapping[str, Any]],
) -> Dict[str, Any]:
    """Additive heuristic risk bounded to [0, 1]."""
    complexity = path.get("complexity") or {}
    plugin_depth = int(complexity.get("plugin_depth") or 0)
    observer_count = int(complexity.get("observer_count") or 0)
    touched = set(affected)
    reasons: List[str] = []
    score = 0.0

    peak = max((module_risk.get(module_id, 0.0) for module_id in affected), default=0.0)
    if peak >= 0.7:
        reasons.append(f"High modifiability risk module involved (score: {peak})")
        score += 0.3
    elif peak >= 0.4:
        score += 0.15

    if plugin_depth > 5:
        reasons.append(f"Deep plugin stack ({plugin_depth} plugins)")
        score += 0.25
    elif plugin_depth > 3:
        reasons.append(f"Moderate plugin stack ({plugin_depth} plugins)")
        score += 0.1

    if observer_count > 5:
        reasons.append(f"High observer count ({observer_count} observers)")
        score += 0.2
    elif observer_count > 2:
        score += 0.05

    if len(affected) > 5:
        reasons.append(f"Wide cross-module span ({len(affected)} modules)")
        score += 0.15

    relevant_debt = sum(
        1 for item in debt if touched.intersection(item.get("modules") or [item.get("module_id")])
    )
    if relevant_debt:
        reasons.append(f"{relevant_debt} architectural debt item(s) in affected modules")
        score += min(0.2, relevant_debt * 0.05)

    relevant_violations = sum(1 for item in violations if item.get("module") in touched)
    if relevant_violations:
        reasons.append(f"{relevant_violations} layer violation(s) in affected modules")
        score += min(0.1, relevant_violations * 0.02)

    score = min(1.0, score)
    if score >= 0.6:
        level = "high"
    elif score >= 0.3:
        level = "medium"
    else:
        level = "low"
    return {
        "level": level,
        "score": round(score, 3),
        "reasons": reasons or ["No significant risk indicators detected"],
        "affected_module_count": len(affected),
        "plugin_depth": plugin_depth,
        "observer_count": observer_count,
    }


def qa_concerns(
    path: Mapping[str, Any],
    affected: Sequence[str],
    violations: Sequence[Mapping[str, Any]],
) -> List[Dict[str, str]]:
    complexity = path.get("complexity") or {}
    stack = path.get("plugin_stack") or []
    concerns: List[Dict[str, str]] = []

    def concern(kind: str, description: str, severity: str) -> None:
        concerns.append({"concern_type": kind, "description": description, "severity": severity})

    if len(stack) > 1:
        concern(
            "plugin_ordering",
            "Multiple plugins in chain; verify sort_order and test execution sequence",
            "high" if len(stack) > 3 else "medium",
        )
    around = int(complexity.get("around_count") or 0)
    if around:
        concern("around_plugin", f"{around} around plugin(s) can short-circuit execution; verify proceed() is called", "high")
    observers = int(complexity.get("observer_count") or 0)
    if observers:
        concern(
            "observer_side_effects",
            f"{observers} observer(s) triggered; verify no unintended state mutations",
            "high" if observers > 3 else "medium",
        )
    if len(affected) > 3:
        concern("cross_module_state", f"Execution spans {len(affected)} modules; test state consistency across them", "medium")
    chain = path.get("di_chain") or []
    if chain:
        concern("di_resolution", f"{len(chain)} DI preference(s) in chain; verify implementations honour the contract", "medium")
    touched = set(affected)
    in_scope = sum(1 for item in violations if item.get("module") in touched)
    if in_scope:
        concern("layer_violation", f"{in_scope} layer violation(s) in scope", "high")
    return concerns


def chain_steps(chain: Sequence[Any]) -> List[Dict[str, Any]]:
    """Number the hops of a DI chain in delegation order."""
    hops = [item for item in chain if isinstance(item, Mapping)]
    return [dict(item, step=index) for index, item in enumerate(hops, 1)]


def unmatched_reason(entry_type: str, entry_class: str) -> str:
    if entry_type == CONTROLLER:
        return NO_MATCHING_ROUTE_ID
    if entry_type in (CRON_PATH, CLI_COMMAND, API_PATH) and not entry_class:
        return MISSING_ENTRY_SYMBOL
    if entry_type == CRON_PATH:
        return JOB_SYMBOL_NOT_DECLARED
    if entry_type == CLI_COMMAND:
        return COMMAND_SYMBOL_NOT_DECLARED
    if entry_type == API_PATH:
        return ENDPOINT_NOT_DECLARED
    return UNSUPPORTED_ENTRY_TYPE


__all__ = [
    "REASON_CODES",
    "ScenarioBundleGenerator",
    "ScenarioSet",
    "assess_risk",
    "chain_steps",
    "qa_concerns",
    "unmatched_reason",
]
