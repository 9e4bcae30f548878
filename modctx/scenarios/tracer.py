"""Execution-path records derived from the aggregated facts.

An extractor may supply ``execution_paths`` directly; this tracer fills the
gap otherwise. Each record names its entry point, applies the DI preference
for the entry class, and lists the interceptors and listeners that run.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..identity import ids
from ..indexes.builder import Facts
from ..models import DiChainStep

CONTROLLER = "controller"
CRON = "cron"
CLI_COMMAND = "cli_command"
API = "api"

_CONTROLLER_EVENTS = ("controller_action_predispatch", "controller_action_postdispatch")


class ExecutionPathTracer:
    def __init__(self, facts: Facts) -> None:
        self.facts = facts
        self._preferences = self._index_preferences()
        self._plugins = self._index_plugins()
        self._listeners = self._index_listeners()

    def trace(self) -> List[Dict[str, Any]]:
        paths: List[Dict[str, Any]] = []
        for route in self._records("route_map", "routes"):
            if not route.get("action_class"):
                continue
            events = list(_CONTROLLER_EVENTS)
            events.append(f"controller_action_predispatch_{route.get('front_name', '')}")
            paths.append(
                self._path(
                    CONTROLLER,
                    route["action_class"],
                    area=route.get("area", "frontend"),
                    module_id=route.get("module_id"),
                    route_id=route["route_id"],
                    events=events,
                )
            )
        for job in self._records("cron_map", "cron_jobs"):
            path = self._path(CRON, job["instance"], area="crontab", module_id=job.get("module_id"), method=job.get("method"))
            path["cron_id"] = job.get("cron_id")
            path["cron_group"] = job.get("group") or "default"
            paths.append(path)
        for command in self._records("cli_commands", "commands"):
            path = self._path(CLI_COMMAND, command["command_class"], area="global", module_id=command.get("module_id"))
            path["command_name"] = command.get("command_name")
            paths.append(path)
        for endpoint in self._records("api_surface", "endpoints"):
            path = self._path(
                API,
                endpoint["service_class"],
                area="webapi_rest",
                module_id=endpoint.get("module_id"),
                method=endpoint.get("service_method"),
            )
            path["http_method"] = endpoint["method"]
            path["http_path"] = endpoint["path"]
            paths.append(path)
        return disambiguate(paths)

    def _path(
        self,
        entry_type: str,
        entry_class: str,
        *,
        area: str,
        module_id: Optional[str],
        route_id: Optional[str] = None,
        method: Optional[str] = None,
        events: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        chain = self._resolve(entry_class, area)
        resolved = chain[-1]["resolved_to"] if chain else entry_class
        stack = self._plugins.get(ids.class_id(resolved), [])
        if method:
            stack = [item for item in stack if item.get("subject_method") in (method, "*")]
        stack = sorted(stack, key=lambda item: (item.get("sort_order", 0), item.get("plugin_class", "")))
        triggers = []
        for event_id in events or []:
            observers = self._listeners.get(event_id, [])
            if observers:
                triggers.append({"event_id": event_id, "observers": observers})
        observer_count = sum(len(item["observers"]) for item in triggers)

        member = method if entry_type in (CRON, API) else None
        return {
            "scenario": scenario_label(area, entry_class, member),
            "entry_type": entry_type,
            "entry_class": ids.qualified_name(entry_class),
            "entry_method": method,
            "area": area,
            "module_id": module_id or ids.module_id_from_symbol(entry_class),
            "route_id": route_id,
            "resolved_class": ids.qualified_name(resolved),
            "di_chain": chain,
            "plugin_stack": stack,
            "observer_triggers": triggers,
            "complexity": {
                "plugin_depth": len(stack),
                "around_count": sum(1 for item in stack if item.get("type") == "around"),
                "before_count": sum(1 for item in stack if item.get("type") == "before"),
                "after_count": sum(1 for item in stack if item.get("type") == "after"),
                "observer_count": observer_count,
                "di_depth": len(chain),
            },
        }

    def _resolve(self, symbol: str, area: str) -> List[Dict[str, Any]]:
        chain: List[Dict[str, Any]] = []
        seen = {ids.class_id(symbol)}
        current = symbol
        while True:
            options = self._preferences.get(ids.class_id(current), {})
            choice = options.get(area) or options.get("global")
            if choice is None or ids.class_id(choice["resolved_to"]) in seen:
                return chain
            chain.append(
                DiChainStep(
                    step=len(chain) + 1,
                    for_symbol=choice["for"],
                    resolved_to=choice["resolved_to"],
                    area=choice["area"],
                    declared_by=choice["declared_by"],
                ).to_dict()
            )
            current = choice["resolved_to"]
            seen.add(ids.class_id(current))

    def _index_preferences(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        index: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for item in self._records("di_resolution_map", "resolutions"):
            per_area = index.setdefault(str(item.get("di_target_id")), {})
            per_area.setdefault(
                str(item.get("area") or "global"),
                {
                    "for": str(item.get("for") or ""),
                    "resolved_to": str(item.get("resolved_to") or ""),
                    "declared_by": str(item.get("declared_by") or ids.UNKNOWN),
                    "area": str(item.get("area") or "global"),
                },
            )
        return index

    def _index_plugins(self) -> Dict[str, List[Dict[str, Any]]]:
        index: Dict[str, List[Dict[str, Any]]] = {}
        for item in self._records("plugin_chains", "plugins"):
            if item.get("disabled"):
                continue
            index.setdefault(ids.class_id(str(item.get("target_class"))), []).append(
                {
                    "plugin_class": item.get("plugin_class"),
                    "type": item.get("type"),
                    "subject_method": item.get("subject_method"),
                    "sort_order": item.get("sort_order", 0),
                    "declared_by": item.get("declared_by"),
                }
            )
        return index

    def _index_listeners(self) -> Dict[str, List[Dict[str, Any]]]:
        index: Dict[str, List[Dict[str, Any]]] = {}
        for event in self._records("event_graph", "events"):
            index[event["event_id"]] = [
                {
                    "observer_class": listener.get("observer_class"),
                    "module_id": listener.get("module_id"),
                    "method": listener.get("method"),
                }
                for listener in event.get("listeners") or []
                if not listener.get("disabled")
            ]
        return index

    def _records(self, artifact: str, key: str) -> List[Dict[str, Any]]:
        value = (self.facts.get(artifact) or {}).get(key)
        return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


def scenario_label(area: str, entry_class: str, member: Optional[str] = None) -> str:
    """``frontend`` + ``Acme\\Shop\\Controller\\Cart\\Add`` -> ``frontend.controller.cart.add``.

    ``member`` (a job method or service method) is appended when given, so
    entry points sharing one class stay apart.
    """
    parts = ids.split_symbol(entry_class)
    tail = parts[2:] if len(parts) > 2 else parts
    if member:
        tail = tail + [member]
    return ids.scenario_stem(".".join([area] + [part.lower() for part in tail]))


def disambiguate(paths: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Give every traced entry point its own label.

    Colliding API paths take the HTTP verb first; anything still colliding is
    numbered ``.2``, ``.3``... in entry-point order, the first keeping its label.
    """
    for attempt in ("verb", "index"):
        groups: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for path in paths:
            groups[path["scenario"]].append(path)
        for label, group in groups.items():
            if len(group) < 2:
                continue
            group.sort(key=_entry_identity)
            for index, path in enumerate(group, 1):
                if attempt == "verb" and path.get("http_method"):
                    path["scenario"] = f"{label}.{str(path['http_method']).lower()}"
                elif attempt == "index" and index > 1:
                    path["scenario"] = f"{label}.{index}"
    return paths


def _entry_identity(path: Mapping[str, Any]) -> Tuple[str, ...]:
    return tuple(
        str(path.get(key) or "")
        for key in ("entry_type", "route_id", "http_method", "http_path", "cron_id", "command_name", "entry_class", "entry_method")
    )


def records_from(payload: Mapping[str, Any]) -> List[Dict[str, Any]]:
    value = payload.get("execution_paths") if isinstance(payload, Mapping) else None
    return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


__all__ = [
    "API",
    "CLI_COMMAND",
    "CONTROLLER",
    "CRON",
    "ExecutionPathTracer",
    "disambiguate",
    "records_from",
    "scenario_label",
]
