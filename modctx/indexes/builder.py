"""Reverse indexes joined from every fact set on canonical ids."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from ..identity import ids
from ..logging import get_logger

Facts = Mapping[str, Mapping[str, Any]]

_logger = get_logger("indexes")


def collect_edges(facts: Facts) -> List[Dict[str, Any]]:
    """All edge records emitted by any producer, in producer-name order."""
    edges: List[Dict[str, Any]] = []
    for name in sorted(facts):
        payload = facts[name]
        for edge in _items(payload, "edges"):
            if "from" in edge and "to" in edge and "edge_type" in edge:
                edges.append(dict(edge))
    return edges


def emitted_edge_types(facts: Facts) -> List[str]:
    return sorted({str(edge["edge_type"]) for edge in collect_edges(facts)})


class IndexBuilder:
    """Builds the by-symbol, by-module, by-event and by-route lookup maps.

    Each map is seeded from its authoritative fact set, then every other fact
    set is scanned once and appended by id. Foreign ids with no seed are
    skipped here; the validator reports them.
    """

    def __init__(self, facts: Facts, architecture: Optional[Mapping[str, Any]] = None) -> None:
        self.facts = facts
        self.architecture = architecture or {}

    def build(self) -> Dict[str, Any]:
        by_symbol = self.by_symbol()
        by_module = self.by_module()
        by_event = self.by_event()
        by_route = self.by_route()
        _logger.debug(
            "Indexed %d symbols, %d modules, %d events, %d routes",
            len(by_symbol),
            len(by_module),
            len(by_event),
            len(by_route),
        )
        return {
            "by_symbol": by_symbol,
            "by_module": by_module,
            "by_event": by_event,
            "by_route": by_route,
            "summary": {
                "indexed_symbols": len(by_symbol),
                "indexed_modules": len(by_module),
                "indexed_events": len(by_event),
                "indexed_routes": len(by_route),
            },
        }

    # ------------------------------------------------------------------

    def by_symbol(self) -> Dict[str, Dict[str, Any]]:
        index: Dict[str, Dict[str, Any]] = {}
        for symbol in self._records("symbol_index", "symbols"):
            index[symbol["class_id"]] = {
                "class_id": symbol["class_id"],
                "fqcn": symbol.get("fqcn"),
                "file_id": symbol.get("file_id"),
                "module_id": symbol.get("module_id"),
                "symbol_type": symbol.get("symbol_type"),
                "extends": symbol.get("extends"),
                "implements": list(symbol.get("implements") or []),
                "plugins_on": [],
                "is_plugin_for": [],
                "di_resolutions": [],
                "events_observed": [],
                "routes": [],
                "cron_jobs": [],
                "cli_commands": [],
                "endpoints": [],
            }

        def entry(symbol: Optional[str]) -> Optional[Dict[str, Any]]:
            return index.get(ids.class_id(symbol)) if symbol else None

        for plugin in self._records("plugin_chains", "plugins"):
            target = entry(plugin.get("target_class"))
            if target is not None:
                target["plugins_on"].append(_plugin_summary(plugin))
            owner = entry(plugin.get("plugin_class"))
            if owner is not None:
                owner["is_plugin_for"].append(plugin.get("target_class"))
        for resolution in self._records("di_resolution_map", "resolutions"):
            for role, key in (("target", "for"), ("implementation", "resolved_to")):
                found = entry(resolution.get(key))
                if found is not None:
                    found["di_resolutions"].append(
                        {
                            "role": role,
                            "for": resolution.get("for"),
                            "resolved_to": resolution.get("resolved_to"),
                            "area": resolution.get("area"),
                            "declared_by": resolution.get("declared_by"),
                        }
                    )
        for event in self._records("event_graph", "events"):
            for listener in event.get("listeners") or []:
                found = entry(listener.get("observer_class"))
                if found is not None:
                    found["events_observed"].append(event["event_id"])
        for route in self._records("route_map", "routes"):
            found = entry(route.get("action_class"))
            if found is not None:
                found["routes"].append(route["route_id"])
        for job in self._records("cron_map", "cron_jobs"):
            found = entry(job.get("instance"))
            if found is not None:
                found["cron_jobs"].append(job["cron_id"])
        for command in self._records("cli_commands", "commands"):
            found = entry(command.get("command_class"))
            if found is not None:
                found["cli_commands"].append(command["command_name"])
        for endpoint in self._records("api_surface", "endpoints"):
            found = entry(endpoint.get("service_class"))
            if found is not None:
                found["endpoints"].append(f"{endpoint['method']} {endpoint['path']}")

        for record in index.values():
            for key in ("is_plugin_for", "events_observed", "routes", "cron_jobs", "cli_commands", "endpoints"):
                record[key] = sorted(set(record[key]))
        return index

    def by_module(self) -> Dict[str, Dict[str, Any]]:
        index: Dict[str, Dict[str, Any]] = {}
        for module in self._records("module_graph", "modules"):
            index[module["module_id"]] = {
                "module_id": module["module_id"],
                "kind": module.get("kind"),
                "path": module.get("path"),
                "dependencies": list(module.get("dependencies") or []),
                "files": [],
                "classes": [],
                "plugins_declared": [],
                "plugins_received": [],
                "events_observed": [],
                "events_dispatched": [],
                "routes": [],
                "cron_jobs": [],
                "cli_commands": [],
                "endpoints": [],
                "debt_items": [],
                "edges": [],
            }

        def append(module_id: Any, key: str, value: Any) -> None:
            found = index.get(module_id) if isinstance(module_id, str) else None
            if found is not None:
                found[key].append(value)

        for item in self._records("file_index", "files"):
            append(item.get("module_id"), "files", item["file_id"])
        for symbol in self._records("symbol_index", "symbols"):
            append(symbol.get("module_id"), "classes", symbol["class_id"])
        for plugin in self._records("plugin_chains", "plugins"):
            append(plugin.get("declared_by"), "plugins_declared", _plugin_summary(plugin))
        for event in self._records("event_graph", "events"):
            for listener in event.get("listeners") or []:
                append(listener.get("module_id"), "events_observed", event["event_id"])
        dispatches = self.facts.get("event_graph", {}).get("dispatches") or {}
        for event_id, modules in sorted(dispatches.items()):
            for module_id in modules:
                append(module_id, "events_dispatched", event_id)
        for route in self._records("route_map", "routes"):
            append(route.get("module_id"), "routes", route["route_id"])
        for job in self._records("cron_map", "cron_jobs"):
            append(job.get("module_id"), "cron_jobs", job["cron_id"])
        for command in self._records("cli_commands", "commands"):
            append(command.get("module_id"), "cli_commands", command["command_name"])
        for endpoint in self._records("api_surface", "endpoints"):
            append(endpoint.get("module_id"), "endpoints", f"{endpoint['method']} {endpoint['path']}")
        for item in _items(self.architecture, "debt_items"):
            for module_id in item.get("modules") or [item.get("module_id")]:
                append(module_id, "debt_items", _debt_summary(item))
        for edge in collect_edges(self.facts):
            append(edge["from"], "edges", edge)
            if edge["to"] != edge["from"]:
                append(edge["to"], "edges", edge)

        for record in index.values():
            for key in ("files", "classes", "events_observed", "events_dispatched", "routes", "cron_jobs", "cli_commands", "endpoints"):
                record[key] = sorted(set(record[key]))
        symbol_modules = {
            symbol["class_id"]: symbol.get("module_id")
            for symbol in self._records("symbol_index", "symbols")
        }
        for plugin in self._records("plugin_chains", "plugins"):
            target_module = _owner(index, symbol_modules, plugin.get("target_class"))
            if target_module is not None:
                index[target_module]["plugins_received"].append(_plugin_summary(plugin))
        return index

    def by_event(self) -> Dict[str, Dict[str, Any]]:
        dispatches = self.facts.get("event_graph", {}).get("dispatches") or {}
        index: Dict[str, Dict[str, Any]] = {}
        for event in self._records("event_graph", "events"):
            observers = [
                {
                    "observer_class": listener.get("observer_class"),
                    "module_id": listener.get("module_id"),
                    "method": listener.get("method"),
                    "disabled": bool(listener.get("disabled")),
                }
                for listener in event.get("listeners") or []
            ]
            index[event["event_id"]] = {
                "event_id": event["event_id"],
                "observer_count": event.get("listener_count", len(observers)),
                "observers": observers,
                "cross_module_count": event.get("cross_module_count", 0),
                "risk_score": event.get("risk_score", 0.0),
                "dispatched_by": list(dispatches.get(event["event_id"], [])),
            }
        return index

    def by_route(self) -> Dict[str, Dict[str, Any]]:
        plugins_by_target: Dict[str, List[Dict[str, Any]]] = {}
        for plugin in self._records("plugin_chains", "plugins"):
            key = ids.class_id(plugin.get("target_class") or "")
            plugins_by_target.setdefault(key, []).append(_plugin_summary(plugin))

        index: Dict[str, Dict[str, Any]] = {}
        for route in self._records("route_map", "routes"):
            action_class = route.get("action_class")
            index[route["route_id"]] = {
                "route_id": route["route_id"],
                "area": route.get("area"),
                "front_name": route.get("front_name"),
                "controller": route.get("controller"),
                "action": route.get("action"),
                "action_class": action_class,
                "module_id": route.get("module_id"),
                "declared_by": route.get("declared_by"),
                "plugins_on_controller": plugins_by_target.get(ids.class_id(action_class), [])
                if action_class
                else [],
            }
        return index

    def _records(self, artifact: str, key: str) -> List[Dict[str, Any]]:
        return _items(self.facts.get(artifact) or {}, key)


def _items(payload: Mapping[str, Any], key: str) -> List[Dict[str, Any]]:
    value = payload.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _plugin_summary(plugin: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "plugin_class": plugin.get("plugin_class"),
        "target_class": plugin.get("target_class"),
        "type": plugin.get("type"),
        "subject_method": plugin.get("subject_method"),
        "sort_order": plugin.get("sort_order", 0),
        "declared_by": plugin.get("declared_by"),
    }


def _debt_summary(item: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "debt_type": item.get("debt_type"),
        "severity": item.get("severity"),
        "severity_rank": item.get("severity_rank"),
        "module_id": item.get("module_id"),
        "description": item.get("description"),
    }


def _owner(
    index: Mapping[str, Any], symbol_modules: Mapping[str, Any], symbol: Optional[str]
) -> Optional[str]:
    if not symbol:
        return None
    module_id = symbol_modules.get(ids.class_id(symbol)) or ids.module_id_from_symbol(symbol)
    return module_id if module_id in index else None


__all__ = ["IndexBuilder", "collect_edges", "emitted_edge_types"]
