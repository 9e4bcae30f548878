"""Canonical entry-point seeds; the only place entry-point identity is made."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping

from ..indexes.builder import Facts

ROUTE = "route"
CRON = "cron"
CLI = "cli"
API = "api"

SEED_TYPES = (ROUTE, CRON, CLI, API)


def seed_id(shape: Mapping[str, Any]) -> str:
    """sha1 of the shape's canonical JSON (keys sorted at every depth)."""
    encoded = json.dumps(_sort_keys(shape), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha1(encoded.encode("utf-8")).hexdigest()


def _sort_keys(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _sort_keys(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_sort_keys(item) for item in value]
    return value


@dataclass(frozen=True)
class ScenarioSeed:
    """Frozen identity of one externally reachable entry point."""

    id: str
    type: str
    shape: Mapping[str, Any]

    @classmethod
    def route(cls, area: str, route_id: str) -> "ScenarioSeed":
        return cls._make({"type": ROUTE, "area": area, "route_id": route_id})

    @classmethod
    def cron(cls, cron_id: str, group: str | None = None) -> "ScenarioSeed":
        return cls._make({"type": CRON, "group": group or "default", "cron_id": cron_id})

    @classmethod
    def cli(cls, command_name: str) -> "ScenarioSeed":
        return cls._make({"type": CLI, "command_name": command_name})

    @classmethod
    def api(cls, method: str, path: str) -> "ScenarioSeed":
        return cls._make({"type": API, "method": method.upper(), "path": path})

    @classmethod
    def _make(cls, shape: Dict[str, Any]) -> "ScenarioSeed":
        return cls(id=seed_id(shape), type=shape["type"], shape=shape)

    def to_dict(self) -> Dict[str, Any]:
        payload = dict(self.shape)
        payload["id"] = self.id
        return payload


class ScenarioSeedResolver:
    """Derives the deduplicated seed set from the aggregated facts."""

    def __init__(self, facts: Facts) -> None:
        self.facts = facts

    def resolve(self) -> List[ScenarioSeed]:
        seeds: Dict[str, ScenarioSeed] = {}
        for seed in self._candidates():
            seeds.setdefault(seed.id, seed)
        return [seeds[key] for key in sorted(seeds)]

    def _candidates(self) -> Iterable[ScenarioSeed]:
        for route in self._records("route_map", "routes"):
            if route.get("route_id") and route.get("area"):
                yield ScenarioSeed.route(route["area"], route["route_id"])
        for job in self._records("cron_map", "cron_jobs"):
            if job.get("cron_id"):
                yield ScenarioSeed.cron(job["cron_id"], job.get("group"))
        for command in self._records("cli_commands", "commands"):
            if command.get("command_name"):
                yield ScenarioSeed.cli(command["command_name"])
        for endpoint in self._records("api_surface", "endpoints"):
            if endpoint.get("method") and endpoint.get("path"):
                yield ScenarioSeed.api(endpoint["method"], endpoint["path"])

    def _records(self, artifact: str, key: str) -> List[Dict[str, Any]]:
        value = (self.facts.get(artifact) or {}).get(key)
        return [item for item in value if isinstance(item, dict)] if isinstance(value, list) else []


__all__ = ["API", "CLI", "CRON", "ROUTE", "SEED_TYPES", "ScenarioSeed", "ScenarioSeedResolver", "seed_id"]
