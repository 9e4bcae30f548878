"""Read-side access to a compiled bundle."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from .identity import ids

LOOKUP_KINDS = ("symbol", "module", "event", "route", "scenario")


class BundleNotFoundError(FileNotFoundError):
    """Raised when a directory does not hold a compiled bundle."""


class BundleReader:
    """Loads ``manifest.json`` and the reverse index lazily and answers lookups."""

    def __init__(self, bundle_dir: Path) -> None:
        self.bundle_dir = Path(bundle_dir)
        manifest = self.bundle_dir / "manifest.json"
        if not manifest.is_file():
            raise BundleNotFoundError(f"No compiled bundle at {self.bundle_dir}")
        self.manifest: Dict[str, Any] = _load(manifest)
        self._reverse_index: Optional[Dict[str, Any]] = None

    @property
    def reverse_index(self) -> Dict[str, Any]:
        if self._reverse_index is None:
            path = self.bundle_dir / "reverse_index" / "reverse_index.json"
            self._reverse_index = _load(path) if path.is_file() else {}
        return self._reverse_index

    def lookup(self, kind: str, key: str) -> Optional[Dict[str, Any]]:
        """Dispatch to one of the lookup methods; unknown kinds raise ValueError."""
        if kind == "symbol":
            return self.symbol(key)
        if kind == "module":
            return self.module(key)
        if kind == "event":
            return self.event(key)
        if kind == "route":
            return self.route(key)
        if kind == "scenario":
            return self.scenario(key)
        raise ValueError(f"Unknown lookup kind '{kind}'; expected one of {', '.join(LOOKUP_KINDS)}")

    def symbol(self, name: str) -> Optional[Dict[str, Any]]:
        return (self.reverse_index.get("by_symbol") or {}).get(ids.class_id(name))

    def module(self, module_id: str) -> Optional[Dict[str, Any]]:
        return (self.reverse_index.get("by_module") or {}).get(module_id)

    def event(self, event_id: str) -> Optional[Dict[str, Any]]:
        return (self.reverse_index.get("by_event") or {}).get(event_id)

    def route(self, route_id: str) -> Optional[Dict[str, Any]]:
        return (self.reverse_index.get("by_route") or {}).get(route_id.strip("/"))

    def scenario(self, label: str) -> Optional[Dict[str, Any]]:
        path = self.bundle_dir / "scenarios" / f"{ids.scenario_stem(label)}.json"
        if not path.is_file():
            return None
        return _load(path)

    def scenarios(self) -> List[str]:
        folder = self.bundle_dir / "scenarios"
        if not folder.is_dir():
            return []
        return sorted(item.stem for item in folder.glob("*.json"))


def _load(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


__all__ = ["BundleNotFoundError", "BundleReader", "LOOKUP_KINDS"]
