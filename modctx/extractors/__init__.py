"""Fact extractors and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Iterable, List, Sequence, Set

from .base import (
    Extracted,
    ExtractionContext,
    Extractor,
    Failed,
    Outcome,
    Skipped,
    outcome_summary,
)
from .churn import GitChurnExtractor
from .di import CliCommandExtractor, DiPreferenceExtractor, PluginExtractor
from .entrypoints import ApiSurfaceExtractor, CronExtractor, RouteExtractor
from .events import EventGraphExtractor
from .modules import ModuleGraphExtractor
from .symbols import FileIndexExtractor, SymbolIndexExtractor

_ENTRY_POINT_GROUP = "modctx.extractors"

_BUILTIN_FACTORIES: dict[str, Callable[[], Extractor]] = {
    "module_graph": ModuleGraphExtractor,
    "file_index": FileIndexExtractor,
    "symbol_index": SymbolIndexExtractor,
    "di_resolution_map": DiPreferenceExtractor,
    "plugin_chains": PluginExtractor,
    "event_graph": EventGraphExtractor,
    "route_map": RouteExtractor,
    "cron_map": CronExtractor,
    "cli_commands": CliCommandExtractor,
    "api_surface": ApiSurfaceExtractor,
    "git_churn": GitChurnExtractor,
}


def discover_extractors(enabled: Sequence[str] | None = None) -> List[Extractor]:
    """Instantiate builtin and entry-point extractors, honoring ``enabled``."""

    wanted: Set[str] | None = None
    if enabled:
        wanted = {name.lower() for name in enabled}

    extractors: List[Extractor] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], Extractor]) -> None:
        key = name.lower()
        if wanted is not None and key not in wanted:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, Extractor):
            raise TypeError(f"Extractor factory for '{name}' did not return an Extractor instance")
        if not instance.name:
            instance.name = key
        extractors.append(instance)
        seen.add(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load extractor entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> Extractor:
            return _coerce_extractor(obj)

        _add(entry.name, _factory)

    if wanted is not None and wanted - seen:
        missing = ", ".join(sorted(wanted - seen))
        raise ValueError(f"Unknown extractors requested: {missing}")

    return extractors


def _coerce_extractor(obj: object) -> Extractor:
    if isinstance(obj, Extractor):
        return obj
    if isinstance(obj, type) and issubclass(obj, Extractor):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, Extractor):
            return instance
    raise TypeError("Extractor entry point must be an Extractor subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "Extracted",
    "ExtractionContext",
    "Extractor",
    "Failed",
    "Outcome",
    "Skipped",
    "discover_extractors",
    "outcome_summary",
]
