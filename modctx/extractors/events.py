"""Event subscriptions and the code that dispatches each event."""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Set, Tuple

from ..identity import ids
from ..identity.evidence import SOURCE, XML, Evidence
from ..models import EdgeRecord, EventRecord, ObserverRecord
from ..utils import SourceParseError, as_bool, children, line_of, load_xml
from .base import Extractor

_DISPATCH = re.compile(r"->dispatch\(\s*['\"]([A-Za-z0-9_.]+)['\"]")


class EventGraphExtractor(Extractor):
    name = "event_graph"
    view = "runtime"
    description = "Observers per event with dispatch sites and cross-module reach."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        listeners: Dict[str, List[ObserverRecord]] = defaultdict(list)

        for relative in self.config_files(scopes, "events.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            area = self.area_of(relative)
            for event in children(document, "event"):
                event_id = (event.get("name") or "").strip().lower()
                if not event_id:
                    continue
                for observer in children(event, "observer"):
                    instance = observer.get("instance")
                    if not instance:
                        continue
                    name = observer.get("name") or ""
                    listeners[event_id].append(
                        ObserverRecord(
                            event_id=event_id,
                            observer_class=ids.qualified_name(instance),
                            observer_name=name,
                            module_id=self.owner_of_symbol(instance, relative),
                            area=area,
                            method=observer.get("method") or "execute",
                            disabled=as_bool(observer.get("disabled")),
                            evidence=[
                                Evidence.of(
                                    XML,
                                    relative,
                                    line=line_of(text, f'name="{name}"') if name else None,
                                    note=f"observer of {event_id}",
                                )
                            ],
                        )
                    )

        dispatchers = self._dispatch_sites(scopes)
        events: List[EventRecord] = []
        edges: Dict[Tuple[str, str], List[Evidence]] = {}
        for event_id in sorted(listeners):
            observers = [item for item in listeners[event_id] if not item.disabled]
            sites = dispatchers.get(event_id, [])
            dispatching_modules = {module_id for module_id, _ in sites}
            cross = _cross_module_count(observers, dispatching_modules)
            for observer in observers:
                for module_id, site in sites:
                    if ids.is_cross_module(observer.module_id, module_id):
                        edges.setdefault((observer.module_id, module_id), []).extend(
                            observer.evidence + [site]
                        )
            events.append(
                EventRecord(
                    event_id=event_id,
                    listeners=listeners[event_id],
                    listener_count=len(observers),
                    cross_module_count=cross,
                    risk_score=round(min(1.0, 0.1 * len(observers) + 0.2 * cross), 3),
                    evidence=[site for _, site in sites] or listeners[event_id][0].evidence[:1],
                )
            )

        config = self.context.config
        return {
            "events": [record.to_dict() for record in events],
            "dispatches": {
                event_id: sorted({module_id for module_id, _ in sites})
                for event_id, sites in sorted(dispatchers.items())
            },
            "edges": [
                EdgeRecord.build(
                    source,
                    target,
                    "event_observe",
                    evidence,
                    weight=config.edge_weight("event_observe"),
                    cap=self.evidence_cap,
                ).to_dict()
                for (source, target), evidence in sorted(edges.items())
            ],
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("events", []))

    def _dispatch_sites(self, scopes: Sequence[str]) -> Dict[str, List[Tuple[str, Evidence]]]:
        scanner = self.context.scanner
        sites: Dict[str, List[Tuple[str, Evidence]]] = defaultdict(list)
        for item in scanner.files(scopes):
            if item.kind != "php":
                continue
            text = scanner.read_text(item.path)
            if "->dispatch(" not in text:
                continue
            module_id = self.resolver.resolve_file(item.path)
            for match in _DISPATCH.finditer(text):
                line = text.count("\n", 0, match.start()) + 1
                sites[match.group(1).lower()].append(
                    (module_id, Evidence.of(SOURCE, item.path, line=line, note="event dispatch"))
                )
        return sites


def _cross_module_count(observers: List[ObserverRecord], dispatchers: Set[str]) -> int:
    known = {module_id for module_id in dispatchers if module_id != ids.UNKNOWN}
    if known:
        return sum(
            1
            for observer in observers
            if all(ids.is_cross_module(observer.module_id, module_id) for module_id in known)
        )
    modules = {observer.module_id for observer in observers if observer.module_id != ids.UNKNOWN}
    return max(0, len(modules) - 1)


__all__ = ["EventGraphExtractor"]
