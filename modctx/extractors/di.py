"""Dependency-injection preferences, interceptors and console commands."""

from __future__ import annotations

import re
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Set, Tuple

from ..identity import ids
from ..identity.evidence import SOURCE, XML, Evidence
from ..models import CommandRecord, EdgeRecord, PluginRecord, PreferenceRecord
from ..utils import SourceParseError, as_bool, as_int, children, line_of, load_xml, xsi_type
from .base import Extractor

_PLUGIN_METHOD = re.compile(r"public\s+function\s+(before|around|after)([A-Z][A-Za-z0-9_]*)\s*\(")
_COMMAND_NAME = re.compile(r"->setName\(\s*['\"]([^'\"]+)['\"]")
_COMMAND_LIST = "magento\\framework\\console\\commandlist"

Edges = Dict[Tuple[str, str], List[Evidence]]


class DiPreferenceExtractor(Extractor):
    """Resolves interface preferences per area and flags competing overrides."""

    name = "di_resolution_map"
    view = "runtime"
    description = "DI preferences: which implementation each target resolves to."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        core_vendor = self.context.config.core_vendor
        records: List[PreferenceRecord] = []
        edges: Edges = {}

        for relative in self.config_files(scopes, "di.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            area = self.area_of(relative)
            declared_by = self.resolver.resolve_file(relative)
            for preference in children(document, "preference"):
                target = preference.get("for")
                implementation = preference.get("type")
                if not target or not implementation:
                    continue
                evidence = Evidence.of(
                    XML,
                    relative,
                    line=line_of(text, f'for="{target}"'),
                    note=f"preference for {ids.qualified_name(target)}",
                )
                records.append(
                    PreferenceRecord(
                        for_symbol=ids.qualified_name(target),
                        resolved_to=ids.qualified_name(implementation),
                        di_target_id=ids.class_id(target),
                        area=area,
                        declared_by=declared_by,
                        is_core_override=ids.is_core_symbol(target, core_vendor),
                        evidence=[evidence],
                    )
                )
                owner = self.owner_of_symbol(target, relative)
                if ids.is_cross_module(declared_by, owner):
                    edges.setdefault((declared_by, owner), []).append(evidence)

        self._flag_ambiguous(records)
        return {
            "resolutions": [record.to_dict() for record in records],
            "edges": _edge_dicts(edges, "di_preference", self),
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("resolutions", []))

    def _flag_ambiguous(self, records: List[PreferenceRecord]) -> None:
        grouped: Dict[Tuple[str, str], List[PreferenceRecord]] = defaultdict(list)
        for record in records:
            grouped[(record.di_target_id, record.area)].append(record)
        for (target, area), group in sorted(grouped.items()):
            declarers = {record.declared_by for record in group}
            if len(declarers) < 2:
                continue
            self.warn_ambiguous(group[0].for_symbol, sorted(declarers), area)
            for record in group:
                record.confidence = 0.5


class PluginExtractor(Extractor):
    """Interceptors declared on types, expanded to intercepted methods."""

    name = "plugin_chains"
    view = "runtime"
    description = "before/around/after interceptors per target method."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        records: List[PluginRecord] = []
        edges: Edges = {}
        methods_cache: Dict[str, List[Tuple[str, str, str, int]] | None] = {}

        for relative in self.config_files(scopes, "di.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            area = self.area_of(relative)
            declared_by = self.resolver.resolve_file(relative)

            for type_node in list(children(document, "type")) + list(children(document, "virtualType")):
                target = type_node.get("name")
                if not target:
                    continue
                for plugin in children(type_node, "plugin"):
                    plugin_class = plugin.get("type")
                    plugin_name = plugin.get("name") or ""
                    if not plugin_class:
                        continue
                    declaration = Evidence.of(
                        XML,
                        relative,
                        line=line_of(text, f'name="{plugin_name}"'),
                        note=f"plugin {plugin_name} on {ids.qualified_name(target)}",
                    )
                    if plugin_class not in methods_cache:
                        methods_cache[plugin_class] = self._plugin_methods(plugin_class)
                    methods = methods_cache[plugin_class]
                    common = dict(
                        target_class=ids.qualified_name(target),
                        plugin_class=ids.qualified_name(plugin_class),
                        plugin_name=plugin_name,
                        area=area,
                        declared_by=declared_by,
                        sort_order=as_int(plugin.get("sortOrder")),
                        disabled=as_bool(plugin.get("disabled")),
                    )
                    if methods is None:
                        self.warn_unresolved_symbol(plugin_class, f"plugin source not found, {relative}")
                        records.append(
                            PluginRecord(
                                interceptor_type="unknown",
                                subject_method="*",
                                evidence=[declaration],
                                **common,
                            )
                        )
                    else:
                        for kind, method, source, line in methods:
                            records.append(
                                PluginRecord(
                                    interceptor_type=kind,
                                    subject_method=method,
                                    evidence=[
                                        declaration,
                                        Evidence.of(SOURCE, source, line=line, note=f"{kind}{method[:1].upper()}{method[1:]}"),
                                    ],
                                    **common,
                                )
                            )
                    owner = self.owner_of_symbol(target, relative)
                    if ids.is_cross_module(declared_by, owner):
                        edges.setdefault((declared_by, owner), []).append(declaration)

        return {
            "plugins": [record.to_dict() for record in records],
            "edges": _edge_dicts(edges, "plugin_intercept", self),
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("plugins", []))

    def _plugin_methods(self, plugin_class: str) -> List[Tuple[str, str, str, int]] | None:
        source = self.resolver.resolve_class_file(plugin_class)
        if source is None:
            return None
        text = self.context.scanner.read_text(source)
        found = []
        for match in _PLUGIN_METHOD.finditer(text):
            kind, method = match.group(1), match.group(2)
            subject = method[:1].lower() + method[1:]
            found.append((kind, subject, source, text.count("\n", 0, match.start()) + 1))
        return found


class CliCommandExtractor(Extractor):
    """Console commands registered through the command list type."""

    name = "cli_commands"
    view = "entrypoints"
    description = "Console commands and their implementing classes."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        records: List[CommandRecord] = []
        seen: Set[str] = set()

        for relative in self.config_files(scopes, "di.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            for type_node in children(document, "type"):
                if ids.class_id(type_node.get("name") or "") != _COMMAND_LIST:
                    continue
                for arguments in children(type_node, "arguments"):
                    for argument in children(arguments, "argument"):
                        if argument.get("name") != "commands":
                            continue
                        for item in children(argument, "item"):
                            if xsi_type(item) not in (None, "object"):
                                continue
                            command_class = (item.text or "").strip()
                            if not command_class:
                                continue
                            command_name = self._command_name(command_class) or item.get("name") or command_class
                            if command_name in seen:
                                continue
                            seen.add(command_name)
                            records.append(
                                CommandRecord(
                                    command_name=command_name,
                                    command_class=ids.qualified_name(command_class),
                                    module_id=self.owner_of_symbol(command_class, relative),
                                    evidence=[
                                        Evidence.of(
                                            XML,
                                            relative,
                                            line=line_of(text, command_class),
                                            note="command list registration",
                                        )
                                    ],
                                )
                            )
        return {"commands": [record.to_dict() for record in records]}

    def _command_name(self, command_class: str) -> str | None:
        source = self.resolver.resolve_class_file(command_class)
        if source is None:
            return None
        match = _COMMAND_NAME.search(self.context.scanner.read_text(source))
        return match.group(1) if match else None


def _edge_dicts(edges: Edges, edge_type: str, extractor: Extractor) -> List[Dict[str, Any]]:
    config = extractor.context.config
    return [
        EdgeRecord.build(
            source,
            target,
            edge_type,
            evidence,
            weight=config.edge_weight(edge_type),
            cap=extractor.evidence_cap,
        ).to_dict()
        for (source, target), evidence in sorted(edges.items())
    ]


__all__ = ["CliCommandExtractor", "DiPreferenceExtractor", "PluginExtractor"]
