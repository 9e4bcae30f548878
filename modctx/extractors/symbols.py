"""File inventory and PHP symbol declarations."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..identity import ids
from ..identity.evidence import SOURCE, Evidence
from ..models import EdgeRecord, FileRecord, SymbolRecord
from .base import Extractor

_NAMESPACE = re.compile(r"^\s*namespace\s+([A-Za-z0-9_\\]+)\s*[;{]", re.MULTILINE)
_USE = re.compile(
    r"^use\s+(?:function\s+|const\s+)?([A-Za-z0-9_\\]+)(?:\s+as\s+([A-Za-z0-9_]+))?\s*;",
    re.MULTILINE,
)
_DECLARATION = re.compile(
    r"^[ \t]*(?:(?:abstract|final|readonly)\s+)*(class|interface|trait|enum)\s+([A-Za-z_][A-Za-z0-9_]*)"
    r"(?:\s*:\s*[A-Za-z]+)?"
    r"(?:\s+extends\s+([A-Za-z0-9_\\,\s]+?))?"
    r"(?:\s+implements\s+([A-Za-z0-9_\\,\s]+?))?"
    r"\s*\{",
    re.MULTILINE,
)


class FileIndexExtractor(Extractor):
    """Every scoped file with its owning module."""

    name = "file_index"
    view = "structure"
    description = "Scoped files mapped to owning modules."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        records: List[FileRecord] = []
        for item in self.context.scanner.files(scopes):
            module_id = self.resolver.resolve_file(item.path)
            if module_id == ids.UNKNOWN and item.kind == "php":
                self.warn_unresolved_file(item.path)
            records.append(
                FileRecord(file_id=item.path, module_id=module_id, kind=item.kind, size=item.size)
            )
        return {"files": [record.to_dict() for record in records]}


class SymbolIndexExtractor(Extractor):
    """Class-like declarations found in PHP sources plus cross-module imports."""

    name = "symbol_index"
    view = "structure"
    description = "Classes, interfaces, traits and enums with their owning module."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        symbols: List[SymbolRecord] = []
        imports: Dict[Tuple[str, str], List[Evidence]] = {}

        for item in scanner.files(scopes):
            if item.kind != "php":
                continue
            text = scanner.read_text(item.path)
            file_module = self.resolver.resolve_file(item.path)
            for record in parse_declarations(text, item.path):
                record.module_id = self.owner_of_symbol(record.fqcn, item.path)
                symbols.append(record)
            if file_module == ids.UNKNOWN:
                continue
            for imported, line in parse_imports(text):
                target = self.resolver.resolve_class(imported)
                if not ids.is_cross_module(file_module, target):
                    continue
                imports.setdefault((file_module, target), []).append(
                    Evidence.of(SOURCE, item.path, line=line, note=f"use {imported}")
                )

        edges = [
            EdgeRecord.build(
                source,
                target,
                "php_symbol_use",
                evidence,
                weight=self.context.config.edge_weight("php_symbol_use"),
                cap=self.evidence_cap,
            )
            for (source, target), evidence in sorted(imports.items())
        ]
        self.logger.debug("Indexed %d symbols", len(symbols))
        return {
            "symbols": [record.to_dict() for record in symbols],
            "edges": [edge.to_dict() for edge in edges],
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("symbols", []))


def parse_declarations(text: str, file_path: str) -> List[SymbolRecord]:
    namespace_match = _NAMESPACE.search(text)
    namespace = namespace_match.group(1) if namespace_match else ""
    aliases = {alias: name for name, alias, _ in _aliases(text)}

    records: List[SymbolRecord] = []
    for match in _DECLARATION.finditer(text):
        kind, short_name, extends_raw, implements_raw = match.groups()
        fqcn = f"{namespace}\\{short_name}" if namespace else short_name
        parents = [_qualify(name, namespace, aliases) for name in _split_names(extends_raw)]
        interfaces = [_qualify(name, namespace, aliases) for name in _split_names(implements_raw)]
        if kind == "interface":
            # Interfaces extend other interfaces.
            interfaces = parents + interfaces
            parents = []
        line = text.count("\n", 0, match.start(2)) + 1
        records.append(
            SymbolRecord(
                class_id=ids.class_id(fqcn),
                fqcn=ids.qualified_name(fqcn),
                symbol_type=kind,
                file_id=file_path,
                module_id=ids.UNKNOWN,
                extends=parents[0] if parents else None,
                implements=sorted(set(interfaces)),
                evidence=[Evidence.of(SOURCE, file_path, line=line, note=f"{kind} declaration")],
            )
        )
    return records


def parse_imports(text: str) -> List[Tuple[str, int]]:
    return [(name, line) for name, _, line in _aliases(text)]


def _aliases(text: str) -> List[Tuple[str, str, int]]:
    found: List[Tuple[str, str, int]] = []
    for match in _USE.finditer(text):
        name = match.group(1).strip("\\")
        alias = match.group(2) or name.rsplit("\\", 1)[-1]
        found.append((name, alias, text.count("\n", 0, match.start()) + 1))
    return found


def _split_names(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _qualify(name: str, namespace: str, aliases: Mapping[str, str]) -> str:
    if name.startswith("\\"):
        return ids.qualified_name(name)
    head, _, rest = name.partition("\\")
    if head in aliases:
        resolved = aliases[head] + ("\\" + rest if rest else "")
        return ids.qualified_name(resolved)
    if namespace:
        return ids.qualified_name(f"{namespace}\\{name}")
    return ids.qualified_name(name)


__all__ = ["FileIndexExtractor", "SymbolIndexExtractor", "parse_declarations", "parse_imports"]
