"""Module inventory and declared module-to-module dependencies."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Set, Tuple

from ..identity.evidence import MANIFEST, XML, Evidence
from ..models import EdgeRecord, ModuleRecord
from ..utils import line_of
from .base import Extractor


class ModuleGraphExtractor(Extractor):
    """Lists modules and emits ``module_sequence`` / ``composer_require`` edges."""

    name = "module_graph"
    view = "structure"
    description = "Modules discovered in scope and their declared dependencies."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        config = self.context.config
        modules = self.resolver.modules
        vendors = {module_id.split("_", 1)[0] for module_id in modules}

        records: List[ModuleRecord] = []
        evidence_by_edge: Dict[Tuple[str, str, str], List[Evidence]] = {}

        for module_id, descriptor in modules.items():
            dependencies: Set[str] = set()

            for dependency in descriptor.sequence:
                dependencies.add(dependency)
                if dependency not in modules and dependency.split("_", 1)[0] in vendors:
                    self.warn_missing_module(dependency, module_id)
                source = descriptor.descriptor_file or descriptor.path
                text = self.context.scanner.read_text(source) if descriptor.descriptor_file else ""
                evidence_by_edge.setdefault(
                    (module_id, dependency, "module_sequence"), []
                ).append(
                    Evidence.of(
                        XML,
                        source,
                        line=line_of(text, f'name="{dependency}"'),
                        note=f"<sequence> entry for {dependency}",
                    )
                )

            for package in descriptor.requires:
                dependency = self.resolver.module_for_package(package)
                if dependency is None or dependency == module_id:
                    continue
                dependencies.add(dependency)
                source = descriptor.manifest_file or descriptor.path
                evidence_by_edge.setdefault(
                    (module_id, dependency, "composer_require"), []
                ).append(Evidence.of(MANIFEST, source, note=f"require {package}"))

            records.append(
                ModuleRecord(
                    module_id=module_id,
                    path=descriptor.path,
                    kind=_module_kind(descriptor.path, config.core_vendor, module_id),
                    namespaces=sorted(descriptor.namespaces),
                    dependencies=sorted(dependencies),
                    has_module_xml=descriptor.descriptor_file is not None,
                    has_registration=descriptor.has_registration,
                    composer_name=descriptor.composer_name,
                    version=descriptor.version,
                    evidence=list(descriptor.evidence),
                )
            )

        edges = [
            EdgeRecord.build(
                source,
                target,
                edge_type,
                evidence,
                weight=config.edge_weight(edge_type),
                cap=self.evidence_cap,
            )
            for (source, target, edge_type), evidence in sorted(evidence_by_edge.items())
        ]
        self.logger.debug("Found %d modules and %d edges", len(records), len(edges))
        return {
            "modules": [record.to_dict() for record in records],
            "edges": [edge.to_dict() for edge in edges],
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("modules", []))


def _module_kind(path: str, core_vendor: str, module_id: str) -> str:
    if path.startswith("app/design/"):
        return "theme"
    if path.startswith("vendor/"):
        return "core" if module_id.startswith(f"{core_vendor}_") else "vendor"
    return "custom"


__all__ = ["ModuleGraphExtractor"]
