"""Namespace and path to module resolution for a single compilation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..logging import get_logger
from ..repo_scanner import ScopeScanner
from ..utils import SourceParseError, children, load_json, load_xml
from . import ids
from .evidence import MANIFEST, XML, Evidence
from .ledger import INVALID_CONFIG_FILE, WarningLedger

_PRODUCER = "module_resolver"
_MAX_MANIFEST_DEPTH = 3


@dataclass
class ModuleDescriptor:
    """Everything the scan learned about one module."""

    module_id: str
    path: str
    namespaces: List[str] = field(default_factory=list)
    sequence: List[str] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)
    composer_name: Optional[str] = None
    version: Optional[str] = None
    manifest_file: Optional[str] = None
    descriptor_file: Optional[str] = None
    has_registration: bool = False
    evidence: List[Evidence] = field(default_factory=list)


class ModuleResolver:
    """Maps symbols and files to canonical module ids.

    One instance is built per compilation and handed to every consumer. Both
    prefix tables are ordered longest-first so a module-level namespace always
    beats a vendor-level one.
    """

    def __init__(
        self,
        scanner: ScopeScanner,
        scopes: Sequence[str],
        *,
        ledger: WarningLedger | None = None,
    ) -> None:
        self.scanner = scanner
        self.root = scanner.root
        self.scopes = list(scopes)
        self._ledger = ledger
        self._logger = get_logger("resolver")
        self._lock = threading.Lock()
        self._modules: Dict[str, ModuleDescriptor] = {}
        self._namespace_modules: List[Tuple[str, str]] = []
        self._namespace_dirs: List[Tuple[str, str]] = []
        self._path_modules: List[Tuple[str, str]] = []
        self._packages: Dict[str, str] = {}
        self._class_cache: Dict[str, str] = {}
        self._file_cache: Dict[str, str] = {}
        self._scan()

    # ------------------------------------------------------------------
    # Public API

    @property
    def modules(self) -> Dict[str, ModuleDescriptor]:
        return dict(sorted(self._modules.items()))

    def module_for_package(self, package: str) -> Optional[str]:
        return self._packages.get(package.lower())

    def resolve_class(self, symbol: str) -> str:
        key = ids.class_id(symbol)
        if not key:
            return ids.UNKNOWN
        with self._lock:
            cached = self._class_cache.get(key)
        if cached is not None:
            return cached
        resolved = self._match_namespace(key)
        if resolved is None:
            resolved = ids.module_id_from_symbol(symbol)
        with self._lock:
            self._class_cache[key] = resolved
        return resolved

    def resolve_file(self, relative_path: str) -> str:
        key = ids.file_id(relative_path)
        with self._lock:
            cached = self._file_cache.get(key)
        if cached is not None:
            return cached
        resolved = ids.UNKNOWN
        for prefix, module_id in self._path_modules:
            if key.startswith(prefix):
                resolved = module_id
                break
        else:
            resolved = ids.module_id_from_path(key)
        with self._lock:
            self._file_cache[key] = resolved
        return resolved

    def resolve_class_file(self, symbol: str) -> Optional[str]:
        """Locate the source file that declares ``symbol`` if it is in scope."""
        name = ids.qualified_name(symbol)
        lowered = name.lower() + "\\"
        for prefix, directory in self._namespace_dirs:
            if lowered.startswith(prefix):
                remainder = name[len(prefix) - 1 :].strip("\\")
                candidate = f"{directory}/{remainder.replace(chr(92), '/')}.php"
                if (self.root / candidate).is_file():
                    return candidate
        parts = ids.split_symbol(name)
        if len(parts) >= 3:
            candidate = "app/code/" + "/".join(parts) + ".php"
            if (self.root / candidate).is_file():
                return candidate
        return None

    @property
    def discovered_symbol_count(self) -> int:
        with self._lock:
            return max(1, len(self._class_cache))

    # ------------------------------------------------------------------
    # Scanning

    def _scan(self) -> None:
        namespace_modules: Dict[str, str] = {}
        namespace_dirs: Dict[str, str] = {}
        path_modules: Dict[str, str] = {}

        for relative in self._manifest_files():
            self._read_manifest(relative, namespace_modules, namespace_dirs, path_modules)
        for relative in self._descriptor_files():
            self._read_descriptor(relative, namespace_modules, namespace_dirs, path_modules)

        self._namespace_modules = _longest_first(namespace_modules)
        self._namespace_dirs = _longest_first(namespace_dirs)
        self._path_modules = _longest_first(path_modules)
        self._logger.debug(
            "Resolved %d modules and %d namespace prefixes",
            len(self._modules),
            len(self._namespace_modules),
        )

    def _manifest_files(self) -> List[str]:
        found: List[str] = []
        for item in self.scanner.named(self.scopes, "composer.json"):
            depth = _depth_below_scope(item.path, self.scopes)
            if depth is not None and depth <= _MAX_MANIFEST_DEPTH:
                found.append(item.path)
        return sorted(found)

    def _descriptor_files(self) -> List[str]:
        found: List[str] = []
        for item in self.scanner.matching(self.scopes, "/etc/module.xml"):
            depth = _depth_below_scope(item.path, self.scopes)
            if depth == 4:
                found.append(item.path)
        return sorted(found)

    def _read_manifest(
        self,
        relative: str,
        namespace_modules: Dict[str, str],
        namespace_dirs: Dict[str, str],
        path_modules: Dict[str, str],
    ) -> None:
        try:
            data = load_json(self.root, relative)
        except SourceParseError as exc:
            self._warn(INVALID_CONFIG_FILE, str(exc))
            return

        base_dir = relative.rsplit("/", 1)[0]
        autoload = data.get("autoload") if isinstance(data.get("autoload"), dict) else {}
        psr4 = autoload.get("psr-4") if isinstance(autoload.get("psr-4"), dict) else {}
        prefixes = sorted(str(prefix) for prefix in psr4 if str(prefix).strip("\\"))

        module_id = ids.module_id_from_path(relative)
        if module_id == ids.UNKNOWN and prefixes:
            module_id = ids.module_id_from_symbol(prefixes[0])
        if module_id == ids.UNKNOWN:
            self._logger.debug("Skipping %s: no module identity", relative)
            return

        descriptor = self._descriptor(module_id, base_dir)
        descriptor.manifest_file = relative
        name = data.get("name")
        if isinstance(name, str) and name:
            descriptor.composer_name = name
            self._packages[name.lower()] = module_id
        version = data.get("version")
        if isinstance(version, str):
            descriptor.version = version
        require = data.get("require")
        if isinstance(require, dict):
            descriptor.requires = sorted(str(key) for key in require)
        descriptor.evidence.append(
            Evidence.of(MANIFEST, relative, note="package manifest")
        )

        for prefix in prefixes:
            normalised = _namespace_key(prefix)
            target = psr4[prefix]
            if isinstance(target, list):
                target = target[0] if target else ""
            directory = "/".join(part for part in (base_dir, str(target).strip("/")) if part)
            namespace_modules[normalised] = module_id
            namespace_dirs[normalised] = directory
            path_modules[directory.rstrip("/") + "/"] = module_id
            if prefix.strip("\\") not in descriptor.namespaces:
                descriptor.namespaces.append(prefix.strip("\\"))
        path_modules[base_dir + "/"] = module_id

    def _read_descriptor(
        self,
        relative: str,
        namespace_modules: Dict[str, str],
        namespace_dirs: Dict[str, str],
        path_modules: Dict[str, str],
    ) -> None:
        parts = relative.split("/")
        module_dir = "/".join(parts[:-2])
        vendor, name = parts[-4], parts[-3]
        try:
            document = load_xml(self.root, relative)
        except SourceParseError as exc:
            self._warn(INVALID_CONFIG_FILE, str(exc))
            return

        declared: Optional[str] = None
        sequence: List[str] = []
        for module in children(document, "module"):
            declared = module.get("name") or declared
            for block in children(module, "sequence"):
                for dependency in children(block, "module"):
                    dep_name = dependency.get("name")
                    if dep_name:
                        sequence.append(dep_name.strip())
        module_id = declared.strip() if declared else ids.module_id(vendor, name)

        descriptor = self._descriptor(module_id, module_dir)
        descriptor.descriptor_file = relative
        descriptor.sequence = sorted(set(sequence))
        descriptor.has_registration = (self.root / module_dir / "registration.php").is_file()
        descriptor.evidence.append(Evidence.of(XML, relative, note="module descriptor"))

        namespace = f"{vendor}\\{name}"
        key = _namespace_key(namespace)
        namespace_modules.setdefault(key, module_id)
        namespace_dirs.setdefault(key, module_dir)
        path_modules.setdefault(module_dir + "/", module_id)
        if namespace not in descriptor.namespaces:
            descriptor.namespaces.append(namespace)

    def _descriptor(self, module_id: str, path: str) -> ModuleDescriptor:
        descriptor = self._modules.get(module_id)
        if descriptor is None:
            descriptor = ModuleDescriptor(module_id=module_id, path=path)
            self._modules[module_id] = descriptor
        return descriptor

    def _match_namespace(self, key: str) -> Optional[str]:
        candidate = key + "\\"
        for prefix, module_id in self._namespace_modules:
            if candidate.startswith(prefix):
                return module_id
        return None

    def _warn(self, category: str, message: str) -> None:
        self._logger.debug("%s", message)
        if self._ledger is not None:
            self._ledger.add(category, message, _PRODUCER)


def _namespace_key(prefix: str) -> str:
    return ids.class_id(prefix) + "\\"


def _longest_first(mapping: Dict[str, str]) -> List[Tuple[str, str]]:
    return sorted(mapping.items(), key=lambda item: (-len(item[0]), item[0]))


def _depth_below_scope(path: str, scopes: Sequence[str]) -> Optional[int]:
    best: Optional[int] = None
    for scope in scopes:
        prefix = scope.strip("/") + "/"
        if path.startswith(prefix):
            depth = len(path[len(prefix) :].split("/"))
            if best is None or depth < best:
                best = depth
    return best


__all__ = ["ModuleDescriptor", "ModuleResolver"]
