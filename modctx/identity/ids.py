"""Canonical identifiers used as join keys across every artifact.

All functions here are pure and total: they never raise on odd input and the
same constituent names always produce the same id.
"""

from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

UNKNOWN = "unknown"
DEFAULT_CORE_VENDOR = "Magento"

_SEPARATORS = re.compile(r"[\\/]+")
_CONVENTION_PATH = re.compile(r"(?:^|/)app/code/([^/]+)/([^/]+)/")
_LABEL_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def module_id(vendor: str, name: str) -> str:
    """``("Acme", "Checkout")`` -> ``"Acme_Checkout"``."""
    return f"{vendor.strip()}_{name.strip()}"


def split_symbol(symbol: str) -> list[str]:
    """Split a qualified symbol name into its namespace segments."""
    return [part for part in _SEPARATORS.split(symbol.strip()) if part]


def module_id_from_symbol(symbol: str) -> str:
    parts = split_symbol(symbol)
    if len(parts) < 2:
        return UNKNOWN
    return module_id(parts[0], parts[1])


def module_id_from_path(relative_path: str) -> str:
    """Derive a module id from the ``app/code/<Vendor>/<Name>/`` convention."""
    match = _CONVENTION_PATH.search(_posix(relative_path) + "/")
    if match is None:
        return UNKNOWN
    return module_id(match.group(1), match.group(2))


def class_id(symbol: str) -> str:
    """Lower-cased qualified name with ``\\`` separators and no leading separator.

    ``\\Acme\\Foo\\Bar``, ``acme\\foo\\bar`` and ``Acme/Foo/Bar`` share one id.
    """
    return "\\".join(split_symbol(symbol)).lower()


def qualified_name(symbol: str) -> str:
    """Case-preserving normalised form of a qualified name."""
    return "\\".join(split_symbol(symbol))


def method_id(symbol: str, method: str) -> str:
    return f"{class_id(symbol)}::{method.strip()}"


def interceptor_id(target: str, interceptor_type: str, member: str) -> str:
    return f"{class_id(target)}::{interceptor_type}::{member.strip()}"


def route_id(
    area: str,
    front_name: str,
    route: str,
    controller: str | None = None,
    action: str | None = None,
) -> str:
    parts = [area, front_name, route]
    if controller:
        parts.append(controller)
        if action:
            parts.append(action)
    return "/".join(part.strip().strip("/") for part in parts)


def file_id(path: Path | str, repo_root: Path | str | None = None) -> str:
    """Repository-relative path using forward slashes."""
    candidate = Path(path)
    if repo_root is not None and candidate.is_absolute():
        try:
            candidate = candidate.relative_to(Path(repo_root))
        except ValueError:
            pass
    return _posix(str(candidate))


def is_core_symbol(symbol: str, core_vendor: str = DEFAULT_CORE_VENDOR) -> bool:
    parts = split_symbol(symbol)
    return bool(parts) and parts[0].lower() == core_vendor.lower()


def is_cross_module(left: str, right: str) -> bool:
    """True only when both ids are known and differ."""
    if left == UNKNOWN or right == UNKNOWN:
        return False
    return left != right


def scenario_stem(label: str) -> str:
    """File stem for a scenario label: no separators and no leading dots."""
    stem = _LABEL_UNSAFE.sub("_", label).lstrip(".")
    return stem or UNKNOWN


def _posix(path: str) -> str:
    normalised = path.replace("\\", "/")
    if not normalised:
        return normalised
    posix = str(PurePosixPath(normalised))
    return posix[2:] if posix.startswith("./") else posix


__all__ = [
    "DEFAULT_CORE_VENDOR",
    "UNKNOWN",
    "class_id",
    "file_id",
    "interceptor_id",
    "is_core_symbol",
    "is_cross_module",
    "method_id",
    "module_id",
    "module_id_from_path",
    "module_id_from_symbol",
    "qualified_name",
    "route_id",
    "scenario_stem",
    "split_symbol",
]
