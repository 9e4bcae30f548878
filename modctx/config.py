"""Compiler configuration: defaults < ``.modctx.yml`` < caller overrides."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

CONFIG_FILENAME = ".modctx.yml"

EDGE_TYPES = (
    "module_sequence",
    "composer_require",
    "php_symbol_use",
    "di_preference",
    "plugin_intercept",
    "event_observe",
    "route_entry",
    "api_contract",
)

DEFAULTS: Dict[str, Any] = {
    "scopes": ["app/code", "app/design"],
    "target": "magento",
    "core_vendor": "Magento",
    "output_dir": ".modctx",
    "workers": 1,
    "extractors": [],
    "max_evidence_per_edge": 5,
    "max_reverse_index_size_mb": 10,
    "churn": {
        "enabled": True,
        "window_days": 365,
        "cache": True,
    },
    "edge_weights": {
        "module_sequence": 0.7,
        "composer_require": 0.6,
        "di_preference": 1.0,
        "plugin_intercept": 1.2,
        "event_observe": 1.1,
        "route_entry": 1.0,
        "api_contract": 1.1,
    },
    "centrality_edge_types": [
        "module_sequence",
        "composer_require",
        "di_preference",
        "plugin_intercept",
        "event_observe",
        "route_entry",
        "api_contract",
    ],
    "coupling_metric_subsets": {
        "structural": ["module_sequence", "composer_require"],
        "code": ["php_symbol_use"],
        "runtime": ["di_preference", "plugin_intercept", "event_observe"],
    },
}


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ChurnConfig:
    """Version-control churn collection settings."""

    enabled: bool = True
    window_days: int = 365
    cache: bool = True


@dataclass
class CompilerConfig:
    """Effective settings for one compilation run."""

    root: Path
    scopes: List[str] = field(default_factory=lambda: list(DEFAULTS["scopes"]))
    target: str = "magento"
    core_vendor: str = "Magento"
    output_dir: Path = Path(".modctx")
    workers: int = 1
    extractors: List[str] = field(default_factory=list)
    max_evidence_per_edge: int = 5
    max_reverse_index_size_mb: float = 10
    churn: ChurnConfig = field(default_factory=ChurnConfig)
    edge_weights: Dict[str, float] = field(default_factory=dict)
    centrality_edge_types: List[str] = field(default_factory=list)
    coupling_metric_subsets: Dict[str, List[str]] = field(default_factory=dict)
    source: Optional[Path] = None

    @property
    def max_reverse_index_bytes(self) -> int:
        return int(self.max_reverse_index_size_mb * 1024 * 1024)

    def edge_weight(self, edge_type: str) -> float:
        return self.edge_weights.get(edge_type, 1.0)

    def to_dict(self) -> Dict[str, Any]:
        """Settings echoed into the manifest."""
        return {
            "scopes": list(self.scopes),
            "target": self.target,
            "core_vendor": self.core_vendor,
            "max_evidence_per_edge": self.max_evidence_per_edge,
            "max_reverse_index_size_mb": self.max_reverse_index_size_mb,
            "churn": {
                "enabled": self.churn.enabled,
                "window_days": self.churn.window_days,
                "cache": self.churn.cache,
            },
            "edge_weights": dict(self.edge_weights),
            "centrality_edge_types": list(self.centrality_edge_types),
            "coupling_metric_subsets": {
                key: list(value) for key, value in self.coupling_metric_subsets.items()
            },
            "config_file": self.source.name if self.source is not None else None,
        }


def load_config(
    repo_path: Path, overrides: Mapping[str, Any] | None = None
) -> CompilerConfig:
    """Merge defaults, the repository's config file and ``overrides``."""
    root = Path(repo_path).expanduser().resolve()
    config_file = root / CONFIG_FILENAME
    merged = copy.deepcopy(DEFAULTS)
    source: Optional[Path] = None

    if config_file.is_file():
        data = _read_config(config_file)
        merged = deep_merge(merged, data)
        source = config_file
    if overrides:
        merged = deep_merge(merged, overrides)

    return _build(root, merged, source)


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge mappings recursively; lists and scalars from ``override`` replace."""
    result: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def parse_override(expression: str) -> Dict[str, Any]:
    """Turn ``churn.enabled=false`` into ``{"churn": {"enabled": False}}``."""
    if "=" not in expression:
        raise ConfigError(f"Override must look like key=value: {expression}")
    dotted, raw = expression.split("=", 1)
    keys = [part.strip() for part in dotted.split(".") if part.strip()]
    if not keys:
        raise ConfigError(f"Override is missing a key: {expression}")
    try:
        value = yaml.safe_load(raw) if raw.strip() else None
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid override value for {dotted}: {exc}") from exc
    nested: Dict[str, Any] = {keys[-1]: value}
    for key in reversed(keys[:-1]):
        nested = {key: nested}
    return nested


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return _legacy_keys(loaded)


def _legacy_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    thresholds = data.get("thresholds")
    if isinstance(thresholds, dict) and "churn_window_days" in thresholds:
        churn = data.get("churn") if isinstance(data.get("churn"), dict) else {}
        if "window_days" not in churn:
            data = dict(data)
            data["churn"] = dict(churn, window_days=thresholds["churn_window_days"])
    return data


def _build(root: Path, data: Mapping[str, Any], source: Optional[Path]) -> CompilerConfig:
    churn_data = _as_dict(data.get("churn"))
    churn = ChurnConfig(
        enabled=_as_bool(churn_data.get("enabled"), True),
        window_days=max(1, _as_int(churn_data.get("window_days"), 365)),
        cache=_as_bool(churn_data.get("cache"), True),
    )

    output_dir = Path(_as_str(data.get("output_dir")) or ".modctx").expanduser()
    if not output_dir.is_absolute():
        output_dir = root / output_dir

    scopes = [scope.strip("/") for scope in _as_str_list(data.get("scopes")) if scope.strip("/")]
    if not scopes:
        raise ConfigError("At least one scope must be configured")

    weights: Dict[str, float] = {}
    for key, value in _as_dict(data.get("edge_weights")).items():
        weight = _as_float(value)
        if weight is None:
            raise ConfigError(f"edge_weights.{key} must be a number")
        weights[str(key)] = weight

    subsets = {
        str(name): _as_str_list(members)
        for name, members in _as_dict(data.get("coupling_metric_subsets")).items()
    }

    return CompilerConfig(
        root=root,
        scopes=scopes,
        target=_as_str(data.get("target")) or "magento",
        core_vendor=_as_str(data.get("core_vendor")) or "Magento",
        output_dir=output_dir,
        workers=max(1, _as_int(data.get("workers"), 1)),
        extractors=_as_str_list(data.get("extractors")),
        max_evidence_per_edge=max(1, _as_int(data.get("max_evidence_per_edge"), 5)),
        max_reverse_index_size_mb=_as_float(data.get("max_reverse_index_size_mb")) or 10,
        churn=churn,
        edge_weights=weights,
        centrality_edge_types=_as_str_list(data.get("centrality_edge_types")),
        coupling_metric_subsets=subsets,
        source=source,
    )


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return []


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_int(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


__all__ = [
    "CONFIG_FILENAME",
    "ChurnConfig",
    "CompilerConfig",
    "ConfigError",
    "DEFAULTS",
    "EDGE_TYPES",
    "deep_merge",
    "load_config",
    "parse_override",
]
