"""Typed record variants exchanged between extractors and derived stages.

Every fact category has one dataclass. ``REQUIRED`` names the serialized fields
that identify the variant and ``SORT_KEY`` the fields used to order a list of
such records when an artifact is canonicalized.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Type

from .identity.evidence import Evidence, cap_evidence


@dataclass
class Record:
    """Base class providing serialization for fact records."""

    REQUIRED: ClassVar[Tuple[str, ...]] = ()
    SORT_KEY: ClassVar[Tuple[str, ...]] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        for item in fields(self):
            key = item.metadata.get("key", item.name)
            payload[key] = _serialise(getattr(self, item.name))
        return payload


def _serialise(value: Any) -> Any:
    if isinstance(value, Evidence):
        return value.to_dict()
    if isinstance(value, Record):
        return value.to_dict()
    if isinstance(value, dict):
        return {str(key): _serialise(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_serialise(item) for item in value]
    return value


@dataclass
class ModuleRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("module_id", "has_module_xml")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("module_id",)

    module_id: str
    path: str
    kind: str = "module"
    namespaces: List[str] = field(default_factory=list)
    dependencies: List[str] = field(default_factory=list)
    has_module_xml: bool = False
    has_registration: bool = False
    composer_name: Optional[str] = None
    version: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class FileRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("file_id", "kind", "size")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("file_id",)

    file_id: str
    module_id: str
    kind: str
    size: int


@dataclass
class SymbolRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("class_id", "symbol_type")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("class_id",)

    class_id: str
    fqcn: str
    symbol_type: str
    file_id: str
    module_id: str
    extends: Optional[str] = None
    implements: List[str] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class EdgeRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("from", "to", "edge_type")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("from", "to", "edge_type")

    source: str = field(metadata={"key": "from"})
    target: str = field(metadata={"key": "to"})
    edge_type: str
    weight: float = 1.0
    evidence: List[Evidence] = field(default_factory=list)
    evidence_truncated: bool = False
    total_evidence_found: int = 0

    @classmethod
    def build(
        cls,
        source: str,
        target: str,
        edge_type: str,
        evidence: Sequence[Evidence],
        *,
        weight: float = 1.0,
        cap: int = 0,
    ) -> "EdgeRecord":
        kept, truncated, total = cap_evidence(evidence, cap)
        return cls(
            source=source,
            target=target,
            edge_type=edge_type,
            weight=weight,
            evidence=kept,
            evidence_truncated=truncated,
            total_evidence_found=total,
        )


@dataclass
class PreferenceRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("for", "resolved_to")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("for", "area", "declared_by", "resolved_to")

    for_symbol: str = field(metadata={"key": "for"})
    resolved_to: str
    di_target_id: str
    area: str
    declared_by: str
    is_core_override: bool = False
    confidence: float = 1.0
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class DiChainStep(Record):
    """One hop of a resolved preference chain; lists of hops keep delegation order."""

    REQUIRED: ClassVar[Tuple[str, ...]] = ("step", "for", "resolved_to")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("step",)

    step: int
    for_symbol: str = field(metadata={"key": "for"})
    resolved_to: str
    area: str
    declared_by: str


@dataclass
class PluginRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("plugin_class", "subject_method")
    SORT_KEY: ClassVar[Tuple[str, ...]] = (
        "sort_order",
        "plugin_class",
        "type",
        "subject_method",
    )

    target_class: str
    plugin_class: str
    plugin_name: str
    interceptor_type: str = field(metadata={"key": "type"})
    subject_method: str
    area: str = "global"
    declared_by: str = "unknown"
    sort_order: int = 0
    disabled: bool = False
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class ObserverRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("event_id", "observer_class")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("event_id", "module_id", "observer_class")

    event_id: str
    observer_class: str
    observer_name: str
    module_id: str
    area: str = "global"
    method: str = "execute"
    disabled: bool = False
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class EventRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("event_id", "listeners")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("event_id",)

    event_id: str
    listeners: List[ObserverRecord] = field(default_factory=list)
    listener_count: int = 0
    cross_module_count: int = 0
    risk_score: float = 0.0
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class RouteRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("route_id", "area")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("route_id",)

    route_id: str
    area: str
    router: str
    front_name: str
    module_id: str
    declared_by: str
    controller: Optional[str] = None
    action: Optional[str] = None
    action_class: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class CronRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("cron_id", "group")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("group", "cron_id")

    cron_id: str
    group: str
    instance: str
    method: str
    module_id: str
    schedule: Optional[str] = None
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class CommandRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("command_name", "command_class")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("command_name",)

    command_name: str
    command_class: str
    module_id: str
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class EndpointRecord(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("method", "path", "service_class")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("method", "path")

    method: str
    path: str
    service_class: str
    service_method: str
    module_id: str
    resources: List[str] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)


@dataclass
class DebtItem(Record):
    REQUIRED: ClassVar[Tuple[str, ...]] = ("debt_type", "severity", "module_id")
    SORT_KEY: ClassVar[Tuple[str, ...]] = ("severity_rank", "module_id", "debt_type")

    debt_type: str
    severity: str
    severity_rank: int
    module_id: str
    description: str
    modules: List[str] = field(default_factory=list)
    evidence: List[Evidence] = field(default_factory=list)


RECORD_TYPES: Tuple[Type[Record], ...] = (
    EdgeRecord,
    DiChainStep,
    PluginRecord,
    ObserverRecord,
    EventRecord,
    ModuleRecord,
    FileRecord,
    SymbolRecord,
    PreferenceRecord,
    RouteRecord,
    CronRecord,
    CommandRecord,
    EndpointRecord,
    DebtItem,
)


__all__ = [
    "CommandRecord",
    "CronRecord",
    "DebtItem",
    "DiChainStep",
    "EdgeRecord",
    "EndpointRecord",
    "EventRecord",
    "FileRecord",
    "ModuleRecord",
    "ObserverRecord",
    "PluginRecord",
    "PreferenceRecord",
    "RECORD_TYPES",
    "Record",
    "RouteRecord",
    "SymbolRecord",
]
