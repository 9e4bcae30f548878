"""Deterministic canonical form for every persisted artifact.

Mappings are key-sorted. Lists of scalars keep their order. Lists of mappings
are ordered by a sort key looked up from the record variant they belong to;
lists whose items do not all share one known variant keep their order.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..models import RECORD_TYPES

SortRule = Tuple[Tuple[str, ...], Tuple[str, ...]]

# Shapes produced by the derived stages that have no record dataclass.
_EXTRA_RULES: Tuple[SortRule, ...] = (
    (("level", "rule", "message"), ("level", "rule", "message")),
    (("category", "message", "producer"), ("producer", "category", "message")),
    (("name", "status"), ("name",)),
    (("scenario", "entry_class"), ("scenario",)),
    (("scenario", "reason_code"), ("scenario",)),
    (("id", "type"), ("type", "id")),
    (("event_id", "observers"), ("event_id",)),
    (("module", "path", "dependencies"), ("module",)),
    (("path", "change_count"), ("path",)),
    (("type", "source_file", "confidence"), ("source_file", "type")),
    (("concern_type", "description"), ("concern_type", "description")),
    (("for", "resolved_to"), ("for",)),
    (("module_id",), ("module_id",)),
)


def _rules() -> Tuple[SortRule, ...]:
    rules: List[SortRule] = [(record.REQUIRED, record.SORT_KEY) for record in RECORD_TYPES]
    rules.extend(_EXTRA_RULES)
    # More specific shapes are consulted first.
    rules.sort(key=lambda rule: -len(rule[0]))
    return tuple(rules)


SORT_RULES: Tuple[SortRule, ...] = _rules()


def canonicalize(value: Any) -> Any:
    """Return a canonical copy of ``value``; idempotent and order independent."""
    if isinstance(value, Mapping):
        return {str(key): canonicalize(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        items = [canonicalize(item) for item in value]
        rule = infer_sort_rule(items)
        if rule is None:
            return items
        return sorted(items, key=lambda item: _sort_tuple(item, rule))
    return value


def infer_sort_rule(items: Sequence[Any]) -> Optional[Tuple[str, ...]]:
    """Pick the sort key for a list, or None when its items are not records.

    A rule applies only when every item exposes all of its required fields, so
    the choice never depends on which item happens to come first.
    """
    if not items or not all(isinstance(item, dict) for item in items):
        return None
    for required, sort_key in SORT_RULES:
        if all(all(name in item for name in required) for item in items):
            return sort_key
    return None


def dumps(value: Any) -> str:
    """Serialize an already canonical value to its persisted text form."""
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def encode(value: Any) -> bytes:
    """Canonicalize and serialize ``value`` to the exact bytes written to disk."""
    return dumps(canonicalize(value)).encode("utf-8")


def _sort_tuple(item: Dict[str, Any], sort_key: Tuple[str, ...]) -> Tuple[Any, ...]:
    parts: List[Tuple[int, float, str]] = [
        _component(item.get(field)) for field in sort_key if field in item
    ]
    # Full content breaks ties so equal keys still order deterministically.
    parts.append((1, 0.0, _compact(item)))
    return tuple(parts)


def _component(value: Any) -> Tuple[int, float, str]:
    if isinstance(value, bool) or value is None:
        return (1, 0.0, _compact(value))
    if isinstance(value, (int, float)):
        return (0, float(value), "")
    if isinstance(value, str):
        return (1, 0.0, value)
    return (1, 0.0, _compact(value))


def _compact(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False, separators=(",", ":"))


__all__ = ["SORT_RULES", "canonicalize", "dumps", "encode", "infer_sort_rule"]
