"""Parsing helpers for the declarative files found in module trees."""

from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, Dict, Iterator, Optional


class SourceParseError(ValueError):
    """Raised when a config file in the analyzed repository is malformed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason


def load_xml(root: Path, relative: str) -> ET.Element:
    """Parse ``relative`` below ``root`` and return the document element."""
    try:
        text = (root / relative).read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceParseError(relative, f"unreadable: {exc}") from exc
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise SourceParseError(relative, f"invalid XML: {exc}") from exc


def load_json(root: Path, relative: str) -> Dict[str, Any]:
    try:
        text = (root / relative).read_text(encoding="utf-8")
    except OSError as exc:
        raise SourceParseError(relative, f"unreadable: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SourceParseError(relative, f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise SourceParseError(relative, "expected a JSON object")
    return data


def local_name(element: ET.Element) -> str:
    tag = element.tag
    if isinstance(tag, str) and tag.startswith("{"):
        return tag.split("}", 1)[1]
    return str(tag)


def children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in list(element):
        if local_name(child) == name:
            yield child


def descendants(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element.iter():
        if child is not element and local_name(child) == name:
            yield child


def xsi_type(element: ET.Element) -> Optional[str]:
    for key, value in element.attrib.items():
        if key == "xsi:type" or key.endswith("}type"):
            return value
    return None


def line_of(text: str, needle: str) -> Optional[int]:
    """1-based line of the first occurrence of ``needle``; None when absent."""
    if not needle:
        return None
    index = text.find(needle)
    if index < 0:
        return None
    return text.count("\n", 0, index) + 1


def as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes"}


def as_int(value: Optional[str], default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


__all__ = [
    "SourceParseError",
    "as_bool",
    "as_int",
    "children",
    "descendants",
    "line_of",
    "load_json",
    "load_xml",
    "local_name",
    "xsi_type",
]
