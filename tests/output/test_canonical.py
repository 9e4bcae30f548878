"""Tests for canonical artifact serialization."""

from __future__ import annotations

import itertools
import json

from modctx.output.canonical import canonicalize, dumps, encode, infer_sort_rule

EDGES = [
    {"from": "Acme_B", "to": "Acme_A", "edge_type": "di_preference", "weight": 1.0},
    {"from": "Acme_A", "to": "Acme_C", "edge_type": "module_sequence", "weight": 0.7},
    {"from": "Acme_A", "to": "Acme_B", "edge_type": "module_sequence", "weight": 0.7},
    {"from": "Acme_A", "to": "Acme_B", "edge_type": "composer_require", "weight": 0.6},
]


def test_record_lists_are_order_independent() -> None:
    encodings = {encode({"edges": list(order)}) for order in itertools.permutations(EDGES)}
    assert len(encodings) == 1

    ordered = canonicalize({"edges": EDGES})["edges"]
    assert [(item["from"], item["to"], item["edge_type"]) for item in ordered] == [
        ("Acme_A", "Acme_B", "composer_require"),
        ("Acme_A", "Acme_B", "module_sequence"),
        ("Acme_A", "Acme_C", "module_sequence"),
        ("Acme_B", "Acme_A", "di_preference"),
    ]


def test_canonicalize_is_idempotent() -> None:
    once = canonicalize({"b": EDGES, "a": {"z": 1, "y": [3, 1, 2]}})
    assert canonicalize(once) == once
    assert dumps(canonicalize(json.loads(dumps(once)))) == dumps(once)


def test_scalar_lists_keep_their_order() -> None:
    assert canonicalize({"scopes": ["app/design", "app/code"]}) == {"scopes": ["app/design", "app/code"]}


def test_mixed_lists_are_left_alone() -> None:
    items = [{"module_id": "B"}, {"name": "x"}, {"module_id": "A"}]
    assert infer_sort_rule(items) is None
    assert canonicalize(items) == items


def test_numeric_sort_keys_compare_as_numbers() -> None:
    plugins = [
        {"plugin_class": "B", "subject_method": "save", "sort_order": 10, "type": "before"},
        {"plugin_class": "A", "subject_method": "save", "sort_order": 9, "type": "before"},
        {"plugin_class": "C", "subject_method": "save", "sort_order": 100, "type": "after"},
    ]
    assert [item["sort_order"] for item in canonicalize(plugins)] == [9, 10, 100]


def test_equal_keys_fall_back_to_content() -> None:
    first = {"module_id": "Acme_A", "score": 2}
    second = {"module_id": "Acme_A", "score": 1}
    assert canonicalize([first, second]) == canonicalize([second, first])


def test_dumps_is_stable_text() -> None:
    text = dumps({"b": 1, "a": "é"})
    assert text == '{\n  "a": "é",\n  "b": 1\n}\n'


def test_di_chain_hops_keep_delegation_order() -> None:
    chain = [
        {"step": 1, "for": "Acme\\Z\\Api\\Iface", "resolved_to": "Acme\\A\\Impl", "area": "global", "declared_by": "Acme_A"},
        {"step": 2, "for": "Acme\\A\\Impl", "resolved_to": "Acme\\B\\Impl2", "area": "global", "declared_by": "Acme_B"},
    ]
    assert infer_sort_rule(chain) == ("step",)
    assert canonicalize({"di_chain": chain}) == {"di_chain": chain}
    assert canonicalize(list(reversed(chain))) == chain
