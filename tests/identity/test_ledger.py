"""Tests for the warning ledger and integrity scoring."""

from __future__ import annotations

import pytest

from modctx.identity.ledger import (
    AMBIGUOUS_OVERRIDE,
    GENERAL,
    INVALID_CONFIG_FILE,
    MISSING_MODULE,
    UNRESOLVED_SYMBOL,
    LedgerError,
    WarningLedger,
    percentile_leq,
)


def _ledger_with(category: str, count: int) -> WarningLedger:
    ledger = WarningLedger()
    for index in range(count):
        ledger.add(category, f"warning {index}", "symbol_index")
    return ledger


def test_score_is_one_before_totals_are_set() -> None:
    ledger = _ledger_with(UNRESOLVED_SYMBOL, 50)
    assert ledger.integrity_score() == 1.0


def test_unresolved_symbols_penalise_proportionally() -> None:
    ledger = _ledger_with(UNRESOLVED_SYMBOL, 10)
    ledger.set_totals(100, 10)
    assert ledger.integrity_score() == 0.96


def test_unresolved_symbol_penalty_is_capped() -> None:
    ledger = _ledger_with(UNRESOLVED_SYMBOL, 200)
    ledger.set_totals(100, 10)
    assert ledger.integrity_score() == 0.6


def test_penalties_from_every_category_add_up() -> None:
    ledger = WarningLedger()
    ledger.add(AMBIGUOUS_OVERRIDE, "a", "di_resolution_map")
    ledger.add(INVALID_CONFIG_FILE, "b", "plugin_chains")
    ledger.add(MISSING_MODULE, "c", "module_graph")
    ledger.set_totals(10, 4)
    # 0.05 (ambiguous 1/4 * 0.2) + 0.1 (invalid) + 0.05 (missing)
    assert ledger.integrity_score() == 0.8


def test_drain_removes_pending_but_keeps_tally() -> None:
    ledger = WarningLedger()
    ledger.add(UNRESOLVED_SYMBOL, "x", "symbol_index")
    ledger.add(MISSING_MODULE, "y", "module_graph")

    drained = ledger.drain("symbol_index")

    assert [warning.message for warning in drained] == ["x"]
    assert [warning.producer for warning in ledger.pending()] == ["module_graph"]
    assert ledger.count_by_category()[UNRESOLVED_SYMBOL] == 1
    assert ledger.drain("symbol_index") == []


def test_unknown_category_is_counted_as_general() -> None:
    ledger = WarningLedger()
    warning = ledger.add("weird", "odd thing", "custom")
    assert warning.category == GENERAL
    assert ledger.count_by_category()[GENERAL] == 1


def test_set_totals_twice_raises() -> None:
    ledger = WarningLedger()
    ledger.set_totals(10, 2)
    with pytest.raises(LedgerError):
        ledger.set_totals(20, 3)


def test_dampening_preserves_rank() -> None:
    ledger = _ledger_with(UNRESOLVED_SYMBOL, 30)
    ledger.set_totals(100, 1)
    raws = [0.9, 0.2, 0.55, 0.0, 1.0]

    finals = [ledger.dampen(value)["final_score"] for value in raws]

    assert sorted(range(len(raws)), key=lambda i: raws[i]) == sorted(range(len(finals)), key=lambda i: finals[i])
    assert ledger.dampen(0.5) == {"raw_score": 0.5, "final_score": 0.44, "integrity_score_used": 0.88}


def test_summary_reports_notes_and_basis() -> None:
    clean = WarningLedger()
    clean.set_totals(0, 0)
    summary = clean.summary()
    assert summary["integrity_notes"] == ["No integrity concerns detected"]
    assert summary["integrity_basis"] == {"total_symbols": 1, "total_targets": 1}
    assert summary["degraded"] is False

    noisy = _ledger_with(UNRESOLVED_SYMBOL, 2)
    noisy.set_totals(4, 1)
    summary = noisy.summary()
    assert summary["total"] == 2
    assert summary["degraded"] is True
    assert summary["counts"][UNRESOLVED_SYMBOL] == 2
    assert summary["integrity_notes"] == ["2 symbol reference(s) could not be mapped to a module"]


def test_percentile_leq() -> None:
    assert percentile_leq(1.0, []) == 0.0
    assert percentile_leq(0.3, [0.3]) == 1.0
    assert percentile_leq(0.5, [0.1, 0.5, 0.9, 0.5]) == 0.75
