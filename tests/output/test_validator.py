"""Tests for bundle validation rules."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from modctx.config import load_config
from modctx.output.validator import BundleValidator
from modctx.output.writer import ArtifactWriter, WrittenArtifact


def _validator(tmp_path: Path, **overrides: Any) -> BundleValidator:
    config = load_config(tmp_path, overrides or None)
    return BundleValidator(config, tmp_path / "bundle")


def _rules(report: Dict[str, Any], level: str) -> List[str]:
    return [item["rule"] for item in report[level]]


def _all_edge_types() -> set[str]:
    return {
        "module_sequence",
        "composer_require",
        "di_preference",
        "plugin_intercept",
        "event_observe",
        "route_entry",
        "api_contract",
    }


def test_clean_inputs_pass(tmp_path: Path) -> None:
    report = _validator(tmp_path).validate({}, {}, _all_edge_types(), [], skip_reproducibility=True)

    assert report["passed"] is True
    assert report["errors"] == []
    assert report["warnings"] == []
    assert _rules(report, "info") == ["determinism_skipped"]


def test_centrality_type_without_weight_fails(tmp_path: Path) -> None:
    validator = _validator(tmp_path, centrality_edge_types=["module_sequence", "php_symbol_use"])

    report = validator.validate({}, {}, set(), [], skip_reproducibility=True)

    assert report["passed"] is False
    assert _rules(report, "errors") == ["centrality_missing_weight"]
    assert "php_symbol_use" in report["errors"][0]["message"]


def test_unused_weight_warns_only_when_edges_were_emitted(tmp_path: Path) -> None:
    validator = _validator(tmp_path)

    silent = validator.validate({}, {}, set(), [], skip_reproducibility=True)
    noisy = validator.validate({}, {}, {"module_sequence"}, [], skip_reproducibility=True)

    assert silent["warnings"] == []
    assert _rules(noisy, "warnings").count("edge_weight_never_emitted") == 6
    assert noisy["passed"] is True


def test_missing_evidence_is_sampled(tmp_path: Path) -> None:
    facts = {
        "route_map": {"routes": [{"route_id": "a", "evidence": []}, {"route_id": "b"}]},
        "cron_map": {"cron_jobs": [{"cron_id": "x", "evidence": []}]},
    }

    report = _validator(tmp_path).validate(facts, {}, _all_edge_types(), [], skip_reproducibility=True)

    assert _rules(report, "warnings") == ["missing_evidence"]
    assert "route_map" in report["warnings"][0]["message"]
    assert "1/2" in report["warnings"][0]["message"]


def test_reverse_index_orphans_and_module_delta(tmp_path: Path) -> None:
    facts = {
        "module_graph": {"modules": [{"module_id": "Acme_A"}, {"module_id": "Acme_B"}], "edges": []},
        "file_index": {"files": [{"file_id": "app/code/Acme/A/Model/X.php"}]},
        "event_graph": {"events": []},
    }
    reverse_index = {
        "by_symbol": {
            "acme\\a\\model\\x": {"file_id": "app/code/Acme/A/Model/X.php", "module_id": "Acme_A"},
            "acme\\c\\model\\y": {"file_id": "app/code/Acme/C/Model/Y.php", "module_id": "Acme_C"},
            "foo": {"file_id": "lib/foo.php", "module_id": "unknown"},
        },
        "by_module": {"Acme_A": {}, "Acme_Z": {}},
        "by_event": {"ghost_event": {}},
        "by_route": {"frontend/x/x": {}},
    }

    report = _validator(tmp_path).validate(facts, reverse_index, _all_edge_types(), [], skip_reproducibility=True)

    rules = _rules(report, "warnings")
    assert rules.count("reverse_index_orphan_files") == 1
    assert rules.count("reverse_index_orphan_modules") == 1
    assert rules.count("reverse_index_orphan_events") == 1
    # route_map is absent, so routes are not checked
    assert "reverse_index_orphan_routes" not in rules
    assert rules.count("module_count_delta") == 2
    files = next(item for item in report["warnings"] if item["rule"] == "reverse_index_orphan_files")
    assert files["message"].startswith("2 ")


def test_oversized_derived_artifact_warns(tmp_path: Path) -> None:
    written = [
        WrittenArtifact(name="symbol_index", path="symbol_index.json", size=50 * 1024 * 1024, sha256="x"),
        WrittenArtifact(name="reverse_index", path="reverse_index/reverse_index.json", size=2 * 1024 * 1024, sha256="y", derived=True),
    ]

    report = _validator(tmp_path, max_reverse_index_size_mb=1).validate(
        {}, {}, _all_edge_types(), written, skip_reproducibility=True
    )

    [warning] = report["warnings"]
    assert warning["rule"] == "reverse_index_size_exceeded"
    assert warning["message"].startswith("reverse_index/reverse_index.json is 2.0 MB")


def test_reproducibility_accepts_writer_output(tmp_path: Path) -> None:
    writer = ArtifactWriter(tmp_path / "bundle", repo_commit="c", scopes=["app/code"], target="magento")
    writer.write("module_graph", {"modules": [{"module_id": "B"}, {"module_id": "A"}]})

    report = _validator(tmp_path).validate({}, {}, _all_edge_types(), writer.written)

    assert report["passed"] is True
    assert report["info"] == []


def test_reproducibility_flags_tampered_files(tmp_path: Path) -> None:
    writer = ArtifactWriter(tmp_path / "bundle", repo_commit="c", scopes=["app/code"], target="magento")
    writer.write("module_graph", {"modules": []})
    writer.write("cron_map", {"cron_jobs": []})
    (tmp_path / "bundle" / "module_graph.json").write_text('{"b": 1, "a": 2}', encoding="utf-8")
    (tmp_path / "bundle" / "cron_map.json").write_text("{broken", encoding="utf-8")

    report = _validator(tmp_path).validate({}, {}, _all_edge_types(), writer.written)

    assert report["passed"] is False
    assert sorted(_rules(report, "errors")) == ["determinism_invalid_json", "determinism_mismatch"]
