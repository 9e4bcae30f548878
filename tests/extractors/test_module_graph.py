"""Tests for the module graph extractor."""

from __future__ import annotations

from modctx.extractors import ModuleGraphExtractor
from modctx.identity.ledger import MISSING_MODULE
from tests._fixtures.repo_builder import RepoBuilder


def test_sequence_and_composer_edges(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Catalog")
    repo_builder.module("Acme", "Checkout", sequence=["Acme_Catalog", "Magento_Sales"])
    repo_builder.write(
        {
            "app/code/Acme/Catalog/composer.json": r"""
                {"name": "acme/module-catalog", "version": "1.2.0",
                 "autoload": {"psr-4": {"Acme\\Catalog\\": ""}}}
            """,
            "app/code/Acme/Checkout/composer.json": r"""
                {"name": "acme/module-checkout",
                 "require": {"acme/module-catalog": "*", "php": "~8.2"},
                 "autoload": {"psr-4": {"Acme\\Checkout\\": ""}}}
            """,
        }
    )

    data, ledger = repo_builder.run(ModuleGraphExtractor())

    modules = {item["module_id"]: item for item in data["modules"]}
    assert sorted(modules) == ["Acme_Catalog", "Acme_Checkout"]
    checkout = modules["Acme_Checkout"]
    assert checkout["dependencies"] == ["Acme_Catalog", "Magento_Sales"]
    assert checkout["has_module_xml"] is True
    assert checkout["kind"] == "custom"
    assert checkout["composer_name"] == "acme/module-checkout"
    assert modules["Acme_Catalog"]["version"] == "1.2.0"

    edges = {(edge["from"], edge["to"], edge["edge_type"]): edge for edge in data["edges"]}
    assert set(edges) == {
        ("Acme_Checkout", "Acme_Catalog", "composer_require"),
        ("Acme_Checkout", "Acme_Catalog", "module_sequence"),
        ("Acme_Checkout", "Magento_Sales", "module_sequence"),
    }
    sequence = edges[("Acme_Checkout", "Acme_Catalog", "module_sequence")]
    assert sequence["weight"] == 0.7
    assert sequence["evidence"][0]["source_file"] == "app/code/Acme/Checkout/etc/module.xml"
    assert sequence["evidence"][0]["type"] == "xml"
    assert "source_span" in sequence["evidence"][0]
    # core modules outside scope are not reported as missing
    assert ledger.count_by_category()[MISSING_MODULE] == 0


def test_missing_sibling_module_is_warned(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Checkout", sequence=["Acme_Ghost"])

    data, ledger = repo_builder.run(ModuleGraphExtractor())

    assert data["modules"][0]["dependencies"] == ["Acme_Ghost"]
    warnings = ledger.drain("module_graph")
    assert [warning.category for warning in warnings] == [MISSING_MODULE]
    assert "Acme_Ghost" in warnings[0].message


def test_evidence_is_capped_per_edge(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Catalog")
    repo_builder.module("Acme", "Checkout", sequence=["Acme_Catalog"])

    data, _ = repo_builder.run(ModuleGraphExtractor(), max_evidence_per_edge=1)

    edge = data["edges"][0]
    assert len(edge["evidence"]) == 1
    assert edge["total_evidence_found"] == 1
    assert edge["evidence_truncated"] is False
