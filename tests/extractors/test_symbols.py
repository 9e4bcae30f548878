"""Tests for file and symbol indexing."""

from __future__ import annotations

from modctx.extractors import FileIndexExtractor, SymbolIndexExtractor
from modctx.extractors.symbols import parse_declarations, parse_imports
from modctx.identity.ledger import UNRESOLVED_FILE
from tests._fixtures.repo_builder import RepoBuilder

CART_SOURCE = """<?php
namespace Acme\\Checkout\\Model;

use Magento\\Framework\\Model\\AbstractModel;
use Acme\\Catalog\\Api\\ProductInterface as Product;

final class Cart extends AbstractModel implements Api\\CartInterface, \\Countable
{
}
"""


def test_parse_declarations_qualifies_parents() -> None:
    [record] = parse_declarations(CART_SOURCE, "app/code/Acme/Checkout/Model/Cart.php")

    assert record.fqcn == "Acme\\Checkout\\Model\\Cart"
    assert record.class_id == "acme\\checkout\\model\\cart"
    assert record.symbol_type == "class"
    assert record.extends == "Magento\\Framework\\Model\\AbstractModel"
    assert record.implements == ["Acme\\Checkout\\Model\\Api\\CartInterface", "Countable"]
    assert record.evidence[0].line_start == 7


def test_interfaces_extend_into_implements() -> None:
    text = "<?php\nnamespace Acme\\A;\n\ninterface Thing extends Base, \\Other\\Iface\n{\n}\n"
    [record] = parse_declarations(text, "Thing.php")

    assert record.symbol_type == "interface"
    assert record.extends is None
    assert record.implements == ["Acme\\A\\Base", "Other\\Iface"]


def test_parse_imports_reports_lines() -> None:
    assert parse_imports(CART_SOURCE) == [
        ("Magento\\Framework\\Model\\AbstractModel", 4),
        ("Acme\\Catalog\\Api\\ProductInterface", 5),
    ]


def test_symbol_index_emits_cross_module_use_edges(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Catalog")
    repo_builder.module("Acme", "Checkout")
    repo_builder.write({"app/code/Acme/Checkout/Model/Cart.php": CART_SOURCE})

    data, _ = repo_builder.run(SymbolIndexExtractor())

    [symbol] = data["symbols"]
    assert symbol["module_id"] == "Acme_Checkout"
    assert symbol["file_id"] == "app/code/Acme/Checkout/Model/Cart.php"
    edges = {(edge["from"], edge["to"]) for edge in data["edges"]}
    assert edges == {("Acme_Checkout", "Acme_Catalog"), ("Acme_Checkout", "Magento_Framework")}
    assert {edge["edge_type"] for edge in data["edges"]} == {"php_symbol_use"}


def test_file_index_maps_files_to_modules(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Checkout")
    repo_builder.write(
        {
            "app/code/Acme/Checkout/view/frontend/templates/cart.phtml": "<div></div>\n",
            "app/code/stray.php": "<?php\n",
        }
    )

    data, ledger = repo_builder.run(FileIndexExtractor())

    files = {item["file_id"]: item for item in data["files"]}
    assert files["app/code/Acme/Checkout/etc/module.xml"]["kind"] == "xml"
    assert files["app/code/Acme/Checkout/view/frontend/templates/cart.phtml"]["module_id"] == "Acme_Checkout"
    assert files["app/code/stray.php"]["module_id"] == "unknown"
    assert list(files) == sorted(files)
    assert [warning.category for warning in ledger.drain("file_index")] == [UNRESOLVED_FILE]
