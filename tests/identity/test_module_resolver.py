"""Tests for namespace and path resolution to modules."""

from __future__ import annotations

from modctx.identity import ids
from modctx.identity.ledger import INVALID_CONFIG_FILE, WarningLedger
from modctx.identity.module_resolver import ModuleResolver
from modctx.repo_scanner import ScopeScanner
from tests._fixtures.repo_builder import RepoBuilder


def _resolver(repo_builder: RepoBuilder, ledger: WarningLedger | None = None) -> ModuleResolver:
    return ModuleResolver(ScopeScanner(repo_builder.path()), ["app/code"], ledger=ledger)


def test_longest_namespace_prefix_wins(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "app/code/Vendor/Base/composer.json": r"""
                {"name": "vendor/base", "autoload": {"psr-4": {"Vendor\\": ""}}}
            """,
            "app/code/Vendor/Sub/composer.json": r"""
                {"name": "vendor/sub", "autoload": {"psr-4": {"Vendor\\Sub\\": ""}}}
            """,
        }
    )
    resolver = _resolver(repo_builder)

    assert resolver.resolve_class("Vendor\\Sub\\Foo") == "Vendor_Sub"
    assert resolver.resolve_class("\\vendor\\sub\\Model\\Bar") == "Vendor_Sub"
    assert resolver.resolve_class("Vendor\\Other\\Thing") == "Vendor_Base"
    assert resolver.module_for_package("Vendor/Sub") == "Vendor_Sub"


def test_falls_back_to_naming_convention(repo_builder: RepoBuilder) -> None:
    resolver = _resolver(repo_builder)

    assert resolver.resolve_class("Foo\\Bar\\Baz") == "Foo_Bar"
    assert resolver.resolve_class("Baz") == ids.UNKNOWN
    assert resolver.resolve_file("app/code/Foo/Bar/Model/Baz.php") == "Foo_Bar"
    assert resolver.resolve_file("lib/Thing.php") == ids.UNKNOWN


def test_module_descriptor_records_sequence(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Checkout", sequence=["Acme_Catalog", "Magento_Sales"])
    repo_builder.module("Acme", "Catalog")
    resolver = _resolver(repo_builder)

    modules = resolver.modules
    assert list(modules) == ["Acme_Catalog", "Acme_Checkout"]
    checkout = modules["Acme_Checkout"]
    assert checkout.path == "app/code/Acme/Checkout"
    assert checkout.sequence == ["Acme_Catalog", "Magento_Sales"]
    assert checkout.has_registration is True
    assert checkout.namespaces == ["Acme\\Checkout"]
    assert resolver.resolve_file("app/code/Acme/Checkout/etc/di.xml") == "Acme_Checkout"


def test_resolve_class_file_finds_conventional_location(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Checkout")
    relative = repo_builder.php_class("Acme\\Checkout\\Model\\Cart")
    resolver = _resolver(repo_builder)

    assert resolver.resolve_class_file("\\Acme\\Checkout\\Model\\Cart") == relative
    assert resolver.resolve_class_file("Acme\\Checkout\\Model\\Missing") is None


def test_invalid_manifest_is_reported(repo_builder: RepoBuilder) -> None:
    repo_builder.write({"app/code/Acme/Broken/composer.json": "{not json"})
    ledger = WarningLedger()
    _resolver(repo_builder, ledger)

    warnings = ledger.drain("module_resolver")
    assert [warning.category for warning in warnings] == [INVALID_CONFIG_FILE]
    assert "app/code/Acme/Broken/composer.json" in warnings[0].message


def test_resolution_is_cached_per_symbol(repo_builder: RepoBuilder) -> None:
    resolver = _resolver(repo_builder)
    resolver.resolve_class("Acme\\A\\One")
    resolver.resolve_class("\\acme\\a\\one")
    resolver.resolve_class("Acme\\A\\Two")

    assert resolver.discovered_symbol_count == 2
