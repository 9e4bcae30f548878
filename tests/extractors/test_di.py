"""Tests for DI preference, plugin and console command extraction."""

from __future__ import annotations

from modctx.extractors import CliCommandExtractor, DiPreferenceExtractor, PluginExtractor
from modctx.identity.ledger import AMBIGUOUS_OVERRIDE, UNRESOLVED_SYMBOL
from tests._fixtures.repo_builder import RepoBuilder

DI_PREFERENCE = """
    <?xml version="1.0"?>
    <config>
        <preference for="Acme\\Catalog\\Api\\ProductRepositoryInterface" type="Acme\\Checkout\\Model\\ProductRepository"/>
    </config>
"""


def _two_modules(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Catalog")
    repo_builder.module("Acme", "Checkout", sequence=["Acme_Catalog"])


def test_preference_emits_one_cross_module_edge(repo_builder: RepoBuilder) -> None:
    _two_modules(repo_builder)
    repo_builder.write({"app/code/Acme/Checkout/etc/di.xml": DI_PREFERENCE})

    data, _ = repo_builder.run(DiPreferenceExtractor())

    [resolution] = data["resolutions"]
    assert resolution["for"] == "Acme\\Catalog\\Api\\ProductRepositoryInterface"
    assert resolution["resolved_to"] == "Acme\\Checkout\\Model\\ProductRepository"
    assert resolution["di_target_id"] == "acme\\catalog\\api\\productrepositoryinterface"
    assert resolution["area"] == "global"
    assert resolution["declared_by"] == "Acme_Checkout"
    assert resolution["is_core_override"] is False

    [edge] = data["edges"]
    assert (edge["from"], edge["to"], edge["edge_type"]) == ("Acme_Checkout", "Acme_Catalog", "di_preference")
    assert edge["weight"] == 1.0
    assert edge["evidence"][0]["source_file"] == "app/code/Acme/Checkout/etc/di.xml"
    assert edge["evidence"][0]["source_span"] == {"line_start": 3, "line_end": 3}


def test_same_module_preference_has_no_edge(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Checkout")
    repo_builder.write(
        {
            "app/code/Acme/Checkout/etc/frontend/di.xml": """
                <config>
                    <preference for="Acme\\Checkout\\Api\\CartInterface" type="Acme\\Checkout\\Model\\Cart"/>
                    <preference for="Magento\\Quote\\Api\\CartManagementInterface" type="Acme\\Checkout\\Model\\CartManagement"/>
                </config>
            """
        }
    )

    data, _ = repo_builder.run(DiPreferenceExtractor())

    assert [item["area"] for item in data["resolutions"]] == ["frontend", "frontend"]
    assert [item["is_core_override"] for item in data["resolutions"]] == [False, True]
    # Magento_Quote is out of scope but still a known module id
    assert [(edge["from"], edge["to"]) for edge in data["edges"]] == [("Acme_Checkout", "Magento_Quote")]


def test_competing_preferences_are_ambiguous(repo_builder: RepoBuilder) -> None:
    _two_modules(repo_builder)
    repo_builder.module("Acme", "Sales")
    repo_builder.write(
        {
            "app/code/Acme/Checkout/etc/di.xml": DI_PREFERENCE,
            "app/code/Acme/Sales/etc/di.xml": """
                <config>
                    <preference for="Acme\\Catalog\\Api\\ProductRepositoryInterface" type="Acme\\Sales\\Model\\Products"/>
                </config>
            """,
        }
    )

    data, ledger = repo_builder.run(DiPreferenceExtractor())

    assert [item["confidence"] for item in data["resolutions"]] == [0.5, 0.5]
    warnings = ledger.drain("di_resolution_map")
    assert [warning.category for warning in warnings] == [AMBIGUOUS_OVERRIDE]
    assert "Acme_Checkout, Acme_Sales" in warnings[0].message


def test_plugins_expand_to_intercepted_methods(repo_builder: RepoBuilder) -> None:
    _two_modules(repo_builder)
    repo_builder.php_class(
        "Acme\\Checkout\\Plugin\\PricePlugin",
        "    public function beforeGetPrice($subject)\n"
        "    {\n"
        "    }\n"
        "\n"
        "    public function aroundSave($subject, callable $proceed)\n"
        "    {\n"
        "    }\n",
    )
    repo_builder.write(
        {
            "app/code/Acme/Checkout/etc/di.xml": """
                <config>
                    <type name="Acme\\Catalog\\Model\\Product">
                        <plugin name="checkoutPrice" type="Acme\\Checkout\\Plugin\\PricePlugin" sortOrder="10"/>
                        <plugin name="legacy" type="Acme\\Checkout\\Plugin\\Missing" disabled="true"/>
                    </type>
                </config>
            """
        }
    )

    data, ledger = repo_builder.run(PluginExtractor())

    plugins = [(item["plugin_name"], item["type"], item["subject_method"]) for item in data["plugins"]]
    assert plugins == [
        ("checkoutPrice", "before", "getPrice"),
        ("checkoutPrice", "around", "save"),
        ("legacy", "unknown", "*"),
    ]
    first = data["plugins"][0]
    assert first["target_class"] == "Acme\\Catalog\\Model\\Product"
    assert first["sort_order"] == 10
    assert first["declared_by"] == "Acme_Checkout"
    assert [item["type"] for item in first["evidence"]] == ["xml", "source"]
    assert data["plugins"][2]["disabled"] is True

    [edge] = data["edges"]
    assert (edge["from"], edge["to"], edge["edge_type"]) == ("Acme_Checkout", "Acme_Catalog", "plugin_intercept")
    assert edge["total_evidence_found"] == 2
    assert [warning.category for warning in ledger.drain("plugin_chains")] == [UNRESOLVED_SYMBOL]


def test_console_commands_use_declared_name(repo_builder: RepoBuilder) -> None:
    repo_builder.module("Acme", "Checkout")
    repo_builder.php_class(
        "Acme\\Checkout\\Console\\SyncCommand",
        "    protected function configure()\n"
        "    {\n"
        "        $this->setName('acme:sync');\n"
        "    }\n",
    )
    repo_builder.write(
        {
            "app/code/Acme/Checkout/etc/di.xml": """
                <config xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
                    <type name="Magento\\Framework\\Console\\CommandList">
                        <arguments>
                            <argument name="commands" xsi:type="array">
                                <item name="acmeSync" xsi:type="object">Acme\\Checkout\\Console\\SyncCommand</item>
                                <item name="acmeOther" xsi:type="object">Acme\\Checkout\\Console\\Other</item>
                            </argument>
                        </arguments>
                    </type>
                </config>
            """
        }
    )

    data, _ = repo_builder.run(CliCommandExtractor())

    commands = {item["command_name"]: item for item in data["commands"]}
    assert sorted(commands) == ["acme:sync", "acmeOther"]
    assert commands["acme:sync"]["command_class"] == "Acme\\Checkout\\Console\\SyncCommand"
    assert commands["acme:sync"]["module_id"] == "Acme_Checkout"
