"""Tests for execution path tracing."""

from __future__ import annotations

from typing import Any, Dict, List

from modctx.scenarios.tracer import ExecutionPathTracer, disambiguate, records_from, scenario_label
from tests._fixtures.facts import ADD_ACTION, ADD_ROUTE, scenario_facts


def _by_type(paths: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    return {path["entry_type"]: path for path in paths}


def test_one_path_per_reachable_entry_point() -> None:
    paths = ExecutionPathTracer(scenario_facts()).trace()

    assert sorted(path["scenario"] for path in paths) == [
        "crontab.cron.cleanup.execute",
        "frontend.controller.cart.add",
        "global.console.sync",
        "webapi_rest.api.cartrepositoryinterface.get",
    ]


def test_controller_path_follows_preferences_plugins_and_events() -> None:
    controller = _by_type(ExecutionPathTracer(scenario_facts()).trace())["controller"]

    assert controller["entry_class"] == ADD_ACTION
    assert controller["route_id"] == ADD_ROUTE
    assert controller["module_id"] == "Acme_Checkout"
    assert [step["resolved_to"] for step in controller["di_chain"]] == [
        "Acme\\Promo\\Controller\\Cart\\Add",
        "Acme\\Promo\\Controller\\Cart\\AddV2",
    ]
    assert controller["resolved_class"] == "Acme\\Promo\\Controller\\Cart\\AddV2"
    assert [item["plugin_class"] for item in controller["plugin_stack"]] == [
        "Acme\\Promo\\Plugin\\Discount",
        "Acme\\Audit\\Plugin\\Trace",
    ]
    assert [item["event_id"] for item in controller["observer_triggers"]] == [
        "controller_action_predispatch",
        "controller_action_predispatch_checkout",
    ]
    assert controller["complexity"] == {
        "plugin_depth": 2,
        "around_count": 1,
        "before_count": 1,
        "after_count": 0,
        "observer_count": 2,
        "di_depth": 2,
    }


def test_method_filter_and_areas() -> None:
    paths = _by_type(ExecutionPathTracer(scenario_facts()).trace())

    cron = paths["cron"]
    assert cron["area"] == "crontab"
    assert [item["plugin_class"] for item in cron["plugin_stack"]] == ["Acme\\Audit\\Plugin\\CronLog"]

    api = paths["api"]
    assert api["area"] == "webapi_rest"
    assert api["http_method"] == "GET"
    assert api["http_path"] == "/V1/acme/carts/:id"
    assert api["resolved_class"] == "Acme\\Checkout\\Model\\CartRepository"

    assert paths["cli_command"]["area"] == "global"
    assert paths["cli_command"]["di_chain"] == []


def test_area_preference_beats_global() -> None:
    facts = {
        "cron_map": {"cron_jobs": [{"cron_id": "j", "instance": "Acme\\A\\Job", "module_id": "Acme_A"}]},
        "di_resolution_map": {
            "resolutions": [
                {"for": "Acme\\A\\Job", "resolved_to": "Acme\\A\\GlobalJob", "di_target_id": "acme\\a\\job", "area": "global"},
                {"for": "Acme\\A\\Job", "resolved_to": "Acme\\A\\CronJob", "di_target_id": "acme\\a\\job", "area": "crontab"},
            ]
        },
    }

    [path] = ExecutionPathTracer(facts).trace()

    assert path["resolved_class"] == "Acme\\A\\CronJob"


def test_scenario_label() -> None:
    assert scenario_label("frontend", "\\Acme\\Shop\\Controller\\Cart\\Add") == "frontend.controller.cart.add"
    assert scenario_label("global", "Standalone") == "global.standalone"


def test_records_from_payload() -> None:
    assert records_from({}) == []
    assert records_from({"execution_paths": [{"scenario": "a"}, "junk"]}) == [{"scenario": "a"}]


def test_member_keeps_shared_classes_apart() -> None:
    service = "Magento\\Quote\\Api\\CartInterface"
    assert scenario_label("webapi_rest", service, "get") == "webapi_rest.api.cartinterface.get"
    assert scenario_label("webapi_rest", service, "save") != scenario_label("webapi_rest", service, "get")


def test_colliding_labels_take_verb_then_index() -> None:
    paths: List[Dict[str, Any]] = [
        {"scenario": "webapi_rest.api.cart.save", "entry_type": "api", "http_method": "PUT", "http_path": "/V1/carts/mine"},
        {"scenario": "webapi_rest.api.cart.save", "entry_type": "api", "http_method": "POST", "http_path": "/V1/carts/mine"},
        {"scenario": "webapi_rest.api.cart.save", "entry_type": "api", "http_method": "POST", "http_path": "/V1/carts"},
        {"scenario": "crontab.cron.jobs.run", "entry_type": "cron", "cron_id": "b_job"},
        {"scenario": "crontab.cron.jobs.run", "entry_type": "cron", "cron_id": "a_job"},
        {"scenario": "global.console.sync", "entry_type": "cli_command", "command_name": "acme:sync"},
    ]

    labels = [path["scenario"] for path in disambiguate(paths)]

    assert labels == [
        "webapi_rest.api.cart.save.put",
        "webapi_rest.api.cart.save.post.2",
        "webapi_rest.api.cart.save.post",
        "crontab.cron.jobs.run.2",
        "crontab.cron.jobs.run",
        "global.console.sync",
    ]
    assert len(set(labels)) == len(labels)


def test_every_endpoint_on_one_service_is_traced() -> None:
    service = "Magento\\Quote\\Api\\CartInterface"
    facts = {
        "api_surface": {
            "endpoints": [
                {"method": "GET", "path": "/V1/carts/mine", "service_class": service, "service_method": "get"},
                {"method": "PUT", "path": "/V1/carts/mine", "service_class": service, "service_method": "get"},
            ]
        }
    }

    paths = ExecutionPathTracer(facts).trace()

    assert sorted(path["scenario"] for path in paths) == [
        "webapi_rest.api.cartinterface.get.get",
        "webapi_rest.api.cartinterface.get.put",
    ]
