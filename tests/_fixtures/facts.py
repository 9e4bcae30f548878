"""Hand-built fact sets shared by the scenario and index tests."""

from __future__ import annotations

from typing import Any, Dict

ADD_ACTION = "Acme\\Checkout\\Controller\\Cart\\Add"
ADD_ROUTE = "frontend/checkout/checkout/cart/add"


def _evidence(source: str) -> list[Dict[str, Any]]:
    return [{"type": "xml", "source_file": source, "confidence": 1.0}]


def scenario_facts() -> Dict[str, Dict[str, Any]]:
    """Three modules with one entry point of every kind."""
    return {
        "module_graph": {
            "modules": [
                {"module_id": "Acme_Audit", "path": "app/code/Acme/Audit", "dependencies": []},
                {"module_id": "Acme_Checkout", "path": "app/code/Acme/Checkout", "dependencies": ["Acme_Promo"]},
                {"module_id": "Acme_Promo", "path": "app/code/Acme/Promo", "dependencies": []},
            ],
            "edges": [],
        },
        "route_map": {
            "routes": [
                {
                    "route_id": ADD_ROUTE,
                    "area": "frontend",
                    "front_name": "checkout",
                    "module_id": "Acme_Checkout",
                    "action_class": ADD_ACTION,
                    "evidence": _evidence("app/code/Acme/Checkout/etc/frontend/routes.xml"),
                },
                {
                    "route_id": "frontend/checkout/checkout",
                    "area": "frontend",
                    "front_name": "checkout",
                    "module_id": "Acme_Checkout",
                    "action_class": None,
                    "evidence": _evidence("app/code/Acme/Checkout/etc/frontend/routes.xml"),
                },
            ]
        },
        "cron_map": {
            "cron_jobs": [
                {
                    "cron_id": "acme_cleanup",
                    "group": "default",
                    "instance": "Acme\\Checkout\\Cron\\Cleanup",
                    "method": "execute",
                    "module_id": "Acme_Checkout",
                    "evidence": _evidence("app/code/Acme/Checkout/etc/crontab.xml"),
                }
            ]
        },
        "cli_commands": {
            "commands": [
                {
                    "command_name": "acme:sync",
                    "command_class": "Acme\\Checkout\\Console\\Sync",
                    "module_id": "Acme_Checkout",
                    "evidence": _evidence("app/code/Acme/Checkout/etc/di.xml"),
                }
            ]
        },
        "api_surface": {
            "endpoints": [
                {
                    "method": "GET",
                    "path": "/V1/acme/carts/:id",
                    "service_class": "Acme\\Checkout\\Api\\CartRepositoryInterface",
                    "service_method": "get",
                    "module_id": "Acme_Checkout",
                    "evidence": _evidence("app/code/Acme/Checkout/etc/webapi.xml"),
                }
            ]
        },
        "di_resolution_map": {
            "resolutions": [
                {
                    "for": ADD_ACTION,
                    "resolved_to": "Acme\\Promo\\Controller\\Cart\\Add",
                    "di_target_id": "acme\\checkout\\controller\\cart\\add",
                    "area": "frontend",
                    "declared_by": "Acme_Promo",
                },
                {
                    "for": "Acme\\Promo\\Controller\\Cart\\Add",
                    "resolved_to": "Acme\\Promo\\Controller\\Cart\\AddV2",
                    "di_target_id": "acme\\promo\\controller\\cart\\add",
                    "area": "global",
                    "declared_by": "Acme_Promo",
                },
                {
                    # points back into the chain; tracing must stop here
                    "for": "Acme\\Promo\\Controller\\Cart\\AddV2",
                    "resolved_to": ADD_ACTION,
                    "di_target_id": "acme\\promo\\controller\\cart\\addv2",
                    "area": "global",
                    "declared_by": "Acme_Promo",
                },
                {
                    "for": "Acme\\Checkout\\Api\\CartRepositoryInterface",
                    "resolved_to": "Acme\\Checkout\\Model\\CartRepository",
                    "di_target_id": "acme\\checkout\\api\\cartrepositoryinterface",
                    "area": "global",
                    "declared_by": "Acme_Checkout",
                },
            ]
        },
        "plugin_chains": {
            "plugins": [
                {
                    "target_class": "Acme\\Promo\\Controller\\Cart\\AddV2",
                    "plugin_class": "Acme\\Audit\\Plugin\\Trace",
                    "type": "before",
                    "subject_method": "execute",
                    "sort_order": 20,
                    "declared_by": "Acme_Audit",
                    "disabled": False,
                },
                {
                    "target_class": "Acme\\Promo\\Controller\\Cart\\AddV2",
                    "plugin_class": "Acme\\Promo\\Plugin\\Discount",
                    "type": "around",
                    "subject_method": "execute",
                    "sort_order": 10,
                    "declared_by": "Acme_Promo",
                    "disabled": False,
                },
                {
                    "target_class": "Acme\\Promo\\Controller\\Cart\\AddV2",
                    "plugin_class": "Acme\\Promo\\Plugin\\Legacy",
                    "type": "after",
                    "subject_method": "execute",
                    "sort_order": 0,
                    "declared_by": "Acme_Promo",
                    "disabled": True,
                },
                {
                    "target_class": "Acme\\Checkout\\Cron\\Cleanup",
                    "plugin_class": "Acme\\Audit\\Plugin\\CronLog",
                    "type": "before",
                    "subject_method": "execute",
                    "sort_order": 0,
                    "declared_by": "Acme_Audit",
                    "disabled": False,
                },
                {
                    "target_class": "Acme\\Checkout\\Cron\\Cleanup",
                    "plugin_class": "Acme\\Audit\\Plugin\\Unrelated",
                    "type": "after",
                    "subject_method": "purge",
                    "sort_order": 0,
                    "declared_by": "Acme_Audit",
                    "disabled": False,
                },
            ]
        },
        "event_graph": {
            "events": [
                {
                    "event_id": "controller_action_predispatch",
                    "listeners": [
                        {"observer_class": "Acme\\Audit\\Observer\\Log", "module_id": "Acme_Audit", "method": "execute"},
                        {
                            "observer_class": "Acme\\Audit\\Observer\\Old",
                            "module_id": "Acme_Audit",
                            "method": "execute",
                            "disabled": True,
                        },
                    ],
                    "listener_count": 1,
                },
                {
                    "event_id": "controller_action_predispatch_checkout",
                    "listeners": [
                        {"observer_class": "Acme\\Promo\\Observer\\Banner", "module_id": "Acme_Promo", "method": "execute"}
                    ],
                    "listener_count": 1,
                },
            ],
            "dispatches": {},
        },
    }


__all__ = ["ADD_ACTION", "ADD_ROUTE", "scenario_facts"]
