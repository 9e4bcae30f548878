"""Externally reachable entry points: routes, scheduled jobs and web API."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Set, Tuple

from ..identity import ids
from ..identity.evidence import FILESYSTEM, XML, Evidence
from ..models import CronRecord, EdgeRecord, EndpointRecord, RouteRecord
from ..utils import SourceParseError, children, descendants, line_of, load_xml
from .base import Extractor
from .symbols import parse_declarations


class RouteExtractor(Extractor):
    """Routes declared per area, expanded to controller actions on disk."""

    name = "route_map"
    view = "entrypoints"
    description = "Front names and the controller actions reachable under them."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        records: Dict[str, RouteRecord] = {}
        edges: Dict[Tuple[str, str], List[Evidence]] = {}

        for relative in self.config_files(scopes, "routes.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            area = self.area_of(relative)
            declared_by = self.resolver.resolve_file(relative)
            for router in children(document, "router"):
                router_id = router.get("id") or "standard"
                for route in children(router, "route"):
                    route_name = route.get("id") or ""
                    front_name = route.get("frontName") or route_name
                    if not route_name:
                        continue
                    declaration = Evidence.of(
                        XML,
                        relative,
                        line=line_of(text, f'id="{route_name}"'),
                        note=f"route {route_name} in {area}",
                    )
                    handlers = [node.get("name") for node in children(route, "module") if node.get("name")]
                    for handler in handlers or [declared_by]:
                        if ids.is_cross_module(handler, declared_by):
                            edges.setdefault((handler, declared_by), []).append(declaration)
                        for record in self._actions(handler, area, router_id, front_name, route_name, declared_by, declaration):
                            records.setdefault(record.route_id, record)

        return {
            "routes": [records[key].to_dict() for key in sorted(records)],
            "edges": [
                EdgeRecord.build(
                    source,
                    target,
                    "route_entry",
                    evidence,
                    weight=self.context.config.edge_weight("route_entry"),
                    cap=self.evidence_cap,
                ).to_dict()
                for (source, target), evidence in sorted(edges.items())
            ],
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("routes", []))

    def _actions(
        self,
        module_id: str,
        area: str,
        router_id: str,
        front_name: str,
        route_name: str,
        declared_by: str,
        declaration: Evidence,
    ) -> List[RouteRecord]:
        base = RouteRecord(
            route_id=ids.route_id(area, front_name, route_name),
            area=area,
            router=router_id,
            front_name=front_name,
            module_id=module_id,
            declared_by=declared_by,
            evidence=[declaration],
        )
        descriptor = self.resolver.modules.get(module_id)
        if descriptor is None:
            return [base]

        controller_root = f"{descriptor.path}/Controller/"
        if area == "adminhtml":
            controller_root += "Adminhtml/"
        scanner = self.context.scanner
        actions: List[RouteRecord] = []
        for item in scanner.files([controller_root.rstrip("/")]):
            remainder = item.path[len(controller_root) :]
            parts = remainder.split("/")
            if item.kind != "php" or len(parts) != 2:
                continue
            controller, action = parts[0], parts[1][: -len(".php")]
            declarations = parse_declarations(scanner.read_text(item.path), item.path)
            action_class = declarations[0].fqcn if declarations else None
            actions.append(
                RouteRecord(
                    route_id=ids.route_id(area, front_name, route_name, controller.lower(), action.lower()),
                    area=area,
                    router=router_id,
                    front_name=front_name,
                    module_id=module_id,
                    declared_by=declared_by,
                    controller=controller,
                    action=action,
                    action_class=action_class,
                    evidence=[declaration, Evidence.of(FILESYSTEM, item.path, note="controller action")],
                )
            )
        return actions or [base]


class CronExtractor(Extractor):
    name = "cron_map"
    view = "entrypoints"
    description = "Scheduled jobs per cron group."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        records: List[CronRecord] = []
        seen: Set[Tuple[str, str]] = set()
        for relative in self.config_files(scopes, "crontab.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            for group in children(document, "group"):
                group_id = group.get("id") or "default"
                for job in children(group, "job"):
                    job_name = job.get("name")
                    instance = job.get("instance")
                    if not job_name or not instance or (group_id, job_name) in seen:
                        continue
                    seen.add((group_id, job_name))
                    schedule = next((node.text for node in children(job, "schedule")), None)
                    records.append(
                        CronRecord(
                            cron_id=job_name,
                            group=group_id,
                            instance=ids.qualified_name(instance),
                            method=job.get("method") or "execute",
                            module_id=self.owner_of_symbol(instance, relative),
                            schedule=schedule.strip() if schedule else None,
                            evidence=[
                                Evidence.of(
                                    XML,
                                    relative,
                                    line=line_of(text, f'name="{job_name}"'),
                                    note=f"cron job in group {group_id}",
                                )
                            ],
                        )
                    )
        return {"cron_jobs": [record.to_dict() for record in records]}


class ApiSurfaceExtractor(Extractor):
    """Web API routes bound to service contracts."""

    name = "api_surface"
    view = "entrypoints"
    description = "REST endpoints with their service class and ACL resources."

    def extract(self, repo_path: Path, scopes: Sequence[str]) -> Mapping[str, Any]:
        scanner = self.context.scanner
        records: List[EndpointRecord] = []
        edges: Dict[Tuple[str, str], List[Evidence]] = {}
        for relative in self.config_files(scopes, "webapi.xml"):
            try:
                document = load_xml(repo_path, relative)
            except SourceParseError as exc:
                self.warn_invalid(exc)
                continue
            text = scanner.read_text(relative)
            declared_by = self.resolver.resolve_file(relative)
            for route in children(document, "route"):
                url = route.get("url")
                method = (route.get("method") or "GET").upper()
                service = next(iter(children(route, "service")), None)
                if not url or service is None or not service.get("class"):
                    continue
                service_class = service.get("class") or ""
                evidence = Evidence.of(
                    XML,
                    relative,
                    line=line_of(text, f'url="{url}"'),
                    note=f"{method} {url}",
                )
                owner = self.owner_of_symbol(service_class, relative)
                records.append(
                    EndpointRecord(
                        method=method,
                        path=url,
                        service_class=ids.qualified_name(service_class),
                        service_method=service.get("method") or "",
                        module_id=declared_by,
                        resources=sorted(
                            node.get("ref") or "" for node in descendants(route, "resource") if node.get("ref")
                        ),
                        evidence=[evidence],
                    )
                )
                if ids.is_cross_module(declared_by, owner):
                    edges.setdefault((declared_by, owner), []).append(evidence)

        return {
            "endpoints": [record.to_dict() for record in records],
            "edges": [
                EdgeRecord.build(
                    source,
                    target,
                    "api_contract",
                    evidence,
                    weight=self.context.config.edge_weight("api_contract"),
                    cap=self.evidence_cap,
                ).to_dict()
                for (source, target), evidence in sorted(edges.items())
            ],
        }

    def item_count(self, data: Mapping[str, Any]) -> int:
        return len(data.get("endpoints", []))


__all__ = ["ApiSurfaceExtractor", "CronExtractor", "RouteExtractor"]
