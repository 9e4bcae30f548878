"""Compilation pipeline: extract facts, derive indexes and scenarios, validate."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .analysis.architecture import ArchitectureAnalyzer
from .config import CompilerConfig, load_config
from .extractors import (
    Extracted,
    ExtractionContext,
    Extractor,
    Failed,
    Outcome,
    Skipped,
    discover_extractors,
    outcome_summary,
)
from .git.head import read_head_commit
from .identity.ledger import WarningLedger, serialise_warnings
from .identity.module_resolver import ModuleResolver
from .indexes.builder import IndexBuilder, emitted_edge_types
from .logging import get_logger, log_stage
from .output.validator import BundleValidator
from .output.writer import ArtifactWriter, build_hash
from .repo_scanner import ScopeScanner
from .scenarios.bundles import ScenarioBundleGenerator
from .scenarios.tracer import ExecutionPathTracer, records_from


class BuildFailedError(RuntimeError):
    """Raised when an authoritative build does not pass validation."""

    def __init__(self, message: str, validation: Mapping[str, Any]) -> None:
        super().__init__(message)
        self.validation = dict(validation)


@dataclass
class CompileOutcome:
    """Summary of one compilation run."""

    output_dir: Path
    build_hash: str
    passed: bool
    producers: List[Dict[str, Any]]
    validation: Dict[str, Any]
    warnings_summary: Dict[str, Any]
    scenario_coverage: Dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "output_dir": str(self.output_dir),
            "build_hash": self.build_hash,
            "passed": self.passed,
            "producers": list(self.producers),
            "validation": dict(self.validation),
            "warnings_summary": dict(self.warnings_summary),
            "scenario_coverage": dict(self.scenario_coverage),
            "duration_seconds": self.duration_seconds,
        }


class Compiler:
    """Coordinates one compilation per call to :meth:`compile`.

    All run-scoped state (ledger, resolver caches, scanner listings) is built
    inside :meth:`compile`, so one instance can serve many repositories.
    """

    def __init__(self, extractors: Optional[Iterable[Extractor]] = None) -> None:
        self._extractor_overrides = list(extractors) if extractors is not None else None
        self.logger = get_logger("compiler")

    def compile(
        self,
        path: str | Path,
        *,
        output_dir: str | Path | None = None,
        overrides: Mapping[str, Any] | None = None,
        skip_reproducibility: bool = False,
    ) -> CompileOutcome:
        started = time.perf_counter()
        repo_path = Path(path).expanduser().resolve()
        self.logger.info("Compiling %s", repo_path)

        config = load_config(repo_path, overrides)
        if output_dir is not None:
            target_dir = Path(output_dir).expanduser()
            config.output_dir = target_dir if target_dir.is_absolute() else Path.cwd() / target_dir

        scanner = ScopeScanner(repo_path)
        ledger = WarningLedger()
        resolver = ModuleResolver(scanner, config.scopes, ledger=ledger)
        context = ExtractionContext(
            repo_path=repo_path,
            config=config,
            scanner=scanner,
            resolver=resolver,
            ledger=ledger,
        )
        writer = ArtifactWriter(
            config.output_dir,
            repo_commit=read_head_commit(repo_path),
            scopes=config.scopes,
            target=config.target,
        )

        with log_stage(self.logger, "extract"):
            outcomes = self._run_extractors(self._select_extractors(config), context)

        facts: Dict[str, Mapping[str, Any]] = {}
        producers: List[Dict[str, Any]] = []
        for outcome in outcomes:
            if isinstance(outcome, Extracted):
                payload = dict(outcome.data)
                payload["warnings"] = serialise_warnings(outcome.warnings)
                writer.write(outcome.name, payload)
                facts[outcome.name] = outcome.data
            elif isinstance(outcome, Failed):
                self.logger.warning("Extractor %s failed: %s", outcome.name, outcome.error)
            else:
                self.logger.info("Extractor %s skipped: %s", outcome.name, outcome.reason)
            producers.append(outcome_summary(outcome))

        resolver_warnings = serialise_warnings(ledger.drain("module_resolver"))
        targets = {
            item.get("di_target_id")
            for item in (facts.get("di_resolution_map") or {}).get("resolutions") or []
        }
        ledger.set_totals(resolver.discovered_symbol_count, len(targets))

        with log_stage(self.logger, "architecture"):
            architecture = ArchitectureAnalyzer(facts, config, ledger).analyze()
            writer.write("architecture", architecture, derived=True)

        with log_stage(self.logger, "reverse_index"):
            reverse_index = IndexBuilder(facts, architecture).build()
            writer.write(
                "reverse_index",
                reverse_index,
                relative="reverse_index/reverse_index.json",
                derived=True,
            )

        with log_stage(self.logger, "scenarios"):
            paths = records_from(facts.get("execution_paths") or {})
            if not paths:
                paths = ExecutionPathTracer(facts).trace()
            scenarios = ScenarioBundleGenerator(facts, reverse_index, architecture).generate(paths)
            for label, bundle in sorted(scenarios.bundles.items()):
                writer.write(f"scenario:{label}", bundle, relative=f"scenarios/{label}.json", derived=True)
            writer.write("scenario_coverage", scenarios.coverage, derived=True)

        edge_types = emitted_edge_types(facts)
        with log_stage(self.logger, "validate"):
            validator = BundleValidator(config, config.output_dir)
            validation = validator.validate(
                facts,
                reverse_index,
                edge_types,
                writer.written,
                skip_reproducibility=skip_reproducibility,
            )
            writer.write("validation", validation, derived=True)

        summary = ledger.summary()
        summary["resolver_warnings"] = resolver_warnings
        duration = time.perf_counter() - started
        writer.write_manifest(
            producers=producers,
            warnings_summary=summary,
            validation=validation,
            duration_seconds=duration,
            settings=config.to_dict(),
        )
        manifest_hash = _manifest_hash(writer, producers)

        passed = bool(validation["passed"])
        self.logger.info(
            "Compiled %d artifacts into %s (integrity %.3f, %s)",
            len(writer.written),
            config.output_dir,
            summary["analysis_integrity_score"],
            "passed" if passed else "failed",
        )
        outcome = CompileOutcome(
            output_dir=config.output_dir,
            build_hash=manifest_hash,
            passed=passed,
            producers=producers,
            validation=validation,
            warnings_summary=summary,
            scenario_coverage=scenarios.coverage,
            duration_seconds=round(duration, 3),
        )
        if not passed and not skip_reproducibility:
            messages = "; ".join(item["message"] for item in validation["errors"])
            raise BuildFailedError(f"Bundle validation failed: {messages}", validation)
        return outcome

    # ------------------------------------------------------------------

    def _select_extractors(self, config: CompilerConfig) -> List[Extractor]:
        if self._extractor_overrides is not None:
            return list(self._extractor_overrides)
        return discover_extractors(config.extractors or None)

    def _run_extractors(self, extractors: Sequence[Extractor], context: ExtractionContext) -> List[Outcome]:
        workers = max(1, context.config.workers)
        if workers == 1 or len(extractors) < 2:
            return [self._run_one(extractor, context) for extractor in extractors]
        self.logger.debug("Running %d extractors on %d workers", len(extractors), workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="modctx-extract") as pool:
            futures = [pool.submit(self._run_one, extractor, context) for extractor in extractors]
            # registry order, whatever order they finish in
            return [future.result() for future in futures]

    def _run_one(self, extractor: Extractor, context: ExtractionContext) -> Outcome:
        extractor.bind(context)
        reason = extractor.skip_reason(context)
        if reason:
            return Skipped(name=extractor.name, view=extractor.view, reason=reason)

        self.logger.debug("Running extractor %s", extractor.name)
        started = time.perf_counter()
        try:
            data = extractor.extract(context.repo_path, context.config.scopes)
        except Exception as exc:
            self._log_exception(f"Extractor {extractor.name} raised", exc)
            return Failed(
                name=extractor.name,
                view=extractor.view,
                error=f"{type(exc).__name__}: {exc}",
                duration_ms=_elapsed_ms(started),
                warnings=context.ledger.drain(extractor.name),
            )
        return Extracted(
            name=extractor.name,
            view=extractor.view,
            data=data,
            item_count=extractor.item_count(data),
            duration_ms=_elapsed_ms(started),
            warnings=context.ledger.drain(extractor.name),
        )

    def _log_exception(self, message: str, exc: Exception) -> None:
        if self.logger.isEnabledFor(logging.DEBUG):
            self.logger.exception("%s: %s", message, exc)
        else:
            self.logger.error("%s: %s", message, exc)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)


def _manifest_hash(writer: ArtifactWriter, producers: Sequence[Mapping[str, Any]]) -> str:
    names = [str(item["name"]) for item in producers]
    counts = {str(item["name"]): int(item.get("item_count", 0)) for item in producers}
    return build_hash(writer.repo_commit, writer.scopes, writer.target, names, counts)


__all__ = ["BuildFailedError", "CompileOutcome", "Compiler"]
