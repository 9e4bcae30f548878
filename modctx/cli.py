"""CLI entrypoints for modctx commands."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List

from .compiler import BuildFailedError, Compiler
from .config import ConfigError, deep_merge, parse_override
from .logging import configure_logging


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="modctx",
        description="Compile a modular PHP repository into a deterministic context bundle.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    compile_parser = subparsers.add_parser(
        "compile",
        help="Extract facts and write the context bundle.",
    )
    _add_verbose_option(compile_parser, suppress_default=True)
    compile_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )
    compile_parser.add_argument(
        "--output",
        "-o",
        default=None,
        help="Directory for the bundle (defaults to output_dir from config).",
    )
    compile_parser.add_argument(
        "--skip-reproducibility",
        action="store_true",
        help="Skip the byte-for-byte reproducibility check (local iteration only).",
    )
    compile_parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Override a config value, e.g. --set churn.enabled=false. Repeatable.",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for modctx commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    if args.command == "compile":
        try:
            overrides = _collect_overrides(args.overrides)
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        try:
            outcome = Compiler().compile(
                args.path,
                output_dir=args.output,
                overrides=overrides or None,
                skip_reproducibility=bool(args.skip_reproducibility),
            )
        except BuildFailedError as exc:
            parser.exit(1, f"modctx compile failed: {exc}\n")
        except (ConfigError, FileNotFoundError, NotADirectoryError) as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover - defensive guard
            parser.exit(1, f"modctx compile failed: {exc}\nRun with --verbose for more details.\n")
        _print_summary(outcome)
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _collect_overrides(expressions: List[str]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for expression in expressions:
        merged = deep_merge(merged, parse_override(expression))
    return merged


def _print_summary(outcome: Any) -> None:
    coverage = outcome.scenario_coverage
    print(f"Bundle written to {_relativize(outcome.output_dir)}")
    print(f"Build hash: {outcome.build_hash}")
    print(f"Integrity score: {outcome.warnings_summary.get('analysis_integrity_score', 1.0):.3f}")
    for producer in outcome.producers:
        detail = producer.get("reason") or producer.get("error") or f"{producer.get('item_count', 0)} items"
        print(f"  {producer['name']:<20} {producer['status']:<8} {detail}")
    if coverage:
        print(
            f"Scenarios: {coverage.get('total_scenarios', 0)} "
            f"({coverage.get('matched', 0)} matched, {coverage.get('unmatched', 0)} unmatched)"
        )
    validation = outcome.validation
    print(
        f"Validation: {'passed' if validation.get('passed') else 'failed'} "
        f"({len(validation.get('errors', []))} errors, {len(validation.get('warnings', []))} warnings)"
    )


def _relativize(path: Path) -> str:
    try:
        return str(Path(path).resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    main()
