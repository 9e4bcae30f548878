"""FastAPI application exposing compilation and bundle lookups."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .. import __version__
from ..compiler import BuildFailedError, CompileOutcome, Compiler
from ..query import BundleReader


class CompileRequest(BaseModel):
    path: str
    output_dir: Optional[str] = None
    overrides: Dict[str, Any] = Field(default_factory=dict)
    skip_reproducibility: bool = False


class CompileResponse(BaseModel):
    status: str
    output_dir: str
    build_hash: str
    passed: bool
    integrity_score: float
    validation: Dict[str, Any]
    scenario_coverage: Dict[str, Any]


class LookupResponse(BaseModel):
    kind: str
    key: str
    result: Dict[str, Any]


class HealthResponse(BaseModel):
    status: str
    version: str


def _default_compiler() -> Compiler:
    return Compiler()


def create_app(
    compiler_factory: Callable[[], Compiler] = _default_compiler,
) -> FastAPI:
    """Create the FastAPI application exposing modctx operations."""

    app = FastAPI(title="modctx service", version=__version__)

    async def get_compiler() -> Compiler:
        # one compiler per request
        return compiler_factory()

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.post("/compile", response_model=CompileResponse)
    async def compile_repo(
        payload: CompileRequest,
        compiler: Compiler = Depends(get_compiler),
    ) -> CompileResponse:
        def _run_compile() -> CompileOutcome:
            return compiler.compile(
                payload.path,
                output_dir=payload.output_dir,
                overrides=payload.overrides or None,
                skip_reproducibility=payload.skip_reproducibility,
            )

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(None, _run_compile)
        return CompileResponse(
            status="ok" if outcome.passed else "degraded",
            output_dir=str(outcome.output_dir),
            build_hash=outcome.build_hash,
            passed=outcome.passed,
            integrity_score=float(outcome.warnings_summary.get("analysis_integrity_score", 1.0)),
            validation=outcome.validation,
            scenario_coverage=outcome.scenario_coverage,
        )

    @app.get("/lookup/{kind}/{key:path}", response_model=LookupResponse)
    async def lookup(
        kind: str,
        key: str,
        bundle: str = Query(..., description="Directory holding a compiled bundle"),
    ) -> LookupResponse:
        reader = BundleReader(Path(bundle))
        result = reader.lookup(kind, key)
        if result is None:
            raise HTTPException(status_code=404, detail=f"No {kind} '{key}' in bundle")
        return LookupResponse(kind=kind, key=key, result=result)

    @app.exception_handler(BuildFailedError)
    async def build_failed_handler(_: Any, exc: BuildFailedError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"detail": str(exc), "validation": exc.validation},
        )

    @app.exception_handler(FileNotFoundError)
    async def file_not_found_handler(_: Any, exc: FileNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(ValueError)
    async def value_error_handler(_: Any, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RuntimeError)
    async def runtime_error_handler(_: Any, exc: RuntimeError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    return app


def run_service(host: str = "127.0.0.1", port: int = 8000) -> None:  # pragma: no cover - integration path
    uvicorn.run(create_app(), host=host, port=port)
