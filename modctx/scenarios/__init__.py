"""Entry-point seeds, execution paths and scenario bundles."""

from .bundles import ScenarioBundleGenerator, ScenarioSet
from .seeds import ScenarioSeed, ScenarioSeedResolver
from .tracer import ExecutionPathTracer

__all__ = [
    "ExecutionPathTracer",
    "ScenarioBundleGenerator",
    "ScenarioSeed",
    "ScenarioSeedResolver",
    "ScenarioSet",
]
