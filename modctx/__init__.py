"""Compile a modular PHP codebase into a deterministic, queryable context bundle."""

__version__ = "0.1.0"
