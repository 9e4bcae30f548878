"""Canonical serialization, artifact persistence and bundle validation."""

from .canonical import canonicalize, dumps, encode
from .validator import BundleValidator
from .writer import ArtifactWriter, WrittenArtifact

__all__ = ["ArtifactWriter", "BundleValidator", "WrittenArtifact", "canonicalize", "dumps", "encode"]
