"""Tests for the cross-run churn cache."""

from __future__ import annotations

import json

from modctx.git.churn import ChurnData
from modctx.stores.churn_cache import ChurnCache, scopes_hash
from tests._fixtures.repo_builder import RepoBuilder

DATA = ChurnData(
    change_counts={"app/code/Acme/A/Model/X.php": 3},
    last_modified={"app/code/Acme/A/Model/X.php": "2024-01-01T00:00:00+00:00"},
)


def test_round_trip_on_same_key(repo_builder: RepoBuilder) -> None:
    repo_builder.git_head()
    cache = ChurnCache(repo_builder.path())

    assert cache.read(365, ["app/code"]) is None
    assert cache.write(365, ["app/code"], DATA) is True
    assert cache.read(365, ["app/code"]) == DATA
    assert (repo_builder.path() / ".modctx-cache" / ".gitignore").read_text(encoding="utf-8") == "*\n"


def test_any_key_change_is_a_miss(repo_builder: RepoBuilder) -> None:
    repo_builder.git_head("a" * 40)
    cache = ChurnCache(repo_builder.path())
    cache.write(365, ["app/code", "app/design"], DATA)

    # scope order does not matter
    assert cache.read(365, ["app/design", "app/code"]) == DATA
    assert cache.read(30, ["app/code", "app/design"]) is None
    assert cache.read(365, ["app/code"]) is None

    repo_builder.git_head("b" * 40)
    assert cache.read(365, ["app/code", "app/design"]) is None


def test_unknown_head_never_caches(repo_builder: RepoBuilder) -> None:
    cache = ChurnCache(repo_builder.path())

    assert cache.write(365, ["app/code"], DATA) is False
    assert cache.read(365, ["app/code"]) is None
    assert not cache.path.exists()


def test_foreign_payload_is_a_miss(repo_builder: RepoBuilder) -> None:
    repo_builder.git_head()
    cache = ChurnCache(repo_builder.path())
    cache.write(365, ["app/code"], DATA)
    payload = json.loads(cache.path.read_text(encoding="utf-8"))
    payload["version"] = 99
    cache.path.write_text(json.dumps(payload), encoding="utf-8")

    assert cache.read(365, ["app/code"]) is None

    cache.path.write_text("not json", encoding="utf-8")
    assert cache.read(365, ["app/code"]) is None

    cache.clear()
    cache.clear()
    assert not cache.path.exists()


def test_corrupt_counts_are_a_miss(repo_builder: RepoBuilder) -> None:
    repo_builder.git_head()
    cache = ChurnCache(repo_builder.path())
    cache.write(365, ["app/code"], DATA)
    payload = json.loads(cache.path.read_text(encoding="utf-8"))

    payload["change_counts"] = {"app/code/Acme/A/Model/X.php": "x"}
    cache.path.write_text(json.dumps(payload), encoding="utf-8")
    assert cache.read(365, ["app/code"]) is None

    payload["change_counts"] = {"app/code/Acme/A/Model/X.php": None}
    cache.path.write_text(json.dumps(payload), encoding="utf-8")
    assert cache.read(365, ["app/code"]) is None


def test_scopes_hash_is_order_independent() -> None:
    assert scopes_hash(["b", "a"]) == scopes_hash(["a", "b"])
    assert scopes_hash(["a"]) != scopes_hash(["a", "b"])
