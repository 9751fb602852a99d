"""Unit tests for ArtifactCache."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from smelt_core.cache.artifact_cache import ArtifactCache, entries_from_output
from smelt_core.graph.source_graph import SourceGraph
from smelt_core.schemas.artifacts import (
    CompilerOutput,
    ContractArtifact,
    Diagnostic,
    Severity,
    SourceLocation,
)
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.settings import CompilerSettings
from smelt_core.versioning.resolver import VersionResolver


@pytest.fixture
def graph(root_lib_math_sources: dict[str, str]) -> SourceGraph:
    """Return the Root/Lib/Math/Foo graph."""
    return SourceGraph.build(root_lib_math_sources)


@pytest.fixture
def batches(graph: SourceGraph, available_versions: list[str]) -> list[Batch]:
    """Return the resolved batches of the sample project."""
    return VersionResolver().resolve(graph, available_versions)


def _output(batch: Batch) -> CompilerOutput:
    return CompilerOutput(
        artifacts={
            path: [ContractArtifact(name=path.rsplit("/", 1)[-1][:-4], source_path=path)]
            for path in batch.files
        },
        diagnostics=[
            Diagnostic(
                severity=Severity.WARNING,
                message="Unused variable",
                location=SourceLocation(path=batch.files[0]),
            )
        ],
    )


def _warm(graph: SourceGraph, batches: list[Batch]) -> ArtifactCache:
    fresh = {}
    for batch in batches:
        fresh.update(entries_from_output(graph, batch, _output(batch)))
    return ArtifactCache().merge(fresh)


class TestPlan:
    """Tests for ArtifactCache.plan."""

    def test_empty_cache_plans_every_batch(self, graph: SourceGraph, batches: list[Batch]) -> None:
        """Every file is dirty in an empty cache."""
        assert ArtifactCache().plan(graph, batches) == batches

    def test_warm_cache_plans_nothing(self, graph: SourceGraph, batches: list[Batch]) -> None:
        """Unchanged inputs need no compilation."""
        cache = _warm(graph, batches)

        assert cache.plan(graph, batches) == []
        assert cache.dirty_files(graph, batches) == set()

    def test_dirty_dependency_replans_its_batch(
        self,
        graph: SourceGraph,
        batches: list[Batch],
        root_lib_math_sources: dict[str, str],
        available_versions: list[str],
    ) -> None:
        """A change to Math dirties Math, Lib and Root but not Foo."""
        cache = _warm(graph, batches)
        changed = dict(root_lib_math_sources)
        changed["src/Math.sol"] = changed["src/Math.sol"].replace("a + b", "b + a")
        new_graph = SourceGraph.build(changed)
        new_batches = VersionResolver().resolve(new_graph, available_versions)

        planned = cache.plan(new_graph, new_batches)

        assert [b.files for b in planned] == [("src/Lib.sol", "src/Math.sol", "src/Root.sol")]
        assert cache.dirty_files(new_graph, new_batches) == {
            "src/Lib.sol",
            "src/Math.sol",
            "src/Root.sol",
        }

    def test_corrupted_cache_is_always_dirty(
        self, graph: SourceGraph, batches: list[Batch]
    ) -> None:
        """A corrupted cache treats every file as dirty, even with entries."""
        warm = _warm(graph, batches)
        cache = ArtifactCache(warm.record, corrupted=True)

        assert cache.plan(graph, batches) == batches


class TestMerge:
    """Tests for ArtifactCache.merge."""

    def test_merge_returns_new_cache(self, graph: SourceGraph, batches: list[Batch]) -> None:
        """The receiver is never mutated."""
        empty = ArtifactCache()

        warm = empty.merge(entries_from_output(graph, batches[0], _output(batches[0])))

        assert len(empty) == 0
        assert len(warm) == 1
        assert "src/Foo.sol" in warm

    def test_merge_prunes_removed_files(self, graph: SourceGraph, batches: list[Batch]) -> None:
        """Entries for files no longer in the project are dropped."""
        cache = _warm(graph, batches)

        pruned = cache.merge({}, keep=["src/Foo.sol"])

        assert set(pruned.entries) == {"src/Foo.sol"}
        assert len(cache) == 4

    def test_merge_clears_corruption(self) -> None:
        """A merged cache is a valid starting point again."""
        assert ArtifactCache(corrupted=True).merge({}).corrupted is False


class TestEntries:
    """Tests for entries_from_output and artifact lookup."""

    def test_entries_split_output_per_file(self, graph: SourceGraph, batches: list[Batch]) -> None:
        """Each member gets its own artifacts and diagnostics."""
        batch = batches[1]
        compiled_at = datetime(2026, 1, 1, tzinfo=UTC)

        entries = entries_from_output(graph, batch, _output(batch), compiled_at=compiled_at)

        assert set(entries) == set(batch.files)
        lib = entries["src/Lib.sol"]
        assert lib.version == batch.version
        assert lib.batch_id == batch.batch_id
        assert lib.compiled_at == compiled_at
        assert [a.name for a in lib.artifacts] == ["Lib"]
        assert len(lib.diagnostics) == 1
        assert entries["src/Root.sol"].diagnostics == []

    def test_artifact_lookup(self, graph: SourceGraph, batches: list[Batch]) -> None:
        """Artifacts are found by file and name."""
        cache = _warm(graph, batches)

        assert cache.artifact("src/Root.sol", "Root").source_path == "src/Root.sol"
        assert cache.artifacts("src/Unknown.sol") == []
        with pytest.raises(KeyError):
            cache.artifact("src/Root.sol", "Missing")

    def test_entry_for_unknown_path(self) -> None:
        """Unknown paths have no entry."""
        assert ArtifactCache().entry("src/A.sol") is None
