"""In-memory artifact cache.

ArtifactCache wraps one CacheRecord and answers three questions for the
build: which files are dirty, which batches must run, and what the record
looks like once fresh output is merged in. Instances are never mutated;
``merge`` returns a new cache.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType

import structlog

from smelt_core.cache.fingerprint import batch_fingerprints
from smelt_core.graph.source_graph import SourceGraph
from smelt_core.schemas.artifacts import CacheEntry, CacheRecord, CompilerOutput, ContractArtifact
from smelt_core.schemas.batch import Batch

logger = structlog.get_logger(__name__)


class ArtifactCache:
    """Cached compiler output keyed by canonical source path.

    Attributes:
        corrupted: True when the persisted record could not be used; every
            file is then dirty until the next successful persist.

    Example:
        >>> cache = ArtifactCache()
        >>> cache.plan(graph, batches) == batches
        True
    """

    def __init__(self, record: CacheRecord | None = None, *, corrupted: bool = False) -> None:
        self._record = record or CacheRecord()
        self.corrupted = corrupted

    @property
    def record(self) -> CacheRecord:
        """The cache record to persist."""
        return self._record

    @property
    def entries(self) -> Mapping[str, CacheEntry]:
        """Read-only view of the entries keyed by path."""
        return MappingProxyType(self._record.entries)

    def __len__(self) -> int:
        return len(self._record.entries)

    def __contains__(self, path: object) -> bool:
        return path in self._record.entries

    def entry(self, path: str) -> CacheEntry | None:
        """Return the cache entry for a file, if one exists."""
        return self._record.entries.get(path)

    def is_dirty(self, path: str, fingerprint: str) -> bool:
        """Check if a file must be recompiled for the given fingerprint."""
        if self.corrupted:
            return True
        entry = self._record.entries.get(path)
        return entry is None or entry.fingerprint != fingerprint

    def dirty_files(self, graph: SourceGraph, batches: Iterable[Batch]) -> set[str]:
        """All batch members whose cached entry does not match their fingerprint."""
        dirty: set[str] = set()
        for batch in batches:
            for path, value in batch_fingerprints(graph, batch).items():
                if self.is_dirty(path, value):
                    dirty.add(path)
        return dirty

    def plan(self, graph: SourceGraph, batches: Iterable[Batch]) -> list[Batch]:
        """Select the batches that must be compiled.

        A batch runs when at least one member is dirty. Clean members of a
        running batch are recompiled with it and their cached output is
        replaced, so a batch's output always comes from one invocation.

        Args:
            graph: Source graph the batches were built from.
            batches: Resolved batches.

        Returns:
            Batches to compile, in input order.
        """
        planned: list[Batch] = []
        for batch in batches:
            dirty = [
                path
                for path, value in batch_fingerprints(graph, batch).items()
                if self.is_dirty(path, value)
            ]
            if dirty:
                planned.append(batch)
                logger.debug(
                    "batch_planned",
                    batch_id=batch.batch_id,
                    dirty=len(dirty),
                    members=len(batch.files),
                )
            else:
                logger.debug("batch_cached", batch_id=batch.batch_id)
        return planned

    def merge(
        self,
        fresh: Mapping[str, CacheEntry],
        *,
        keep: Iterable[str] | None = None,
    ) -> ArtifactCache:
        """Return a new cache with fresh entries applied.

        Fresh entries overwrite existing ones; untouched entries are reused
        as they are.

        Args:
            fresh: New entries keyed by path.
            keep: Paths still present in the project. Entries for other paths
                are pruned. None keeps every entry.

        Returns:
            New ArtifactCache; this instance is unchanged.
        """
        entries = dict(self._record.entries)
        entries.update(fresh)
        if keep is not None:
            kept = set(keep)
            pruned = sorted(path for path in entries if path not in kept)
            for path in pruned:
                del entries[path]
            if pruned:
                logger.debug("cache_entries_pruned", count=len(pruned))
        record = self._record.model_copy(update={"entries": entries})
        return ArtifactCache(record)

    def artifacts(self, path: str) -> list[ContractArtifact]:
        """Compiled constructs of a file (empty when not cached)."""
        entry = self._record.entries.get(path)
        return list(entry.artifacts) if entry is not None else []

    def artifact(self, path: str, name: str) -> ContractArtifact:
        """Return one compiled construct.

        Raises:
            KeyError: If the file has no cached construct with that name.
        """
        for artifact in self.artifacts(path):
            if artifact.name == name:
                return artifact
        raise KeyError(f"No artifact '{name}' cached for {path}")


def entries_from_output(
    graph: SourceGraph,
    batch: Batch,
    output: CompilerOutput,
    *,
    compiled_at: datetime | None = None,
) -> dict[str, CacheEntry]:
    """Split one batch's compiler output into per-file cache entries.

    Args:
        graph: Source graph the batch was built from.
        batch: The compiled batch.
        output: Output of the batch's single invocation.
        compiled_at: Timestamp to record; defaults to now (UTC).

    Returns:
        One entry per batch member.
    """
    compiled_at = compiled_at or datetime.now(UTC)
    fingerprints = batch_fingerprints(graph, batch)
    return {
        path: CacheEntry(
            fingerprint=fingerprints[path],
            version=batch.version,
            batch_id=batch.batch_id,
            compiled_at=compiled_at,
            artifacts=list(output.artifacts.get(path, [])),
            diagnostics=output.diagnostics_for(path),
        )
        for path in batch.files
    }
