"""Compiler version selection and batch partitioning.

Files connected by import edges (in either direction) must compile with the
same compiler, so each weakly connected component of the source graph is
resolved as one unit. Unrelated files may end up in batches with different
compiler versions.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import structlog
from packaging.version import InvalidVersion, Version

from smelt_core.errors import (
    ComponentResolutionError,
    ConflictingVersionConstraints,
    SmeltError,
    UnsatisfiableVersion,
)
from smelt_core.graph.source_graph import SourceGraph
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.settings import CompilerSettings
from smelt_core.versioning.constraint import (
    VersionConstraint,
    intersect_all,
    preferred_directive,
)
from smelt_core.versioning.variants import effective_settings

logger = structlog.get_logger(__name__)


@dataclass
class VersionResolution:
    """Outcome of partitioning a graph into batches.

    Attributes:
        batches: Resolved batches, ordered by their first member path.
        failures: One error per component that could not be resolved.
    """

    batches: list[Batch] = field(default_factory=list)
    failures: list[SmeltError] = field(default_factory=list)

    @property
    def failed_files(self) -> set[str]:
        """Files belonging to components that failed to resolve."""
        failed: set[str] = set()
        for error in self.failures:
            failed.update(getattr(error, "files", []))
        return failed


class VersionResolver:
    """Selects a compiler version per group of connected files.

    Attributes:
        settings: Settings requested for every batch before variant clamping.
        pinned: Preferred compiler version, used where compatible.

    Example:
        >>> resolver = VersionResolver(pinned="0.8.19")
        >>> batches = resolver.resolve(graph, ["0.7.6", "0.8.19", "0.8.24"])
        >>> [b.version for b in batches]
        ['0.8.19']
    """

    def __init__(
        self,
        settings: CompilerSettings | None = None,
        pinned: str | None = None,
    ) -> None:
        self.settings = settings or CompilerSettings()
        self.pinned = pinned

    def constraint_of(self, graph: SourceGraph, path: str) -> VersionConstraint:
        """Parse the version directives of one file.

        Raises:
            ValueError: If a directive is not valid range syntax.
        """
        return VersionConstraint.parse_all(graph.source(path).version_pragmas)

    def select_version(
        self,
        files: Sequence[str],
        constraint: VersionConstraint,
        available_versions: Iterable[str],
        pinned: str | None = None,
    ) -> str:
        """Pick the compiler version for a group.

        The pinned version wins when it satisfies the constraint and is one of
        the available versions; otherwise the highest satisfying available
        version is used.

        Raises:
            UnsatisfiableVersion: If no available version satisfies the constraint.
        """
        available = list(available_versions)
        if pinned is not None:
            compatible = constraint.contains(pinned)
            if compatible and pinned in available:
                return pinned
            logger.warning(
                "pinned_version_incompatible" if not compatible else "pinned_version_unavailable",
                pinned=pinned,
                constraint=constraint.to_pragma(),
                files=list(files),
            )
        candidates = constraint.satisfying(available)
        if not candidates:
            raise UnsatisfiableVersion(files, constraint.to_pragma(), available)
        return candidates[0]

    def partition(
        self,
        graph: SourceGraph,
        available_versions: Iterable[str],
        *,
        pinned: str | None = None,
    ) -> VersionResolution:
        """Group connected files and select a version for each group.

        Failures are collected per component so one conflict does not stop
        unrelated files from compiling.

        Args:
            graph: Resolved source graph.
            available_versions: Compiler versions that can be invoked.
            pinned: Preferred version; falls back to the resolver's own.

        Returns:
            VersionResolution with batches and per-component failures.
        """
        available = _valid_versions(available_versions)
        pinned = pinned if pinned is not None else self.pinned
        resolution = VersionResolution()

        for files in graph.components():
            try:
                resolution.batches.append(self._resolve_component(graph, files, available, pinned))
            except SmeltError as e:
                logger.warning(
                    "component_unresolved",
                    files=files,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                resolution.failures.append(e)

        logger.debug(
            "versions_resolved",
            batches=len(resolution.batches),
            failures=len(resolution.failures),
        )
        return resolution

    def resolve(
        self,
        graph: SourceGraph,
        available_versions: Iterable[str],
        *,
        pinned: str | None = None,
    ) -> list[Batch]:
        """Partition the graph into batches, raising the first failure.

        Raises:
            ConflictingVersionConstraints: If connected files share no version.
            UnsatisfiableVersion: If no available compiler fits a group.
        """
        resolution = self.partition(graph, available_versions, pinned=pinned)
        if resolution.failures:
            raise resolution.failures[0]
        return resolution.batches

    def _resolve_component(
        self,
        graph: SourceGraph,
        files: list[str],
        available: list[str],
        pinned: str | None,
    ) -> Batch:
        directives: dict[str, str] = {}
        parsed: list[VersionConstraint] = []

        for path in files:
            try:
                constraint = self.constraint_of(graph, path)
            except ValueError as e:
                pragma = graph.source(path).version_constraint or ""
                raise ComponentResolutionError(files, path, pragma, str(e)) from e
            if constraint.is_unconstrained:
                continue
            directives[path] = str(constraint)
            parsed.append(constraint)

        combined = intersect_all(parsed)
        if combined.is_empty:
            raise ConflictingVersionConstraints(directives)

        version = self.select_version(files, combined, available, pinned)
        return Batch.create(
            files,
            version,
            effective_settings(self.settings, version),
            preferred_directive(combined, parsed),
        )


def _valid_versions(versions: Iterable[str]) -> list[str]:
    valid: list[str] = []
    for version in versions:
        try:
            Version(version)
        except InvalidVersion:
            logger.warning("compiler_version_invalid", version=version)
            continue
        valid.append(version)
    return valid
