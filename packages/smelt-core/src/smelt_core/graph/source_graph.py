"""Project import graph for smelt-core.

SourceGraph holds every captured SourceFile and the resolved import edges
between them. Edges point from the importing file to the imported file.
Cycles are legal and are represented as-is; ``cycles()`` only reports them.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

import networkx as nx
import structlog

from smelt_core.errors import SmeltError, UnresolvedImport
from smelt_core.graph.lexer import scan_source
from smelt_core.graph.remapping import Remapper
from smelt_core.schemas.source import ImportEdge, RemappingRule, SourceFile

logger = structlog.get_logger(__name__)


class SourceGraph:
    """Directed import graph over a captured set of source files.

    Build with ``SourceGraph.build()``; the file set and edges are fixed for
    the lifetime of the instance.

    Attributes:
        edges: Resolved import edges in (file, import declaration) order.
        unresolved: Imports that could not be resolved (non-strict builds only).

    Example:
        >>> graph = SourceGraph.build(
        ...     {
        ...         "src/Root.sol": 'import "./Lib.sol"; contract Root {}',
        ...         "src/Lib.sol": "library Lib {}",
        ...     }
        ... )
        >>> graph.transitive_closure("src/Root.sol")
        ['src/Root.sol', 'src/Lib.sol']
    """

    def __init__(
        self,
        files: Mapping[str, SourceFile],
        edges: Iterable[ImportEdge],
        unresolved: Iterable[UnresolvedImport] = (),
    ) -> None:
        """Initialize the graph from already-resolved parts.

        Args:
            files: Source files keyed by canonical path.
            edges: Resolved import edges; every target must be in ``files``.
            unresolved: Imports recorded instead of raised.
        """
        self._files = dict(files)
        self.edges = list(edges)
        self.unresolved = list(unresolved)

        self._graph = nx.DiGraph()
        for path in sorted(self._files):
            self._graph.add_node(path)
        self._imports: dict[str, list[str]] = {path: [] for path in self._files}
        self._targets: dict[tuple[str, str], str] = {}
        for edge in self.edges:
            self._targets[edge.source, edge.raw] = edge.target
            if self._graph.has_edge(edge.source, edge.target):
                self._graph.edges[edge.source, edge.target]["raw"].append(edge.raw)
                continue
            self._graph.add_edge(edge.source, edge.target, raw=[edge.raw])
            self._imports[edge.source].append(edge.target)

    @classmethod
    def build(
        cls,
        files: Mapping[str, str] | Iterable[SourceFile],
        remappings: Iterable[RemappingRule | str] = (),
        *,
        strict: bool = True,
    ) -> SourceGraph:
        """Scan files and resolve every import.

        Args:
            files: Either ``{path: content}`` or already-scanned SourceFiles.
            remappings: Ordered remapping rules (or their string form).
            strict: Raise on the first unresolved import. When False,
                unresolved imports are collected on ``graph.unresolved``.

        Returns:
            The resolved SourceGraph.

        Raises:
            UnresolvedImport: If an import target is not in the file set (strict).
            SmeltError: If two inputs clean to the same canonical path.
        """
        if isinstance(files, Mapping):
            sources = [scan_source(path, content) for path, content in files.items()]
        else:
            sources = list(files)

        by_path: dict[str, SourceFile] = {}
        for source in sources:
            if source.path in by_path:
                raise SmeltError(f"Same canonical path '{source.path}' for multiple source files")
            by_path[source.path] = source

        rules = [r if isinstance(r, RemappingRule) else RemappingRule.parse(r) for r in remappings]
        remapper = Remapper(rules)
        lowered = {path.lower(): path for path in by_path}

        edges: list[ImportEdge] = []
        unresolved: list[UnresolvedImport] = []
        for path in sorted(by_path):
            for raw in by_path[path].raw_imports:
                target = remapper.resolve(path, raw)
                if target not in by_path:
                    error = UnresolvedImport(path, raw, target, hint=lowered.get(target.lower()))
                    if strict:
                        raise error
                    logger.warning("import_unresolved", source=path, raw=raw, resolved=target)
                    unresolved.append(error)
                    continue
                edges.append(ImportEdge(source=path, raw=raw, target=target))

        graph = cls(by_path, edges, unresolved)
        logger.debug(
            "source_graph_built",
            files=len(by_path),
            edges=len(edges),
            unresolved=len(unresolved),
        )
        cycles = graph.cycles()
        if cycles:
            logger.info("import_cycles_detected", count=len(cycles), first=cycles[0])
        return graph

    @property
    def files(self) -> Mapping[str, SourceFile]:
        """Read-only view of the captured files keyed by path."""
        return MappingProxyType(self._files)

    @property
    def digraph(self) -> nx.DiGraph:
        """The underlying networkx graph (importer -> imported)."""
        return self._graph

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def source(self, path: str) -> SourceFile:
        """Return the SourceFile for a path.

        Raises:
            KeyError: If the path is not part of the graph.
        """
        if path not in self._files:
            raise KeyError(f"'{path}' is not part of the source graph")
        return self._files[path]

    def imports_of(self, path: str) -> list[str]:
        """Direct import targets of a file, in import declaration order."""
        self.source(path)
        return list(self._imports[path])

    def target_of(self, path: str, raw: str) -> str | None:
        """Resolved target of one import string of a file, if it resolved."""
        return self._targets.get((path, raw))

    def importers_of(self, path: str) -> list[str]:
        """Files that import the given file directly, sorted."""
        self.source(path)
        return sorted(self._graph.predecessors(path))

    def transitive_closure(self, root: str) -> list[str]:
        """All files reachable from root, root first.

        Files are listed in first-discovery order of a depth-first walk that
        follows imports in declaration order.

        Args:
            root: Starting file.

        Returns:
            Ordered list of reachable files including root.
        """
        self.source(root)
        order: list[str] = []
        seen: set[str] = set()
        stack = [root]
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            order.append(node)
            stack.extend(reversed(self._imports[node]))
        return order

    def dependencies(self, path: str) -> list[str]:
        """Transitive dependencies of a file (closure without the file itself)."""
        return [p for p in self.transitive_closure(path) if p != path]

    def affected_by(self, changed: Iterable[str]) -> set[str]:
        """Files affected by a set of changed files.

        A file is affected if it changed or if anything it imports, directly
        or transitively, is affected. Paths not in the graph are ignored.

        Args:
            changed: Paths of changed files.

        Returns:
            Set of affected paths.
        """
        affected: set[str] = set()
        for path in changed:
            if path not in self._files or path in affected:
                continue
            affected.add(path)
            affected |= nx.ancestors(self._graph, path)
        return affected

    def cycles(self) -> list[list[str]]:
        """Simple import cycles, each starting at its smallest path, sorted."""
        found: list[list[str]] = []
        for cycle in nx.simple_cycles(self._graph):
            pivot = cycle.index(min(cycle))
            found.append(cycle[pivot:] + cycle[:pivot])
        return sorted(found)

    def components(self) -> list[list[str]]:
        """Groups of files connected by import edges in either direction."""
        groups = [sorted(c) for c in nx.weakly_connected_components(self._graph)]
        return sorted(groups, key=lambda group: group[0])

    @property
    def failed_files(self) -> set[str]:
        """Files that own at least one unresolved import."""
        return {error.source for error in self.unresolved}
