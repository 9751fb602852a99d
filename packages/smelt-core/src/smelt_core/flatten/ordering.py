"""Emission order for flattened output.

Files are emitted dependency-before-dependent. The graph is condensed into
strongly connected components, which are ordered topologically with ties
broken by first-discovery index from the root.

Cycle break: inside a cycle, import edges that point to the member
discovered first are ignored, so that member is emitted after the rest of
its cycle. What remains of the cycle is ordered the same way, recursively.
"""

from __future__ import annotations

from collections.abc import Mapping

import networkx as nx

from smelt_core.graph.source_graph import SourceGraph


def _order(before: nx.DiGraph, index: Mapping[str, int]) -> list[str]:
    # An edge u -> v in ``before`` means u must be emitted before v.
    condensed = nx.condensation(before)
    first_seen = {
        component: min(index[node] for node in condensed.nodes[component]["members"])
        for component in condensed.nodes
    }

    order: list[str] = []
    for component in nx.lexicographical_topological_sort(condensed, key=first_seen.__getitem__):
        members = condensed.nodes[component]["members"]
        if len(members) == 1:
            order.extend(members)
            continue
        pivot = min(members, key=index.__getitem__)
        inner = before.subgraph(members).copy()
        inner.remove_edges_from(list(inner.out_edges(pivot)))
        order.extend(_order(inner, index))
    return order


def flatten_order(graph: SourceGraph, root: str) -> list[str]:
    """Order the transitive closure of root for flattening.

    Args:
        graph: Resolved source graph.
        root: File being flattened.

    Returns:
        Every file reachable from root, dependencies first. Without cycles
        the root is always last.

    Example:
        >>> flatten_order(graph, "src/Root.sol")
        ['src/Math.sol', 'src/Lib.sol', 'src/Root.sol']
    """
    closure = graph.transitive_closure(root)
    index = {path: position for position, path in enumerate(closure)}

    before = nx.DiGraph()
    before.add_nodes_from(closure)
    for path in closure:
        for target in graph.imports_of(path):
            if target != path:
                before.add_edge(target, path)
    return _order(before, index)
