"""Content fingerprints for incremental compilation.

A fingerprint covers every input a file's compiled output can depend on:
its own content, the content of everything it imports transitively, the
compiler settings and the compiler version. It is a pure function of those
inputs; file modification times are never consulted.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

from smelt_core.graph.source_graph import SourceGraph
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.settings import CompilerSettings


def _digest(document: dict[str, Any]) -> str:
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def fingerprint(
    path: str,
    graph: SourceGraph,
    settings: CompilerSettings,
    version: str,
) -> str:
    """Compute the fingerprint of one file.

    Dependency hashes are sorted, so the result does not depend on import
    declaration order or on how the dependency set was discovered.

    Args:
        path: Canonical path of the file.
        graph: Source graph containing the file.
        settings: Effective compiler settings.
        version: Compiler version.

    Returns:
        Hex-encoded SHA-256 fingerprint.
    """
    source = graph.source(path)
    dependencies = sorted(graph.source(dep).content_hash for dep in graph.dependencies(path))
    return _digest(
        {
            "content": source.content_hash,
            "dependencies": dependencies,
            "settings": settings.model_dump(mode="json"),
            "version": version,
        }
    )


def batch_fingerprints(graph: SourceGraph, batch: Batch) -> dict[str, str]:
    """Fingerprint every member of a batch with the batch's settings and version."""
    return {path: fingerprint(path, graph, batch.settings, batch.version) for path in batch.files}
