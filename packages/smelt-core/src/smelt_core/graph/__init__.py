"""Source graph construction and import resolution.

This module exports:
- SourceGraph: Directed import graph over a captured file set
- Remapper / clean_path: Import path resolution
- scan_source: Lexical scan of one file into a SourceFile
"""

from __future__ import annotations

from smelt_core.graph.lexer import content_hash, mask_source, scan_source
from smelt_core.graph.remapping import Remapper, clean_path, is_relative_import
from smelt_core.graph.source_graph import SourceGraph

__all__: list[str] = [
    "SourceGraph",
    "Remapper",
    "clean_path",
    "is_relative_import",
    "scan_source",
    "mask_source",
    "content_hash",
]
