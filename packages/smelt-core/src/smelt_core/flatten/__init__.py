"""Flattening of a root file and its dependencies into one source buffer.

This module exports:
- Flattener: Orders, deduplicates, renames and merges sources
- FlattenResult: Flattened text with its per-file byte ranges
- flatten_order: Deterministic dependency-first emission order
"""

from __future__ import annotations

from smelt_core.flatten.flattener import Flattener, FlattenResult
from smelt_core.flatten.ordering import flatten_order

__all__: list[str] = [
    "Flattener",
    "FlattenResult",
    "flatten_order",
]
