"""Fingerprint-based artifact cache.

This module exports:
- fingerprint: Content fingerprint of one file
- ArtifactCache: Dirty detection, planning and merging
- CacheStore: Atomic JSON persistence of the cache record
"""

from __future__ import annotations

from smelt_core.cache.artifact_cache import ArtifactCache, entries_from_output
from smelt_core.cache.fingerprint import batch_fingerprints, fingerprint
from smelt_core.cache.store import CacheStore

__all__: list[str] = [
    "ArtifactCache",
    "CacheStore",
    "fingerprint",
    "batch_fingerprints",
    "entries_from_output",
]
