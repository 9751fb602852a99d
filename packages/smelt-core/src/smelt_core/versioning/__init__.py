"""Compiler version constraints and batch partitioning.

This module exports:
- VersionConstraint / VersionRange: Parsed ``pragma solidity`` ranges
- VersionResolver: Groups connected files and selects a compiler per group
- effective_settings: Clamps settings to a compiler version's capabilities
"""

from __future__ import annotations

from smelt_core.versioning.constraint import VersionConstraint, VersionRange
from smelt_core.errors import ComponentResolutionError
from smelt_core.versioning.resolver import VersionResolution, VersionResolver
from smelt_core.versioning.variants import SettingsVariant, effective_settings, variant_for

__all__: list[str] = [
    "VersionConstraint",
    "VersionRange",
    "VersionResolver",
    "VersionResolution",
    "ComponentResolutionError",
    "SettingsVariant",
    "effective_settings",
    "variant_for",
]
