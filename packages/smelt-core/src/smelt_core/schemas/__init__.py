"""Pydantic models shared across smelt-core.

This module exports:
- Source models: SourceFile, ImportDirective, Declaration, RemappingRule, ImportEdge
- Settings: CompilerSettings, OptimizerSettings, EvmVersion
- Batches: Batch
- Compiler output and cache: Diagnostic, ContractArtifact, CompilerOutput,
  CacheEntry, CacheRecord
- Configuration: BuildConfig, RetryConfig, FlattenConfig
"""

from __future__ import annotations

from smelt_core.schemas.artifacts import (
    CACHE_SCHEMA_VERSION,
    CacheEntry,
    CacheRecord,
    CompilerOutput,
    ContractArtifact,
    Diagnostic,
    Severity,
    SourceLocation,
)
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.config import (
    DEFAULT_CACHE_FILE,
    BuildConfig,
    FlattenConfig,
    RetryConfig,
)
from smelt_core.schemas.settings import (
    DEFAULT_OUTPUT_SELECTION,
    CompilerSettings,
    EvmVersion,
    OptimizerSettings,
)
from smelt_core.schemas.source import (
    Declaration,
    DeclarationKind,
    ImportDirective,
    ImportEdge,
    RemappingRule,
    SourceFile,
    Span,
)

__all__: list[str] = [
    # Source
    "SourceFile",
    "ImportDirective",
    "Declaration",
    "DeclarationKind",
    "Span",
    "RemappingRule",
    "ImportEdge",
    # Settings
    "CompilerSettings",
    "OptimizerSettings",
    "EvmVersion",
    "DEFAULT_OUTPUT_SELECTION",
    # Batches
    "Batch",
    # Output and cache
    "Severity",
    "SourceLocation",
    "Diagnostic",
    "ContractArtifact",
    "CompilerOutput",
    "CacheEntry",
    "CacheRecord",
    "CACHE_SCHEMA_VERSION",
    # Configuration
    "BuildConfig",
    "RetryConfig",
    "FlattenConfig",
    "DEFAULT_CACHE_FILE",
]
