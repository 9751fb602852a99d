"""smelt-core: Incremental build orchestration for Solidity projects.

This package provides:
- SourceGraph: Import graph with remapping and cycle-tolerant traversal
- VersionResolver: Compiler version selection and batch partitioning
- ArtifactCache / CacheStore: Fingerprint-based incremental compilation cache
- Flattener: Single-file flattening of a root source and its dependencies
- BuildRunner: Concurrent batch compilation through an external toolchain
"""

from __future__ import annotations

__version__ = "0.1.0"

from smelt_core.build import (
    BatchResult,
    BatchStatus,
    BuildReport,
    BuildResult,
    BuildRunner,
    BuildStatus,
    CompileRequest,
    Toolchain,
    UnitFailure,
)
from smelt_core.cache import ArtifactCache, CacheStore, fingerprint
from smelt_core.config_resolver import ConfigResolver

# Error types
from smelt_core.errors import (
    CacheCorruption,
    CompilerDiagnostic,
    ComponentResolutionError,
    ConfigurationError,
    ConflictingVersionConstraints,
    FlattenAmbiguity,
    SmeltError,
    ToolchainFailure,
    UnresolvedImport,
    UnsatisfiableVersion,
)
from smelt_core.flatten import Flattener, FlattenResult
from smelt_core.graph import Remapper, SourceGraph, clean_path
from smelt_core.schemas import (
    Batch,
    BuildConfig,
    CompilerOutput,
    CompilerSettings,
    ContractArtifact,
    Diagnostic,
    EvmVersion,
    FlattenConfig,
    OptimizerSettings,
    RemappingRule,
    RetryConfig,
    Severity,
    SourceFile,
)
from smelt_core.versioning import VersionConstraint, VersionResolver

__all__: list[str] = [
    "__version__",
    # Graph
    "SourceGraph",
    "Remapper",
    "RemappingRule",
    "SourceFile",
    "clean_path",
    # Versioning
    "VersionConstraint",
    "VersionResolver",
    "Batch",
    # Cache
    "ArtifactCache",
    "CacheStore",
    "fingerprint",
    # Flatten
    "Flattener",
    "FlattenResult",
    # Build
    "BuildRunner",
    "Toolchain",
    "CompileRequest",
    "BuildResult",
    "BuildReport",
    "BuildStatus",
    "BatchResult",
    "BatchStatus",
    "UnitFailure",
    # Schemas
    "BuildConfig",
    "RetryConfig",
    "FlattenConfig",
    "CompilerSettings",
    "OptimizerSettings",
    "EvmVersion",
    "CompilerOutput",
    "ContractArtifact",
    "Diagnostic",
    "Severity",
    # Config
    "ConfigResolver",
    # Errors
    "SmeltError",
    "UnresolvedImport",
    "ConflictingVersionConstraints",
    "UnsatisfiableVersion",
    "ComponentResolutionError",
    "ToolchainFailure",
    "CompilerDiagnostic",
    "CacheCorruption",
    "FlattenAmbiguity",
    "ConfigurationError",
]
