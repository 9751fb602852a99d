"""Compiler output and cache record models for smelt-core.

This module defines:
- Diagnostic: A compiler message with severity and location
- ContractArtifact: Compiled output for one named construct
- CompilerOutput: Structured result of one compiler invocation
- CacheEntry: Cached output for one file plus bookkeeping
- CacheRecord: The persisted cache document for a project root

Version History:
- 1: Initial record layout (entries keyed by canonical source path)
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

CACHE_SCHEMA_VERSION = 1


class Severity(str, Enum):
    """Diagnostic severity reported by the compiler."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class SourceLocation(BaseModel):
    """Location of a diagnostic within a source file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str
    start: int | None = Field(default=None, ge=0)
    end: int | None = Field(default=None, ge=0)


class Diagnostic(BaseModel):
    """A compiler diagnostic, surfaced verbatim to callers.

    Attributes:
        severity: Error, warning or info.
        message: Compiler message text.
        location: Where the diagnostic points, if anywhere.
        code: Compiler error code, if any.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    severity: Severity
    message: str
    location: SourceLocation | None = None
    code: str | None = None

    @property
    def is_error(self) -> bool:
        """Check if the diagnostic fails the build."""
        return self.severity == Severity.ERROR


class ContractArtifact(BaseModel):
    """Compiled output for one named construct of a source file.

    Attributes:
        name: Construct name (contract, library or interface).
        source_path: File the construct is declared in.
        abi: ABI description.
        bytecode: Creation bytecode (hex).
        deployed_bytecode: Runtime bytecode (hex).
        metadata: Compiler metadata document.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    source_path: str = Field(..., min_length=1)
    abi: list[dict[str, Any]] = Field(default_factory=list)
    bytecode: str = ""
    deployed_bytecode: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class CompilerOutput(BaseModel):
    """Structured result of one external compiler invocation.

    Attributes:
        artifacts: Compiled constructs keyed by source path.
        diagnostics: All diagnostics reported for the invocation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    artifacts: dict[str, list[ContractArtifact]] = Field(default_factory=dict)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def errors(self) -> list[Diagnostic]:
        """Error-severity diagnostics."""
        return [d for d in self.diagnostics if d.is_error]

    def diagnostics_for(self, path: str) -> list[Diagnostic]:
        """Diagnostics located in the given file."""
        return [d for d in self.diagnostics if d.location is not None and d.location.path == path]


class CacheEntry(BaseModel):
    """Cached compiler output for one source file.

    Attributes:
        fingerprint: Fingerprint of every input the output derives from.
        version: Compiler version used.
        batch_id: Batch the file was compiled in.
        compiled_at: When the output was produced (UTC).
        artifacts: Constructs compiled from this file.
        diagnostics: Diagnostics located in this file.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    fingerprint: str = Field(..., min_length=64, max_length=64)
    version: str = Field(..., min_length=1)
    batch_id: str = Field(..., min_length=1)
    compiled_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    artifacts: list[ContractArtifact] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class CacheRecord(BaseModel):
    """Persisted cache document for one project root.

    Attributes:
        schema_version: Record layout version; mismatches invalidate the record.
        smelt_version: Version of smelt-core that wrote the record.
        project_root: Project root the record belongs to.
        entries: Cache entries keyed by canonical source path.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: int = Field(default=CACHE_SCHEMA_VERSION, ge=1)
    smelt_version: str = Field(default="0.1.0", min_length=1)
    project_root: str = Field(default=".")
    entries: dict[str, CacheEntry] = Field(default_factory=dict)
