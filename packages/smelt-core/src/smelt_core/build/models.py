"""Build result models.

Models for representing the outcome of one build invocation.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from smelt_core.schemas.artifacts import ContractArtifact, Diagnostic


class BatchStatus(str, Enum):
    """Status of one batch in a build.

    Attributes:
        COMPILED: Compiled in this build without errors
        CACHED: Every member was clean; cached output reused
        FAILED: Unresolved import, toolchain failure or compiler errors
        CANCELLED: Never dispatched (cancellation or strict abort)
    """

    COMPILED = "compiled"
    CACHED = "cached"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BuildStatus(str, Enum):
    """Overall outcome of a build."""

    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class BatchResult(BaseModel):
    """Result of one batch.

    Attributes:
        batch_id: Batch identifier.
        files: Batch members.
        version: Compiler version of the batch.
        status: Batch status.
        attempts: Compiler invocations made for the batch (retries included).
        error_type: Error class name when the batch failed.
        message: Error message when the batch failed.
        diagnostics: Diagnostics reported for the batch.
        duration_ms: Wall time spent on the batch.

    Example:
        >>> result = BatchResult(
        ...     batch_id="3f2a9c01b7de",
        ...     files=("src/Token.sol",),
        ...     version="0.8.19",
        ...     status=BatchStatus.COMPILED,
        ...     attempts=1,
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    batch_id: str = Field(..., min_length=1, description="Batch identifier")
    files: tuple[str, ...] = Field(..., description="Batch members")
    version: str = Field(..., min_length=1, description="Compiler version")
    status: BatchStatus = Field(..., description="Batch status")
    attempts: int = Field(default=0, ge=0, description="Compiler invocations")
    error_type: str | None = Field(default=None, description="Error class name")
    message: str = Field(default="", description="Error message")
    diagnostics: list[Diagnostic] = Field(default_factory=list, description="Diagnostics")
    duration_ms: int = Field(default=0, ge=0, description="Duration in milliseconds")

    @property
    def succeeded(self) -> bool:
        """Check if the batch has usable output."""
        return self.status in (BatchStatus.COMPILED, BatchStatus.CACHED)

    @property
    def failed(self) -> bool:
        """Check if the batch failed."""
        return self.status == BatchStatus.FAILED


class UnitFailure(BaseModel):
    """One failed unit (batch or unresolvable component).

    Attributes:
        files: Files affected by the failure.
        error_type: Error class name.
        message: User-facing error message.
        batch_id: Batch identifier, when the unit was a batch.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    files: tuple[str, ...] = Field(..., description="Affected files")
    error_type: str = Field(..., min_length=1, description="Error class name")
    message: str = Field(..., description="Error message")
    batch_id: str | None = Field(default=None, description="Batch identifier")


class BuildResult(BaseModel):
    """Aggregated result of one build.

    Attributes:
        status: success, partial or failed.
        batches: Per-batch results.
        failures: Every failed unit with its reason.
        artifacts: Compiled constructs of every successfully built file.
        diagnostics: Diagnostics of compiled and cached batches.
        invocations: External compiler invocations made (retries included).
        first_error: First structural or fatal error message, when failed.
        started_at: When the build started.
        finished_at: When the build finished.
        total_duration_ms: Total duration in milliseconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: BuildStatus = Field(..., description="Overall status")
    batches: list[BatchResult] = Field(default_factory=list, description="Batch results")
    failures: list[UnitFailure] = Field(default_factory=list, description="Failed units")
    artifacts: dict[str, list[ContractArtifact]] = Field(
        default_factory=dict, description="Compiled constructs keyed by file"
    )
    diagnostics: list[Diagnostic] = Field(default_factory=list, description="All diagnostics")
    invocations: int = Field(default=0, ge=0, description="Compiler invocations")
    first_error: str | None = Field(default=None, description="First fatal error")
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Start time"
    )
    finished_at: datetime | None = Field(default=None, description="End time")
    total_duration_ms: int = Field(default=0, ge=0, description="Total duration")

    @property
    def succeeded(self) -> bool:
        """Check if every unit built."""
        return self.status == BuildStatus.SUCCESS

    def batches_with(self, status: BatchStatus) -> list[BatchResult]:
        """Batch results with the given status."""
        return [b for b in self.batches if b.status == status]

    def artifact(self, path: str, name: str) -> ContractArtifact:
        """Return one compiled construct.

        Raises:
            KeyError: If the file was not built or has no construct of that name.
        """
        for artifact in self.artifacts.get(path, []):
            if artifact.name == name:
                return artifact
        raise KeyError(f"No artifact '{name}' built for {path}")


class BuildReport(BaseModel):
    """Human-readable build report.

    Attributes:
        result: The build result.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    result: BuildResult = Field(..., description="Build result")

    def to_text(self) -> str:
        """Generate text report.

        Returns:
            Formatted text report.
        """
        result = self.result
        lines: list[str] = []
        lines.append("=" * 60)
        lines.append("SMELT BUILD REPORT")
        lines.append("=" * 60)
        lines.append("")

        lines.append(f"Status: {result.status.value.upper()}")
        lines.append(
            f"Batches: {len(result.batches_with(BatchStatus.COMPILED))} compiled, "
            f"{len(result.batches_with(BatchStatus.CACHED))} cached, "
            f"{len(result.batches_with(BatchStatus.FAILED))} failed, "
            f"{len(result.batches_with(BatchStatus.CANCELLED))} cancelled"
        )
        lines.append(f"Compiler invocations: {result.invocations}")
        lines.append(f"Duration: {result.total_duration_ms}ms")
        if result.first_error:
            lines.append(f"Error: {result.first_error}")
        lines.append("")

        if result.batches:
            lines.append("-" * 60)
            lines.append("BATCHES:")
            lines.append("-" * 60)
            for batch in result.batches:
                lines.append(
                    f"  [{batch.status.value}] {batch.batch_id} "
                    f"solc {batch.version} ({len(batch.files)} files)"
                )
                if batch.message:
                    lines.append(f"     {batch.message}")

        if result.failures:
            lines.append("")
            lines.append("-" * 60)
            lines.append("FAILURES:")
            lines.append("-" * 60)
            for failure in result.failures:
                lines.append(f"  {failure.error_type}: {failure.message}")

        errors = [d for d in result.diagnostics if d.is_error]
        warnings = len(result.diagnostics) - len(errors)
        if result.diagnostics:
            lines.append("")
            lines.append("-" * 60)
            lines.append(f"DIAGNOSTICS: {len(errors)} errors, {warnings} warnings/info")
            lines.append("-" * 60)
            for diagnostic in result.diagnostics:
                where = diagnostic.location.path if diagnostic.location else "-"
                lines.append(f"  {diagnostic.severity.value}: {where}: {diagnostic.message}")

        lines.append("")
        lines.append("=" * 60)

        return "\n".join(lines)
