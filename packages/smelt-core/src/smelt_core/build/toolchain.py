"""External compiler interface.

smelt never runs a compiler itself. A Toolchain collaborator receives one
CompileRequest per batch and returns structured output, or raises
ToolchainFailure when no usable output was produced.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from smelt_core.graph.source_graph import SourceGraph
from smelt_core.schemas.artifacts import CompilerOutput
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.settings import CompilerSettings


class CompileRequest(BaseModel):
    """One external compiler invocation.

    Attributes:
        batch_id: Batch being compiled.
        sources: Content of every batch member keyed by canonical path.
        settings: Effective settings for the selected version.
        version: Compiler version to invoke.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    batch_id: str = Field(..., min_length=1)
    sources: dict[str, str] = Field(..., min_length=1)
    settings: CompilerSettings
    version: str = Field(..., min_length=1)

    @classmethod
    def for_batch(cls, batch: Batch, graph: SourceGraph) -> CompileRequest:
        """Build the request for a batch from the captured sources."""
        return cls(
            batch_id=batch.batch_id,
            sources={path: graph.source(path).content for path in batch.files},
            settings=batch.settings,
            version=batch.version,
        )


@runtime_checkable
class Toolchain(Protocol):
    """Blocking compiler invocation, one request per call.

    Implementations must be safe to call from several worker threads.
    """

    def compile(self, request: CompileRequest) -> CompilerOutput:
        """Compile the request's sources.

        Raises:
            ToolchainFailure: If the compiler could not run or crashed.
        """
        ...
