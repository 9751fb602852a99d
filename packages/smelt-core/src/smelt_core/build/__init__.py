"""Build orchestration for smelt-core.

This module exports:
- BuildRunner: Incremental build over a bounded worker pool
- Toolchain / CompileRequest: External compiler interface
- BuildResult / BuildReport: Build outcome and its text rendering
- create_retry_decorator: Bounded tenacity retry for compiler invocations
"""

from __future__ import annotations

from smelt_core.build.models import (
    BatchResult,
    BatchStatus,
    BuildReport,
    BuildResult,
    BuildStatus,
    UnitFailure,
)
from smelt_core.build.retry import create_retry_decorator
from smelt_core.build.runner import BuildRunner
from smelt_core.build.toolchain import CompileRequest, Toolchain

__all__: list[str] = [
    "BuildRunner",
    "Toolchain",
    "CompileRequest",
    "BatchResult",
    "BatchStatus",
    "BuildResult",
    "BuildStatus",
    "BuildReport",
    "UnitFailure",
    "create_retry_decorator",
]
