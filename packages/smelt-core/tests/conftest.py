"""Shared pytest fixtures for smelt-core tests.

This module provides common fixtures used across unit and integration
tests: structlog capture, an in-memory toolchain and sample projects.
"""

from __future__ import annotations

import hashlib
import sys
import threading
from collections.abc import Callable
from pathlib import Path

import pytest
import structlog

from smelt_core.build.toolchain import CompileRequest
from smelt_core.errors import ToolchainFailure
from smelt_core.graph.lexer import scan_source
from smelt_core.schemas.artifacts import (
    CompilerOutput,
    ContractArtifact,
    Diagnostic,
    Severity,
    SourceLocation,
)
from smelt_core.schemas.config import BuildConfig, RetryConfig
from smelt_core.schemas.source import DeclarationKind

COMPILED_KINDS = (DeclarationKind.CONTRACT, DeclarationKind.LIBRARY, DeclarationKind.INTERFACE)

AVAILABLE_VERSIONS = ["0.7.6", "0.8.19", "0.8.24"]


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture.

    This fixture ensures structlog outputs to stdout so that capsys
    can capture the output in tests. Without this, structlog may use
    different processors depending on test execution order.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


class RecordingToolchain:
    """In-memory toolchain that records every request.

    Each contract, library and interface of a compiled source yields one
    ContractArtifact whose bytecode is derived from the file content and
    compiler version.

    Args:
        fail_times: Raise ToolchainFailure on this many initial calls.
        failing_files: Always raise ToolchainFailure for batches containing these files.
        error_files: Report an error diagnostic located in these files.
        warning_files: Report a warning diagnostic located in these files.
        on_compile: Called with each request before it is answered.
    """

    def __init__(
        self,
        *,
        fail_times: int = 0,
        failing_files: set[str] | None = None,
        error_files: set[str] | None = None,
        warning_files: set[str] | None = None,
        on_compile: Callable[[CompileRequest], None] | None = None,
    ) -> None:
        self.fail_times = fail_times
        self.failing_files = failing_files or set()
        self.error_files = error_files or set()
        self.warning_files = warning_files or set()
        self.on_compile = on_compile
        self.requests: list[CompileRequest] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.requests)

    def compiled_files(self) -> set[str]:
        """Every file that was part of at least one request."""
        return {path for request in self.requests for path in request.sources}

    def compile(self, request: CompileRequest) -> CompilerOutput:
        with self._lock:
            self.requests.append(request)
            call_number = len(self.requests)
        if self.on_compile is not None:
            self.on_compile(request)
        if call_number <= self.fail_times:
            raise ToolchainFailure(request.version, "compiler process crashed")
        if self.failing_files & set(request.sources):
            raise ToolchainFailure(request.version, "compiler process killed")

        artifacts: dict[str, list[ContractArtifact]] = {}
        diagnostics: list[Diagnostic] = []
        for path, content in request.sources.items():
            digest = hashlib.sha256(f"{request.version}:{content}".encode()).hexdigest()
            source = scan_source(path, content)
            artifacts[path] = [
                ContractArtifact(
                    name=declaration.name,
                    source_path=path,
                    bytecode=f"0x{digest[:16]}",
                    deployed_bytecode=f"0x{digest[16:32]}",
                    metadata={"compiler": {"version": request.version}},
                )
                for declaration in source.declarations
                if declaration.kind in COMPILED_KINDS
            ]
            if path in self.error_files:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.ERROR,
                        message="ParserError: Expected ';' but got '}'",
                        location=SourceLocation(path=path, start=0, end=1),
                        code="2314",
                    )
                )
            if path in self.warning_files:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.WARNING,
                        message="Warning: Unused local variable.",
                        location=SourceLocation(path=path, start=0, end=1),
                        code="2072",
                    )
                )
        return CompilerOutput(artifacts=artifacts, diagnostics=diagnostics)


@pytest.fixture
def toolchain() -> RecordingToolchain:
    """Return a toolchain that always succeeds."""
    return RecordingToolchain()


@pytest.fixture
def make_toolchain() -> type[RecordingToolchain]:
    """Return the RecordingToolchain class for tests that need failure modes."""
    return RecordingToolchain


@pytest.fixture
def available_versions() -> list[str]:
    """Return the compiler versions the test toolchain can run."""
    return list(AVAILABLE_VERSIONS)


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Return a retry policy without backoff delays."""
    return RetryConfig(
        max_attempts=2,
        initial_wait_seconds=0.0,
        max_wait_seconds=0.0,
        jitter_seconds=0.0,
    )


@pytest.fixture
def build_config(fast_retry: RetryConfig) -> BuildConfig:
    """Return a build configuration suitable for fast tests."""
    return BuildConfig(retry=fast_retry, max_workers=2)


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Return an empty project root directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def root_lib_math_sources() -> dict[str, str]:
    """Return Root -> Lib -> Math plus an unrelated Foo.

    Root, Lib and Math form one compilation group; Foo compiles alone.
    """
    return {
        "src/Root.sol": (
            "// SPDX-License-Identifier: MIT\n"
            "pragma solidity ^0.8.0;\n"
            "\n"
            'import "./Lib.sol";\n'
            "\n"
            "contract Root {\n"
            "    function run(uint256 x) external pure returns (uint256) {\n"
            "        return Lib.twice(x);\n"
            "    }\n"
            "}\n"
        ),
        "src/Lib.sol": (
            "// SPDX-License-Identifier: MIT\n"
            "pragma solidity ^0.8.4;\n"
            "\n"
            'import "./Math.sol";\n'
            "\n"
            "library Lib {\n"
            "    function twice(uint256 x) internal pure returns (uint256) {\n"
            "        return Math.add(x, x);\n"
            "    }\n"
            "}\n"
        ),
        "src/Math.sol": (
            "// SPDX-License-Identifier: MIT\n"
            "pragma solidity >=0.8.0 <0.9.0;\n"
            "\n"
            "library Math {\n"
            "    function add(uint256 a, uint256 b) internal pure returns (uint256) {\n"
            "        return a + b;\n"
            "    }\n"
            "}\n"
        ),
        "src/Foo.sol": (
            "// SPDX-License-Identifier: MIT\n"
            "pragma solidity ^0.8.0;\n"
            "\n"
            "contract Foo {\n"
            "    uint256 public value;\n"
            "}\n"
        ),
    }


@pytest.fixture
def diamond_sources() -> dict[str, str]:
    """Return a diamond: A imports B and C, both of which import D."""
    return {
        "src/A.sol": (
            "pragma solidity ^0.8.0;\n"
            'import "./B.sol";\n'
            'import "./C.sol";\n'
            "contract A is B, C {}\n"
        ),
        "src/B.sol": 'pragma solidity ^0.8.0;\nimport "./D.sol";\ncontract B is D {}\n',
        "src/C.sol": 'pragma solidity ^0.8.0;\nimport "./D.sol";\ncontract C is D {}\n',
        "src/D.sol": "pragma solidity ^0.8.0;\ncontract D {\n    uint256 internal shared;\n}\n",
    }
