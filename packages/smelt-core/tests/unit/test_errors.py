"""Unit tests for the smelt-core exception hierarchy."""

from __future__ import annotations

import pytest

from smelt_core.errors import (
    CacheCorruption,
    CompilerDiagnostic,
    ConfigurationError,
    ConflictingVersionConstraints,
    FlattenAmbiguity,
    SmeltError,
    ToolchainFailure,
    UnresolvedImport,
    UnsatisfiableVersion,
)
from smelt_core.schemas.artifacts import Diagnostic, Severity


class TestSmeltError:
    """Tests for the base SmeltError exception."""

    def test_str_returns_user_message(self) -> None:
        """str(SmeltError) should return user_message."""
        error = SmeltError("Build failed")
        assert str(error) == "Build failed"
        assert error.user_message == "Build failed"

    def test_logs_internal_details(self, capsys: pytest.CaptureFixture[str]) -> None:
        """SmeltError should log internal_details when provided."""
        SmeltError("User sees this", internal_details="exit status 137")

        captured = capsys.readouterr()
        assert "exit status 137" in captured.out
        assert "smelt_error" in captured.out

    def test_no_log_without_internal_details(self, capsys: pytest.CaptureFixture[str]) -> None:
        """SmeltError should stay quiet without internal_details."""
        SmeltError("Just a user message")

        assert "smelt_error" not in capsys.readouterr().out

    @pytest.mark.parametrize(
        "error",
        [
            UnresolvedImport("a.sol", "./b.sol", "b.sol"),
            ConflictingVersionConstraints({"a.sol": "^0.7.0"}),
            UnsatisfiableVersion(["a.sol"], "^0.6.0", []),
            ToolchainFailure("0.8.19", "crashed"),
            CompilerDiagnostic([]),
            CacheCorruption(".smelt/cache.json", "invalid JSON"),
            FlattenAmbiguity("a.sol", "conflict"),
            ConfigurationError("bad"),
        ],
    )
    def test_every_error_is_smelt_error(self, error: SmeltError) -> None:
        """All library errors should be catchable as SmeltError."""
        assert isinstance(error, SmeltError)


class TestUnresolvedImport:
    """Tests for UnresolvedImport."""

    def test_message_names_raw_and_resolved_paths(self) -> None:
        """The message should name the importer, raw string and resolved path."""
        error = UnresolvedImport("src/Token.sol", "@lib/Math.sol", "vendor/lib/Math.sol")

        assert str(error) == (
            "Unresolved import '@lib/Math.sol' in src/Token.sol (resolved to vendor/lib/Math.sol)"
        )
        assert error.source == "src/Token.sol"
        assert error.raw == "@lib/Math.sol"
        assert error.resolved == "vendor/lib/Math.sol"
        assert error.hint is None

    def test_message_includes_case_hint(self) -> None:
        """A case-insensitive match should be suggested."""
        error = UnresolvedImport(
            "src/Token.sol", "./math.sol", "src/math.sol", hint="src/Math.sol"
        )

        assert str(error).endswith("did you mean 'src/Math.sol'?")


class TestVersionErrors:
    """Tests for version resolution errors."""

    def test_conflict_lists_every_file(self) -> None:
        """ConflictingVersionConstraints should name each file and directive."""
        error = ConflictingVersionConstraints({"A.sol": "^0.7.0", "B.sol": "^0.8.0"})

        assert error.files == ["A.sol", "B.sol"]
        assert "A.sol (^0.7.0)" in str(error)
        assert "B.sol (^0.8.0)" in str(error)

    def test_unsatisfiable_lists_available_versions(self) -> None:
        """UnsatisfiableVersion should list what was considered."""
        error = UnsatisfiableVersion(["A.sol"], ">=0.6.0 <0.7.0", ["0.8.19", "0.8.24"])

        assert error.files == ["A.sol"]
        assert "Available: 0.8.19, 0.8.24" in str(error)

    def test_unsatisfiable_without_versions(self) -> None:
        """An empty version list should read as 'none'."""
        error = UnsatisfiableVersion(["A.sol"], "^0.8.0", [])

        assert str(error).endswith("Available: none")


class TestBuildErrors:
    """Tests for toolchain and diagnostic errors."""

    def test_toolchain_failure_names_version(self) -> None:
        """ToolchainFailure should include the compiler version and reason."""
        error = ToolchainFailure("0.8.19", "process killed")

        assert str(error) == "Compiler 0.8.19 failed: process killed"
        assert error.version == "0.8.19"
        assert error.reason == "process killed"

    def test_compiler_diagnostic_counts_errors(self) -> None:
        """CompilerDiagnostic should report the count and first message."""
        diagnostics = [
            Diagnostic(severity=Severity.ERROR, message="DeclarationError: Undeclared identifier."),
            Diagnostic(severity=Severity.ERROR, message="TypeError: Wrong argument count."),
        ]

        error = CompilerDiagnostic(diagnostics)

        assert str(error) == "Compiler reported 2 errors: DeclarationError: Undeclared identifier."
        assert len(error.diagnostics) == 2


class TestConfigurationError:
    """Tests for ConfigurationError."""

    def test_message_includes_file_and_field(self) -> None:
        """Context should be appended to the message."""
        error = ConfigurationError(
            "Invalid value", file_path="smelt.yaml", field_path="retry.max_attempts"
        )

        assert str(error) == "Invalid value (in smelt.yaml, field 'retry.max_attempts')"
        assert error.file_path == "smelt.yaml"
        assert error.field_path == "retry.max_attempts"

    def test_message_without_context(self) -> None:
        """Without context the user message is used as is."""
        assert str(ConfigurationError("Invalid value")) == "Invalid value"
