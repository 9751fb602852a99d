"""Unit tests for the compiler invocation retry decorator."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from smelt_core.build.retry import create_retry_decorator
from smelt_core.errors import CompilerDiagnostic, ToolchainFailure
from smelt_core.schemas.config import RetryConfig


@pytest.fixture
def config() -> RetryConfig:
    """Return a three-attempt policy without waits."""
    return RetryConfig(
        max_attempts=3, initial_wait_seconds=0.0, max_wait_seconds=0.0, jitter_seconds=0
    )


class TestCreateRetryDecorator:
    """Tests for create_retry_decorator factory."""

    def test_successful_function_not_retried(self, config: RetryConfig) -> None:
        """Test successful function is not retried."""
        call_count = 0

        @create_retry_decorator(config)
        def compile_batch() -> str:
            nonlocal call_count
            call_count += 1
            return "output"

        assert compile_batch() == "output"
        assert call_count == 1

    def test_retries_on_toolchain_failure(self, config: RetryConfig) -> None:
        """Test function is retried on ToolchainFailure."""
        call_count = 0

        @create_retry_decorator(config)
        def flaky_compile() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ToolchainFailure("0.8.19", "process crashed")
            return "output"

        assert flaky_compile() == "output"
        assert call_count == 3

    def test_raises_last_failure_after_max_attempts(self, config: RetryConfig) -> None:
        """Test the last ToolchainFailure is re-raised once attempts run out."""
        call_count = 0

        @create_retry_decorator(config)
        def always_fails() -> str:
            nonlocal call_count
            call_count += 1
            raise ToolchainFailure("0.8.19", f"crash {call_count}")

        with pytest.raises(ToolchainFailure, match="crash 3"):
            always_fails()

        assert call_count == 3

    def test_compiler_diagnostics_not_retried(self, config: RetryConfig) -> None:
        """Test compiler errors are a result, not a reason to retry."""
        call_count = 0

        @create_retry_decorator(config)
        def bad_source() -> str:
            nonlocal call_count
            call_count += 1
            raise CompilerDiagnostic([])

        with pytest.raises(CompilerDiagnostic):
            bad_source()

        assert call_count == 1

    def test_non_retryable_exception_not_retried(self, config: RetryConfig) -> None:
        """Test non-retryable exceptions are not retried."""
        call_count = 0

        @create_retry_decorator(config)
        def value_error_func() -> str:
            nonlocal call_count
            call_count += 1
            raise ValueError("Not retryable")

        with pytest.raises(ValueError):
            value_error_func()

        assert call_count == 1

    def test_custom_retry_exceptions(self, config: RetryConfig) -> None:
        """Test custom exception types can be specified."""
        call_count = 0

        @create_retry_decorator(config, retry_exceptions=(OSError,))
        def custom_retry_func() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise OSError("compiler binary busy")
            return "output"

        assert custom_retry_func() == "output"
        assert call_count == 2

    def test_logs_each_retry(self, config: RetryConfig) -> None:
        """Test a retry log entry is written before every further attempt."""
        call_count = 0

        @create_retry_decorator(config, operation_name="compile_batch")
        def flaky_compile() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise ToolchainFailure("0.8.19", "process crashed")
            return "output"

        with patch("smelt_core.build.retry.log_retry_attempt") as log_retry:
            flaky_compile()

        log_retry.assert_called_once()
        assert log_retry.call_args.kwargs["operation"] == "compile_batch"
        assert log_retry.call_args.kwargs["attempt"] == 1
        assert log_retry.call_args.kwargs["max_attempts"] == 3

    def test_preserves_function_metadata(self, config: RetryConfig) -> None:
        """Test decorator preserves the wrapped function's name and docstring."""

        @create_retry_decorator(config)
        def documented() -> None:
            """Compile something."""

        assert documented.__name__ == "documented"
        assert documented.__doc__ == "Compile something."


class TestRetryConfig:
    """Tests for RetryConfig validation."""

    def test_defaults(self) -> None:
        """Test retries are bounded by default."""
        config = RetryConfig()

        assert config.max_attempts == 2
        assert config.initial_wait_seconds == 0.5

    def test_max_wait_must_not_be_below_initial(self) -> None:
        """Test the backoff cap cannot be smaller than the first wait."""
        from pydantic import ValidationError

        with pytest.raises(ValidationError, match="max_wait_seconds"):
            RetryConfig(initial_wait_seconds=5.0, max_wait_seconds=1.0)

    def test_attempts_are_bounded(self) -> None:
        """Test max_attempts must be between 1 and 10."""
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            RetryConfig(max_attempts=0)
        with pytest.raises(ValidationError):
            RetryConfig(max_attempts=11)
