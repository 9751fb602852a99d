"""Bounded retry of compiler invocations.

Only ToolchainFailure is retried by default. Compiler diagnostics are a
valid result and are never retried.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from smelt_core.errors import ToolchainFailure
from smelt_core.observability import log_retry_attempt
from smelt_core.schemas.config import RetryConfig

P = ParamSpec("P")
R = TypeVar("R")

DEFAULT_RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (ToolchainFailure,)


def build_retrying(
    config: RetryConfig,
    *,
    retry_exceptions: tuple[type[Exception], ...] = DEFAULT_RETRY_EXCEPTIONS,
    operation_name: str = "compile_batch",
) -> Retrying:
    """Build the tenacity controller for one invocation.

    The last exception is re-raised unchanged once attempts run out.
    """

    def before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        log_retry_attempt(
            operation=operation_name,
            attempt=retry_state.attempt_number,
            max_attempts=config.max_attempts,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0.0,
            error=str(error),
        )

    return Retrying(
        retry=retry_if_exception_type(retry_exceptions),
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential_jitter(
            initial=config.initial_wait_seconds,
            max=config.max_wait_seconds,
            jitter=config.jitter_seconds,
        ),
        before_sleep=before_sleep,
        reraise=True,
    )


def create_retry_decorator(
    config: RetryConfig,
    *,
    retry_exceptions: tuple[type[Exception], ...] | None = None,
    operation_name: str | None = None,
) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Wrap a compiler call in the configured retry policy.

    Args:
        config: Retry policy.
        retry_exceptions: Exception types that trigger a retry.
            Defaults to ToolchainFailure.
        operation_name: Name used in retry log entries; defaults to the
            wrapped function's name.

    Example:
        >>> @create_retry_decorator(RetryConfig(max_attempts=3), operation_name="compile_batch")
        ... def compile_batch(request: CompileRequest) -> CompilerOutput:
        ...     return toolchain.compile(request)
    """
    exceptions = retry_exceptions or DEFAULT_RETRY_EXCEPTIONS

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            retrying = build_retrying(
                config,
                retry_exceptions=exceptions,
                operation_name=operation_name or func.__name__,
            )
            return retrying(func, *args, **kwargs)

        return wrapper

    return decorator
