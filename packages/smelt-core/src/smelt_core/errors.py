"""Custom exception hierarchy for smelt-core.

This module defines the exception classes used throughout smelt:
- SmeltError: Base exception for all smelt errors
- UnresolvedImport: An import target is missing from the project
- ConflictingVersionConstraints: Connected files share no compiler version
- UnsatisfiableVersion: No available compiler satisfies a constraint
- ComponentResolutionError: A version directive in a component cannot be parsed
- ToolchainFailure: The external compiler could not run or crashed
- CompilerDiagnostic: The compiler reported error-severity diagnostics
- CacheCorruption: The persisted cache record is unreadable or mismatched
- FlattenAmbiguity: A flatten request cannot be merged safely
- ConfigurationError: smelt.yaml could not be loaded

Failures are scoped to the smallest affected unit. The build runner records
these errors per batch instead of failing fast, so messages must be
self-contained and name the files involved.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from smelt_core.schemas.artifacts import Diagnostic

logger = structlog.get_logger(__name__)


class SmeltError(Exception):
    """Base exception for smelt.

    All smelt exceptions inherit from this class. The user message is safe
    to display; technical details are logged internally.

    Args:
        user_message: Message to display to the user.
        internal_details: Optional technical details for logging.

    Example:
        >>> raise SmeltError(
        ...     "Build failed",
        ...     internal_details="compiler exited with status 137",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize SmeltError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message
        self.internal_details = internal_details

        if internal_details:
            logger.error(
                "smelt_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class UnresolvedImport(SmeltError):
    """Raised when an import target is not part of the project file set.

    Attributes:
        source: Path of the importing file.
        raw: Import string as written in the source.
        resolved: Path the import resolved to after remapping.
        hint: Existing path differing only in letter case, if any.

    Example:
        >>> raise UnresolvedImport("src/Token.sol", "@lib/Math.sol", "vendor/lib/Math.sol")
        # User sees: "Unresolved import '@lib/Math.sol' in src/Token.sol
        #            (resolved to vendor/lib/Math.sol)"
    """

    def __init__(
        self,
        source: str,
        raw: str,
        resolved: str,
        *,
        hint: str | None = None,
    ) -> None:
        """Initialize UnresolvedImport.

        Args:
            source: Path of the importing file.
            raw: Raw import string.
            resolved: Resolved (remapped and cleaned) path.
            hint: Case-insensitive match found in the file set.
        """
        message = f"Unresolved import '{raw}' in {source} (resolved to {resolved})"
        if hint:
            message = f"{message}; did you mean '{hint}'?"
        super().__init__(message)

        self.source = source
        self.raw = raw
        self.resolved = resolved
        self.hint = hint


class ConflictingVersionConstraints(SmeltError):
    """Raised when files that import one another share no compiler version.

    Attributes:
        constraints: Mapping of file path to its version directive.

    Example:
        >>> raise ConflictingVersionConstraints({"A.sol": "^0.7.0", "B.sol": "^0.8.0"})
    """

    def __init__(self, constraints: Mapping[str, str]) -> None:
        """Initialize ConflictingVersionConstraints.

        Args:
            constraints: Version directive per file in the conflicting group.
        """
        listing = ", ".join(f"{path} ({pragma})" for path, pragma in constraints.items())
        super().__init__(f"Conflicting version constraints: {listing}")

        self.constraints = dict(constraints)

    @property
    def files(self) -> list[str]:
        """Files involved in the conflict."""
        return list(self.constraints)


class UnsatisfiableVersion(SmeltError):
    """Raised when no available compiler version satisfies a group constraint.

    Attributes:
        files: Files in the compilation group.
        constraint: Combined constraint of the group.
        available: Versions that were considered.
    """

    def __init__(
        self,
        files: Sequence[str],
        constraint: str,
        available: Iterable[str],
    ) -> None:
        available_list = list(available)
        available_str = ", ".join(available_list) if available_list else "none"
        super().__init__(
            f"No available compiler satisfies '{constraint}' for "
            f"{', '.join(files)}. Available: {available_str}"
        )

        self.files = list(files)
        self.constraint = constraint
        self.available = available_list


class ComponentResolutionError(SmeltError):
    """Raised when a component carries a version directive that cannot be parsed.

    Attributes:
        files: Files in the component.
        path: File holding the unparseable directive.
        pragma: The directive text as written.

    Example:
        >>> raise ComponentResolutionError(["A.sol"], "A.sol", "^banana", "bad version")
    """

    def __init__(self, files: Sequence[str], path: str, pragma: str, reason: str) -> None:
        super().__init__(f"Invalid version directive '{pragma}' in {path}: {reason}")

        self.files = list(files)
        self.path = path
        self.pragma = pragma


class ToolchainFailure(SmeltError):
    """Raised when the external compiler could not run or crashed.

    Distinct from CompilerDiagnostic: a toolchain failure means no usable
    output was produced at all.

    Attributes:
        version: Compiler version that was invoked.
        reason: Short description of the failure.

    Example:
        >>> raise ToolchainFailure("0.8.19", "process killed", internal_details="signal 9")
    """

    def __init__(
        self,
        version: str,
        reason: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        super().__init__(
            f"Compiler {version} failed: {reason}",
            internal_details=internal_details,
        )

        self.version = version
        self.reason = reason


class CompilerDiagnostic(SmeltError):
    """Raised when compiler output carries error-severity diagnostics.

    Diagnostics are surfaced verbatim; warnings alone never produce this
    error.

    Attributes:
        diagnostics: Error-severity diagnostics reported by the compiler.
    """

    def __init__(self, diagnostics: Sequence[Diagnostic]) -> None:
        count = len(diagnostics)
        first = diagnostics[0].message if diagnostics else ""
        plural = "s" if count != 1 else ""
        super().__init__(f"Compiler reported {count} error{plural}: {first}")

        self.diagnostics = list(diagnostics)


class CacheCorruption(SmeltError):
    """Raised when the persisted cache record is unreadable or mismatched.

    Never fatal: the cache store recovers by treating every file as dirty.

    Attributes:
        path: Location of the cache record.
        reason: Why the record was rejected.
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cache record {path} is unusable: {reason}")

        self.path = path
        self.reason = reason


class FlattenAmbiguity(SmeltError):
    """Raised when sources cannot be flattened into one unit safely.

    Attributes:
        root: Root file of the flatten request.
        reason: Description of the conflict.
        names: Symbols involved, if any.

    Example:
        >>> raise FlattenAmbiguity("src/App.sol", "free function 'add' declared twice", ["add"])
    """

    def __init__(
        self,
        root: str,
        reason: str,
        names: Sequence[str] | None = None,
    ) -> None:
        super().__init__(f"Cannot flatten {root}: {reason}")

        self.root = root
        self.reason = reason
        self.names = list(names or [])


class ConfigurationError(SmeltError):
    """Raised when smelt.yaml parsing or validation fails.

    Provides file path and field context for actionable error messages.

    Attributes:
        file_path: Path to the configuration file (if known).
        field_path: Dot-separated path to the invalid field (e.g., "retry.max_attempts").
    """

    def __init__(
        self,
        user_message: str,
        *,
        file_path: str | None = None,
        field_path: str | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError with context.

        Args:
            user_message: Safe message to display to the user.
            file_path: Path to the configuration file (optional).
            field_path: Dot-separated path to the field (optional).
            internal_details: Technical details for internal logging only.
        """
        context_parts: list[str] = []
        if file_path:
            context_parts.append(f"in {file_path}")
        if field_path:
            context_parts.append(f"field '{field_path}'")

        if context_parts:
            full_message = f"{user_message} ({', '.join(context_parts)})"
        else:
            full_message = user_message

        super().__init__(full_message, internal_details=internal_details)

        self.file_path = file_path
        self.field_path = field_path
