"""Configuration models for smelt-core.

This module provides:
- RetryConfig: Bounded retry policy for compiler invocations
- FlattenConfig: Flattener policy switches
- BuildConfig: Complete smelt.yaml configuration
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from smelt_core.schemas.settings import CompilerSettings
from smelt_core.schemas.source import RemappingRule

DEFAULT_CACHE_FILE = ".smelt/cache.json"


class RetryConfig(BaseModel):
    """Retry policy for toolchain failures.

    Implements exponential backoff with jitter. Retries are always bounded
    by max_attempts.

    Attributes:
        max_attempts: Maximum invocation attempts per batch (1-10, default 2).
        initial_wait_seconds: Initial backoff wait (0-30s, default 0.5).
        max_wait_seconds: Maximum backoff cap (0-300s, default 10.0).
        jitter_seconds: Random jitter range (0-10s, default 0.5).

    Example:
        >>> config = RetryConfig(max_attempts=3, initial_wait_seconds=0.1)
        >>> config.max_attempts
        3
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Maximum number of invocation attempts per batch",
    )
    initial_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Initial backoff wait time in seconds",
    )
    max_wait_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Maximum backoff wait time in seconds",
    )
    jitter_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=10.0,
        description="Random jitter range in seconds",
    )

    @field_validator("max_wait_seconds")
    @classmethod
    def max_wait_must_exceed_initial(cls, v: float, info: ValidationInfo) -> float:
        """Validate that max_wait_seconds >= initial_wait_seconds."""
        initial = info.data.get("initial_wait_seconds", 0.5)
        if v < initial:
            msg = f"max_wait_seconds ({v}) must be >= initial_wait_seconds ({initial})"
            raise ValueError(msg)
        return v


class FlattenConfig(BaseModel):
    """Flattener policy.

    Attributes:
        license_policy: "warn" combines distinct SPDX identifiers with AND and
            logs a warning; "error" rejects the flatten request.
        include_file_markers: Emit a ``// <path>`` comment before each file.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    license_policy: Literal["warn", "error"] = Field(
        default="warn",
        description="How to handle distinct SPDX license identifiers",
    )
    include_file_markers: bool = Field(
        default=True,
        description="Emit a path comment before each inlined file",
    )


class BuildConfig(BaseModel):
    """Complete build configuration (smelt.yaml).

    Attributes:
        remappings: Ordered import remappings (``[context:]prefix=replacement``).
        settings: Compiler settings shared by every batch.
        pinned_version: Preferred compiler version, used where compatible.
        max_workers: Upper bound on concurrent compiler invocations.
        strict_toolchain: Abort the whole build on the first toolchain failure.
        retry: Retry policy for toolchain failures.
        cache_file: Cache record location, relative to the project root.
        flatten: Flattener policy.

    Example:
        >>> config = BuildConfig(remappings=["@lib/=vendor/lib/"], max_workers=2)
        >>> config.remapping_rules[0].prefix
        '@lib/'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    remappings: list[str] = Field(
        default_factory=list,
        description="Ordered import remappings",
    )
    settings: CompilerSettings = Field(
        default_factory=CompilerSettings,
        description="Compiler settings shared by every batch",
    )
    pinned_version: str | None = Field(
        default=None,
        description="Preferred compiler version",
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum concurrent compiler invocations",
    )
    strict_toolchain: bool = Field(
        default=False,
        description="Abort the build on the first toolchain failure",
    )
    retry: RetryConfig = Field(default_factory=RetryConfig, description="Retry policy")
    cache_file: str = Field(
        default=DEFAULT_CACHE_FILE,
        min_length=1,
        description="Cache record path relative to the project root",
    )
    flatten: FlattenConfig = Field(default_factory=FlattenConfig, description="Flattener policy")

    @field_validator("remappings")
    @classmethod
    def remappings_must_parse(cls, v: list[str]) -> list[str]:
        """Validate remapping syntax early so errors name the config field."""
        for value in v:
            RemappingRule.parse(value)
        return v

    @property
    def remapping_rules(self) -> list[RemappingRule]:
        """Parsed remapping rules in declaration order."""
        return [RemappingRule.parse(value) for value in self.remappings]

    @classmethod
    def from_yaml(cls, path: Path) -> BuildConfig:
        """Load BuildConfig from a YAML file.

        Args:
            path: Path to smelt.yaml.

        Returns:
            Parsed and validated BuildConfig.

        Raises:
            FileNotFoundError: If file doesn't exist.
            yaml.YAMLError: If YAML is invalid.
            pydantic.ValidationError: If validation fails.
        """
        if not path.exists():
            raise FileNotFoundError(f"Build config not found: {path}")

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            data = {}

        return cls.model_validate(data)
