"""Compiler settings models for smelt-core.

This module defines the settings object shared by every file in a batch:
- EvmVersion: EVM hard-fork target
- OptimizerSettings: Optimizer toggle and run count
- CompilerSettings: The complete settings object fingerprinted by the cache
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OUTPUT_SELECTION: tuple[str, ...] = (
    "abi",
    "evm.bytecode.object",
    "evm.deployedBytecode.object",
    "metadata",
)


class EvmVersion(str, Enum):
    """EVM hard-fork targets, oldest first.

    Declaration order is significant: variants compare targets by position.
    """

    HOMESTEAD = "homestead"
    TANGERINE_WHISTLE = "tangerineWhistle"
    SPURIOUS_DRAGON = "spuriousDragon"
    BYZANTIUM = "byzantium"
    CONSTANTINOPLE = "constantinople"
    PETERSBURG = "petersburg"
    ISTANBUL = "istanbul"
    BERLIN = "berlin"
    LONDON = "london"
    PARIS = "paris"
    SHANGHAI = "shanghai"
    CANCUN = "cancun"
    PRAGUE = "prague"

    @property
    def rank(self) -> int:
        """Position of this target in fork order."""
        return list(EvmVersion).index(self)


class OptimizerSettings(BaseModel):
    """Optimizer configuration.

    Attributes:
        enabled: Whether the optimizer runs.
        runs: Expected number of contract executions to optimize for.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=False, description="Enable the optimizer")
    runs: int = Field(default=200, ge=0, description="Optimizer runs")


class CompilerSettings(BaseModel):
    """Settings object applied to every file of a compilation batch.

    Any change to these settings changes the fingerprint of every file
    compiled with them.

    Attributes:
        optimizer: Optimizer settings.
        evm_version: Target EVM version (None lets the compiler choose).
        via_ir: Compile through the IR pipeline.
        output_selection: Compiler outputs to request per contract.
        metadata_bytecode_hash: Hash appended to bytecode metadata.
        libraries: Library addresses to link, keyed by source path then name.

    Example:
        >>> settings = CompilerSettings(
        ...     optimizer=OptimizerSettings(enabled=True, runs=1000),
        ...     evm_version=EvmVersion.PARIS,
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    optimizer: OptimizerSettings = Field(
        default_factory=OptimizerSettings,
        description="Optimizer settings",
    )
    evm_version: EvmVersion | None = Field(
        default=None,
        description="Target EVM version",
    )
    via_ir: bool = Field(default=False, description="Compile via the IR pipeline")
    output_selection: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OUTPUT_SELECTION),
        description="Compiler outputs to request",
    )
    metadata_bytecode_hash: Literal["ipfs", "bzzr1", "none"] = Field(
        default="ipfs",
        description="Metadata hash appended to bytecode",
    )
    libraries: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Library addresses keyed by source path and library name",
    )
