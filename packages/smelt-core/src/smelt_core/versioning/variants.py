"""Per-version settings variants.

Older compilers reject settings newer releases accept. Before a batch is
created its settings are clamped to what the selected compiler supports:
the EVM target is lowered to the newest fork the compiler knows, and the
IR pipeline is switched off where it is not available.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog
from packaging.version import Version

from smelt_core.schemas.settings import CompilerSettings, EvmVersion

logger = structlog.get_logger(__name__)

VIA_IR_MIN_VERSION = Version("0.8.13")


@dataclass(frozen=True)
class SettingsVariant:
    """Capabilities of compilers at or above ``min_version``.

    Attributes:
        min_version: First compiler version of this variant.
        max_evm_version: Newest EVM target accepted; None means the compiler
            has no EVM target setting at all.
    """

    min_version: Version
    max_evm_version: EvmVersion | None

    @property
    def supports_via_ir(self) -> bool:
        return self.min_version >= VIA_IR_MIN_VERSION


# Newest first. Each row applies from its version up to the next row.
VARIANTS: tuple[SettingsVariant, ...] = (
    SettingsVariant(Version("0.8.30"), EvmVersion.PRAGUE),
    SettingsVariant(Version("0.8.25"), EvmVersion.CANCUN),
    SettingsVariant(Version("0.8.20"), EvmVersion.SHANGHAI),
    SettingsVariant(Version("0.8.18"), EvmVersion.PARIS),
    SettingsVariant(Version("0.8.13"), EvmVersion.LONDON),
    SettingsVariant(Version("0.8.7"), EvmVersion.LONDON),
    SettingsVariant(Version("0.8.5"), EvmVersion.BERLIN),
    SettingsVariant(Version("0.5.14"), EvmVersion.ISTANBUL),
    SettingsVariant(Version("0.5.5"), EvmVersion.PETERSBURG),
    SettingsVariant(Version("0.4.21"), EvmVersion.BYZANTIUM),
    SettingsVariant(Version("0.0.0"), None),
)


def variant_for(version: str) -> SettingsVariant:
    """Return the settings variant for a compiler version."""
    parsed = Version(version)
    for variant in VARIANTS:
        if parsed >= variant.min_version:
            return variant
    return VARIANTS[-1]


def effective_settings(settings: CompilerSettings, version: str) -> CompilerSettings:
    """Clamp settings to what a compiler version supports.

    Args:
        settings: Configured settings.
        version: Selected compiler version.

    Returns:
        Settings accepted by the compiler; the input object itself when no
        adjustment is needed.
    """
    variant = variant_for(version)
    updates: dict[str, object] = {}

    if settings.evm_version is not None:
        if variant.max_evm_version is None:
            updates["evm_version"] = None
        elif settings.evm_version.rank > variant.max_evm_version.rank:
            updates["evm_version"] = variant.max_evm_version
        if "evm_version" in updates:
            logger.warning(
                "evm_version_clamped",
                compiler_version=version,
                requested=settings.evm_version.value,
                effective=getattr(updates["evm_version"], "value", None),
            )

    if settings.via_ir and not variant.supports_via_ir:
        updates["via_ir"] = False
        logger.warning("via_ir_unsupported", compiler_version=version)

    if not updates:
        return settings
    return settings.model_copy(update=updates)
