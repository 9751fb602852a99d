"""Unit tests for per-version settings variants."""

from __future__ import annotations

import pytest

from smelt_core.schemas.settings import CompilerSettings, EvmVersion
from smelt_core.versioning.variants import effective_settings, variant_for


class TestVariantFor:
    """Tests for variant lookup."""

    @pytest.mark.parametrize(
        ("version", "max_evm"),
        [
            ("0.8.30", EvmVersion.PRAGUE),
            ("0.8.24", EvmVersion.SHANGHAI),
            ("0.8.19", EvmVersion.PARIS),
            ("0.8.10", EvmVersion.LONDON),
            ("0.7.6", EvmVersion.ISTANBUL),
            ("0.4.10", None),
        ],
    )
    def test_max_evm_version(self, version: str, max_evm: EvmVersion | None) -> None:
        """Each compiler maps to the newest fork it knows."""
        assert variant_for(version).max_evm_version == max_evm

    def test_via_ir_threshold(self) -> None:
        """The IR pipeline is available from 0.8.13."""
        assert variant_for("0.8.13").supports_via_ir
        assert variant_for("0.8.24").supports_via_ir
        assert not variant_for("0.8.12").supports_via_ir


class TestEffectiveSettings:
    """Tests for effective_settings."""

    def test_unchanged_settings_are_returned_as_is(self) -> None:
        """No adjustment returns the same object."""
        settings = CompilerSettings(evm_version=EvmVersion.BERLIN)

        assert effective_settings(settings, "0.8.24") is settings

    def test_evm_version_is_clamped(self, capsys: pytest.CaptureFixture[str]) -> None:
        """A target newer than the compiler knows is lowered."""
        settings = CompilerSettings(evm_version=EvmVersion.CANCUN)

        effective = effective_settings(settings, "0.8.19")

        assert effective.evm_version == EvmVersion.PARIS
        assert settings.evm_version == EvmVersion.CANCUN
        assert "evm_version_clamped" in capsys.readouterr().out

    def test_evm_version_dropped_for_ancient_compilers(self) -> None:
        """Compilers without an EVM target setting get none."""
        settings = CompilerSettings(evm_version=EvmVersion.BYZANTIUM)

        assert effective_settings(settings, "0.4.10").evm_version is None

    def test_via_ir_disabled_for_old_compilers(self) -> None:
        """via_ir is switched off below 0.8.13."""
        settings = CompilerSettings(via_ir=True)

        assert effective_settings(settings, "0.8.10").via_ir is False
        assert effective_settings(settings, "0.8.13").via_ir is True
