"""Unit tests for VersionResolver."""

from __future__ import annotations

import pytest

from smelt_core.errors import (
    ComponentResolutionError,
    ConflictingVersionConstraints,
    UnsatisfiableVersion,
)
from smelt_core.graph.source_graph import SourceGraph
from smelt_core.schemas.batch import Batch
from smelt_core.schemas.settings import CompilerSettings, EvmVersion
from smelt_core.versioning.constraint import VersionConstraint
from smelt_core.versioning.resolver import VersionResolver


@pytest.fixture
def conflicting_graph() -> SourceGraph:
    """Return two files that import each other with disjoint constraints."""
    return SourceGraph.build(
        {
            "A.sol": 'pragma solidity ^0.7.0;\nimport "./B.sol";\ncontract A {}',
            "B.sol": 'pragma solidity ^0.8.0;\nimport "./A.sol";\ncontract B {}',
        }
    )


class TestResolve:
    """Tests for VersionResolver.resolve."""

    def test_highest_satisfying_version_per_group(
        self, root_lib_math_sources: dict[str, str], available_versions: list[str]
    ) -> None:
        """Each group gets the highest version satisfying every member."""
        graph = SourceGraph.build(root_lib_math_sources)

        batches = VersionResolver().resolve(graph, available_versions)

        assert [b.files for b in batches] == [
            ("src/Foo.sol",),
            ("src/Lib.sol", "src/Math.sol", "src/Root.sol"),
        ]
        assert [b.version for b in batches] == ["0.8.24", "0.8.24"]
        assert batches[1].constraint == "^0.8.4"

    def test_pinned_version_wins_when_compatible(
        self, root_lib_math_sources: dict[str, str], available_versions: list[str]
    ) -> None:
        """A compatible pinned version is used for every group."""
        graph = SourceGraph.build(root_lib_math_sources)

        batches = VersionResolver(pinned="0.8.19").resolve(graph, available_versions)

        assert {b.version for b in batches} == {"0.8.19"}

    def test_incompatible_pin_falls_back(
        self,
        root_lib_math_sources: dict[str, str],
        available_versions: list[str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """An incompatible pin is ignored with a warning."""
        graph = SourceGraph.build(root_lib_math_sources)

        batches = VersionResolver().resolve(graph, available_versions, pinned="0.7.6")

        assert {b.version for b in batches} == {"0.8.24"}
        assert "pinned_version_incompatible" in capsys.readouterr().out

    def test_unavailable_pin_falls_back(
        self,
        root_lib_math_sources: dict[str, str],
        available_versions: list[str],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """A pin that satisfies the range but is not installed is never selected."""
        graph = SourceGraph.build(root_lib_math_sources)

        batches = VersionResolver(pinned="0.8.20").resolve(graph, available_versions)

        assert {b.version for b in batches} == {"0.8.24"}
        assert all(b.version in available_versions for b in batches)
        output = capsys.readouterr().out
        assert "pinned_version_unavailable" in output
        assert "pinned_version_incompatible" not in output

    def test_select_version_rejects_unavailable_pin(self) -> None:
        """select_version only returns a pin that is in the available list."""
        version = VersionResolver().select_version(
            ["A.sol"],
            VersionConstraint.parse("^0.8.0"),
            ["0.8.19", "0.8.24"],
            pinned="0.8.20",
        )

        assert version == "0.8.24"

    def test_unrelated_files_may_use_different_versions(
        self, available_versions: list[str]
    ) -> None:
        """Files without import edges resolve independently."""
        graph = SourceGraph.build(
            {
                "Old.sol": "pragma solidity ^0.7.0;\ncontract Old {}",
                "New.sol": "pragma solidity ^0.8.0;\ncontract New {}",
            }
        )

        batches = VersionResolver().resolve(graph, available_versions)

        assert {b.files: b.version for b in batches} == {
            ("New.sol",): "0.8.24",
            ("Old.sol",): "0.7.6",
        }

    def test_conflicting_constraints_raise(
        self, conflicting_graph: SourceGraph, available_versions: list[str]
    ) -> None:
        """Connected files without a common version are rejected."""
        with pytest.raises(ConflictingVersionConstraints) as exc_info:
            VersionResolver().resolve(conflicting_graph, available_versions)

        assert exc_info.value.constraints == {"A.sol": "^0.7.0", "B.sol": "^0.8.0"}

    def test_unsatisfiable_constraint_raises(self, available_versions: list[str]) -> None:
        """A constraint no available compiler meets is rejected."""
        graph = SourceGraph.build({"A.sol": "pragma solidity ^0.6.0;\ncontract A {}"})

        with pytest.raises(UnsatisfiableVersion) as exc_info:
            VersionResolver().resolve(graph, available_versions)

        assert exc_info.value.files == ["A.sol"]

    def test_unconstrained_files_take_highest_version(self, available_versions: list[str]) -> None:
        """Files without directives take the newest compiler."""
        graph = SourceGraph.build({"A.sol": "contract A {}"})

        (batch,) = VersionResolver().resolve(graph, available_versions)

        assert batch.version == "0.8.24"
        assert batch.constraint is None

    def test_settings_are_clamped_per_batch(self) -> None:
        """Each batch carries settings its compiler accepts."""
        graph = SourceGraph.build({"A.sol": "pragma solidity 0.8.19;\ncontract A {}"})
        resolver = VersionResolver(CompilerSettings(evm_version=EvmVersion.CANCUN))

        (batch,) = resolver.resolve(graph, ["0.8.19", "0.8.24"])

        assert batch.version == "0.8.19"
        assert batch.settings.evm_version == EvmVersion.PARIS

    def test_invalid_available_versions_are_skipped(self) -> None:
        """Unparseable compiler versions are ignored."""
        graph = SourceGraph.build({"A.sol": "contract A {}"})

        (batch,) = VersionResolver().resolve(graph, ["nightly", "0.8.19"])

        assert batch.version == "0.8.19"


class TestPartition:
    """Tests for VersionResolver.partition."""

    def test_failures_are_scoped_to_their_component(
        self, available_versions: list[str]
    ) -> None:
        """A conflict only fails its own group."""
        graph = SourceGraph.build(
            {
                "A.sol": 'pragma solidity ^0.7.0;\nimport "./B.sol";',
                "B.sol": "pragma solidity ^0.8.0;",
                "C.sol": "pragma solidity ^0.8.0;",
            }
        )

        resolution = VersionResolver().partition(graph, available_versions)

        assert [b.files for b in resolution.batches] == [("C.sol",)]
        assert len(resolution.failures) == 1
        assert isinstance(resolution.failures[0], ConflictingVersionConstraints)
        assert resolution.failed_files == {"A.sol", "B.sol"}

    def test_invalid_directive_fails_component(self, available_versions: list[str]) -> None:
        """A directive that cannot be parsed fails its group."""
        graph = SourceGraph.build({"A.sol": "pragma solidity banana;\ncontract A {}"})

        resolution = VersionResolver().partition(graph, available_versions)

        assert resolution.batches == []
        (error,) = resolution.failures
        assert isinstance(error, ComponentResolutionError)
        assert error.files == ["A.sol"]
        assert "banana" in str(error)

    def test_component_error_is_exported(self) -> None:
        """The directive error is importable from the package root."""
        import smelt_core

        assert smelt_core.ComponentResolutionError is ComponentResolutionError
        assert issubclass(ComponentResolutionError, smelt_core.SmeltError)


class TestBatch:
    """Tests for Batch.create."""

    def test_batch_id_is_stable(self) -> None:
        """The id depends only on members and version."""
        first = Batch.create(["b.sol", "a.sol"], "0.8.19", CompilerSettings())
        second = Batch.create(["a.sol", "b.sol"], "0.8.19", CompilerSettings(via_ir=True))

        assert first.batch_id == second.batch_id
        assert len(first.batch_id) == 12
        assert first.files == ("a.sol", "b.sol")
        assert "a.sol" in first

    def test_batch_id_changes_with_version(self) -> None:
        """A different compiler gives a different batch."""
        first = Batch.create(["a.sol"], "0.8.19", CompilerSettings())
        second = Batch.create(["a.sol"], "0.8.24", CompilerSettings())

        assert first.batch_id != second.batch_id
