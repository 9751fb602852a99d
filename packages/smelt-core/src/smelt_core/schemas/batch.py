"""Compilation batch model for smelt-core."""

from __future__ import annotations

import hashlib
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from smelt_core.schemas.settings import CompilerSettings


class Batch(BaseModel):
    """Files compiled together in a single external invocation.

    Every member shares one compiler version and one settings object. The
    batch id depends only on the member paths and the version, so a batch
    keeps its id across builds while its membership is stable.

    Attributes:
        batch_id: Stable identifier (12 hex characters).
        files: Member paths, sorted.
        version: Selected compiler version.
        settings: Effective settings for the selected version.
        constraint: Combined version directive of the members, if any.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    batch_id: str = Field(..., min_length=1)
    files: tuple[str, ...] = Field(..., min_length=1)
    version: str = Field(..., min_length=1)
    settings: CompilerSettings = Field(default_factory=CompilerSettings)
    constraint: str | None = None

    @classmethod
    def create(
        cls,
        files: Iterable[str],
        version: str,
        settings: CompilerSettings,
        constraint: str | None = None,
    ) -> Batch:
        """Create a batch with a derived id.

        Args:
            files: Member paths (any order).
            version: Selected compiler version.
            settings: Effective compiler settings.
            constraint: Combined version directive, if any.

        Returns:
            New Batch.
        """
        members = tuple(sorted(set(files)))
        digest = hashlib.sha256()
        for path in members:
            digest.update(path.encode("utf-8"))
            digest.update(b"\0")
        digest.update(version.encode("utf-8"))
        return cls(
            batch_id=digest.hexdigest()[:12],
            files=members,
            version=version,
            settings=settings,
            constraint=constraint,
        )

    def __contains__(self, path: object) -> bool:
        return path in self.files
