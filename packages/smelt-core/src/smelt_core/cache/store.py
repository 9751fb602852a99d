"""Persistence of the cache record.

The record is one JSON document per project root. Readers never see a
partially written file: the new record is written to a temporary file in
the target directory, flushed to disk and moved over the old one.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

import structlog
from pydantic import ValidationError

from smelt_core.cache.artifact_cache import ArtifactCache
from smelt_core.errors import CacheCorruption
from smelt_core.schemas.artifacts import CACHE_SCHEMA_VERSION, CacheRecord

logger = structlog.get_logger(__name__)


class CacheStore:
    """Loads and persists the cache record at a fixed location.

    Attributes:
        path: Location of the JSON record.

    Example:
        >>> store = CacheStore(Path(".smelt/cache.json"))
        >>> cache = store.load()
        >>> store.persist(cache.record)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> CacheRecord:
        """Read and validate the record.

        Returns:
            The persisted CacheRecord.

        Raises:
            FileNotFoundError: If no record exists.
            CacheCorruption: If the record is unreadable, invalid or was
                written with a different schema version.
        """
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise CacheCorruption(str(self.path), f"unreadable ({e})") from e

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise CacheCorruption(str(self.path), f"invalid JSON ({e.msg})") from e

        if not isinstance(data, dict):
            raise CacheCorruption(str(self.path), "record is not a JSON object")

        schema_version = data.get("schema_version")
        if schema_version != CACHE_SCHEMA_VERSION:
            raise CacheCorruption(
                str(self.path),
                f"schema version {schema_version!r}, expected {CACHE_SCHEMA_VERSION}",
            )

        try:
            return CacheRecord.model_validate(data)
        except ValidationError as e:
            raise CacheCorruption(
                str(self.path), f"{e.error_count()} validation error(s)"
            ) from e

    def load(self) -> ArtifactCache:
        """Load the cache, recovering from any unusable record.

        A missing record yields an empty cache. An unusable record yields an
        empty cache flagged as corrupted, so every file is rebuilt.
        """
        try:
            record = self.read()
        except FileNotFoundError:
            logger.debug("cache_missing", path=str(self.path))
            return ArtifactCache()
        except CacheCorruption as e:
            logger.warning("cache_corrupted", path=str(self.path), reason=e.reason)
            return ArtifactCache(corrupted=True)

        logger.debug("cache_loaded", path=str(self.path), entries=len(record.entries))
        return ArtifactCache(record)

    def persist(self, record: CacheRecord) -> None:
        """Atomically replace the persisted record.

        Args:
            record: Record to write.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = record.model_dump_json(indent=2)

        with NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
        try:
            with open(temp_path, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(self.path)
        finally:
            temp_path.unlink(missing_ok=True)

        logger.debug("cache_persisted", path=str(self.path), entries=len(record.entries))
