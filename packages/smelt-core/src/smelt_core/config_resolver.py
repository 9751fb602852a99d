"""Build configuration resolver for smelt.

This module handles loading smelt.yaml:
- ConfigResolver: Load smelt.yaml from an explicit path, SMELT_CONFIG or discovery
- Config file discovery in standard locations below the project root
- Conversion of YAML and validation failures into ConfigurationError
"""

from __future__ import annotations

import os
from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from smelt_core.errors import ConfigurationError
from smelt_core.schemas.config import BuildConfig

logger = structlog.get_logger(__name__)

# Environment variable holding an explicit config file path
CONFIG_ENV_VAR = "SMELT_CONFIG"

# Standard config file name
CONFIG_FILE_NAME = "smelt.yaml"

# Standard locations (relative to the project root) searched for smelt.yaml
CONFIG_SEARCH_PATHS = (
    Path("."),
    Path(".smelt"),
)


class ConfigResolver:
    """Resolves the build configuration of a project.

    Lookup order:
    1. An explicit path passed to ``load()``
    2. The path in the SMELT_CONFIG environment variable
    3. ``<root>/smelt.yaml``, then ``<root>/.smelt/smelt.yaml``
    4. Defaults (``BuildConfig()``) when nothing is found

    Attributes:
        project_root: Directory the search paths are relative to.
        search_paths: Ordered directories searched for smelt.yaml.

    Example:
        >>> resolver = ConfigResolver(Path("/work/token"))
        >>> config = resolver.load()
        >>> config.max_workers
        4
    """

    def __init__(
        self,
        project_root: Path,
        search_paths: tuple[Path, ...] | None = None,
    ) -> None:
        self.project_root = project_root
        self.search_paths = search_paths or CONFIG_SEARCH_PATHS

    def find_config_file(self) -> Path | None:
        """Locate smelt.yaml through the environment or the search paths.

        Returns:
            Path to the config file, or None when there is none.

        Raises:
            ConfigurationError: If SMELT_CONFIG points at a missing file.
        """
        env_value = os.environ.get(CONFIG_ENV_VAR)
        if env_value:
            env_path = Path(env_value)
            if not env_path.is_absolute():
                env_path = self.project_root / env_path
            if not env_path.exists():
                raise ConfigurationError(
                    f"Configuration file from {CONFIG_ENV_VAR} not found",
                    file_path=str(env_path),
                )
            return env_path

        for base_path in self.search_paths:
            candidate = self.project_root / base_path / CONFIG_FILE_NAME
            if candidate.exists():
                logger.debug("config_file_found", path=str(candidate))
                return candidate
        return None

    def load(self, path: Path | None = None) -> BuildConfig:
        """Load and validate the build configuration.

        Args:
            path: Explicit config file. If None, discovers via SMELT_CONFIG
                and the search paths.

        Returns:
            Validated BuildConfig (defaults when no file exists).

        Raises:
            ConfigurationError: If the file is missing, unreadable, not valid
                YAML or fails validation.
        """
        resolved = path if path is not None else self.find_config_file()
        if resolved is None:
            logger.debug("config_defaults_used", project_root=str(self.project_root))
            return BuildConfig()

        try:
            config = BuildConfig.from_yaml(resolved)
        except FileNotFoundError as e:
            raise ConfigurationError(
                "Configuration file not found", file_path=str(resolved)
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                "Configuration file is not valid YAML",
                file_path=str(resolved),
                internal_details=str(e),
            ) from e
        except ValidationError as e:
            first = e.errors()[0]
            field_path = ".".join(str(part) for part in first["loc"]) or None
            raise ConfigurationError(
                f"Invalid configuration: {first['msg']}",
                file_path=str(resolved),
                field_path=field_path,
                internal_details=str(e),
            ) from e

        logger.info("config_loaded", path=str(resolved))
        return config
