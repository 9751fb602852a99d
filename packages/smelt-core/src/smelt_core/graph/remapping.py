"""Import path resolution for smelt-core.

This module provides:
- clean_path: Lexical path normalisation (no filesystem access)
- Remapper: Applies ordered remapping rules to import names

Remapping tie-break (same order the Solidity compiler uses): among the rules
whose context and prefix both match, the rule with the longest context wins,
then the rule with the longest prefix, then the rule declared last.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable

import structlog

from smelt_core.schemas.source import RemappingRule

logger = structlog.get_logger(__name__)


def clean_path(path: str) -> str:
    """Lexically clean a path.

    Resolves ``.`` and ``..`` components and collapses repeated separators.
    A ``..`` that has no preceding normal component is kept. Backslashes are
    converted to forward slashes. Symbolic links are not considered.

    Args:
        path: Path to clean.

    Returns:
        Cleaned POSIX path.

    Example:
        >>> clean_path("src/./lib/../Token.sol")
        'src/Token.sol'
        >>> clean_path("../shared//Math.sol")
        '../shared/Math.sol'
    """
    path = path.replace("\\", "/")
    rooted = path.startswith("/")
    parts: list[str] = []
    for component in path.split("/"):
        if component in ("", "."):
            continue
        if component == "..":
            if parts and parts[-1] != "..":
                parts.pop()
            elif not rooted:
                parts.append(component)
            continue
        parts.append(component)
    cleaned = "/".join(parts)
    if rooted:
        return "/" + cleaned
    return cleaned or "."


def is_relative_import(raw: str) -> bool:
    """Check if an import string is relative to the importing file."""
    return raw.startswith("./") or raw.startswith("../")


class Remapper:
    """Resolves raw import strings to canonical project paths.

    Attributes:
        rules: Remapping rules in declaration order.

    Example:
        >>> remapper = Remapper([RemappingRule.parse("@lib/=vendor/lib/")])
        >>> remapper.resolve("src/App.sol", "@lib/Token.sol")
        'vendor/lib/Token.sol'
        >>> remapper.resolve("src/App.sol", "./Math.sol")
        'src/Math.sol'
    """

    def __init__(self, rules: Iterable[RemappingRule] = ()) -> None:
        """Initialize the Remapper.

        Args:
            rules: Remapping rules in declaration order.
        """
        self.rules = list(rules)

    @classmethod
    def from_strings(cls, values: Iterable[str]) -> Remapper:
        """Create a Remapper from ``[context:]prefix=replacement`` strings."""
        return cls(RemappingRule.parse(value) for value in values)

    def select(self, import_name: str, importer: str | None = None) -> RemappingRule | None:
        """Return the rule that applies to an import name, if any.

        Args:
            import_name: Import name after relative-path joining.
            importer: Path of the importing file (used for context matching).

        Returns:
            The winning rule, or None when no rule matches.
        """
        best: RemappingRule | None = None
        best_key: tuple[int, int, int] | None = None
        for index, rule in enumerate(self.rules):
            if rule.context is not None and (
                importer is None or not importer.startswith(rule.context)
            ):
                continue
            if not import_name.startswith(rule.prefix):
                continue
            key = (len(rule.context or ""), len(rule.prefix), index)
            if best_key is None or key > best_key:
                best, best_key = rule, key
        return best

    def remap(self, import_name: str, importer: str | None = None) -> str:
        """Apply the winning remapping rule to an import name."""
        rule = self.select(import_name, importer)
        if rule is None:
            return import_name
        remapped = rule.replacement + import_name[len(rule.prefix) :]
        logger.debug("import_remapped", import_name=import_name, remapped=remapped, rule=str(rule))
        return remapped

    def resolve(self, importer: str, raw: str) -> str:
        """Resolve a raw import string to a canonical path.

        Relative imports are joined to the importer's directory and cleaned
        first, then remapping is applied, then the result is cleaned again.

        Args:
            importer: Canonical path of the importing file.
            raw: Import string as written.

        Returns:
            Canonical path of the import target.
        """
        name = raw
        if is_relative_import(raw):
            directory = posixpath.dirname(importer)
            name = clean_path(f"{directory}/{raw}" if directory else raw)
        return clean_path(self.remap(name, importer))
