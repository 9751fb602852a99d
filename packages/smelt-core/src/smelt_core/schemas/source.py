"""Source-level models for smelt-core.

This module defines the immutable records produced by the lexical scan:
- SourceFile: One project file with its extracted declarations
- ImportDirective: A single import statement with aliases and byte span
- Declaration: A top-level construct (contract, struct, free function, ...)
- RemappingRule: Import prefix rewrite rule
- ImportEdge: A resolved import between two project files
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class DeclarationKind(str, Enum):
    """Kinds of top-level constructs recognised by the scanner."""

    CONTRACT = "contract"
    INTERFACE = "interface"
    LIBRARY = "library"
    STRUCT = "struct"
    ENUM = "enum"
    ERROR = "error"
    EVENT = "event"
    FUNCTION = "function"
    TYPE = "type"
    CONSTANT = "constant"

    @property
    def overloadable(self) -> bool:
        """Whether two declarations of this kind may legally share a name."""
        return self in (DeclarationKind.FUNCTION, DeclarationKind.EVENT, DeclarationKind.ERROR)


class Span(BaseModel):
    """Half-open character range ``[start, end)`` within a file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class ImportDirective(BaseModel):
    """One import statement.

    Attributes:
        path: Import string as written (``"./Math.sol"``).
        unit_alias: Alias of ``import "p" as M`` / ``import * as M from "p"``.
        symbols: Imported names mapped to their local alias
            (``{A as B}`` gives ``{"A": "B"}``, ``{A}`` gives ``{"A": "A"}``).
        span: Range of the whole statement including the trailing semicolon.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1)
    unit_alias: str | None = None
    symbols: dict[str, str] = Field(default_factory=dict)
    span: Span


class Declaration(BaseModel):
    """A top-level declaration.

    Attributes:
        kind: Declaration kind.
        name: Declared identifier.
        span: Range of the declaration text.
        name_span: Range of the identifier within the declaration.
        text: Declaration source text.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: DeclarationKind
    name: str = Field(..., min_length=1)
    span: Span
    name_span: Span
    text: str

    @property
    def normalized_text(self) -> str:
        """Declaration text with whitespace runs collapsed."""
        return " ".join(self.text.split())


class SourceFile(BaseModel):
    """A project source file captured for one build.

    Instances are created by ``smelt_core.graph.lexer.scan_source`` and are
    immutable for the rest of the build.

    Attributes:
        path: Canonical (lexically cleaned, POSIX) path.
        content: Raw file content.
        content_hash: SHA-256 hex digest of the content.
        imports: Parsed import statements in source order.
        version_pragmas: Raw ``pragma solidity`` expressions in source order.
        license: SPDX license identifier, if declared.
        extra_pragmas: Other pragma directives (abicoder, experimental).
        pragma_spans: Ranges of every pragma statement.
        declarations: Top-level declarations in source order.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1)
    content: str
    content_hash: str = Field(..., min_length=64, max_length=64)
    imports: tuple[ImportDirective, ...] = ()
    version_pragmas: tuple[str, ...] = ()
    license: str | None = None
    extra_pragmas: tuple[str, ...] = ()
    pragma_spans: tuple[Span, ...] = ()
    declarations: tuple[Declaration, ...] = ()

    @property
    def raw_imports(self) -> list[str]:
        """Raw import strings in source order."""
        return [directive.path for directive in self.imports]

    @property
    def version_constraint(self) -> str | None:
        """Combined version directive text, or None when unconstrained."""
        if not self.version_pragmas:
            return None
        if len(self.version_pragmas) == 1:
            return self.version_pragmas[0]
        return " ".join(f"({pragma})" for pragma in self.version_pragmas)


class RemappingRule(BaseModel):
    """Import remapping rule in solc form ``[context:]prefix=replacement``.

    Attributes:
        prefix: Import prefix to match.
        replacement: Text substituted for the prefix.
        context: Only apply to importers whose path starts with this value.

    Example:
        >>> RemappingRule.parse("@lib/=vendor/lib/")
        RemappingRule(prefix='@lib/', replacement='vendor/lib/', context=None)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    prefix: str = Field(..., min_length=1)
    replacement: str
    context: str | None = None

    @classmethod
    def parse(cls, value: str) -> RemappingRule:
        """Parse a remapping from its string form.

        Args:
            value: ``prefix=replacement`` or ``context:prefix=replacement``.

        Returns:
            Parsed rule.

        Raises:
            ValueError: If the value has no ``=`` or an empty prefix.
        """
        head, sep, replacement = value.partition("=")
        if not sep:
            raise ValueError(f"Remapping '{value}' must have the form prefix=replacement")
        context: str | None = None
        prefix = head
        if ":" in head:
            context, _, prefix = head.partition(":")
            context = context or None
        if not prefix:
            raise ValueError(f"Remapping '{value}' has an empty prefix")
        return cls(prefix=prefix, replacement=replacement, context=context)

    def __str__(self) -> str:
        head = f"{self.context}:{self.prefix}" if self.context else self.prefix
        return f"{head}={self.replacement}"


class ImportEdge(BaseModel):
    """A resolved import from one project file to another.

    Attributes:
        source: Importing file path.
        raw: Import string as written.
        target: Resolved file path (always a member of the file set).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    source: str
    raw: str
    target: str
