"""Lexical scanner for Solidity sources.

Extracts import statements, version pragmas, SPDX license identifiers and
top-level declarations without parsing the language. Comments and string
contents are masked with spaces first, so text quoted inside a literal is
never taken for a directive and every offset found in a masked buffer is
valid in the original content.
"""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator

from smelt_core.graph.remapping import clean_path
from smelt_core.schemas.source import (
    Declaration,
    DeclarationKind,
    ImportDirective,
    SourceFile,
    Span,
)

RE_SOL_IMPORT = re.compile(
    r"""
    \bimport\s+
    (?:
        (?P<q1>["'])(?P<p1>[^"'\n]+)(?P=q1)(?:\s+as\s+(?P<a1>\w+))?
      |
        (?:
            \*\s+as\s+(?P<a2>\w+)
          | \{(?P<symbols>[^}]*)\}
        )
        \s+from\s+(?P<q2>["'])(?P<p2>[^"'\n]+)(?P=q2)
    )
    \s*;
    """,
    re.VERBOSE,
)

RE_SOL_IMPORT_ALIAS = re.compile(r"^\s*(?P<target>\w+)(?:\s+as\s+(?P<alias>\w+))?\s*$")

RE_SOL_PRAGMA = re.compile(r"\bpragma\s+(?P<name>\w+)\s+(?P<value>[^;]+?)\s*;")

RE_SOL_SPDX_LICENSE_IDENTIFIER = re.compile(
    r"(?P<comment>///?|/\*+)?[ \t]*SPDX-License-Identifier:[ \t]*(?P<license>[^\n]*)"
)

RE_THREE_OR_MORE_NEWLINES = re.compile(r"\n{3,}")

RE_DECLARATION = re.compile(
    r"""
    ^(?:abstract\s+)?
    (?P<kind>contract|interface|library|struct|enum|error|event|function|type)
    \s+(?P<name>[A-Za-z_$][\w$]*)
    """,
    re.VERBOSE,
)

RE_CONSTANT = re.compile(r"^[\w.\[\]\s]*?\bconstant\s+(?P<name>[A-Za-z_$][\w$]*)\s*=")

RE_REFERENCE = re.compile(
    r"(?<![\w$])(?P<name>[A-Za-z_$][\w$]*)(?:\s*\.\s*(?P<member>[A-Za-z_$][\w$]*))?"
)

HOISTED_PRAGMAS = ("abicoder", "experimental")

# Keywords that may directly precede a type or library name
TYPE_POSITION_KEYWORDS = frozenset(
    {"return", "new", "is", "emit", "revert", "using", "for", "else", "delete", "try", "do"}
)


def mask_source(content: str, *, mask_strings: bool = False) -> str:
    """Replace comments (and optionally string contents) with spaces.

    Newlines are kept so line numbers survive. The result has the same
    length as the input.

    Args:
        content: Source text.
        mask_strings: Also blank the contents of string literals (quotes stay).

    Returns:
        Masked text of identical length.
    """
    out = list(content)
    i = 0
    n = len(content)
    while i < n:
        ch = content[i]
        nxt = content[i + 1] if i + 1 < n else ""
        if ch == "/" and nxt == "/":
            j = content.find("\n", i)
            j = n if j == -1 else j
            for k in range(i, j):
                out[k] = " "
            i = j
        elif ch == "/" and nxt == "*":
            j = content.find("*/", i + 2)
            j = n if j == -1 else j + 2
            for k in range(i, j):
                if content[k] != "\n":
                    out[k] = " "
            i = j
        elif ch in ("'", '"'):
            j = i + 1
            while j < n and content[j] != ch and content[j] != "\n":
                if content[j] == "\\":
                    j += 1
                j += 1
            end = min(j, n)
            if mask_strings:
                for k in range(i + 1, end):
                    if content[k] != "\n":
                        out[k] = " "
            i = end + 1
        else:
            i += 1
    return "".join(out)


def find_imports(masked: str, content: str | None = None) -> list[ImportDirective]:
    """Return every import statement found in masked text.

    ``import "./contracts/Contract.sol";`` gives path ``./contracts/Contract.sol``.
    When ``masked`` has string contents blanked, pass the original ``content``
    so the quoted path is read from it.
    """
    source = masked if content is None else content
    directives: list[ImportDirective] = []
    for match in RE_SOL_IMPORT.finditer(masked):
        group = "p1" if match.group("p1") is not None else "p2"
        path = source[match.start(group) : match.end(group)]
        unit_alias = match.group("a1") or match.group("a2")
        symbols: dict[str, str] = {}
        if match.group("symbols") is not None:
            for part in match.group("symbols").split(","):
                if not part.strip():
                    continue
                alias_match = RE_SOL_IMPORT_ALIAS.match(part)
                if alias_match is None:
                    continue
                target = alias_match.group("target")
                symbols[target] = alias_match.group("alias") or target
        directives.append(
            ImportDirective(
                path=path,
                unit_alias=unit_alias,
                symbols=symbols,
                span=Span(start=match.start(), end=match.end()),
            )
        )
    return directives


def find_pragmas(masked: str, content: str | None = None) -> list[tuple[str, str, Span]]:
    """Return ``(name, value, span)`` for every pragma statement.

    ``pragma solidity ^0.5.2;`` gives ``("solidity", "^0.5.2", span)``.
    Values are read from ``content`` when it is given.
    """
    source = masked if content is None else content
    return [
        (
            m.group("name"),
            " ".join(source[m.start("value") : m.end("value")].split()),
            Span(start=m.start(), end=m.end()),
        )
        for m in RE_SOL_PRAGMA.finditer(masked)
    ]


def find_version_pragmas(masked: str) -> list[str]:
    """Return the version expression of every ``pragma solidity`` directive."""
    return [value for name, value, _ in find_pragmas(masked) if name == "solidity"]


def find_license(content: str) -> str | None:
    """Return the first SPDX license identifier declared in the content."""
    match = RE_SOL_SPDX_LICENSE_IDENTIFIER.search(content)
    if match is None:
        return None
    value = match.group("license").split("*/")[0].strip()
    return value or None


def find_license_spans(content: str) -> list[Span]:
    """Return the ranges to strip so no SPDX identifier remains.

    A ``//`` comment is removed up to the end of its line; inside a block
    comment only the identifier text is removed.
    """
    spans: list[Span] = []
    for match in RE_SOL_SPDX_LICENSE_IDENTIFIER.finditer(content):
        comment = match.group("comment") or ""
        start = match.start()
        end = match.end()
        closing = content.find("*/", start, end)
        if closing != -1:
            end = closing
        if comment.startswith("/*"):
            start += len(comment)
        spans.append(Span(start=start, end=end))
    return spans


def iter_top_level_items(masked: str) -> Iterator[Span]:
    """Yield the range of every top-level item of literal-masked text.

    An item ends at a ``;`` outside any brackets or at the ``}`` that closes
    its outermost block.
    """
    depth = 0
    start: int | None = None
    for i, ch in enumerate(masked):
        if start is None:
            if ch.isspace():
                continue
            start = i
        if ch in "{([":
            depth += 1
        elif ch in "})]":
            depth = max(depth - 1, 0)
            if ch == "}" and depth == 0:
                yield Span(start=start, end=i + 1)
                start = None
        elif ch == ";" and depth == 0:
            yield Span(start=start, end=i + 1)
            start = None


def find_declarations(content: str, masked: str) -> list[Declaration]:
    """Return the top-level declarations of a file.

    Args:
        content: Original source text.
        masked: The same text with comments and string contents masked.
    """
    declarations: list[Declaration] = []
    for item in iter_top_level_items(masked):
        head = masked[item.start : item.end]
        match = RE_DECLARATION.match(head)
        if match is not None:
            kind = DeclarationKind(match.group("kind"))
        else:
            match = RE_CONSTANT.match(head)
            if match is None or head.lstrip().startswith(("import", "pragma", "using")):
                continue
            kind = DeclarationKind.CONSTANT
        name_start = item.start + match.start("name")
        declarations.append(
            Declaration(
                kind=kind,
                name=match.group("name"),
                span=item,
                name_span=Span(start=name_start, end=name_start + len(match.group("name"))),
                text=content[item.start : item.end],
            )
        )
    return declarations


def iter_identifier_positions(masked: str, name: str) -> Iterator[int]:
    """Yield start offsets of ``name`` used as an identifier.

    Member accesses (``x.name``) are skipped since they never refer to a
    top-level declaration.
    """
    pattern = re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])")
    for match in pattern.finditer(masked):
        j = match.start() - 1
        while j >= 0 and masked[j].isspace():
            j -= 1
        if j >= 0 and masked[j] == ".":
            continue
        yield match.start()


def iter_references(masked: str) -> Iterator[tuple[str, str | None]]:
    """Yield ``(name, member)`` for every identifier not reached through a dot.

    ``Lib.add(x)`` gives ``("Lib", "add")`` and ``("x", None)``.
    """
    for match in RE_REFERENCE.finditer(masked):
        j = match.start() - 1
        while j >= 0 and masked[j].isspace():
            j -= 1
        if j >= 0 and masked[j] == ".":
            continue
        yield match.group("name"), match.group("member")


def iter_member_name_positions(masked: str, name: str) -> Iterator[int]:
    """Yield start offsets where ``name`` names a member or a variable.

    Covers member accesses (``x.name``, ``this.name()``) and declarations
    such as ``uint256 name;``, ``function name(`` or ``mapping(...) name;``.
    Uses in a type position (``name x;``, ``new name()``, ``is name``) are
    not yielded. Top-level declaration names are yielded too; callers skip
    them by offset.
    """
    pattern = re.compile(rf"(?<![\w$]){re.escape(name)}(?![\w$])")
    for match in pattern.finditer(masked):
        j = match.start() - 1
        while j >= 0 and masked[j].isspace():
            j -= 1
        if j < 0:
            continue
        before = masked[j]
        if before in ".]":
            yield match.start()
        elif before == ")":
            k = match.end()
            while k < len(masked) and masked[k].isspace():
                k += 1
            if k == len(masked) or masked[k] not in ".(":
                yield match.start()
        elif before.isalnum() or before in "_$":
            k = j
            while k >= 0 and (masked[k].isalnum() or masked[k] in "_$"):
                k -= 1
            if masked[k + 1 : j + 1] not in TYPE_POSITION_KEYWORDS:
                yield match.start()


def content_hash(content: str) -> str:
    """Compute SHA-256 hash of content.

    Args:
        content: String content to hash.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def scan_source(path: str, content: str) -> SourceFile:
    """Scan one file and capture it as an immutable SourceFile.

    Args:
        path: File path; it is lexically cleaned and converted to POSIX form.
        content: File content.

    Returns:
        SourceFile with imports, pragmas, license and declarations extracted.

    Example:
        >>> source = scan_source("src/Token.sol", 'pragma solidity ^0.8.0;\\nimport "./Math.sol";')
        >>> source.raw_imports
        ['./Math.sol']
    """
    masked = mask_source(content, mask_strings=True)

    pragmas = find_pragmas(masked, content)
    return SourceFile(
        path=clean_path(path),
        content=content,
        content_hash=content_hash(content),
        imports=tuple(find_imports(masked, content)),
        version_pragmas=tuple(value for name, value, _ in pragmas if name == "solidity"),
        license=find_license(content),
        extra_pragmas=tuple(
            f"{name} {value}" for name, value, _ in pragmas if name in HOISTED_PRAGMAS
        ),
        pragma_spans=tuple(span for _, _, span in pragmas),
        declarations=tuple(find_declarations(content, masked)),
    )
