"""Single-file flattening of a root source and its dependencies.

The flattener inlines the transitive closure of a root file into one
self-contained buffer:

1. Files are ordered dependency-before-dependent (see ``ordering``).
2. Same-named top-level declarations are deduplicated when their text is
   identical and every name they reference resolves to interchangeable
   declarations, renamed when they differ, or rejected when renaming is
   unsafe.
3. Import statements, pragmas and SPDX comments are stripped from each file
   and consolidated into a single header.

References are rewritten lexically on comment- and string-masked text, so
names inside comments and string literals are never touched.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from smelt_core.errors import FlattenAmbiguity
from smelt_core.flatten.ordering import flatten_order
from smelt_core.graph.lexer import (
    RE_THREE_OR_MORE_NEWLINES,
    find_license_spans,
    iter_identifier_positions,
    iter_member_name_positions,
    iter_references,
    mask_source,
)
from smelt_core.graph.source_graph import SourceGraph
from smelt_core.observability import flatten_request
from smelt_core.schemas.config import FlattenConfig
from smelt_core.schemas.source import Declaration, SourceFile
from smelt_core.versioning.constraint import (
    VersionConstraint,
    intersect_all,
    preferred_directive,
)

logger = structlog.get_logger(__name__)

# (declaring file, declared name)
Identity = tuple[str, str]


@dataclass(frozen=True)
class FlattenResult:
    """Outcome of one flatten request.

    Attributes:
        root: File that was flattened.
        text: Flattened source.
        files: Inlined files in emission order.
        licenses: Distinct SPDX identifiers found, sorted.
        pragma: Merged version directive (None when unconstrained).
        ranges: UTF-8 byte range ``[start, end)`` of each file's block in text.
        renames: New name of every renamed declaration.
        dropped: Declarations removed as duplicates of an earlier identical copy.
    """

    root: str
    text: str
    files: tuple[str, ...]
    licenses: tuple[str, ...] = ()
    pragma: str | None = None
    ranges: Mapping[str, tuple[int, int]] = field(default_factory=dict)
    renames: Mapping[Identity, str] = field(default_factory=dict)
    dropped: tuple[Identity, ...] = ()

    def origin(self, offset: int) -> str | None:
        """Source file a byte offset of the output was copied from.

        Returns:
            The file path, or None for header and separator bytes.
        """
        for path, (start, end) in self.ranges.items():
            if start <= offset < end:
                return path
        return None


@dataclass
class _Group:
    """Declarations sharing one name in one file (overloads stay together)."""

    identity: Identity
    declarations: list[Declaration] = field(default_factory=list)

    @property
    def normalized(self) -> tuple[str, ...]:
        return tuple(d.normalized_text for d in self.declarations)

    @property
    def overloadable(self) -> bool:
        return any(d.kind.overloadable for d in self.declarations)

    @property
    def kind(self) -> str:
        return self.declarations[0].kind.value


@dataclass
class _Symbols:
    """Collision resolution state shared by the rewrite pass."""

    canonical: dict[Identity, Identity] = field(default_factory=dict)
    finals: dict[Identity, str] = field(default_factory=dict)
    renames: dict[Identity, str] = field(default_factory=dict)
    dropped: list[Identity] = field(default_factory=list)

    def final_name(self, identity: Identity) -> str:
        return self.finals[self.canonical[identity]]


class Flattener:
    """Merges a root file and its transitive dependencies into one buffer.

    Attributes:
        config: Flatten policy (license handling, file markers).

    Example:
        >>> result = Flattener().flatten("src/Root.sol", graph)
        >>> result.files
        ('src/Math.sol', 'src/Lib.sol', 'src/Root.sol')
        >>> result.origin(result.ranges["src/Lib.sol"][0])
        'src/Lib.sol'
    """

    def __init__(self, config: FlattenConfig | None = None) -> None:
        self.config = config or FlattenConfig()

    def flatten(self, root: str, graph: SourceGraph) -> FlattenResult:
        """Flatten root and everything it imports.

        Args:
            root: Canonical path of the file to flatten.
            graph: Resolved source graph containing root.

        Returns:
            FlattenResult with the merged text and its origin map.

        Raises:
            KeyError: If root is not part of the graph.
            FlattenAmbiguity: If licenses, version directives or declarations
                cannot be merged safely.
        """
        graph.source(root)
        with flatten_request(root):
            order = flatten_order(graph, root)
            sources = [graph.source(path) for path in order]

            licenses = self._licenses(root, sources)
            pragma = self._pragma(root, sources)
            hoisted = self._hoisted_pragmas(root, sources)
            symbols = self._resolve_collisions(root, graph, sources)
            bindings = self._bindings(root, graph, sources, symbols)

            header: list[str] = []
            if licenses:
                header.append(f"// SPDX-License-Identifier: {_license_expression(licenses)}")
            if pragma is not None:
                header.append(f"pragma solidity {pragma};")
            header.extend(f"pragma {directive};" for directive in hoisted)

            blocks: list[tuple[str | None, str]] = []
            if header:
                blocks.append((None, "\n".join(header)))
            for source in sources:
                body = self._rewrite(root, graph, source, symbols, bindings)
                if not body:
                    continue
                if self.config.include_file_markers:
                    body = f"// {source.path}\n{body}"
                blocks.append((source.path, body))

            text, ranges = _join(blocks)

        logger.debug(
            "flatten_summary",
            root=root,
            files=len(order),
            renamed=len(symbols.renames),
            deduplicated=len(symbols.dropped),
        )
        return FlattenResult(
            root=root,
            text=text,
            files=tuple(order),
            licenses=licenses,
            pragma=pragma,
            ranges=ranges,
            renames=dict(symbols.renames),
            dropped=tuple(symbols.dropped),
        )

    def _licenses(self, root: str, sources: list[SourceFile]) -> tuple[str, ...]:
        licenses = tuple(sorted({s.license for s in sources if s.license}))
        if len(licenses) > 1:
            if self.config.license_policy == "error":
                raise FlattenAmbiguity(root, "distinct SPDX license identifiers", licenses)
            logger.warning("flatten_licenses_combined", root=root, licenses=list(licenses))
        return licenses

    def _pragma(self, root: str, sources: list[SourceFile]) -> str | None:
        parsed: list[VersionConstraint] = []
        constrained: list[str] = []
        for source in sources:
            if not source.version_pragmas:
                continue
            try:
                parsed.append(VersionConstraint.parse_all(source.version_pragmas))
            except ValueError as e:
                raise FlattenAmbiguity(
                    root, f"invalid version directive in {source.path}: {e}"
                ) from e
            constrained.append(source.path)

        combined = intersect_all(parsed)
        if combined.is_empty:
            raise FlattenAmbiguity(
                root, "no compiler version satisfies every version directive", constrained
            )
        return preferred_directive(combined, parsed)

    def _hoisted_pragmas(self, root: str, sources: list[SourceFile]) -> list[str]:
        hoisted: list[str] = []
        for source in sources:
            for directive in source.extra_pragmas:
                if directive not in hoisted:
                    hoisted.append(directive)
        abicoders = [d for d in hoisted if d.startswith("abicoder ")]
        if len(abicoders) > 1:
            raise FlattenAmbiguity(root, "conflicting abicoder directives", abicoders)
        return hoisted

    def _resolve_collisions(
        self, root: str, graph: SourceGraph, sources: list[SourceFile]
    ) -> _Symbols:
        symbols = _Symbols()
        seen: dict[str, list[_Group]] = {}
        taken = {d.name for source in sources for d in source.declarations}
        counters: dict[str, int] = {}

        grouped: list[tuple[SourceFile, dict[str, _Group]]] = []
        for source in sources:
            groups: dict[str, _Group] = {}
            for declaration in source.declarations:
                group = groups.setdefault(declaration.name, _Group((source.path, declaration.name)))
                group.declarations.append(declaration)
            grouped.append((source, groups))
        classes = _equivalence_classes(graph, grouped)

        for source, groups in grouped:
            for name, group in groups.items():
                priors = seen.setdefault(name, [])
                duplicate = next(
                    (p for p in priors if classes[p.identity] == classes[group.identity]), None
                )
                if duplicate is not None:
                    symbols.canonical[group.identity] = duplicate.identity
                    symbols.dropped.append(group.identity)
                    continue

                if priors:
                    if group.overloadable or any(p.overloadable for p in priors):
                        raise FlattenAmbiguity(
                            root,
                            f"{group.kind} '{name}' is declared differently in "
                            f"{priors[0].identity[0]} and {source.path}",
                            [name],
                        )
                    final = _fresh_name(name, taken, counters)
                    symbols.renames[group.identity] = final
                    logger.debug("declaration_renamed", path=source.path, name=name, final=final)
                else:
                    final = name

                symbols.canonical[group.identity] = group.identity
                symbols.finals[group.identity] = final
                priors.append(group)
        return symbols

    def _bindings(
        self,
        root: str,
        graph: SourceGraph,
        sources: list[SourceFile],
        symbols: _Symbols,
    ) -> dict[str, dict[str, set[Identity]]]:
        """Names bound at file level in each file, mapped to declarations.

        A plain import binds every name bound in the imported file; a symbol
        import binds only the listed names under their aliases; a unit alias
        binds nothing directly. Computed as a fixed point so import cycles
        see each other's names.
        """
        bindings = _propagate_bindings(graph, sources, symbols.canonical)
        for source in sources:
            for local, identities in bindings[source.path].items():
                if len(identities) > 1:
                    origins = ", ".join(sorted(path for path, _ in identities))
                    raise FlattenAmbiguity(
                        root,
                        f"'{local}' in {source.path} refers to distinct declarations in {origins}",
                        [local],
                    )
        return bindings

    def _rewrite(
        self,
        root: str,
        graph: SourceGraph,
        source: SourceFile,
        symbols: _Symbols,
        bindings: dict[str, dict[str, set[Identity]]],
    ) -> str:
        content = source.content
        masked = mask_source(content, mask_strings=True)

        removed = [(d.span.start, d.span.end) for d in source.imports]
        removed.extend((s.start, s.end) for s in source.pragma_spans)
        removed.extend((s.start, s.end) for s in find_license_spans(content))
        for declaration in source.declarations:
            if (source.path, declaration.name) in symbols.dropped:
                removed.append((declaration.span.start, declaration.span.end))
        removed = _merge_ranges(removed)

        edits: list[tuple[int, int, str]] = [(start, end, "") for start, end in removed]
        covered = list(removed)

        # M.X through "import 'p' as M" / "import * as M from 'p'"
        for directive in source.imports:
            target = graph.target_of(source.path, directive.path)
            if directive.unit_alias is None or target is None:
                continue
            pattern = re.compile(
                rf"(?<![\w$.]){re.escape(directive.unit_alias)}\s*\.\s*(?P<member>[A-Za-z_$][\w$]*)"
            )
            for match in pattern.finditer(masked):
                if _inside(match.start(), covered):
                    continue
                identities = bindings[target].get(match.group("member"))
                if not identities:
                    raise FlattenAmbiguity(
                        root,
                        f"cannot resolve '{directive.unit_alias}.{match.group('member')}' "
                        f"in {source.path}",
                        [match.group("member")],
                    )
                (identity,) = identities
                edits.append((match.start(), match.end(), symbols.finals[identity]))
                covered.append((match.start(), match.end()))

        top_level = {d.name_span.start for d in source.declarations}
        for local, identities in bindings[source.path].items():
            (identity,) = identities
            final = symbols.finals[identity]
            if final == local:
                continue
            for position in iter_member_name_positions(masked, local):
                if position not in top_level and not _inside(position, covered):
                    raise FlattenAmbiguity(
                        root,
                        f"'{local}' in {source.path} is also used as a member name",
                        [local],
                    )
            for position in iter_identifier_positions(masked, local):
                if not _inside(position, covered):
                    edits.append((position, position + len(local), final))

        pieces: list[str] = []
        cursor = 0
        for start, end, replacement in sorted(edits):
            if start < cursor:
                continue
            pieces.append(content[cursor:start])
            pieces.append(replacement)
            cursor = end
        pieces.append(content[cursor:])

        text = "\n".join(line.rstrip() for line in "".join(pieces).splitlines())
        return RE_THREE_OR_MORE_NEWLINES.sub("\n\n", text).strip()


def _propagate_bindings(
    graph: SourceGraph,
    sources: list[SourceFile],
    seed: Mapping[Identity, Identity],
) -> dict[str, dict[str, set[Identity]]]:
    """Fixed point of file-level names over import edges.

    ``seed`` maps each declaration to the identity its name is bound to.
    """
    bindings: dict[str, dict[str, set[Identity]]] = {}
    for source in sources:
        bindings[source.path] = {
            d.name: {seed[(source.path, d.name)]} for d in source.declarations
        }

    changed = True
    while changed:
        changed = False
        for source in sources:
            names = bindings[source.path]
            for directive in source.imports:
                target = graph.target_of(source.path, directive.path)
                if target is None or directive.unit_alias is not None:
                    continue
                incoming = bindings[target]
                if directive.symbols:
                    pairs = list(directive.symbols.items())
                else:
                    pairs = [(name, name) for name in incoming]
                for original, local in pairs:
                    identities = incoming.get(original)
                    if not identities:
                        continue
                    bound = names.setdefault(local, set())
                    if not identities <= bound:
                        bound.update(identities)
                        changed = True
    return bindings


def _equivalence_classes(
    graph: SourceGraph,
    grouped: list[tuple[SourceFile, dict[str, _Group]]],
) -> dict[Identity, int]:
    """Partition declaration groups into interchangeable classes.

    Groups start out keyed by name and normalized text. A class is split
    while its members reference names that resolve to declarations in
    different classes, so two copies of ``contract X { S s; }`` only merge
    when their ``S`` merge too.
    """
    sources = [source for source, _ in grouped]
    own = {(s.path, d.name): (s.path, d.name) for s in sources for d in s.declarations}
    bound = _propagate_bindings(graph, sources, own)

    references: dict[Identity, list[frozenset[Identity]]] = {}
    classes: dict[Identity, int] = {}
    initial: dict[tuple[str, tuple[str, ...]], int] = {}
    for source, groups in grouped:
        masked = mask_source(source.content, mask_strings=True)
        aliases = {
            d.unit_alias: graph.target_of(source.path, d.path)
            for d in source.imports
            if d.unit_alias is not None
        }
        for name, group in groups.items():
            refs: list[frozenset[Identity]] = []
            for declaration in group.declarations:
                text = masked[declaration.span.start : declaration.span.end]
                for token, member in iter_references(text):
                    target = aliases.get(token)
                    if target is not None and member is not None:
                        refs.append(frozenset(bound[target].get(member, ())))
                    else:
                        refs.append(frozenset(bound[source.path].get(token, ())))
            references[group.identity] = refs
            classes[group.identity] = initial.setdefault((name, group.normalized), len(initial))

    count = len(initial)
    while True:
        keys: dict[tuple[int, tuple[frozenset[int], ...]], int] = {}
        refined = {
            identity: keys.setdefault(
                (
                    classes[identity],
                    tuple(frozenset(classes[i] for i in refset) for refset in refs),
                ),
                len(keys),
            )
            for identity, refs in references.items()
        }
        if len(keys) == count:
            return refined
        classes, count = refined, len(keys)


def _fresh_name(name: str, taken: set[str], counters: dict[str, int]) -> str:
    counter = counters.get(name, 0)
    while True:
        counter += 1
        candidate = f"{name}_{counter}"
        if candidate not in taken:
            break
    counters[name] = counter
    taken.add(candidate)
    return candidate


def _merge_ranges(ranges: list[tuple[int, int]]) -> list[tuple[int, int]]:
    merged: list[tuple[int, int]] = []
    for start, end in sorted(ranges):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def _inside(position: int, ranges: list[tuple[int, int]]) -> bool:
    return any(start <= position < end for start, end in ranges)


def _license_expression(licenses: tuple[str, ...]) -> str:
    if len(licenses) == 1:
        return licenses[0]
    return " AND ".join(f"({value})" if " " in value else value for value in licenses)


def _join(blocks: list[tuple[str | None, str]]) -> tuple[str, dict[str, tuple[int, int]]]:
    """Join blocks with blank lines and record each file's byte range."""
    ranges: dict[str, tuple[int, int]] = {}
    offset = 0
    for index, (path, body) in enumerate(blocks):
        if index:
            offset += 2
        size = len(body.encode("utf-8"))
        if path is not None:
            ranges[path] = (offset, offset + size)
        offset += size
    text = "\n\n".join(body for _, body in blocks)
    return (text + "\n") if text else text, ranges
