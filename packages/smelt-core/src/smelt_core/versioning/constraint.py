"""Version constraint parsing for ``pragma solidity`` directives.

A constraint is a union of version intervals. Parsing follows the npm-style
semver range syntax the Solidity compiler accepts:

- ``^0.8.1`` -> ``>=0.8.1 <0.9.0`` (the left-most non-zero component is fixed)
- ``~0.8.1`` -> ``>=0.8.1 <0.9.0``
- ``0.8.19`` / ``=0.8.19`` -> exactly 0.8.19
- ``0.8`` / ``0.8.x`` -> ``>=0.8.0 <0.9.0``; ``*`` -> any version
- ``>=0.6.0 <0.9.0`` -> conjunction; ``a || b`` -> disjunction
- ``0.6.0 - 0.8.4`` -> ``>=0.6.0 <=0.8.4``
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from packaging.version import InvalidVersion, Version

RE_COMPARATOR = re.compile(
    r"\s*(?P<op>\^|~|>=|<=|>|<|=)?\s*v?(?P<version>(?:\d+|[xX*])(?:\.(?:\d+|[xX*])){0,2})\s*"
)
RE_HYPHEN_RANGE = re.compile(r"^\s*(?P<low>\S+)\s+-\s+(?P<high>\S+)\s*$")

Parts = tuple[int | None, int | None, int | None]


def _parse_parts(text: str) -> Parts:
    """Split ``0.8`` / ``0.8.x`` / ``*`` into components (None = wildcard)."""
    values: list[int | None] = []
    for component in text.split("."):
        if component in ("x", "X", "*"):
            values.append(None)
        else:
            values.append(int(component))
    while len(values) < 3:
        values.append(None)
    # Anything after a wildcard is a wildcard too.
    for i in range(1, 3):
        if values[i - 1] is None:
            values[i] = None
    return values[0], values[1], values[2]


def _floor(parts: Parts) -> Version:
    return Version(".".join(str(p or 0) for p in parts))


def _next_after_partial(parts: Parts) -> Version:
    """Smallest version above every version matching a partial pattern."""
    major, minor, _ = parts
    assert major is not None
    if minor is None:
        return Version(f"{major + 1}.0.0")
    return Version(f"{major}.{minor + 1}.0")


def _is_full(parts: Parts) -> bool:
    return all(p is not None for p in parts)


@dataclass(frozen=True)
class VersionRange:
    """A single interval of versions; None bounds are open-ended."""

    lower: Version | None = None
    lower_inclusive: bool = True
    upper: Version | None = None
    upper_inclusive: bool = False

    @property
    def is_empty(self) -> bool:
        """Check if no version lies in the interval."""
        if self.lower is None or self.upper is None:
            return False
        if self.lower > self.upper:
            return True
        return self.lower == self.upper and not (self.lower_inclusive and self.upper_inclusive)

    def contains(self, version: Version) -> bool:
        """Check if a version lies in the interval."""
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True

    def intersect(self, other: VersionRange) -> VersionRange:
        """Return the interval common to both ranges (possibly empty)."""
        lower, lower_inclusive = self.lower, self.lower_inclusive
        if other.lower is not None:
            if lower is None or other.lower > lower:
                lower, lower_inclusive = other.lower, other.lower_inclusive
            elif other.lower == lower:
                lower_inclusive = lower_inclusive and other.lower_inclusive

        upper, upper_inclusive = self.upper, self.upper_inclusive
        if other.upper is not None:
            if upper is None or other.upper < upper:
                upper, upper_inclusive = other.upper, other.upper_inclusive
            elif other.upper == upper:
                upper_inclusive = upper_inclusive and other.upper_inclusive

        return VersionRange(lower, lower_inclusive, upper, upper_inclusive)

    def to_expression(self) -> str:
        """Render the interval in pragma syntax."""
        if (
            self.lower is not None
            and self.lower == self.upper
            and self.lower_inclusive
            and self.upper_inclusive
        ):
            return str(self.lower)
        parts: list[str] = []
        if self.lower is not None:
            parts.append(f"{'>=' if self.lower_inclusive else '>'}{self.lower}")
        if self.upper is not None:
            parts.append(f"{'<=' if self.upper_inclusive else '<'}{self.upper}")
        return " ".join(parts) if parts else "*"


def _comparator_range(op: str | None, text: str) -> VersionRange:
    parts = _parse_parts(text)
    if parts[0] is None:
        # "*", ">=*" and friends all mean any version
        return VersionRange()

    full = _is_full(parts)
    floor = _floor(parts)
    major, minor, patch = parts

    if op in (None, "="):
        if full:
            return VersionRange(floor, True, floor, True)
        return VersionRange(floor, True, _next_after_partial(parts), False)
    if op == "^":
        if major != 0 or minor is None:
            upper = Version(f"{major + 1}.0.0")
        elif minor != 0 or patch is None:
            upper = Version(f"0.{minor + 1}.0")
        else:
            upper = Version(f"0.0.{patch + 1}")
        return VersionRange(floor, True, upper, False)
    if op == "~":
        if minor is None:
            upper = Version(f"{major + 1}.0.0")
        else:
            upper = Version(f"{major}.{minor + 1}.0")
        return VersionRange(floor, True, upper, False)
    if op == ">=":
        return VersionRange(floor, True, None, False)
    if op == ">":
        if full:
            return VersionRange(floor, False, None, False)
        return VersionRange(_next_after_partial(parts), True, None, False)
    if op == "<":
        return VersionRange(None, True, floor, False)
    # "<="
    if full:
        return VersionRange(None, True, floor, True)
    return VersionRange(None, True, _next_after_partial(parts), False)


def _parse_alternative(text: str) -> VersionRange:
    hyphen = RE_HYPHEN_RANGE.match(text)
    if hyphen is not None:
        low = _comparator_range(">=", hyphen.group("low"))
        high = _comparator_range("<=", hyphen.group("high"))
        return low.intersect(high)

    result = VersionRange()
    position = 0
    stripped = text.strip()
    if not stripped:
        raise ValueError("Empty version constraint")
    while position < len(stripped):
        match = RE_COMPARATOR.match(stripped, position)
        if match is None or match.end() == position:
            raise ValueError(f"Invalid version constraint '{text.strip()}'")
        result = result.intersect(_comparator_range(match.group("op"), match.group("version")))
        position = match.end()
    return result


def _normalize(ranges: Iterable[VersionRange]) -> tuple[VersionRange, ...]:
    kept = [r for r in ranges if not r.is_empty]
    unique: list[VersionRange] = []
    for r in kept:
        if r not in unique:
            unique.append(r)
    return tuple(
        sorted(
            unique,
            key=lambda r: (r.lower is not None, r.lower or Version("0"), r.upper is None),
        )
    )


@dataclass(frozen=True)
class VersionConstraint:
    """A union of version ranges parsed from one or more pragma directives.

    Attributes:
        ranges: Non-empty intervals; an empty tuple means nothing satisfies.
        raw: Original directive text, when parsed from a single source.

    Example:
        >>> constraint = VersionConstraint.parse("^0.8.4")
        >>> constraint.contains("0.8.19")
        True
        >>> (constraint & VersionConstraint.parse("<0.8.10")).to_pragma()
        '>=0.8.4 <0.8.10'
    """

    ranges: tuple[VersionRange, ...] = (VersionRange(),)
    raw: str | None = None

    @classmethod
    def unconstrained(cls) -> VersionConstraint:
        """Constraint satisfied by every version."""
        return cls()

    @classmethod
    def parse(cls, expression: str) -> VersionConstraint:
        """Parse a ``pragma solidity`` expression.

        Raises:
            ValueError: If the expression is not valid range syntax.
        """
        alternatives = [_parse_alternative(alt) for alt in expression.split("||")]
        return cls(_normalize(alternatives), " ".join(expression.split()))

    @classmethod
    def parse_all(cls, expressions: Iterable[str]) -> VersionConstraint:
        """Intersect every directive of a file; no directive means unconstrained."""
        items = list(expressions)
        if not items:
            return cls.unconstrained()
        result = cls.parse(items[0])
        for expression in items[1:]:
            result = result & cls.parse(expression)
        return result

    def __and__(self, other: VersionConstraint) -> VersionConstraint:
        if other.is_unconstrained:
            return self
        if self.is_unconstrained:
            return other
        combined = _normalize(a.intersect(b) for a in self.ranges for b in other.ranges)
        return VersionConstraint(combined)

    @property
    def is_empty(self) -> bool:
        """Check if no version satisfies the constraint."""
        return not self.ranges

    @property
    def is_unconstrained(self) -> bool:
        """Check if every version satisfies the constraint."""
        return self.ranges == (VersionRange(),)

    def contains(self, version: str | Version) -> bool:
        """Check if a version satisfies the constraint."""
        if isinstance(version, str):
            try:
                version = Version(version)
            except InvalidVersion:
                return False
        return any(r.contains(version) for r in self.ranges)

    def same_versions(self, other: VersionConstraint) -> bool:
        """Check if both constraints describe the same intervals."""
        return self.ranges == other.ranges

    def to_pragma(self) -> str:
        """Render the constraint as a pragma expression."""
        if self.is_empty:
            return "<0.0.0"
        return " || ".join(r.to_expression() for r in self.ranges)

    def satisfying(self, versions: Iterable[str]) -> list[str]:
        """Versions satisfying the constraint, highest first."""
        matching = [v for v in versions if self.contains(v)]
        return sorted(matching, key=Version, reverse=True)

    def __str__(self) -> str:
        return self.raw if self.raw is not None else self.to_pragma()


def intersect_all(constraints: Iterable[VersionConstraint]) -> VersionConstraint:
    """Intersect constraints; an empty input is unconstrained."""
    combined = VersionConstraint.unconstrained()
    for constraint in constraints:
        combined = combined & constraint
    return combined


def preferred_directive(
    combined: VersionConstraint, members: Iterable[VersionConstraint]
) -> str | None:
    """Directive text for a combined constraint.

    A member directive is reused as written when it already describes the
    combined versions. None means unconstrained.
    """
    for member in members:
        if member.same_versions(combined):
            return str(member)
    if combined.is_unconstrained:
        return None
    return combined.to_pragma()
