"""
Dotted-numeric versions and version intervals.

Versions compare segment-wise as integers with the shorter sequence padded
with zeros, so ``7``, ``7.0`` and ``7.0.0`` are all equal. Ranges use the
usual interval notation::

    [7.0,9.0)   7.0 <= v < 9.0
    [7.3,*)     7.3 <= v
    5.0         same as [5.0,*)

Copyright 2025 Advanced Micro Devices, Inc.
All rights reserved.
"""

import re
from functools import total_ordering
from typing import Optional, Tuple

from compatmatrix.errors import ConfigurationError

UNBOUNDED = "*"

_RANGE_RE = re.compile(r"^\s*([\[(])\s*([^,\s]+)\s*,\s*([^\])\s]+)\s*([\])])\s*$")


class InvalidVersionError(ConfigurationError):
    """A version string is not dotted-numeric."""


class InvalidRangeError(ConfigurationError):
    """A version range has malformed or inverted bounds."""


def _strip_zeros(parts: Tuple[int, ...]) -> Tuple[int, ...]:
    parts = list(parts)
    while len(parts) > 1 and parts[-1] == 0:
        parts.pop()
    return tuple(parts)


@total_ordering
class Version:
    """An immutable dotted-numeric version such as ``7.3`` or ``11.0.2``."""

    __slots__ = ("_text", "_parts", "_key")

    def __init__(self, text):
        if isinstance(text, Version):
            text = text.text
        if isinstance(text, int):
            text = str(text)
        if not isinstance(text, str) or not text.strip():
            raise InvalidVersionError(f"Invalid version: {text!r}")
        text = text.strip()
        try:
            parts = tuple(int(segment) for segment in text.split("."))
        except ValueError:
            raise InvalidVersionError(f"Invalid version '{text}': segments must be numeric") from None
        if any(p < 0 for p in parts):
            raise InvalidVersionError(f"Invalid version '{text}': segments must be non-negative")
        self._text = text
        self._parts = parts
        self._key = _strip_zeros(parts)

    @classmethod
    def parse(cls, text) -> "Version":
        return cls(text)

    @property
    def text(self) -> str:
        return self._text

    @property
    def parts(self) -> Tuple[int, ...]:
        return self._parts

    @property
    def major(self) -> int:
        return self._parts[0]

    @property
    def minor(self) -> int:
        return self._parts[1] if len(self._parts) > 1 else 0

    def _padded(self, other: "Version"):
        width = max(len(self._parts), len(other._parts))
        mine = self._parts + (0,) * (width - len(self._parts))
        theirs = other._parts + (0,) * (width - len(other._parts))
        return mine, theirs

    def __eq__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        mine, theirs = self._padded(other)
        return mine < theirs

    def __hash__(self):
        return hash(self._key)

    def __str__(self):
        return self._text

    def __repr__(self):
        return f"Version('{self._text}')"


class VersionRange:
    """
    An interval of versions, optionally unbounded above.

    The lower bound is always present. ``upper=None`` means the range is
    open-ended. Construction fails with InvalidRangeError when the lower
    bound lies above the upper bound, or when equal bounds exclude
    themselves (an empty interval).
    """

    __slots__ = ("lower", "upper", "lower_inclusive", "upper_inclusive")

    def __init__(self, lower, upper=None, lower_inclusive: bool = True, upper_inclusive: bool = False):
        try:
            self.lower = Version(lower)
            self.upper = Version(upper) if upper is not None else None
        except InvalidVersionError as e:
            raise InvalidRangeError(str(e)) from None
        self.lower_inclusive = lower_inclusive
        self.upper_inclusive = upper_inclusive if self.upper is not None else False

        if self.upper is not None:
            if self.lower > self.upper:
                raise InvalidRangeError(f"Lower bound {self.lower} is greater than upper bound {self.upper}")
            if self.lower == self.upper and not (self.lower_inclusive and self.upper_inclusive):
                raise InvalidRangeError(f"Range {self._render()} is empty")

    @classmethod
    def parse(cls, text) -> "VersionRange":
        """Parse interval notation, or a bare version meaning ``[v,*)``."""
        if isinstance(text, VersionRange):
            return text
        if not isinstance(text, str) or not text.strip():
            raise InvalidRangeError(f"Invalid version range: {text!r}")
        text = text.strip()
        if text[0] not in "[(":
            return cls(text)

        m = _RANGE_RE.match(text)
        if not m:
            raise InvalidRangeError(f"Invalid version range: '{text}'")
        open_bracket, lower, upper, close_bracket = m.groups()
        if lower == UNBOUNDED:
            raise InvalidRangeError(f"Invalid version range '{text}': lower bound is required")
        if upper == UNBOUNDED:
            if close_bracket == "]":
                raise InvalidRangeError(f"Invalid version range '{text}': unbounded upper end must be open")
            return cls(lower, None, lower_inclusive=open_bracket == "[")
        return cls(lower, upper, lower_inclusive=open_bracket == "[", upper_inclusive=close_bracket == "]")

    @property
    def bounded(self) -> bool:
        return self.upper is not None

    def contains(self, version) -> bool:
        v = Version(version)
        if v < self.lower or (v == self.lower and not self.lower_inclusive):
            return False
        if self.upper is None:
            return True
        if v > self.upper or (v == self.upper and not self.upper_inclusive):
            return False
        return True

    def __contains__(self, version):
        return self.contains(version)

    def intersect(self, other: "VersionRange") -> Optional["VersionRange"]:
        """Return the overlapping range, or None when the ranges are disjoint."""
        if self.lower > other.lower:
            lower, lower_inclusive = self.lower, self.lower_inclusive
        elif other.lower > self.lower:
            lower, lower_inclusive = other.lower, other.lower_inclusive
        else:
            lower, lower_inclusive = self.lower, self.lower_inclusive and other.lower_inclusive

        if self.upper is None:
            upper, upper_inclusive = other.upper, other.upper_inclusive
        elif other.upper is None:
            upper, upper_inclusive = self.upper, self.upper_inclusive
        elif self.upper < other.upper:
            upper, upper_inclusive = self.upper, self.upper_inclusive
        elif other.upper < self.upper:
            upper, upper_inclusive = other.upper, other.upper_inclusive
        else:
            upper, upper_inclusive = self.upper, self.upper_inclusive and other.upper_inclusive

        if upper is not None:
            if lower > upper:
                return None
            if lower == upper and not (lower_inclusive and upper_inclusive):
                return None
        return VersionRange(lower, upper, lower_inclusive=lower_inclusive, upper_inclusive=upper_inclusive)

    def _render(self) -> str:
        left = "[" if self.lower_inclusive else "("
        if self.upper is None:
            return f"{left}{self.lower},{UNBOUNDED})"
        right = "]" if self.upper_inclusive else ")"
        return f"{left}{self.lower},{self.upper}{right}"

    def __str__(self):
        return self._render()

    def __repr__(self):
        return f"VersionRange('{self._render()}')"

    def __eq__(self, other):
        if not isinstance(other, VersionRange):
            return NotImplemented
        return (
            self.lower == other.lower
            and self.upper == other.upper
            and self.lower_inclusive == other.lower_inclusive
            and self.upper_inclusive == other.upper_inclusive
        )

    def __hash__(self):
        return hash((self.lower, self.upper, self.lower_inclusive, self.upper_inclusive))
