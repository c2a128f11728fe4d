"""Item Version Identifiers

Items carry free-form version tokens such as "1.0", "2.1.3" or "v3-rc1".
Tokens compare segment by segment: numeric segments numerically, anything
else as text, so "1.10" orders after "1.9".
"""

import re
from functools import total_ordering
from typing import Any, Tuple, Union

DEFAULT_VERSION = "1.0"

_SEGMENT_SPLIT = re.compile(r"[.\-_+]")


def _sort_key(raw: str) -> Tuple[Tuple[int, Any], ...]:
    token = raw[1:] if raw[:1] in ("v", "V") else raw
    key = []
    for segment in _SEGMENT_SPLIT.split(token):
        if segment.isdigit():
            key.append((0, int(segment)))
        else:
            # Text segments sort after numbers ("1.0" < "1.rc")
            key.append((1, segment))
    return tuple(key)


@total_ordering
class Version:
    """Comparable version identifier.

    Equality and ordering use the parsed segments; the original token is
    kept in ``raw`` for display and for exact pin comparisons.
    """

    __slots__ = ("raw", "_key")

    def __init__(self, raw: Union[str, int, float]):
        self.raw = str(raw).strip()
        self._key = _sort_key(self.raw)

    @classmethod
    def parse(cls, value: Union["Version", str, int, float]) -> "Version":
        if isinstance(value, Version):
            return value
        return cls(value)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, (str, int, float)):
            other = Version(other)
        if not isinstance(other, Version):
            return NotImplemented
        return self._key == other._key

    def __lt__(self, other: object) -> bool:
        if isinstance(other, (str, int, float)):
            other = Version(other)
        if not isinstance(other, Version):
            return NotImplemented
        return self._key < other._key

    def __hash__(self) -> int:
        return hash(self._key)

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"Version({self.raw!r})"


def is_regression(current: str, proposed: str) -> bool:
    """Return True if ``proposed`` orders before ``current``.

    Item versions are non-decreasing across edits, so a proposed version
    below the live one cannot be a real edit.
    """
    return Version.parse(proposed) < Version.parse(current)
