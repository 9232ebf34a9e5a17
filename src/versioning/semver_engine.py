"""npm semver range grammar and range algebra built on semantic_version.

Ranges follow node-semver's loose grammar and desugar into comparator sets
the same way node-semver does (``^1.2.3`` becomes ``>=1.2.3 <2.0.0-0``).
Each comparator set is then treated as an interval over the total semver
ordering, prereleases included, so subset and intersection questions can be
answered exactly instead of by sampling versions.

All public methods return ``(value, error)`` tuples and never raise.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import semantic_version

logger = logging.getLogger(__name__)

_NUM = r"\d+"
_XNUM = r"\d+|[xX*]"
_IDENT = r"[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*"

_FULL_VERSION_RE = re.compile(
    rf"^\s*[v=\s]*({_NUM})\.({_NUM})\.({_NUM})(?:-?({_IDENT}))?(?:\+{_IDENT})?\s*$"
)


def _partial(prefix: str = "") -> str:
    return (
        rf"[v=\s]*(?P<{prefix}major>{_XNUM})"
        rf"(?:\.(?P<{prefix}minor>{_XNUM})"
        rf"(?:\.(?P<{prefix}patch>{_XNUM})"
        rf"(?:-?(?P<{prefix}pre>{_IDENT}))?(?:\+{_IDENT})?)?)?"
    )


_HYPHEN_RE = re.compile(rf"^\s*{_partial('from_')}\s+-\s+{_partial('to_')}\s*$")
_CARET_RE = re.compile(rf"^\^{_partial()}$")
_TILDE_RE = re.compile(rf"^~>?{_partial()}$")
_PRIMITIVE_RE = re.compile(rf"^(?P<op><=|>=|<|>|=)?{_partial()}$")
_OP_SPACE_RE = re.compile(r"(<=|>=|~>|<|>|=|~|\^)\s+")
_OR_SPLIT_RE = re.compile(r"\s*\|\|\s*")

Parts = Tuple[Optional[int], Optional[int], Optional[int], Optional[str]]


def _version(major: int, minor: int, patch: int, pre: Optional[str] = None) -> semantic_version.Version:
    text = f"{major}.{minor}.{patch}"
    if pre:
        text = f"{text}-{pre}"
    return semantic_version.Version(text)


ZERO = _version(0, 0, 0, "0")


@dataclass(frozen=True)
class Comparator:
    """A primitive comparator such as ``>=1.2.3``; ``=`` means an exact version."""
    op: str
    version: semantic_version.Version

    def render(self) -> str:
        if self.op == "=":
            return str(self.version)
        return f"{self.op}{self.version}"


NULL_COMPARATOR = Comparator("<", ZERO)


@dataclass(frozen=True)
class Interval:
    """Contiguous span of versions; ``high=None`` means unbounded above."""
    low: semantic_version.Version
    low_inclusive: bool
    high: Optional[semantic_version.Version]
    high_inclusive: bool

    def is_empty(self) -> bool:
        if self.high is None or self.low < self.high:
            return False
        if self.low == self.high:
            return not (self.low_inclusive and self.high_inclusive)
        return True

    def contains_version(self, version: semantic_version.Version) -> bool:
        if version < self.low or (version == self.low and not self.low_inclusive):
            return False
        if self.high is None:
            return True
        return version < self.high or (version == self.high and self.high_inclusive)

    def covers(self, inner: "Interval") -> bool:
        """Return True if every version of ``inner`` lies in this interval."""
        low_ok = self.low < inner.low or (
            self.low == inner.low and (self.low_inclusive or not inner.low_inclusive)
        )
        if self.high is None:
            high_ok = True
        elif inner.high is None:
            high_ok = False
        else:
            high_ok = inner.high < self.high or (
                inner.high == self.high and (self.high_inclusive or not inner.high_inclusive)
            )
        return low_ok and high_ok


@dataclass(frozen=True)
class NpmRange:
    """A parsed range: a union of comparator sets (an empty set matches everything)."""
    sets: Tuple[Tuple[Comparator, ...], ...]

    @property
    def normalized(self) -> str:
        rendered = []
        for comparators in self.sets:
            rendered.append(" ".join(c.render() for c in comparators) or "*")
        return "||".join(rendered)

    def intervals(self) -> List[Interval]:
        return [_to_interval(comparators) for comparators in self.sets]


def _to_interval(comparators: Tuple[Comparator, ...]) -> Interval:
    low, low_inclusive = ZERO, True
    high: Optional[semantic_version.Version] = None
    high_inclusive = False
    for comp in comparators:
        if comp.op in (">", ">=", "="):
            inclusive = comp.op != ">"
            if comp.version > low or (comp.version == low and not inclusive):
                low, low_inclusive = comp.version, inclusive
        if comp.op in ("<", "<=", "="):
            inclusive = comp.op != "<"
            if high is None or comp.version < high or (comp.version == high and not inclusive):
                high, high_inclusive = comp.version, inclusive
    return Interval(low, low_inclusive, high, high_inclusive)


def _merge(intervals: List[Interval]) -> List[Interval]:
    """Merge overlapping or touching intervals into a sorted disjoint union."""
    items = sorted(
        (i for i in intervals if not i.is_empty()),
        key=lambda i: (i.low, not i.low_inclusive),
    )
    merged: List[Interval] = []
    for item in items:
        if merged and _touches(merged[-1], item):
            merged[-1] = _union(merged[-1], item)
        else:
            merged.append(item)
    return merged


def _touches(first: Interval, second: Interval) -> bool:
    if first.high is None or second.low < first.high:
        return True
    return second.low == first.high and (first.high_inclusive or second.low_inclusive)


def _union(first: Interval, second: Interval) -> Interval:
    if first.high is None or second.high is None:
        high, high_inclusive = None, False
    elif first.high > second.high:
        high, high_inclusive = first.high, first.high_inclusive
    elif second.high > first.high:
        high, high_inclusive = second.high, second.high_inclusive
    else:
        high, high_inclusive = first.high, first.high_inclusive or second.high_inclusive
    return Interval(first.low, first.low_inclusive, high, high_inclusive)


def _overlaps(first: Interval, second: Interval) -> bool:
    if first.low > second.low:
        low, low_inclusive = first.low, first.low_inclusive
    elif second.low > first.low:
        low, low_inclusive = second.low, second.low_inclusive
    else:
        low, low_inclusive = first.low, first.low_inclusive and second.low_inclusive

    if first.high is None:
        high, high_inclusive = second.high, second.high_inclusive
    elif second.high is None or first.high < second.high:
        high, high_inclusive = first.high, first.high_inclusive
    elif second.high < first.high:
        high, high_inclusive = second.high, second.high_inclusive
    else:
        high, high_inclusive = first.high, first.high_inclusive and second.high_inclusive
    return not Interval(low, low_inclusive, high, high_inclusive).is_empty()


def _is_x(value: Optional[str]) -> bool:
    return value is None or value in ("x", "X", "*")


def _parts(match: "re.Match[str]", prefix: str = "") -> Parts:
    """Extract (major, minor, patch, prerelease); everything after a wildcard is a wildcard."""
    raw = [match.group(f"{prefix}major"), match.group(f"{prefix}minor"), match.group(f"{prefix}patch")]
    numbers: List[Optional[int]] = []
    wildcard = False
    for value in raw:
        wildcard = wildcard or _is_x(value)
        numbers.append(None if wildcard else int(value))
    pre = None if wildcard else match.group(f"{prefix}pre")
    return numbers[0], numbers[1], numbers[2], pre


def _expand_caret(parts: Parts) -> List[Comparator]:
    major, minor, patch, pre = parts
    if major is None:
        return []
    if minor is None:
        return [Comparator(">=", _version(major, 0, 0)), Comparator("<", _version(major + 1, 0, 0, "0"))]
    if patch is None:
        if major == 0:
            return [Comparator(">=", _version(0, minor, 0)), Comparator("<", _version(0, minor + 1, 0, "0"))]
        return [Comparator(">=", _version(major, minor, 0)), Comparator("<", _version(major + 1, 0, 0, "0"))]
    lower = Comparator(">=", _version(major, minor, patch, pre))
    if major == 0 and minor == 0:
        upper = _version(0, 0, patch + 1, "0")
    elif major == 0:
        upper = _version(0, minor + 1, 0, "0")
    else:
        upper = _version(major + 1, 0, 0, "0")
    return [lower, Comparator("<", upper)]


def _expand_tilde(parts: Parts) -> List[Comparator]:
    major, minor, patch, pre = parts
    if major is None:
        return []
    if minor is None:
        return [Comparator(">=", _version(major, 0, 0)), Comparator("<", _version(major + 1, 0, 0, "0"))]
    lower = _version(major, minor, 0) if patch is None else _version(major, minor, patch, pre)
    return [Comparator(">=", lower), Comparator("<", _version(major, minor + 1, 0, "0"))]


def _expand_primitive(op: str, parts: Parts) -> List[Comparator]:
    major, minor, patch, pre = parts
    any_x = patch is None
    if op == "=" and any_x:
        op = ""
    if major is None:
        if op in (">", "<"):
            return [NULL_COMPARATOR]
        return []
    if op and any_x:
        minor_x = minor is None
        minor = 0 if minor_x else minor
        patch = 0
        if op == ">":
            op = ">="
            if minor_x:
                major, minor = major + 1, 0
            else:
                minor += 1
        elif op == "<=":
            op = "<"
            if minor_x:
                major += 1
            else:
                minor += 1
        pre_tag = "0" if op == "<" else None
        return [Comparator(op, _version(major, minor, patch, pre_tag))]
    if minor is None:
        return [Comparator(">=", _version(major, 0, 0)), Comparator("<", _version(major + 1, 0, 0, "0"))]
    if patch is None:
        return [Comparator(">=", _version(major, minor, 0)), Comparator("<", _version(major, minor + 1, 0, "0"))]
    return [Comparator(op or "=", _version(major, minor, patch, pre))]


def _expand_hyphen(match: "re.Match[str]") -> List[Comparator]:
    f_major, f_minor, f_patch, f_pre = _parts(match, "from_")
    t_major, t_minor, t_patch, t_pre = _parts(match, "to_")
    comparators = []
    if f_major is not None:
        if f_minor is None:
            comparators.append(Comparator(">=", _version(f_major, 0, 0)))
        elif f_patch is None:
            comparators.append(Comparator(">=", _version(f_major, f_minor, 0)))
        else:
            comparators.append(Comparator(">=", _version(f_major, f_minor, f_patch, f_pre)))
    if t_major is not None:
        if t_minor is None:
            comparators.append(Comparator("<", _version(t_major + 1, 0, 0, "0")))
        elif t_patch is None:
            comparators.append(Comparator("<", _version(t_major, t_minor + 1, 0, "0")))
        else:
            comparators.append(Comparator("<=", _version(t_major, t_minor, t_patch, t_pre)))
    return comparators


def _expand_token(token: str) -> List[Comparator]:
    match = _CARET_RE.match(token)
    if match:
        return _expand_caret(_parts(match))
    match = _TILDE_RE.match(token)
    if match:
        return _expand_tilde(_parts(match))
    match = _PRIMITIVE_RE.match(token)
    if match:
        return _expand_primitive(match.group("op") or "", _parts(match))
    raise ValueError(f"Invalid comparator: {token!r}")


def _parse_set(text: str) -> Tuple[Comparator, ...]:
    match = _HYPHEN_RE.match(text)
    if match:
        comparators = _expand_hyphen(match)
    else:
        comparators = []
        for token in _OP_SPACE_RE.sub(r"\1", text.strip()).split():
            comparators.extend(_expand_token(token))

    if NULL_COMPARATOR in comparators:
        return (NULL_COMPARATOR,)
    unique: List[Comparator] = []
    for comp in comparators:
        if comp not in unique:
            unique.append(comp)
    return tuple(unique)


class SemverEngine:
    """npm-flavoured semver capability used by the specifier parser and comparator.

    Stateless; a single instance may be shared freely between threads.
    """

    def valid_version(self, text: str) -> Tuple[Optional[str], Optional[str]]:
        """Return the cleaned version string (``v1.2.3`` -> ``1.2.3``) or an error."""
        match = _FULL_VERSION_RE.match(text or "")
        if not match:
            return None, f"Invalid version: {text!r}"
        major, minor, patch, pre = match.groups()
        try:
            version = _version(int(major), int(minor), int(patch), pre)
        except ValueError as exc:
            return None, str(exc)
        return str(version), None

    def parse_range(self, text: str) -> Tuple[Optional[NpmRange], Optional[str]]:
        """Parse an npm range expression into comparator sets."""
        if text is None:
            return None, "Range is missing"
        try:
            sets = [_parse_set(part) for part in _OR_SPLIT_RE.split(text.strip())]
        except ValueError as exc:
            return None, str(exc)

        if len(sets) > 1:
            usable = [s for s in sets if s != (NULL_COMPARATOR,)]
            sets = usable or sets[:1]
        if any(len(s) == 0 for s in sets):
            sets = [()]
        return NpmRange(tuple(sets)), None

    def normalize_range(self, text: str) -> Tuple[Optional[str], Optional[str]]:
        parsed, error = self.parse_range(text)
        if parsed is None:
            return None, error
        return parsed.normalized, None

    def min_version(self, text: str) -> Tuple[Optional[semantic_version.Version], Optional[str]]:
        """Return the lowest version satisfying the range."""
        parsed, error = self.parse_range(text)
        if parsed is None:
            return None, error
        candidates = []
        for interval in parsed.intervals():
            if interval.is_empty():
                continue
            if interval.low == ZERO and interval.low_inclusive:
                release = _version(0, 0, 0)
                candidate = release if interval.contains_version(release) else ZERO
            elif interval.low_inclusive:
                candidate = interval.low
            elif interval.low.prerelease:
                low = interval.low
                candidate = _version(low.major, low.minor, low.patch, ".".join(low.prerelease + ("0",)))
            else:
                low = interval.low
                candidate = _version(low.major, low.minor, low.patch + 1)
            if interval.contains_version(candidate):
                candidates.append(candidate)
        if not candidates:
            return None, f"No version satisfies {text!r}"
        return min(candidates), None

    def subset(self, sub: str, sup: str) -> Tuple[Optional[bool], Optional[str]]:
        """Return whether every version in ``sub`` (prereleases included) is in ``sup``."""
        sub_range, error = self.parse_range(sub)
        if sub_range is None:
            return None, error
        sup_range, error = self.parse_range(sup)
        if sup_range is None:
            return None, error
        covering = _merge(sup_range.intervals())
        for interval in sub_range.intervals():
            if interval.is_empty():
                continue
            if not any(outer.covers(interval) for outer in covering):
                return False, None
        return True, None

    def intersects(self, first: str, second: str) -> Tuple[Optional[bool], Optional[str]]:
        """Return whether at least one version satisfies both ranges."""
        first_range, error = self.parse_range(first)
        if first_range is None:
            return None, error
        second_range, error = self.parse_range(second)
        if second_range is None:
            return None, error
        for left in first_range.intervals():
            for right in second_range.intervals():
                if not left.is_empty() and not right.is_empty() and _overlaps(left, right):
                    return True, None
        return False, None

    def satisfies(self, version: str, range_text: str) -> Tuple[Optional[bool], Optional[str]]:
        cleaned, error = self.valid_version(version)
        if cleaned is None:
            return None, error
        parsed, error = self.parse_range(range_text)
        if parsed is None:
            return None, error
        target = semantic_version.Version(cleaned)
        return any(i.contains_version(target) for i in parsed.intervals()), None


DEFAULT_ENGINE = SemverEngine()
