"""Data models for version specifiers and their comparison."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


class SpecifierCategory(Enum):
    """Syntactic category of a dependency version specifier."""
    EXACT = "exact"          # 1.2.3
    CARET = "caret"          # ^1.2.3
    TILDE = "tilde"          # ~1.2.3
    RANGE = "range"          # >=1.0.0 <2.0.0
    X_RANGE = "x-range"      # 1.x, 1.2.x, *
    HYPHEN = "hyphen"        # 1.2.3 - 2.3.4
    OR = "or"                # >=1.0.0 || >=2.0.0
    GIT = "git"              # git+https://...
    FILE = "file"            # file:../local
    ALIAS = "alias"          # npm:package@version
    WORKSPACE = "workspace"  # workspace:*, workspace:^
    TAG = "tag"              # latest, next
    URL = "url"              # http(s) tarball URLs


class SpecClass(Enum):
    """Coarse comparison class; specifiers of different classes never compare equal."""
    SEMVER = "semver"
    GIT = "git"
    FILE = "file"
    TAG = "tag"
    URL = "url"
    ALIAS = "alias"
    WORKSPACE = "workspace"


CATEGORY_CLASS = {
    SpecifierCategory.EXACT: SpecClass.SEMVER,
    SpecifierCategory.CARET: SpecClass.SEMVER,
    SpecifierCategory.TILDE: SpecClass.SEMVER,
    SpecifierCategory.RANGE: SpecClass.SEMVER,
    SpecifierCategory.X_RANGE: SpecClass.SEMVER,
    SpecifierCategory.HYPHEN: SpecClass.SEMVER,
    SpecifierCategory.OR: SpecClass.SEMVER,
    SpecifierCategory.GIT: SpecClass.GIT,
    SpecifierCategory.FILE: SpecClass.FILE,
    SpecifierCategory.ALIAS: SpecClass.ALIAS,
    SpecifierCategory.WORKSPACE: SpecClass.WORKSPACE,
    SpecifierCategory.TAG: SpecClass.TAG,
    SpecifierCategory.URL: SpecClass.URL,
}


@dataclass(frozen=True)
class GitPayload:
    """Repository location plus the optional ref or semver range after '#'."""
    url: str
    committish: Optional[str] = None
    semver_range: Optional[str] = None


@dataclass(frozen=True)
class AliasPayload:
    """Target of an ``npm:<name>@<spec>`` alias."""
    name: str
    target: "VersionSpecifier"


@dataclass(frozen=True)
class WorkspacePayload:
    """Suffix of a ``workspace:`` specifier (``*``, ``^``, ``~`` or a range)."""
    workspace_range: str


Payload = Union[GitPayload, AliasPayload, WorkspacePayload]


@dataclass(frozen=True)
class VersionSpecifier:
    """Parsed dependency specifier; immutable and deterministic for a given input."""
    category: SpecifierCategory
    raw: str
    normalized: str
    payload: Optional[Payload] = None

    @property
    def spec_class(self) -> SpecClass:
        return CATEGORY_CLASS[self.category]


class Relation(Enum):
    """Relationship between an old and a new specifier (directional for narrowed/widened)."""
    IDENTICAL = "identical"
    NORMALIZED_EQUAL = "normalized-equal"
    SEMANTICALLY_EQUAL = "semantically-equal"
    SAME_MAJOR_CARET = "same-major-caret"
    SAME_MINOR_TILDE = "same-minor-tilde"
    NARROWED = "narrowed"
    WIDENED = "widened"
    PARTIALLY_OVERLAPPING = "partially-overlapping"
    DISJOINT = "disjoint"
    INCOMPATIBLE_TYPES = "incompatible-types"
    UNKNOWN_TYPE = "unknown-type"


EQUIVALENT_RELATIONS = frozenset({
    Relation.IDENTICAL,
    Relation.NORMALIZED_EQUAL,
    Relation.SEMANTICALLY_EQUAL,
    Relation.SAME_MAJOR_CARET,
    Relation.SAME_MINOR_TILDE,
})


@dataclass(frozen=True)
class SpecifierComparison:
    """Outcome of comparing two specifiers."""
    equivalent: bool
    relation: Relation
    detail: Optional[str] = None

    @classmethod
    def of(cls, relation: Relation, detail: Optional[str] = None) -> "SpecifierComparison":
        """Build a comparison whose ``equivalent`` flag follows from the relation."""
        return cls(equivalent=relation in EQUIVALENT_RELATIONS, relation=relation, detail=detail)


class SemanticChange(Enum):
    """Consumer-facing meaning of a dependency specifier change."""
    NONE = "none"
    EQUIVALENT = "equivalent"
    NARROWED = "narrowed"
    WIDENED = "widened"
    INCOMPATIBLE = "incompatible"


# Semantic changes that a consumer would never observe.
BENIGN_CHANGES = frozenset({SemanticChange.NONE, SemanticChange.EQUIVALENT})
