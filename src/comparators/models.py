"""Data models for manifest, dependency and file comparison results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple

from versioning.models import BENIGN_CHANGES, SemanticChange


class DependencyClass(Enum):
    """Dependency classes that reach consumers; values are the manifest field names."""
    RUNTIME = "dependencies"
    PEER = "peerDependencies"
    OPTIONAL = "optionalDependencies"
    BUNDLED = "bundledDependencies"


class ChangeAction(Enum):
    """What happened to a dependency entry."""
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


class FileAction(Enum):
    """What happened to a file between two archives."""
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


class Significance(Enum):
    """How likely a change is to be observed by consumers."""
    CRITICAL = "critical"
    SIGNIFICANT = "significant"
    INFORMATIONAL = "informational"


@dataclass(frozen=True)
class CompareOptions:
    """Options shared by the manifest and dependency comparators."""
    include_optional_deps: bool = True
    additional_significant_fields: Tuple[str, ...] = ()
    ignore_fields: Tuple[str, ...] = ()
    treat_narrowing_as_equivalent: bool = True


@dataclass(frozen=True)
class DependencyChange:
    """One added, removed or changed dependency entry."""
    name: str
    dependency_class: DependencyClass
    action: ChangeAction
    semantic_change: SemanticChange
    old_spec: Optional[str] = None
    new_spec: Optional[str] = None

    @property
    def is_significant(self) -> bool:
        return self.semantic_change not in BENIGN_CHANGES

    @property
    def field_path(self) -> str:
        return f"{self.dependency_class.value}.{self.name}"


@dataclass(frozen=True)
class DependencyComparison:
    has_changes: bool
    changes: Tuple[DependencyChange, ...] = ()
    significant_changes: Tuple[DependencyChange, ...] = ()


@dataclass(frozen=True)
class FieldChange:
    """A manifest field whose value differs between the two manifests."""
    field: str
    old_value: Any
    new_value: Any
    significance: Significance


@dataclass(frozen=True)
class ManifestComparison:
    has_significant_changes: bool
    field_changes: Tuple[FieldChange, ...] = ()
    dependency_changes: Tuple[DependencyChange, ...] = ()
    summary: str = "No significant changes"


@dataclass(frozen=True)
class FileChange:
    path: str
    action: FileAction


@dataclass(frozen=True)
class FileComparison:
    """Result of a path-by-path, byte-exact comparison of two file trees."""
    identical: bool
    file_changes: Tuple[FileChange, ...] = field(default_factory=tuple)
    manifest_only: bool = False


@dataclass(frozen=True)
class FieldSignificanceTables:
    """Fixed manifest field classification.

    The three sets are disjoint. Caller options are merged per call by
    ``resolve`` and never change the tables themselves.
    """
    critical: frozenset
    significant: frozenset
    never_significant: frozenset

    def resolve(self, options: Optional[CompareOptions] = None) -> Tuple[str, ...]:
        """Return the fields to compare, in table order then caller order."""
        options = options or CompareOptions()
        ignored = set(options.ignore_fields) | self.never_significant
        fields = [f for f in CRITICAL_FIELDS + SIGNIFICANT_FIELDS if f in self.critical or f in self.significant]
        fields.extend(sorted((self.critical | self.significant) - set(fields)))
        for extra in options.additional_significant_fields:
            if extra not in fields:
                fields.append(extra)
        return tuple(f for f in fields if f not in ignored)

    def significance_of(self, field_name: str) -> Significance:
        if field_name in self.critical:
            return Significance.CRITICAL
        return Significance.SIGNIFICANT


CRITICAL_FIELDS = ("name", "version", "main", "module", "exports", "bin", "types", "typings")
SIGNIFICANT_FIELDS = (
    "browser", "type", "files", "engines", "os", "cpu", "peerDependenciesMeta", "packageManager",
)
NEVER_SIGNIFICANT_FIELDS = (
    # dev only
    "devDependencies", "scripts",
    # descriptive metadata
    "repository", "homepage", "bugs", "author", "contributors", "license",
    "keywords", "description", "readme", "readmeFilename",
    # registry bookkeeping
    "private", "publishConfig", "gitHead", "dist",
    "_id", "_from", "_resolved", "_integrity", "_nodeVersion", "_npmVersion",
    "_npmUser", "_shasum", "_npmOperationalInternal",
)

DEFAULT_FIELD_TABLES = FieldSignificanceTables(
    critical=frozenset(CRITICAL_FIELDS),
    significant=frozenset(SIGNIFICANT_FIELDS),
    never_significant=frozenset(NEVER_SIGNIFICANT_FIELDS),
)
