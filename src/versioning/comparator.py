"""Semantic comparison of dependency specifiers.

``compare`` answers "would these two specifiers accept the same versions?"
for an old -> new change. ``narrowed`` and ``widened`` are directional: the
first argument is the old (published) specifier, the second the new one.
"""

from __future__ import annotations

import logging
from typing import Optional

from common.logging_utils import extra_context, is_debug_enabled

from .models import (
    AliasPayload,
    GitPayload,
    Relation,
    SemanticChange,
    SpecClass,
    SpecifierCategory,
    SpecifierComparison,
    VersionSpecifier,
    WorkspacePayload,
)
from .parser import SpecifierParser
from .semver_engine import DEFAULT_ENGINE, SemverEngine

logger = logging.getLogger(__name__)


class SpecifierComparator:
    """Compare specifiers using an injected semver engine."""

    def __init__(self, engine: Optional[SemverEngine] = None, parser: Optional[SpecifierParser] = None):
        self.engine = engine or DEFAULT_ENGINE
        self.parser = parser or SpecifierParser(self.engine)

    def compare(self, old_spec: str, new_spec: str, context_path: Optional[str] = None) -> SpecifierComparison:
        """Compare ``old_spec`` against ``new_spec``.

        Args:
            old_spec: Specifier of the published package.
            new_spec: Specifier of the local package.
            context_path: Directory used to resolve ``file:`` specifiers.

        Returns:
            SpecifierComparison: Never raises; malformed input yields a
            non-equivalent relation.
        """
        if old_spec == new_spec:
            return SpecifierComparison.of(Relation.IDENTICAL)

        old = self.parser.parse(old_spec, context_path)
        new = self.parser.parse(new_spec, context_path)
        return self.compare_parsed(old, new, context_path)

    def compare_parsed(
        self, old: VersionSpecifier, new: VersionSpecifier, context_path: Optional[str] = None
    ) -> SpecifierComparison:
        if old.raw == new.raw:
            return SpecifierComparison.of(Relation.IDENTICAL)

        if SpecifierCategory.WORKSPACE in (old.category, new.category):
            return self._compare_workspace(old, new)

        if SpecifierCategory.ALIAS in (old.category, new.category):
            return self._compare_alias(old, new, context_path)

        if old.spec_class != new.spec_class:
            return SpecifierComparison.of(
                Relation.INCOMPATIBLE_TYPES,
                f"{old.category.value} vs {new.category.value}",
            )

        spec_class = old.spec_class
        if spec_class == SpecClass.SEMVER:
            return self.compare_ranges(old.raw, new.raw)
        if spec_class == SpecClass.GIT:
            return self._compare_git(old, new)
        if spec_class == SpecClass.FILE:
            return self._compare_opaque(old, new, "Different file paths")
        if spec_class == SpecClass.TAG:
            return self._compare_opaque(old, new, "Different tags")
        if spec_class == SpecClass.URL:
            return self._compare_opaque(old, new, "Different URLs")
        return SpecifierComparison.of(Relation.UNKNOWN_TYPE, old.category.value)

    def compare_ranges(self, old_range: str, new_range: str) -> SpecifierComparison:
        """Compare two semver ranges, applying the same-family heuristics first."""
        old_normalized, old_error = self.engine.normalize_range(old_range)
        new_normalized, new_error = self.engine.normalize_range(new_range)
        if old_normalized is None or new_normalized is None:
            return SpecifierComparison.of(Relation.INCOMPATIBLE_TYPES, old_error or new_error)

        if old_normalized == new_normalized:
            return SpecifierComparison.of(Relation.NORMALIZED_EQUAL)

        old_trimmed, new_trimmed = old_range.strip(), new_range.strip()
        # Family shortcuts only apply to single-set ranges.
        single_set = "||" not in old_trimmed and "||" not in new_trimmed
        if single_set and old_trimmed.startswith("^") and new_trimmed.startswith("^"):
            old_min, _ = self.engine.min_version(old_range)
            new_min, _ = self.engine.min_version(new_range)
            if old_min is not None and new_min is not None and old_min.major == new_min.major:
                return SpecifierComparison.of(Relation.SAME_MAJOR_CARET)

        if single_set and old_trimmed.startswith("~") and new_trimmed.startswith("~"):
            old_min, _ = self.engine.min_version(old_range)
            new_min, _ = self.engine.min_version(new_range)
            if (
                old_min is not None
                and new_min is not None
                and (old_min.major, old_min.minor) == (new_min.major, new_min.minor)
            ):
                return SpecifierComparison.of(Relation.SAME_MINOR_TILDE)

        new_in_old = self._proven(self.engine.subset(new_range, old_range), "subset")
        old_in_new = self._proven(self.engine.subset(old_range, new_range), "subset")
        if new_in_old and old_in_new:
            return SpecifierComparison.of(Relation.SEMANTICALLY_EQUAL)
        if new_in_old:
            return SpecifierComparison.of(Relation.NARROWED, "new range is subset of old")
        if old_in_new:
            return SpecifierComparison.of(Relation.WIDENED, "old range is subset of new")

        if self._proven(self.engine.intersects(old_range, new_range), "intersects"):
            return SpecifierComparison.of(Relation.PARTIALLY_OVERLAPPING)
        return SpecifierComparison.of(Relation.DISJOINT)

    @staticmethod
    def _proven(result, operation: str) -> bool:
        """Collapse a ``(value, error)`` pair; an error means nothing was proven."""
        value, error = result
        if error is not None and is_debug_enabled(logger):
            logger.debug(
                "Range algebra failed",
                extra=extra_context(
                    event="range_algebra",
                    component="specifier_comparator",
                    action=operation,
                    outcome="error",
                    context=error,
                ),
            )
        return bool(value)

    @staticmethod
    def _compare_workspace(old: VersionSpecifier, new: VersionSpecifier) -> SpecifierComparison:
        if not (isinstance(old.payload, WorkspacePayload) and isinstance(new.payload, WorkspacePayload)):
            return SpecifierComparison.of(Relation.INCOMPATIBLE_TYPES, "workspace vs non-workspace")
        if old.payload.workspace_range == new.payload.workspace_range:
            return SpecifierComparison.of(Relation.IDENTICAL)
        return SpecifierComparison.of(Relation.DISJOINT, "Different workspace specifiers")

    def _compare_alias(
        self, old: VersionSpecifier, new: VersionSpecifier, context_path: Optional[str]
    ) -> SpecifierComparison:
        old_target = old.payload.target if isinstance(old.payload, AliasPayload) else None
        new_target = new.payload.target if isinstance(new.payload, AliasPayload) else None
        if old_target is not None and new_target is not None:
            if old.payload.name != new.payload.name:
                return SpecifierComparison.of(Relation.DISJOINT, "Different alias targets")
            return self.compare_parsed(old_target, new_target, context_path)
        if old_target is not None:
            return self.compare_parsed(old_target, new, context_path)
        if new_target is not None:
            return self.compare_parsed(old, new_target, context_path)
        return SpecifierComparison.of(Relation.INCOMPATIBLE_TYPES)

    def _compare_git(self, old: VersionSpecifier, new: VersionSpecifier) -> SpecifierComparison:
        old_git, new_git = old.payload, new.payload
        if not (isinstance(old_git, GitPayload) and isinstance(new_git, GitPayload)):
            return SpecifierComparison.of(Relation.INCOMPATIBLE_TYPES)
        if old_git.url != new_git.url:
            return SpecifierComparison.of(Relation.DISJOINT, "Different git URLs")
        if old_git.committish and new_git.committish:
            if old_git.committish == new_git.committish:
                return SpecifierComparison.of(Relation.IDENTICAL)
            return SpecifierComparison.of(Relation.DISJOINT, "Different committish")
        if old_git.semver_range and new_git.semver_range:
            return self.compare_ranges(old_git.semver_range, new_git.semver_range)
        if not any((old_git.committish, new_git.committish, old_git.semver_range, new_git.semver_range)):
            return SpecifierComparison.of(Relation.IDENTICAL)
        return SpecifierComparison.of(Relation.INCOMPATIBLE_TYPES, "Mixed git ref and semver range")

    @staticmethod
    def _compare_opaque(old: VersionSpecifier, new: VersionSpecifier, detail: str) -> SpecifierComparison:
        if old.normalized == new.normalized:
            return SpecifierComparison.of(Relation.IDENTICAL)
        return SpecifierComparison.of(Relation.DISJOINT, detail)


def to_semantic_change(comparison: SpecifierComparison, treat_narrowing_as_equivalent: bool = True) -> SemanticChange:
    """Map a comparison to the change a consumer would experience.

    Narrowing is benign unless ``treat_narrowing_as_equivalent`` is false;
    widening is never benign.
    """
    if comparison.equivalent:
        if comparison.relation == Relation.IDENTICAL:
            return SemanticChange.NONE
        return SemanticChange.EQUIVALENT
    if comparison.relation == Relation.NARROWED:
        return SemanticChange.EQUIVALENT if treat_narrowing_as_equivalent else SemanticChange.NARROWED
    if comparison.relation == Relation.WIDENED:
        return SemanticChange.WIDENED
    return SemanticChange.INCOMPATIBLE


DEFAULT_COMPARATOR = SpecifierComparator()


def compare_specifiers(old_spec: str, new_spec: str, context_path: Optional[str] = None) -> SpecifierComparison:
    """Compare two specifiers with the default engine."""
    return DEFAULT_COMPARATOR.compare(old_spec, new_spec, context_path)
