"""Dependency comparison with semver-aware logic.

Dependency classes and how they are compared:

- dependencies, peerDependencies, optionalDependencies: name -> specifier maps,
  changed specifiers compared semantically.
- bundledDependencies (or bundleDependencies): a set of names; only
  additions and removals matter.

devDependencies never reach consumers and are not compared here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from versioning.comparator import DEFAULT_COMPARATOR, SpecifierComparator, to_semantic_change
from versioning.models import SemanticChange

from .models import ChangeAction, CompareOptions, DependencyChange, DependencyClass, DependencyComparison

logger = logging.getLogger(__name__)

MAP_CLASSES = (DependencyClass.RUNTIME, DependencyClass.PEER, DependencyClass.OPTIONAL)
BUNDLED_FIELDS = ("bundledDependencies", "bundleDependencies")
DEPENDENCY_FIELDS = frozenset(c.value for c in MAP_CLASSES) | frozenset(BUNDLED_FIELDS)


def _dependency_map(manifest: Mapping[str, Any], dependency_class: DependencyClass) -> Dict[str, str]:
    value = manifest.get(dependency_class.value)
    if not isinstance(value, Mapping):
        return {}
    return {str(name): spec if isinstance(spec, str) else str(spec) for name, spec in value.items()}


def bundled_names(manifest: Mapping[str, Any]) -> List[str]:
    """Return the bundled dependency names, merging both accepted spellings.

    The first spelling present wins; ``true`` means every runtime dependency.
    """
    for field_name in BUNDLED_FIELDS:
        value = manifest.get(field_name)
        if value is None:
            continue
        if value is True:
            return list(_dependency_map(manifest, DependencyClass.RUNTIME))
        if isinstance(value, (list, tuple)):
            return [str(name) for name in value]
        return []
    return []


def diff_dependency_map(
    old_deps: Mapping[str, str],
    new_deps: Mapping[str, str],
    dependency_class: DependencyClass,
    treat_narrowing_as_equivalent: bool = True,
    comparator: Optional[SpecifierComparator] = None,
) -> List[DependencyChange]:
    """Compare two name -> specifier maps.

    Args:
        old_deps: Dependencies of the published manifest.
        new_deps: Dependencies of the local manifest.
        dependency_class: Class recorded on each change.
        treat_narrowing_as_equivalent: Narrowing policy passed to to_semantic_change.
        comparator: Specifier comparator; defaults to the shared one.

    Returns:
        list: Added and changed entries in ``new_deps`` order, then removed
        entries in ``old_deps`` order. Identical specifiers are not reported.
    """
    comparator = comparator or DEFAULT_COMPARATOR
    changes: List[DependencyChange] = []

    for name, new_spec in new_deps.items():
        if name not in old_deps:
            changes.append(DependencyChange(
                name=name,
                dependency_class=dependency_class,
                action=ChangeAction.ADDED,
                semantic_change=SemanticChange.INCOMPATIBLE,
                new_spec=new_spec,
            ))
            continue
        old_spec = old_deps[name]
        if old_spec == new_spec:
            continue
        comparison = comparator.compare(old_spec, new_spec)
        changes.append(DependencyChange(
            name=name,
            dependency_class=dependency_class,
            action=ChangeAction.CHANGED,
            semantic_change=to_semantic_change(comparison, treat_narrowing_as_equivalent),
            old_spec=old_spec,
            new_spec=new_spec,
        ))
        logger.debug("%s %s: %s -> %s (%s)", dependency_class.value, name, old_spec, new_spec,
                     comparison.relation.value)

    for name, old_spec in old_deps.items():
        if name not in new_deps:
            changes.append(DependencyChange(
                name=name,
                dependency_class=dependency_class,
                action=ChangeAction.REMOVED,
                semantic_change=SemanticChange.INCOMPATIBLE,
                old_spec=old_spec,
            ))
    return changes


def diff_bundled(old_manifest: Mapping[str, Any], new_manifest: Mapping[str, Any]) -> List[DependencyChange]:
    """Compare bundled dependency sets; any addition or removal is incompatible."""
    old_names = bundled_names(old_manifest)
    new_names = bundled_names(new_manifest)
    changes = []
    for name in new_names:
        if name not in old_names:
            changes.append(DependencyChange(
                name=name,
                dependency_class=DependencyClass.BUNDLED,
                action=ChangeAction.ADDED,
                semantic_change=SemanticChange.INCOMPATIBLE,
            ))
    for name in old_names:
        if name not in new_names:
            changes.append(DependencyChange(
                name=name,
                dependency_class=DependencyClass.BUNDLED,
                action=ChangeAction.REMOVED,
                semantic_change=SemanticChange.INCOMPATIBLE,
            ))
    return changes


def compare_dependencies(
    old_manifest: Mapping[str, Any],
    new_manifest: Mapping[str, Any],
    options: Optional[CompareOptions] = None,
    comparator: Optional[SpecifierComparator] = None,
) -> DependencyComparison:
    """Compare every consumer-visible dependency class of two manifests.

    Args:
        old_manifest: Published package.json.
        new_manifest: Local package.json.
        options: Comparison options; optionalDependencies are skipped when
            ``include_optional_deps`` is False.
        comparator: Specifier comparator; defaults to the shared one.

    Returns:
        DependencyComparison: ``has_changes`` is True when at least one change
        is neither ``none`` nor ``equivalent``.
    """
    options = options or CompareOptions()
    changes: List[DependencyChange] = []

    for dependency_class in MAP_CLASSES:
        if dependency_class == DependencyClass.OPTIONAL and not options.include_optional_deps:
            continue
        changes.extend(diff_dependency_map(
            _dependency_map(old_manifest, dependency_class),
            _dependency_map(new_manifest, dependency_class),
            dependency_class,
            options.treat_narrowing_as_equivalent,
            comparator,
        ))
    changes.extend(diff_bundled(old_manifest, new_manifest))

    significant = tuple(c for c in changes if c.is_significant)
    return DependencyComparison(
        has_changes=bool(significant),
        changes=tuple(changes),
        significant_changes=significant,
    )


def dependency_change_summary(changes) -> str:
    """Get a human-readable tally of dependency changes."""
    if not changes:
        return "No dependency changes"

    added = sum(1 for c in changes if c.action == ChangeAction.ADDED)
    removed = sum(1 for c in changes if c.action == ChangeAction.REMOVED)
    changed = [c for c in changes if c.action == ChangeAction.CHANGED]
    significant = sum(1 for c in changes if c.is_significant)

    parts = []
    if added:
        parts.append(f"{added} added")
    if removed:
        parts.append(f"{removed} removed")
    changed_significant = sum(1 for c in changed if c.is_significant)
    if changed_significant:
        parts.append(f"{changed_significant} significantly changed")
    if len(changed) - changed_significant:
        parts.append(f"{len(changed) - changed_significant} equivalent changes")
    return f"Dependencies: {', '.join(parts)} ({significant} significant)"
