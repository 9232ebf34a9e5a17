"""package.json field comparison with significance classification.

Fields are split into critical (identity and entry points), significant
(everything else a consumer can observe) and never-significant (dev-only,
descriptive and registry bookkeeping fields). Dependency fields are handed
to the dependency comparator.
"""

from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

from common.logging_utils import extra_context, is_debug_enabled
from versioning.comparator import SpecifierComparator

from .dependency import DEPENDENCY_FIELDS, compare_dependencies, dependency_change_summary
from .models import (
    DEFAULT_FIELD_TABLES,
    CompareOptions,
    FieldChange,
    FieldSignificanceTables,
    ManifestComparison,
    Significance,
)

logger = logging.getLogger(__name__)

_MISSING = object()


def deep_equal(a: Any, b: Any) -> bool:
    """Structural equality over decoded JSON; key order is irrelevant, list order is not."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        if set(a) != set(b):
            return False
        return all(deep_equal(a[key], b[key]) for key in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(deep_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (Mapping, list, tuple)) or isinstance(b, (Mapping, list, tuple)):
        return False
    return a == b


def normalize_exports(exports: Any) -> Any:
    """Expand the string and array shorthands to ``{".": value}``."""
    if isinstance(exports, (str, list)):
        return {".": exports}
    return exports


def normalize_bin(bin_field: Any, package_name: Any) -> Any:
    """Expand a string ``bin`` to ``{<unscoped package name>: path}``; other shapes pass through."""
    if bin_field is None:
        return None
    if isinstance(bin_field, str):
        name = package_name if isinstance(package_name, str) else ""
        if name.startswith("@"):
            name = name.split("/", 1)[-1]
        return {name: bin_field}
    if isinstance(bin_field, Mapping):
        return dict(bin_field)
    return bin_field


def _field_differs(field_name: str, old: Mapping[str, Any], new: Mapping[str, Any]) -> bool:
    old_value = old.get(field_name, _MISSING)
    new_value = new.get(field_name, _MISSING)
    if old_value is _MISSING and new_value is _MISSING:
        return False
    if old_value is _MISSING or new_value is _MISSING:
        # Present vs absent is a change even when the present value is null.
        return True
    if deep_equal(old_value, new_value):
        return False
    if field_name == "exports":
        if old_value is None or new_value is None:
            return True
        return not deep_equal(normalize_exports(old_value), normalize_exports(new_value))
    if field_name == "bin":
        return not deep_equal(
            normalize_bin(old_value, old.get("name")),
            normalize_bin(new_value, new.get("name")),
        )
    return True


def compare_manifests(
    old_manifest: Mapping[str, Any],
    new_manifest: Mapping[str, Any],
    options: Optional[CompareOptions] = None,
    tables: FieldSignificanceTables = DEFAULT_FIELD_TABLES,
    comparator: Optional[SpecifierComparator] = None,
) -> ManifestComparison:
    """Compare two manifests field by field.

    Args:
        old_manifest: Manifest of the published package.
        new_manifest: Manifest of the local package.
        options: Field allow/deny lists and dependency options.
        tables: Field classification to use.
        comparator: Specifier comparator for dependency entries.

    Returns:
        ManifestComparison: Field and dependency changes plus a summary.
    """
    options = options or CompareOptions()
    field_changes: List[FieldChange] = []

    for field_name in tables.resolve(options):
        if field_name in DEPENDENCY_FIELDS:
            continue
        if not _field_differs(field_name, old_manifest, new_manifest):
            continue
        field_changes.append(FieldChange(
            field=field_name,
            old_value=old_manifest.get(field_name),
            new_value=new_manifest.get(field_name),
            significance=tables.significance_of(field_name),
        ))

    dependencies = compare_dependencies(old_manifest, new_manifest, options, comparator)

    has_significant = dependencies.has_changes or any(
        c.significance in (Significance.CRITICAL, Significance.SIGNIFICANT) for c in field_changes
    )
    summary = manifest_change_summary(field_changes, dependencies.changes)

    if is_debug_enabled(logger):
        logger.debug(
            "Manifest comparison complete",
            extra=extra_context(
                event="compare",
                component="manifest_differ",
                action="compare_manifests",
                outcome="significant" if has_significant else "not_significant",
                context=summary,
            ),
        )

    return ManifestComparison(
        has_significant_changes=has_significant,
        field_changes=tuple(field_changes),
        dependency_changes=dependencies.changes,
        summary=summary,
    )


def manifest_change_summary(field_changes, dependency_changes) -> str:
    parts = []
    critical = [c.field for c in field_changes if c.significance == Significance.CRITICAL]
    significant = [c.field for c in field_changes if c.significance == Significance.SIGNIFICANT]
    if critical:
        parts.append(f"Critical field changes: {', '.join(critical)}")
    if significant:
        parts.append(f"Significant field changes: {', '.join(significant)}")
    if dependency_changes:
        parts.append(dependency_change_summary(dependency_changes))
    if not parts:
        return "No significant changes"
    return "; ".join(parts)


def is_significant_field(
    field_name: str,
    options: Optional[CompareOptions] = None,
    tables: FieldSignificanceTables = DEFAULT_FIELD_TABLES,
) -> bool:
    """Whether a change to ``field_name`` would be reported as significant."""
    options = options or CompareOptions()
    if field_name in options.ignore_fields:
        return False
    if field_name in tables.never_significant:
        return False
    if field_name in options.additional_significant_fields:
        return True
    return field_name in tables.critical or field_name in tables.significant
