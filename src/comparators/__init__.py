"""Manifest, dependency and file-level comparison of two package versions."""

from .dependency import compare_dependencies, dependency_change_summary
from .file_content import compare_file_sets, file_change_summary, hash_archive
from .manifest import compare_manifests, is_significant_field
from .models import (
    DEFAULT_FIELD_TABLES,
    CompareOptions,
    DependencyClass,
    FieldSignificanceTables,
    Significance,
)

__all__ = [
    "compare_dependencies",
    "dependency_change_summary",
    "compare_file_sets",
    "file_change_summary",
    "hash_archive",
    "compare_manifests",
    "is_significant_field",
    "DEFAULT_FIELD_TABLES",
    "CompareOptions",
    "DependencyClass",
    "FieldSignificanceTables",
    "Significance",
]
