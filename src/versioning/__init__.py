"""npm dependency specifier parsing and semantic comparison."""

from .comparator import SpecifierComparator, compare_specifiers, to_semantic_change
from .models import (
    Relation,
    SemanticChange,
    SpecifierCategory,
    SpecifierComparison,
    VersionSpecifier,
)
from .parser import SpecifierParser, parse_specifier
from .semver_engine import SemverEngine

__all__ = [
    "SpecifierComparator",
    "compare_specifiers",
    "to_semantic_change",
    "Relation",
    "SemanticChange",
    "SpecifierCategory",
    "SpecifierComparison",
    "VersionSpecifier",
    "SpecifierParser",
    "parse_specifier",
    "SemverEngine",
]
