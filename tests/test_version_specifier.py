"""Tests for dependency specifier parsing and comparison."""

import pytest

from versioning.comparator import SpecifierComparator, compare_specifiers, to_semantic_change
from versioning.models import (
    AliasPayload,
    GitPayload,
    Relation,
    SemanticChange,
    SpecifierCategory,
    SpecifierComparison,
    WorkspacePayload,
)
from versioning.parser import SpecifierParser, parse_specifier

SAMPLE_SPECS = [
    "1.2.3",
    "v1.2.3",
    "^1.2.3",
    "~1.2.3",
    ">=1.0.0 <2.0.0",
    "1.x",
    "*",
    "",
    "1.2.3 - 2.3.4",
    "^1.0.0 || ^2.0.0",
    "git+https://github.com/user/repo.git#v1.0.0",
    "github:user/repo#semver:^1.0.0",
    "user/repo",
    "file:../local",
    "../local",
    "npm:lodash@^4.17.0",
    "workspace:^",
    "latest",
    "https://example.com/pkg.tgz",
    "definitely not ^^ a spec",
]


class TestParseCategories:
    """Test category recognition."""

    @pytest.mark.parametrize("raw,category", [
        ("1.2.3", SpecifierCategory.EXACT),
        ("^1.2.3", SpecifierCategory.CARET),
        ("~1.2.3", SpecifierCategory.TILDE),
        (">=1.0.0 <2.0.0", SpecifierCategory.RANGE),
        ("1.x", SpecifierCategory.X_RANGE),
        ("*", SpecifierCategory.X_RANGE),
        ("1.2.3 - 2.3.4", SpecifierCategory.HYPHEN),
        (">=1.0.0 || >=2.0.0", SpecifierCategory.OR),
        ("latest", SpecifierCategory.TAG),
        ("next", SpecifierCategory.TAG),
        ("https://example.com/pkg.tgz", SpecifierCategory.URL),
        ("file:../local", SpecifierCategory.FILE),
        ("./vendor/pkg.tgz", SpecifierCategory.FILE),
        ("workspace:*", SpecifierCategory.WORKSPACE),
        ("npm:lodash@^4.17.0", SpecifierCategory.ALIAS),
        ("git+ssh://git@github.com/user/repo.git", SpecifierCategory.GIT),
        ("user/repo#main", SpecifierCategory.GIT),
    ])
    def test_category(self, raw, category):
        """Test that each grammar form maps to its category."""
        assert parse_specifier(raw).category == category

    def test_empty_string_is_any(self):
        """Test that an empty specifier means any version."""
        spec = parse_specifier("")
        assert spec.category == SpecifierCategory.X_RANGE
        assert spec.normalized == "*"

    def test_unparseable_degrades_to_tag(self):
        """Test that garbage never raises and keeps its raw text."""
        spec = parse_specifier("definitely not ^^ a spec")
        assert spec.category == SpecifierCategory.TAG
        assert spec.normalized == "definitely not ^^ a spec"

    def test_non_string_input_does_not_raise(self):
        """Test that numeric values from hand-written manifests are tolerated."""
        spec = parse_specifier(1)
        assert spec.raw == "1"
        assert spec.normalized == ">=1.0.0 <2.0.0-0"


class TestParsePayloads:
    """Test category-specific payloads."""

    def test_workspace_payload(self):
        """Test workspace suffix capture and default."""
        assert parse_specifier("workspace:^").payload == WorkspacePayload("^")
        assert parse_specifier("workspace:").payload == WorkspacePayload("*")

    def test_alias_payload(self):
        """Test that alias targets are parsed recursively."""
        spec = parse_specifier("npm:@scope/pkg@1.0.0")
        assert isinstance(spec.payload, AliasPayload)
        assert spec.payload.name == "@scope/pkg"
        assert spec.payload.target.category == SpecifierCategory.EXACT

    def test_git_committish(self):
        """Test that hosted git URLs are canonicalized and refs captured."""
        spec = parse_specifier("git+https://github.com/user/repo.git#v1.0.0")
        assert spec.payload == GitPayload(url="github:user/repo", committish="v1.0.0")

    def test_git_semver_range(self):
        """Test that semver: fragments are captured as ranges."""
        spec = parse_specifier("github:user/repo#semver:^1.0.0")
        assert spec.payload == GitPayload(url="github:user/repo", semver_range="^1.0.0")

    def test_github_shorthand(self):
        """Test that owner/repo shorthand resolves to GitHub."""
        assert parse_specifier("user/repo").payload.url == "github:user/repo"

    def test_file_paths_normalized(self):
        """Test that bare paths and file: paths share a normalized form."""
        assert parse_specifier("../local").normalized == "file:../local"
        assert parse_specifier("file:../local").normalized == "file:../local"
        assert parse_specifier("file:./a/../b").normalized == "file:b"

    def test_range_normalized(self):
        """Test that semver ranges carry the desugared form."""
        assert parse_specifier("^1.2.3").normalized == ">=1.2.3 <2.0.0-0"
        assert parse_specifier("v1.2.3").normalized == "1.2.3"


class TestParseProperties:
    """Test determinism and the alias depth bound."""

    @pytest.mark.parametrize("raw", SAMPLE_SPECS)
    def test_parse_is_idempotent(self, raw):
        """Test that parsing twice yields identical values."""
        assert parse_specifier(raw) == parse_specifier(raw)

    @pytest.mark.parametrize("raw", SAMPLE_SPECS)
    def test_normalized_is_stable_under_reparse(self, raw):
        """Test that the normalized form re-parses to itself."""
        normalized = parse_specifier(raw).normalized
        assert parse_specifier(normalized).normalized == normalized

    def test_nested_aliases_are_bounded(self):
        """Test that alias nesting past the limit fails closed to a tag."""
        parser = SpecifierParser(max_alias_depth=3)
        spec = parser.parse("npm:a@" * 10 + "1.0.0")
        depth = 0
        while spec.category == SpecifierCategory.ALIAS:
            spec = spec.payload.target
            depth += 1
        assert depth == 3
        assert spec.category == SpecifierCategory.TAG


class TestCompareProperties:
    """Test properties every comparison must satisfy."""

    @pytest.mark.parametrize("raw", SAMPLE_SPECS)
    def test_reflexive(self, raw):
        """Test that comparing a specifier with itself is identical."""
        result = compare_specifiers(raw, raw)
        assert result == SpecifierComparison(equivalent=True, relation=Relation.IDENTICAL)

    @pytest.mark.parametrize("other", [
        "file:../a",
        "github:user/repo",
        "latest",
        "https://example.com/a.tgz",
        "workspace:*",
    ])
    def test_category_gate(self, other):
        """Test that semver never compares equal to another class."""
        assert compare_specifiers("^1.0.0", other).relation == Relation.INCOMPATIBLE_TYPES
        assert compare_specifiers(other, "^1.0.0").relation == Relation.INCOMPATIBLE_TYPES

    @pytest.mark.parametrize("raw", SAMPLE_SPECS)
    def test_equivalent_flag_follows_relation(self, raw):
        """Test the equivalent flag against a fixed counterpart."""
        result = compare_specifiers(raw, "^3.0.0")
        assert result.equivalent == (result.relation in (
            Relation.IDENTICAL,
            Relation.NORMALIZED_EQUAL,
            Relation.SEMANTICALLY_EQUAL,
            Relation.SAME_MAJOR_CARET,
            Relation.SAME_MINOR_TILDE,
        ))


class TestCompareSemver:
    """Test semver range relations."""

    @pytest.mark.parametrize("old,new", [("^1.2.3", "^1.2.4"), ("^4.17.0", "^4.18.0"), ("^4.17.21", "^4.17.0")])
    def test_same_major_caret(self, old, new):
        """Test caret bumps within one major."""
        result = compare_specifiers(old, new)
        assert result.equivalent
        assert result.relation == Relation.SAME_MAJOR_CARET

    def test_caret_major_bump_is_disjoint(self):
        """Test caret ranges on different majors."""
        result = compare_specifiers("^1.0.0", "^2.0.0")
        assert not result.equivalent
        assert result.relation == Relation.DISJOINT

    def test_same_minor_tilde(self):
        """Test tilde bumps within one minor."""
        result = compare_specifiers("~4.17.0", "~4.17.5")
        assert result.equivalent
        assert result.relation == Relation.SAME_MINOR_TILDE

    def test_tilde_minor_bump(self):
        """Test tilde ranges on different minors."""
        assert not compare_specifiers("~1.2.0", "~1.3.0").equivalent

    def test_normalized_equal(self):
        """Test spellings with the same desugared form."""
        assert compare_specifiers(">=1.0.0", ">= 1.0.0").relation == Relation.NORMALIZED_EQUAL
        assert compare_specifiers("1.x", "^1.0.0").relation == Relation.NORMALIZED_EQUAL

    def test_semantically_equal(self):
        """Test different comparator sets covering the same versions."""
        result = compare_specifiers(">=1.0.0 <1.5.0 || >=1.5.0 <2.0.0-0", "^1.0.0")
        assert result.relation == Relation.SEMANTICALLY_EQUAL
        assert result.equivalent

    def test_union_skips_caret_shortcut(self):
        """Test that a caret union is compared by set algebra."""
        result = compare_specifiers("^1.0.0 || ^2.0.0", "^1.5.0")
        assert result.relation == Relation.NARROWED

    def test_narrowed_and_widened(self):
        """Test directional subset relations."""
        assert compare_specifiers("*", "^4.17.0").relation == Relation.NARROWED
        assert compare_specifiers("^4.17.0", "*").relation == Relation.WIDENED
        assert compare_specifiers("^1.2.3", "1.2.5").relation == Relation.NARROWED

    def test_partially_overlapping(self):
        """Test ranges that share some but not all versions."""
        result = compare_specifiers("^1.2.0", ">=1.5.0 <3.0.0")
        assert result.relation == Relation.PARTIALLY_OVERLAPPING
        assert not result.equivalent

    def test_exact_versions(self):
        """Test two different exact versions."""
        assert compare_specifiers("1.0.0", "2.0.0").relation == Relation.DISJOINT


class TestCompareOtherClasses:
    """Test git, file, tag, workspace and alias comparison."""

    def test_git_same_ref_different_spelling(self):
        """Test that equivalent git spellings with equal refs are identical."""
        result = compare_specifiers("github:user/repo#v1", "git+https://github.com/user/repo.git#v1")
        assert result.relation == Relation.IDENTICAL

    def test_git_different_refs(self):
        """Test different committish values."""
        assert compare_specifiers("github:user/repo#v1", "github:user/repo#v2").relation == Relation.DISJOINT

    def test_git_different_repos(self):
        """Test different repositories."""
        assert compare_specifiers("github:user/a#v1", "github:user/b#v1").relation == Relation.DISJOINT

    def test_git_semver_ranges_recurse(self):
        """Test that embedded ranges use the semver rules."""
        result = compare_specifiers("github:user/repo#semver:^1.0.0", "github:user/repo#semver:^1.2.0")
        assert result.relation == Relation.SAME_MAJOR_CARET

    def test_git_mixed_specificity(self):
        """Test a ref on one side and a range on the other."""
        result = compare_specifiers("github:user/repo#v1", "github:user/repo#semver:^1.0.0")
        assert result.relation == Relation.INCOMPATIBLE_TYPES

    def test_file_paths(self):
        """Test that file specifiers compare by normalized path."""
        assert compare_specifiers("file:../a", "../a").relation == Relation.IDENTICAL
        assert compare_specifiers("file:../a", "file:../b").relation == Relation.DISJOINT

    def test_tags_are_opaque(self):
        """Test that different tags are disjoint."""
        assert compare_specifiers("latest", "next").relation == Relation.DISJOINT

    def test_workspace(self):
        """Test workspace comparison by payload string."""
        assert compare_specifiers("workspace:", "workspace:*").relation == Relation.IDENTICAL
        assert compare_specifiers("workspace:*", "workspace:^").relation == Relation.DISJOINT

    def test_alias_targets(self):
        """Test alias targets on both sides."""
        result = compare_specifiers("npm:lodash@^4.17.0", "npm:lodash@^4.18.0")
        assert result.relation == Relation.SAME_MAJOR_CARET

    def test_alias_different_packages(self):
        """Test aliases pointing at different packages."""
        result = compare_specifiers("npm:lodash@^4.17.0", "npm:lodash-es@^4.17.0")
        assert result.relation == Relation.DISJOINT

    def test_alias_against_plain_range(self):
        """Test one-sided alias against a plain range."""
        result = compare_specifiers("npm:lodash@~4.17.0", "~4.17.9")
        assert result.relation == Relation.SAME_MINOR_TILDE

    def test_comparator_with_custom_parser(self):
        """Test that a comparator honors an injected parser."""
        comparator = SpecifierComparator(parser=SpecifierParser(max_alias_depth=0))
        result = comparator.compare("npm:a@1.0.0", "npm:a@2.0.0")
        assert result.relation == Relation.DISJOINT


class TestToSemanticChange:
    """Test the consumer-facing mapping."""

    def test_identical_is_none(self):
        """Test that identical specifiers map to none."""
        assert to_semantic_change(compare_specifiers("^1.0.0", "^1.0.0")) == SemanticChange.NONE

    def test_equivalent(self):
        """Test that equivalent relations map to equivalent."""
        assert to_semantic_change(compare_specifiers("^4.17.0", "^4.17.21")) == SemanticChange.EQUIVALENT

    def test_narrowing_policy(self):
        """Test narrowing with both policy settings."""
        narrowed = compare_specifiers("*", "^4.17.0")
        assert to_semantic_change(narrowed) == SemanticChange.EQUIVALENT
        assert to_semantic_change(narrowed, treat_narrowing_as_equivalent=False) == SemanticChange.NARROWED

    def test_widening_is_always_reported(self):
        """Test widening regardless of the narrowing policy."""
        widened = compare_specifiers("^4.17.0", "*")
        assert to_semantic_change(widened) == SemanticChange.WIDENED
        assert to_semantic_change(widened, treat_narrowing_as_equivalent=False) == SemanticChange.WIDENED

    @pytest.mark.parametrize("old,new", [("^1.0.0", "^2.0.0"), ("^1.0.0", "latest"), ("^1.2.0", ">=1.5.0 <3.0.0")])
    def test_everything_else_is_incompatible(self, old, new):
        """Test disjoint, overlapping and cross-class changes."""
        assert to_semantic_change(compare_specifiers(old, new)) == SemanticChange.INCOMPATIBLE
