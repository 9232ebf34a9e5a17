"""Dependency specifier parsing.

Turns the raw right-hand side of a dependency entry into a typed
VersionSpecifier. Parsing never raises: anything unrecognised degrades to
the ``tag`` category so callers can still compare it by string equality.
"""

from __future__ import annotations

import logging
from typing import Optional

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled

from .models import AliasPayload, GitPayload, SpecifierCategory, VersionSpecifier, WorkspacePayload
from .npm_arg import ResolvedArg, SpecifierResolver
from .semver_engine import DEFAULT_ENGINE, SemverEngine

logger = logging.getLogger(__name__)

WORKSPACE_PREFIX = "workspace:"

_SIMPLE_TYPES = {
    "tag": SpecifierCategory.TAG,
    "remote": SpecifierCategory.URL,
    "file": SpecifierCategory.FILE,
    "directory": SpecifierCategory.FILE,
}


class SpecifierParser:
    """Parser for npm dependency specifiers.

    Args:
        engine: Semver capability used for range validation and normalization.
        max_alias_depth: Nesting limit for ``npm:`` aliases; deeper aliases are
            treated as opaque tags.
    """

    def __init__(self, engine: Optional[SemverEngine] = None, max_alias_depth: int = Constants.ALIAS_MAX_DEPTH):
        self.engine = engine or DEFAULT_ENGINE
        self.resolver = SpecifierResolver(self.engine)
        self.max_alias_depth = max_alias_depth

    def parse(self, raw: str, context_path: Optional[str] = None) -> VersionSpecifier:
        """Parse ``raw`` into a VersionSpecifier.

        Args:
            raw: Specifier text as found in package.json.
            context_path: Directory used to resolve ``file:`` specifiers.

        Returns:
            VersionSpecifier: Always a value; unparseable text becomes a ``tag``.
        """
        return self._parse(raw, context_path, 0)

    def _parse(self, raw: str, context_path: Optional[str], depth: int) -> VersionSpecifier:
        raw = raw if isinstance(raw, str) else ("" if raw is None else str(raw))

        if raw.startswith(WORKSPACE_PREFIX):
            workspace_range = raw[len(WORKSPACE_PREFIX):] or "*"
            return VersionSpecifier(
                category=SpecifierCategory.WORKSPACE,
                raw=raw,
                normalized=raw,
                payload=WorkspacePayload(workspace_range),
            )

        if raw == "":
            return VersionSpecifier(category=SpecifierCategory.X_RANGE, raw=raw, normalized="*")

        resolved, error = self.resolver.resolve(raw, context_path)
        if resolved is not None:
            return self._from_resolved(raw, resolved, context_path, depth)

        if is_debug_enabled(logger):
            logger.debug(
                "Specifier not recognised by resolver",
                extra=extra_context(
                    event="parse",
                    component="specifier_parser",
                    action="resolve",
                    outcome="fallback",
                    target=raw,
                    context=error,
                ),
            )
        return self._fallback(raw)

    def _from_resolved(
        self, raw: str, resolved: ResolvedArg, context_path: Optional[str], depth: int
    ) -> VersionSpecifier:
        if resolved.type == "version":
            return VersionSpecifier(category=SpecifierCategory.EXACT, raw=raw, normalized=resolved.fetch_spec)

        if resolved.type == "range":
            normalized, _ = self.engine.normalize_range(resolved.fetch_spec)
            return VersionSpecifier(
                category=self.range_subtype(raw),
                raw=raw,
                normalized=normalized or raw,
            )

        if resolved.type == "git":
            return VersionSpecifier(
                category=SpecifierCategory.GIT,
                raw=raw,
                normalized=resolved.save_spec,
                payload=GitPayload(
                    url=resolved.fetch_spec,
                    committish=resolved.git_committish,
                    semver_range=resolved.git_range,
                ),
            )

        if resolved.type == "alias":
            if depth >= self.max_alias_depth:
                logger.warning("Alias nesting deeper than %d, treating %r as a tag", self.max_alias_depth, raw)
                return VersionSpecifier(category=SpecifierCategory.TAG, raw=raw, normalized=raw)
            target = self._parse(resolved.sub_spec or "", context_path, depth + 1)
            return VersionSpecifier(
                category=SpecifierCategory.ALIAS,
                raw=raw,
                normalized=raw,
                payload=AliasPayload(name=resolved.sub_name or "", target=target),
            )

        category = _SIMPLE_TYPES.get(resolved.type)
        if category is None:
            return self._fallback(raw)
        normalized = resolved.save_spec if category == SpecifierCategory.FILE else resolved.fetch_spec
        return VersionSpecifier(category=category, raw=raw, normalized=normalized or raw)

    def _fallback(self, raw: str) -> VersionSpecifier:
        """Interpret ``raw`` directly as a semver range, else as an opaque tag."""
        normalized, _ = self.engine.normalize_range(raw)
        if normalized is not None:
            return VersionSpecifier(category=self.range_subtype(raw), raw=raw, normalized=normalized)
        return VersionSpecifier(category=SpecifierCategory.TAG, raw=raw, normalized=raw)

    def range_subtype(self, raw: str) -> SpecifierCategory:
        """Classify a valid range by its leading syntax."""
        trimmed = raw.strip()
        if trimmed.startswith("^"):
            return SpecifierCategory.CARET
        if trimmed.startswith("~"):
            return SpecifierCategory.TILDE
        if " - " in trimmed:
            return SpecifierCategory.HYPHEN
        if "||" in trimmed:
            return SpecifierCategory.OR
        if trimmed == "" or any(ch in trimmed for ch in "xX*"):
            return SpecifierCategory.X_RANGE
        version, _ = self.engine.valid_version(trimmed)
        if version is not None:
            return SpecifierCategory.EXACT
        return SpecifierCategory.RANGE


DEFAULT_PARSER = SpecifierParser()


def parse_specifier(raw: str, context_path: Optional[str] = None) -> VersionSpecifier:
    """Parse ``raw`` with the default engine."""
    return DEFAULT_PARSER.parse(raw, context_path)
