"""Decide whether a local npm package differs meaningfully from its published version.

The check runs a sequence of fast paths, cheapest first:

1. private packages are never published
2. a package missing from the registry is a first publish
3. a version bump always publishes
4. byte-identical tarballs never publish
5. file-by-file comparison of both tarballs, unless ``package_json_only`` is set
6. when only package.json differs, a semantic manifest comparison decides
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from constants import Constants
from common.archive import TarballReader
from common.errors import NeedsPublishError, PackError, RegistryError, RegistryNotFoundError
from common.logging_utils import extra_context, is_debug_enabled
from comparators.file_content import compare_file_sets, hash_archive
from comparators.manifest import compare_manifests
from comparators.models import CompareOptions, ManifestComparison, Significance
from registry.npm import NpmPacker, NpmRegistryClient

logger = logging.getLogger(__name__)

HASH_PREFIX_LENGTH = 16


@dataclass(frozen=True)
class NeedsPublishOptions:
    """Options for a single publish check."""
    cwd: Optional[str] = None
    registry: Optional[str] = None
    include_optional_deps: bool = True
    additional_significant_fields: Tuple[str, ...] = ()
    ignore_fields: Tuple[str, ...] = ()
    package_json_only: bool = False
    treat_narrowing_as_equivalent: bool = True

    def compare_options(self) -> CompareOptions:
        return CompareOptions(
            include_optional_deps=self.include_optional_deps,
            additional_significant_fields=tuple(self.additional_significant_fields),
            ignore_fields=tuple(self.ignore_fields),
            treat_narrowing_as_equivalent=self.treat_narrowing_as_equivalent,
        )


_UNSET = object()


@dataclass(frozen=True)
class ChangeDetail:
    """One piece of evidence behind a verdict."""
    type: str
    significance: Significance
    field: Optional[str] = None
    old_value: Any = _UNSET
    new_value: Any = _UNSET

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.type}
        if self.field is not None:
            out["field"] = self.field
        if self.old_value is not _UNSET:
            out["oldValue"] = self.old_value
        if self.new_value is not _UNSET:
            out["newValue"] = self.new_value
        out["significance"] = self.significance.value
        return out


@dataclass(frozen=True)
class NeedsPublishResult:
    needs_publish: bool
    reason: str
    changes: Tuple[ChangeDetail, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"needsPublish": self.needs_publish, "reason": self.reason}
        if self.changes:
            out["changes"] = [c.to_dict() for c in self.changes]
        return out


FIRST_PUBLISH = ChangeDetail(type="first-publish", significance=Significance.CRITICAL)


def read_local_manifest(directory: str) -> Dict[str, Any]:
    """Load ``package.json`` from ``directory``.

    Raises:
        NeedsPublishError: The file is missing, unreadable or not a JSON object.
    """
    path = os.path.join(directory, Constants.PACKAGE_JSON_FILE)
    try:
        with open(path, "r", encoding="utf-8") as handle:
            manifest = json.load(handle)
    except OSError as exc:
        raise NeedsPublishError(f"Unable to read {path}: {exc}") from exc
    except ValueError as exc:
        raise NeedsPublishError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(manifest, dict):
        raise NeedsPublishError(f"{path} does not contain a JSON object")
    return manifest


class PublishChecker:
    """Run the publish decision against injected registry, packer and archive collaborators.

    Args:
        fetcher: Object with ``fetch_latest(name)`` and ``fetch_archive(package)``.
        packer: Object with ``pack(directory) -> bytes``.
        reader: Object with ``extract_files(archive)`` and ``extract_manifest(archive)``.
        options: Comparison options.
    """

    def __init__(self, fetcher, packer, reader=None, options: Optional[NeedsPublishOptions] = None):
        self.fetcher = fetcher
        self.packer = packer
        self.reader = reader or TarballReader()
        self.options = options or NeedsPublishOptions()

    def check(self, directory: Optional[str] = None) -> NeedsPublishResult:
        """Decide whether the package in ``directory`` needs publishing.

        Registry and pack failures resolve to "needs publish"; a tarball without
        a manifest raises ManifestNotFoundError.
        """
        directory = directory or self.options.cwd or os.getcwd()
        local = read_local_manifest(directory)

        if local.get("private") is True:
            return NeedsPublishResult(False, "Package is private")

        name = local.get("name")
        if not isinstance(name, str) or not name:
            raise NeedsPublishError("package.json has no name")
        local_version = str(local.get("version", ""))

        try:
            published = self.fetcher.fetch_latest(name)
        except RegistryNotFoundError:
            return NeedsPublishResult(True, "Package not found in registry (first publish)", (FIRST_PUBLISH,))
        except RegistryError as exc:
            logger.warning("Registry check failed for %s: %s", name, exc)
            return NeedsPublishResult(True, f"Error checking registry: {exc}")

        if published is None:
            return NeedsPublishResult(True, "No latest version found in registry (first publish)", (FIRST_PUBLISH,))

        if local_version != published.version:
            return NeedsPublishResult(
                True,
                f"Version differs (local: {local_version}, registry: {published.version})",
                (ChangeDetail(
                    type="version",
                    field="version",
                    old_value=published.version,
                    new_value=local_version,
                    significance=Significance.CRITICAL,
                ),),
            )

        try:
            registry_archive = self.fetcher.fetch_archive(published)
        except RegistryError as exc:
            logger.warning("Tarball download failed for %s@%s: %s", name, published.version, exc)
            return NeedsPublishResult(True, f"Error checking registry: {exc}")

        try:
            local_archive = self.packer.pack(directory)
        except PackError as exc:
            logger.warning("Packing %s failed: %s", directory, exc)
            return NeedsPublishResult(True, f"Error packing local package: {exc}")

        local_hash = hash_archive(local_archive)
        if local_hash == hash_archive(registry_archive):
            return NeedsPublishResult(False, f"No changes detected (hash: {local_hash[:HASH_PREFIX_LENGTH]}...)")

        if not self.options.package_json_only:
            verdict = self._file_verdict(registry_archive, local_archive)
            if verdict is not None:
                return verdict

        # Packument entries omit fields such as "files"; compare the tarball manifests.
        comparison = compare_manifests(
            self.reader.extract_manifest(registry_archive),
            self.reader.extract_manifest(local_archive),
            self.options.compare_options(),
        )
        return self._manifest_verdict(comparison)

    def _file_verdict(self, registry_archive: bytes, local_archive: bytes) -> Optional[NeedsPublishResult]:
        """Decide on file contents alone; None when only the manifest changed."""
        files = compare_file_sets(
            self.reader.extract_files(registry_archive),
            self.reader.extract_files(local_archive),
        )
        self._trace("compare_files", "identical" if files.identical else f"{len(files.file_changes)} changed")

        if files.identical:
            return NeedsPublishResult(False, "Files identical (tarball metadata differs)")
        if files.manifest_only:
            return None
        return NeedsPublishResult(
            True,
            f"Code changes detected ({len(files.file_changes)} files changed)",
            tuple(
                ChangeDetail(type="file", field=c.path, significance=Significance.SIGNIFICANT)
                for c in files.file_changes
            ),
        )

    @staticmethod
    def _manifest_verdict(comparison: ManifestComparison) -> NeedsPublishResult:
        if not comparison.has_significant_changes:
            return NeedsPublishResult(
                False,
                f"Package.json changes are not significant for consumers ({comparison.summary})",
                tuple(
                    ChangeDetail(
                        type="field",
                        field=c.field,
                        old_value=c.old_value,
                        new_value=c.new_value,
                        significance=Significance.INFORMATIONAL,
                    )
                    for c in comparison.field_changes
                ),
            )

        changes: List[ChangeDetail] = [
            ChangeDetail(
                type="field",
                field=c.field,
                old_value=c.old_value,
                new_value=c.new_value,
                significance=c.significance,
            )
            for c in comparison.field_changes
        ]
        changes.extend(
            ChangeDetail(
                type="dependency",
                field=c.field_path,
                old_value=c.old_spec,
                new_value=c.new_spec,
                significance=Significance.SIGNIFICANT,
            )
            for c in comparison.dependency_changes
            if c.is_significant
        )
        return NeedsPublishResult(True, comparison.summary, tuple(changes))

    @staticmethod
    def _trace(action: str, outcome: str) -> None:
        if is_debug_enabled(logger):
            logger.debug(
                "Publish check step",
                extra=extra_context(event="publish_check", component="publish_check", action=action, outcome=outcome),
            )


def needs_publish(options: Optional[NeedsPublishOptions] = None) -> NeedsPublishResult:
    """Check the package in ``options.cwd`` against the npm registry."""
    options = options or NeedsPublishOptions()
    directory = os.path.abspath(options.cwd or os.getcwd())
    checker = PublishChecker(
        NpmRegistryClient(registry=options.registry, cwd=directory),
        NpmPacker(),
        TarballReader(),
        options,
    )
    return checker.check(directory)
