"""File-level comparison of two extracted package archives."""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import Iterable, List, Mapping

from constants import Constants

from .models import FileAction, FileChange, FileComparison

MANIFEST_SUFFIX = "/" + Constants.PACKAGE_JSON_FILE


def hash_archive(data: bytes) -> str:
    """Return the base64 SHA-512 digest of ``data`` (npm integrity style)."""
    digest = hashlib.new(Constants.ARCHIVE_HASH_ALGORITHM, data).digest()
    return base64.b64encode(digest).decode("ascii")


def _bytes_equal(a: bytes, b: bytes) -> bool:
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)


def _is_manifest_path(path: str, manifest_path: str) -> bool:
    return path == manifest_path or path.endswith(MANIFEST_SUFFIX)


def compare_file_sets(
    old_files: Mapping[str, bytes],
    new_files: Mapping[str, bytes],
    manifest_path: str = Constants.ARCHIVE_MANIFEST_PATH,
) -> FileComparison:
    """Compare two path -> content maps.

    Args:
        old_files: Files of the published archive.
        new_files: Files of the locally packed archive.
        manifest_path: Archive path of the manifest.

    Returns:
        FileComparison: Changes ordered by path. ``manifest_only`` is True when
        there is at least one change and every changed path is a manifest.
    """
    changes: List[FileChange] = []
    for path in sorted(set(old_files) | set(new_files)):
        if path not in old_files:
            changes.append(FileChange(path, FileAction.ADDED))
        elif path not in new_files:
            changes.append(FileChange(path, FileAction.REMOVED))
        elif not _bytes_equal(old_files[path], new_files[path]):
            changes.append(FileChange(path, FileAction.MODIFIED))

    return FileComparison(
        identical=not changes,
        file_changes=tuple(changes),
        manifest_only=is_manifest_only_change(changes, manifest_path),
    )


def is_manifest_only_change(
    changes: Iterable[FileChange], manifest_path: str = Constants.ARCHIVE_MANIFEST_PATH
) -> bool:
    changes = list(changes)
    if not changes:
        return False
    return all(_is_manifest_path(c.path, manifest_path) for c in changes)


def file_change_summary(changes) -> str:
    if not changes:
        return "No file changes"
    counts = {action: 0 for action in FileAction}
    for change in changes:
        counts[change.action] += 1
    parts = [f"{counts[action]} {action.value}" for action in FileAction if counts[action]]
    return f"Files: {', '.join(parts)} ({len(changes)} total)"
