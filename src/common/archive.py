"""In-memory reader for npm package tarballs (gzipped tar)."""
from __future__ import annotations

import io
import json
import logging
import tarfile
import zlib
from typing import Any, Dict

from constants import Constants
from common.errors import ArchiveError, ManifestNotFoundError
from common.logging_utils import extra_context, is_debug_enabled

logger = logging.getLogger(__name__)

_MANIFEST_SUFFIX = "/" + Constants.PACKAGE_JSON_FILE


class TarballReader:
    """Read file contents out of a package tarball without touching disk."""

    def extract_files(self, archive: bytes) -> Dict[str, bytes]:
        """Return ``{path: content}`` for every regular file in ``archive``.

        Raises:
            ArchiveError: If the data is not a readable gzipped tarball.
        """
        files: Dict[str, bytes] = {}
        try:
            with tarfile.open(fileobj=io.BytesIO(archive), mode="r:gz") as tar:
                for member in tar:
                    if not member.isfile():
                        continue
                    handle = tar.extractfile(member)
                    if handle is None:
                        continue
                    files[member.name] = handle.read()
        except (tarfile.TarError, OSError, EOFError, zlib.error) as exc:
            raise ArchiveError(f"Unable to read package archive: {exc}") from exc

        if is_debug_enabled(logger):
            logger.debug(
                "Extracted archive",
                extra=extra_context(
                    event="extract",
                    component="archive",
                    action="extract_files",
                    outcome="success",
                    context=f"{len(files)} files",
                ),
            )
        return files

    def extract_manifest(self, archive: bytes) -> Dict[str, Any]:
        """Find and parse the package.json inside ``archive``.

        ``package/package.json`` is preferred; otherwise the shortest path
        ending in ``/package.json`` is used, since some packers use a
        different top-level directory.

        Raises:
            ManifestNotFoundError: If no manifest is present or it is not a JSON object.
            ArchiveError: If the archive itself cannot be read.
        """
        files = self.extract_files(archive)
        if Constants.ARCHIVE_MANIFEST_PATH in files:
            path = Constants.ARCHIVE_MANIFEST_PATH
        else:
            candidates = sorted((p for p in files if p.endswith(_MANIFEST_SUFFIX)), key=lambda p: (len(p), p))
            if not candidates:
                raise ManifestNotFoundError("package.json not found in tarball")
            path = candidates[0]

        try:
            manifest = json.loads(files[path].decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ManifestNotFoundError(f"{path} in tarball is not valid JSON: {exc}") from exc
        if not isinstance(manifest, dict):
            raise ManifestNotFoundError(f"{path} in tarball is not a JSON object")
        return manifest
