"""Shared fixtures: in-memory npm tarballs."""

import gzip
import io
import json
import tarfile

import pytest


def build_tarball(files, mtime=0):
    """Build a gzipped tarball from ``{path: str | bytes | dict}``; dicts are written as JSON."""
    raw = io.BytesIO()
    with tarfile.open(fileobj=raw, mode="w") as tar:
        for path, content in files.items():
            if isinstance(content, dict):
                content = json.dumps(content, indent=2)
            if isinstance(content, str):
                content = content.encode("utf-8")
            info = tarfile.TarInfo(path)
            info.size = len(content)
            info.mtime = mtime
            tar.addfile(info, io.BytesIO(content))
    return gzip.compress(raw.getvalue(), mtime=mtime)


@pytest.fixture
def make_tarball():
    return build_tarball
