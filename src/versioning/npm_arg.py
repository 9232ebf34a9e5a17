"""Registry-style resolver for the right-hand side of a dependency entry.

Classifies a raw specifier the way the npm CLI does (registry version,
range or dist-tag; git; remote tarball; local file or directory; alias)
without touching the network or the filesystem.
"""
from __future__ import annotations

import posixpath
import re
import urllib.parse
from dataclasses import dataclass
from typing import Optional, Tuple

from .semver_engine import DEFAULT_ENGINE, SemverEngine

_ALIAS_PREFIX = "npm:"
_FILE_PREFIX = "file:"
_PATH_LIKE_RE = re.compile(r"^(?:\.|~/|/|\\|[a-zA-Z]:)")
_TARBALL_RE = re.compile(r"\.(?:tgz|tar\.gz|tar)$", re.IGNORECASE)
_PACKAGE_NAME_RE = re.compile(r"^(?:@[a-z0-9~][a-z0-9._~-]*/)?[a-z0-9~][a-z0-9._~-]*$", re.IGNORECASE)

_GIT_PROTOCOL_RE = re.compile(r"^git(?:\+[a-z]+)?://", re.IGNORECASE)
_GIT_SCP_RE = re.compile(r"^(?:git\+)?[\w.-]+@[\w.-]+:(?!\d+/)")
_HOSTED_SHORTCUT_RE = re.compile(r"^(github|gitlab|bitbucket|gist):(.+)$", re.IGNORECASE)
_GITHUB_BARE_RE = re.compile(r"^[A-Za-z0-9][\w.-]*/[\w.-]+(?:#.*)?$")
_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)

_HOSTS = {
    "github.com": "github",
    "gitlab.com": "gitlab",
    "bitbucket.org": "bitbucket",
    "gist.github.com": "gist",
}

# Characters left untouched by JavaScript's encodeURIComponent.
_TAG_SAFE = "-_.!~*'()"


@dataclass(frozen=True)
class ResolvedArg:
    """Result of resolving one specifier.

    ``type`` is one of version, range, tag, git, remote, file, directory, alias.
    """
    type: str
    raw: str
    fetch_spec: str
    save_spec: str
    git_committish: Optional[str] = None
    git_range: Optional[str] = None
    sub_name: Optional[str] = None
    sub_spec: Optional[str] = None


class SpecifierResolver:
    """Classify raw specifiers; every method returns ``(result, error)``."""

    def __init__(self, engine: Optional[SemverEngine] = None):
        self.engine = engine or DEFAULT_ENGINE

    def resolve(self, raw: str, where: Optional[str] = None) -> Tuple[Optional[ResolvedArg], Optional[str]]:
        spec = raw.strip()
        if spec.startswith(_ALIAS_PREFIX):
            return self._resolve_alias(raw, spec[len(_ALIAS_PREFIX):])
        if spec.startswith(_FILE_PREFIX) or _PATH_LIKE_RE.match(spec):
            return self._resolve_file(raw, spec, where)
        if self._looks_like_git(spec):
            return self._resolve_git(raw, spec)
        if _HTTP_RE.match(spec):
            return ResolvedArg(type="remote", raw=raw, fetch_spec=spec, save_spec=spec), None
        return self._resolve_registry(raw, spec)

    def _resolve_alias(self, raw: str, rest: str) -> Tuple[Optional[ResolvedArg], Optional[str]]:
        at = rest.find("@", 1) if rest.startswith("@") else rest.find("@")
        if at > 0:
            name, sub_spec = rest[:at], rest[at + 1:]
        else:
            name, sub_spec = rest, ""
        if not _PACKAGE_NAME_RE.match(name):
            return None, f"Invalid alias target name: {name!r}"
        return ResolvedArg(
            type="alias",
            raw=raw,
            fetch_spec=sub_spec or "*",
            save_spec=raw.strip(),
            sub_name=name,
            sub_spec=sub_spec,
        ), None

    def _resolve_file(self, raw: str, spec: str, where: Optional[str]) -> Tuple[Optional[ResolvedArg], Optional[str]]:
        path = spec[len(_FILE_PREFIX):] if spec.startswith(_FILE_PREFIX) else spec
        if path.startswith("//"):
            path = path[2:]
        path = path.replace("\\", "/")
        if not path:
            return None, "Empty file specifier"

        relative = posixpath.normpath(path)
        fetch = relative
        if where:
            base = where.replace("\\", "/")
            fetch = posixpath.normpath(posixpath.join(base, path))
            if posixpath.isabs(path) and posixpath.isabs(base):
                relative = posixpath.relpath(fetch, base)
        kind = "file" if _TARBALL_RE.search(path) else "directory"
        return ResolvedArg(type=kind, raw=raw, fetch_spec=fetch, save_spec=f"{_FILE_PREFIX}{relative}"), None

    @staticmethod
    def _looks_like_git(spec: str) -> bool:
        if _GIT_PROTOCOL_RE.match(spec) or _GIT_SCP_RE.match(spec) or _HOSTED_SHORTCUT_RE.match(spec):
            return True
        if _GITHUB_BARE_RE.match(spec) and not spec.startswith("@"):
            return True
        if _HTTP_RE.match(spec):
            location = spec.split("#", 1)[0]
            return location.endswith(".git") or _hosted_repo(location) is not None
        return False

    def _resolve_git(self, raw: str, spec: str) -> Tuple[Optional[ResolvedArg], Optional[str]]:
        location, _, fragment = spec.partition("#")
        url = _canonical_git_url(location)
        if not url:
            return None, f"Invalid git specifier: {raw!r}"

        committish = None
        git_range = None
        for part in fragment.split("::") if fragment else []:
            if part.startswith("semver:"):
                git_range = urllib.parse.unquote(part[len("semver:"):])
            elif part.startswith("path:"):
                continue
            elif part:
                committish = part
        save = f"{url}#{fragment}" if fragment else url
        return ResolvedArg(
            type="git",
            raw=raw,
            fetch_spec=url,
            save_spec=save,
            git_committish=committish,
            git_range=git_range,
        ), None

    def _resolve_registry(self, raw: str, spec: str) -> Tuple[Optional[ResolvedArg], Optional[str]]:
        version, _ = self.engine.valid_version(spec)
        if version is not None:
            return ResolvedArg(type="version", raw=raw, fetch_spec=version, save_spec=spec), None
        normalized, _ = self.engine.normalize_range(spec)
        if normalized is not None:
            return ResolvedArg(type="range", raw=raw, fetch_spec=spec, save_spec=spec), None
        if spec and urllib.parse.quote(spec, safe=_TAG_SAFE) == spec:
            return ResolvedArg(type="tag", raw=raw, fetch_spec=spec, save_spec=spec), None
        return None, f"Invalid tag name: {spec!r}"


def _hosted_repo(location: str) -> Optional[str]:
    """Return ``<host>:<owner>/<repo>`` for URLs pointing at a known git host."""
    try:
        parts = urllib.parse.urlsplit(location)
    except ValueError:
        return None
    host = _HOSTS.get((parts.hostname or "").lower())
    if host is None:
        return None
    segments = [s for s in parts.path.split("/") if s]
    if len(segments) != 2:
        return None
    owner, repo = segments
    if repo.endswith(".git"):
        repo = repo[:-4]
    return f"{host}:{owner}/{repo}"


def _canonical_git_url(location: str) -> str:
    """Normalize every spelling of a hosted repository to ``<host>:<owner>/<repo>``."""
    shortcut = _HOSTED_SHORTCUT_RE.match(location)
    if shortcut:
        host, path = shortcut.group(1).lower(), shortcut.group(2)
        if path.endswith(".git"):
            path = path[:-4]
        return f"{host}:{path}"
    if _GITHUB_BARE_RE.match(location) and "://" not in location and "@" not in location:
        path = location[:-4] if location.endswith(".git") else location
        return f"github:{path}"

    url = location[len("git+"):] if location.lower().startswith("git+") else location
    scp = re.match(r"^([\w.-]+)@([\w.-]+):(.+)$", url)
    if scp and "://" not in url:
        url = f"ssh://{scp.group(1)}@{scp.group(2)}/{scp.group(3)}"
    hosted = _hosted_repo(url)
    if hosted:
        return hosted
    return url
