"""
  NPM registry module. Fetches the latest published manifest and tarball
  of a package, and packs the local working tree with the npm CLI.
"""
from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import subprocess
import tempfile
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional

from constants import Constants
from common.errors import PackError, RegistryError, RegistryNotFoundError
from common.http_client import get_json, robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

PACKUMENT_ACCEPT = "application/json"


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def packument_url(registry: str, name: str) -> str:
    """Build the packument URL; scoped names are sent as ``@scope%2fname``."""
    return _with_slash(registry) + urllib.parse.quote(name, safe="@")


def npm_config_get(key: str, cwd: Optional[str] = None) -> Optional[str]:
    """Read one value from the npm configuration, or None when unset or npm is missing."""
    try:
        result = subprocess.run(
            ["npm", "config", "get", key],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=Constants.NPM_CONFIG_TIMEOUT,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("npm config get %s failed: %s", key, exc)
        return None
    value = (result.stdout or "").strip()
    if result.returncode != 0 or not value or value in ("undefined", "null"):
        return None
    return value


def resolve_registry(name: str, registry: Optional[str] = None, cwd: Optional[str] = None) -> str:
    """Pick the registry for ``name``.

    Precedence: explicit ``registry``, the ``@scope:registry`` npm setting for
    scoped packages, then the public npm registry.
    """
    if registry:
        return _with_slash(registry)
    if name.startswith("@") and "/" in name:
        scope = name.split("/", 1)[0]
        scoped = npm_config_get(f"{scope}:registry", cwd)
        if scoped and scoped.startswith(("http://", "https://")):
            logger.debug("Using %s registry for scope %s", safe_url(scoped), scope)
            return _with_slash(scoped)
    return Constants.REGISTRY_URL_NPM


def integrity_matches(data: bytes, integrity: Optional[str]) -> bool:
    """Check ``data`` against an SRI string; entries other than sha512 are skipped."""
    if not integrity:
        return True
    expected = [entry for entry in integrity.split() if entry.startswith("sha512-")]
    if not expected:
        return True
    actual = "sha512-" + base64.b64encode(hashlib.sha512(data).digest()).decode("ascii")
    return actual in expected


@dataclass(frozen=True)
class RegistryPackage:
    """Latest published version of a package."""
    version: str
    manifest: Dict[str, Any]


class NpmRegistryClient:
    """Read-only client for the npm registry.

    Args:
        registry: Registry base URL; resolved per package when omitted.
        cwd: Directory used when asking npm for scoped registry settings.
    """

    def __init__(self, registry: Optional[str] = None, cwd: Optional[str] = None):
        self.registry = registry
        self.cwd = cwd

    def fetch_packument(self, name: str) -> Dict[str, Any]:
        """Fetch the full packument for ``name``.

        Raises:
            RegistryNotFoundError: The registry answered 404.
            RegistryError: Any other failure or a non-object body.
        """
        url = packument_url(resolve_registry(name, self.registry, self.cwd), name)
        with Timer() as timer:
            status, _, data = get_json(url, headers={"Accept": PACKUMENT_ACCEPT})

        if is_debug_enabled(logger):
            logger.debug(
                "Packument fetched",
                extra=extra_context(
                    event="registry_fetch",
                    component="npm_registry",
                    action="packument",
                    status_code=status,
                    duration_ms=timer.duration_ms(),
                    package=name,
                    target=safe_url(url),
                ),
            )

        if status == 404:
            raise RegistryNotFoundError(f"Package {name} not found in registry")
        if status == 0:
            raise RegistryError(f"Registry request failed for {name}")
        if status != 200:
            raise RegistryError(f"Registry returned HTTP {status} for {name}")
        if not isinstance(data, dict):
            raise RegistryError(f"Malformed packument for {name}")
        return data

    def fetch_latest(self, name: str) -> Optional[RegistryPackage]:
        """Return the version behind the ``latest`` dist-tag, or None when there is none."""
        packument = self.fetch_packument(name)
        latest = (packument.get("dist-tags") or {}).get("latest")
        if not latest:
            return None
        manifest = (packument.get("versions") or {}).get(latest)
        if not isinstance(manifest, dict):
            raise RegistryError(f"Packument for {name} has no manifest for latest version {latest}")
        return RegistryPackage(version=str(latest), manifest=manifest)

    def fetch_archive(self, package: RegistryPackage) -> bytes:
        """Download the tarball of ``package`` and verify its sha512 integrity."""
        dist = package.manifest.get("dist") or {}
        tarball_url = dist.get("tarball")
        if not tarball_url:
            raise RegistryError("Registry package has no tarball URL")

        status, _, body = robust_get(tarball_url)
        if status != 200:
            detail = body.decode("utf-8", "replace") if status == 0 else f"HTTP {status}"
            raise RegistryError(f"Unable to download {safe_url(tarball_url)}: {detail}")
        if not integrity_matches(body, dist.get("integrity")):
            raise RegistryError(f"Integrity check failed for {safe_url(tarball_url)}")
        return body


class NpmPacker:
    """Create the tarball ``npm publish`` would upload, using ``npm pack``."""

    def pack(self, directory: str) -> bytes:
        """Pack ``directory`` and return the tarball bytes.

        Raises:
            PackError: npm is missing, fails, times out or produces no tarball.
        """
        with tempfile.TemporaryDirectory(prefix="needs-publish-") as destination:
            try:
                result = subprocess.run(
                    ["npm", "pack", "--json", "--ignore-scripts", "--pack-destination", destination],
                    cwd=directory,
                    capture_output=True,
                    text=True,
                    timeout=Constants.PACK_TIMEOUT,
                    check=False,
                )
            except FileNotFoundError as exc:
                raise PackError("npm executable not found") from exc
            except subprocess.TimeoutExpired as exc:
                raise PackError(f"npm pack timed out after {Constants.PACK_TIMEOUT} seconds") from exc
            except OSError as exc:
                raise PackError(str(exc)) from exc

            if result.returncode != 0:
                message = (result.stderr or result.stdout or "").strip().splitlines()
                raise PackError(message[-1] if message else f"npm pack exited with {result.returncode}")

            filename = self._tarball_name(result.stdout, destination)
            try:
                with open(os.path.join(destination, filename), "rb") as handle:
                    return handle.read()
            except OSError as exc:
                raise PackError(f"Unable to read packed tarball: {exc}") from exc

    @staticmethod
    def _tarball_name(stdout: str, destination: str) -> str:
        try:
            report = json.loads(stdout)
            if isinstance(report, list) and report and report[0].get("filename"):
                # Scoped packages report "@scope/name-1.0.0.tgz" but write "scope-name-1.0.0.tgz".
                return report[0]["filename"].lstrip("@").replace("/", "-")
        except (ValueError, AttributeError):
            pass
        tarballs = [f for f in os.listdir(destination) if f.endswith(".tgz")]
        if len(tarballs) != 1:
            raise PackError("npm pack did not produce a tarball")
        return tarballs[0]
