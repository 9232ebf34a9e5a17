"""Tests for the npm registry client and packer."""

import base64
import hashlib
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from constants import Constants
from common.logging_utils import safe_url
from common.errors import PackError, RegistryError, RegistryNotFoundError
from registry.npm import (
    NpmPacker,
    NpmRegistryClient,
    RegistryPackage,
    integrity_matches,
    npm_config_get,
    packument_url,
    resolve_registry,
)


def sri(data):
    return "sha512-" + base64.b64encode(hashlib.sha512(data).digest()).decode("ascii")


PACKUMENT = {
    "name": "left-pad",
    "dist-tags": {"latest": "1.3.0"},
    "versions": {
        "1.2.0": {"name": "left-pad", "version": "1.2.0"},
        "1.3.0": {
            "name": "left-pad",
            "version": "1.3.0",
            "dist": {"tarball": "https://registry.npmjs.org/left-pad/-/left-pad-1.3.0.tgz"},
        },
    },
}


class TestUrlsAndConfig:
    """Test registry URL building and npm config lookups."""

    def test_packument_url_plain(self):
        """Test an unscoped name."""
        assert packument_url("https://registry.npmjs.org", "lodash") == "https://registry.npmjs.org/lodash"

    def test_packument_url_scoped(self):
        """Test that the scope separator is escaped."""
        assert packument_url("https://r.example/", "@babel/core") == "https://r.example/@babel%2Fcore"

    def test_explicit_registry_wins(self):
        """Test that an explicit registry skips npm config."""
        with patch("registry.npm.npm_config_get") as mock_get:
            assert resolve_registry("@scope/pkg", "https://mine.example") == "https://mine.example/"
            mock_get.assert_not_called()

    @patch("registry.npm.npm_config_get", return_value="https://npm.pkg.github.com")
    def test_scoped_registry_from_npm_config(self, mock_get):
        """Test the @scope:registry lookup."""
        assert resolve_registry("@scope/pkg", cwd="/tmp") == "https://npm.pkg.github.com/"
        mock_get.assert_called_once_with("@scope:registry", "/tmp")

    @patch("registry.npm.npm_config_get", return_value=None)
    def test_default_registry(self, _mock_get):
        """Test the fallback to the public registry."""
        assert resolve_registry("@scope/pkg") == Constants.REGISTRY_URL_NPM
        assert resolve_registry("plain") == Constants.REGISTRY_URL_NPM

    @patch("registry.npm.npm_config_get", return_value="http://reg.example:abc/")
    def test_scoped_registry_with_malformed_port(self, _mock_get):
        """Test that a bad port in npm config does not crash registry resolution."""
        assert resolve_registry("@s/p") == "http://reg.example:abc/"

    @patch("registry.npm.subprocess.run")
    def test_npm_config_get_undefined(self, mock_run):
        """Test that npm's 'undefined' output means unset."""
        mock_run.return_value = MagicMock(returncode=0, stdout="undefined\n")
        assert npm_config_get("@x:registry") is None

    @patch("registry.npm.subprocess.run", side_effect=FileNotFoundError("npm"))
    def test_npm_config_get_without_npm(self, _mock_run):
        """Test that a missing npm binary is not an error."""
        assert npm_config_get("@x:registry") is None


class TestIntegrity:
    """Test SRI verification."""

    def test_matches(self):
        """Test a correct sha512 entry."""
        assert integrity_matches(b"abc", sri(b"abc"))

    def test_mismatch(self):
        """Test a wrong digest."""
        assert not integrity_matches(b"abc", sri(b"abd"))

    def test_missing_or_unsupported(self):
        """Test that absent or sha1-only integrity is not checked."""
        assert integrity_matches(b"abc", None)
        assert integrity_matches(b"abc", "sha1-AAAA")


class TestNpmRegistryClient:
    """Test packument and tarball fetching."""

    @patch("registry.npm.get_json", return_value=(200, {}, PACKUMENT))
    def test_fetch_latest(self, mock_get_json):
        """Test that the latest dist-tag selects the manifest."""
        package = NpmRegistryClient(registry="https://registry.npmjs.org/").fetch_latest("left-pad")
        assert package.version == "1.3.0"
        assert package.manifest["version"] == "1.3.0"
        assert mock_get_json.call_args[0][0] == "https://registry.npmjs.org/left-pad"

    @patch("registry.npm.get_json", return_value=(200, {}, {"name": "x", "dist-tags": {}}))
    def test_fetch_latest_without_tag(self, _mock_get_json):
        """Test that a packument without latest yields None."""
        assert NpmRegistryClient(registry="https://r.example/").fetch_latest("x") is None

    @patch("registry.npm.get_json", return_value=(404, {}, None))
    def test_not_found(self, _mock_get_json):
        """Test the 404 mapping."""
        with pytest.raises(RegistryNotFoundError):
            NpmRegistryClient(registry="https://r.example/").fetch_latest("missing")

    @pytest.mark.parametrize("response", [(500, {}, None), (0, {}, None), (200, {}, ["not", "a", "dict"])])
    def test_other_failures(self, response):
        """Test that other failures are plain registry errors."""
        with patch("registry.npm.get_json", return_value=response):
            with pytest.raises(RegistryError) as excinfo:
                NpmRegistryClient(registry="https://r.example/").fetch_packument("x")
        assert not isinstance(excinfo.value, RegistryNotFoundError)

    def test_fetch_archive_without_tarball_url(self):
        """Test a manifest with no dist.tarball."""
        with pytest.raises(RegistryError, match="no tarball URL"):
            NpmRegistryClient().fetch_archive(RegistryPackage("1.0.0", {"version": "1.0.0"}))

    @patch("registry.npm.robust_get")
    def test_fetch_archive_verifies_integrity(self, mock_get):
        """Test download and integrity verification."""
        mock_get.return_value = (200, {}, b"tarball-bytes")
        dist = {"tarball": "https://r.example/x.tgz", "integrity": sri(b"tarball-bytes")}
        client = NpmRegistryClient()
        assert client.fetch_archive(RegistryPackage("1.0.0", {"dist": dist})) == b"tarball-bytes"

        mock_get.return_value = (200, {}, b"tampered")
        with pytest.raises(RegistryError, match="Integrity"):
            client.fetch_archive(RegistryPackage("1.0.0", {"dist": dist}))

    @patch("registry.npm.robust_get", return_value=(403, {}, b"forbidden"))
    def test_fetch_archive_http_error(self, _mock_get):
        """Test a failed download."""
        with pytest.raises(RegistryError, match="HTTP 403"):
            NpmRegistryClient().fetch_archive(RegistryPackage("1.0.0", {"dist": {"tarball": "https://r/x.tgz"}}))


class TestNpmPacker:
    """Test npm pack invocation."""

    def test_pack_reads_reported_tarball(self, tmp_path):
        """Test that the JSON report names the tarball to read."""
        def fake_run(cmd, **kwargs):
            destination = cmd[cmd.index("--pack-destination") + 1]
            with open(f"{destination}/scope-pkg-1.0.0.tgz", "wb") as fh:
                fh.write(b"packed")
            report = [{"filename": "@scope/pkg-1.0.0.tgz"}]
            return MagicMock(returncode=0, stdout=json.dumps(report), stderr="")

        with patch("registry.npm.subprocess.run", side_effect=fake_run) as mock_run:
            assert NpmPacker().pack(str(tmp_path)) == b"packed"
        cmd = mock_run.call_args[0][0]
        assert cmd[:2] == ["npm", "pack"]
        assert "--ignore-scripts" in cmd
        assert mock_run.call_args[1]["cwd"] == str(tmp_path)

    @patch("registry.npm.subprocess.run")
    def test_pack_failure(self, mock_run, tmp_path):
        """Test that a non-zero exit becomes PackError."""
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="npm ERR! code EJSONPARSE\n")
        with pytest.raises(PackError, match="EJSONPARSE"):
            NpmPacker().pack(str(tmp_path))

    @patch("registry.npm.subprocess.run", side_effect=FileNotFoundError("npm"))
    def test_npm_missing(self, _mock_run, tmp_path):
        """Test a missing npm executable."""
        with pytest.raises(PackError, match="not found"):
            NpmPacker().pack(str(tmp_path))

    @patch("registry.npm.subprocess.run", side_effect=subprocess.TimeoutExpired("npm", 300))
    def test_pack_timeout(self, _mock_run, tmp_path):
        """Test a hung npm pack."""
        with pytest.raises(PackError, match="timed out"):
            NpmPacker().pack(str(tmp_path))


class TestSafeUrl:
    """Test URL redaction used in log messages."""

    def test_strips_credentials_and_query(self):
        """Test that userinfo and query strings are dropped."""
        assert safe_url("https://user:pw@r.example:8443/pkg?token=x") == "https://r.example:8443/pkg"

    def test_malformed_port(self):
        """Test that an unparsable port is redacted instead of raising."""
        assert safe_url("http://reg.example:abc/") == "<invalid-url>"
