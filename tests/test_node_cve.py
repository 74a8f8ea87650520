"""Tests for the Node.js runtime advisory check."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from common.schema_validate import SchemaError
from registry.nodejs import NodeAdvisoryCache, check_node_version, installed_node_version

ADVISORIES = {
    "CVE-2024-0001": {
        "cve": ["CVE-2024-0001"],
        "vulnerable": "18.x || 20.x",
        "patched": "^18.19.1 || ^20.11.1",
        "overview": "A bad thing.",
    },
    "CVE-2016-0002": {
        "cve": ["CVE-2016-0002"],
        "vulnerable": "<=4.0.0",
        "patched": ">=4.0.1",
    },
}


class TestCheckNodeVersion:
    """Advisory matching."""

    def test_vulnerable_version(self):
        problems = check_node_version("20.0.0", ADVISORIES)
        assert len(problems) == 1
        assert problems[0].startswith("CVE-2024-0001, affects Node.js 18.x || 20.x")
        assert "A bad thing." in problems[0]

    def test_patched_version(self):
        assert check_node_version("20.11.1", ADVISORIES) == []

    def test_unaffected_version(self):
        assert check_node_version("22.1.0", ADVISORIES) == []

    def test_engines_range(self):
        problems = check_node_version(">=18.0.0 <18.1.0", ADVISORIES)
        assert len(problems) == 1


class TestNodeAdvisoryCache:
    """Loading the advisory index once."""

    def test_loads_once(self):
        fetch = MagicMock(return_value=ADVISORIES)
        cache = NodeAdvisoryCache(url="https://example/index.json", fetch=fetch)

        assert cache.get() == ADVISORIES
        assert cache.get() == ADVISORIES

        fetch.assert_called_once_with("https://example/index.json")

    def test_invalid_index(self):
        cache = NodeAdvisoryCache(fetch=MagicMock(return_value={"x": {"cve": []}}))
        with pytest.raises(SchemaError):
            cache.get()


class TestInstalledNodeVersion:
    """Detecting the node runtime on PATH."""

    @patch("registry.nodejs.subprocess.run")
    def test_version(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(["node", "--version"], 0, stdout="v20.11.1\n", stderr="")
        assert installed_node_version() == "20.11.1"

    @patch("registry.nodejs.subprocess.run", side_effect=FileNotFoundError("node"))
    def test_not_installed(self, _mock_run):
        assert installed_node_version() is None

    @patch("registry.nodejs.subprocess.run")
    def test_failure(self, mock_run):
        mock_run.return_value = subprocess.CompletedProcess(["node", "--version"], 1, stdout="", stderr="boom")
        assert installed_node_version() is None
