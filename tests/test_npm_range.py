"""Tests for npm semver range helpers."""

import pytest

from versioning.npm_range import intersects, parse_range, parse_version, satisfies


class TestSatisfies:
    """satisfies(version, range)."""

    @pytest.mark.parametrize(
        "version,spec,expected",
        [
            ("1.2.3", "^1.0.0", True),
            ("2.0.0", "^1.0.0", False),
            ("1.2.3", "~1.2.0", True),
            ("1.3.0", "~1.2.0", False),
            ("3.4.5", "3.x", True),
            ("1.0.0", "*", True),
            ("1.0.0", "", True),
            ("1.0.0", ">= 1.0.0 < 2.0.0", True),
            ("1.5.0", "<1.0.0 || >=1.5.0", True),
            ("v1.0.0", "1.0.0", True),
        ],
    )
    def test_ranges(self, version, spec, expected):
        assert satisfies(version, spec) is expected

    def test_prerelease_excluded_by_default(self):
        assert satisfies("1.5.0-beta.1", "^1.0.0") is False

    def test_prerelease_included_on_request(self):
        assert satisfies("1.5.0-beta.1", "^1.0.0", include_prerelease=True) is True

    def test_invalid_inputs_never_match(self):
        assert satisfies("not-a-version", "*") is False
        assert satisfies("1.0.0", "this is not a range") is False


class TestIntersects:
    """intersects(left, right)."""

    @pytest.mark.parametrize(
        "left,right,expected",
        [
            ("18.0.0", "18.x || 20.x", True),
            ("16.0.0", "18.x || 20.x", False),
            (">=18", "<18.5.0", True),
            (">=20", "<18.5.0", False),
            ("^18.19.0", "^18.19.1", True),
            ("20.0.0", "^18.19.1 || ^20.11.1", False),
        ],
    )
    def test_intersects(self, left, right, expected):
        assert intersects(left, right) is expected


class TestParsing:
    def test_parse_version_strips_prefix(self):
        assert str(parse_version("=v1.2.3")) == "1.2.3"

    def test_parse_range_invalid(self):
        assert parse_range("???") is None
