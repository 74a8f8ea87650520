"""Tests for the weekly downloads (popularity) cache."""

import asyncio
import json

from common.schema_validate import SchemaError
from errors import RegistryHttpError
from registry.npm.downloads import PopularityCache


class FakeDownloadsClient:
    """Downloads client returning canned counts and counting requests."""

    def __init__(self, counts, delay=0.0):
        self.counts = counts
        self.delay = delay
        self.calls = []

    async def fetch_weekly_downloads(self, name):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        value = self.counts[name]
        if isinstance(value, Exception):
            raise value
        return value


class TestPopularityCache:
    """Lookups, failure sentinel and persistence."""

    def test_fetch_and_save(self, tmp_path):
        client = FakeDownloadsClient({"left-pad": 1234})
        cache = PopularityCache(client, str(tmp_path))
        cache.load()

        assert asyncio.run(cache.get("left-pad")) == 1234
        cache.save()

        data = json.loads((tmp_path / "package-downloads.json").read_text())
        assert data == {"left-pad": 1234}

    def test_cached_value_skips_network(self, tmp_path):
        (tmp_path / "package-downloads.json").write_text(json.dumps({"left-pad": 50}))
        client = FakeDownloadsClient({})
        cache = PopularityCache(client, str(tmp_path))
        cache.load()

        assert asyncio.run(cache.get("left-pad")) == 50
        assert client.calls == []

    def test_network_failure_returns_unknown_and_is_not_cached(self, tmp_path):
        client = FakeDownloadsClient({"left-pad": RegistryHttpError("https://api/left-pad", "timeout")})
        cache = PopularityCache(client, str(tmp_path))
        cache.load()

        assert asyncio.run(cache.get("left-pad")) == -1
        cache.save()

        assert cache.cached("left-pad") is None
        assert not (tmp_path / "package-downloads.json").exists()

    def test_schema_failure_returns_unknown(self, tmp_path):
        client = FakeDownloadsClient({"left-pad": SchemaError("no downloads field")})
        cache = PopularityCache(client, str(tmp_path))
        assert asyncio.run(cache.get("left-pad")) == -1

    def test_failure_does_not_touch_existing_file(self, tmp_path):
        path = tmp_path / "package-downloads.json"
        path.write_text(json.dumps({"other": 10}))
        client = FakeDownloadsClient({"left-pad": RegistryHttpError("https://api/left-pad", "boom")})
        cache = PopularityCache(client, str(tmp_path))
        cache.load()

        asyncio.run(cache.get("left-pad"))
        cache.save()

        assert json.loads(path.read_text()) == {"other": 10}

    def test_concurrent_gets_share_one_fetch(self, tmp_path):
        client = FakeDownloadsClient({"left-pad": 7}, delay=0.01)
        cache = PopularityCache(client, str(tmp_path))

        async def _run():
            return await asyncio.gather(*(cache.get("left-pad") for _ in range(5)))

        assert asyncio.run(_run()) == [7] * 5
        assert client.calls == ["left-pad"]

    def test_unreadable_file_is_empty(self, tmp_path, caplog):
        (tmp_path / "package-downloads.json").write_text("[1, 2, 3]")
        cache = PopularityCache(FakeDownloadsClient({}), str(tmp_path))
        cache.load()
        assert cache.cached("left-pad") is None
        assert "Failed to read download cache" in caplog.text

    def test_disabled_cache_does_not_write(self, tmp_path):
        client = FakeDownloadsClient({"left-pad": 99})
        cache = PopularityCache(client, str(tmp_path), enabled=False)
        cache.load()

        assert asyncio.run(cache.get("left-pad")) == 99
        cache.save()

        assert list(tmp_path.iterdir()) == []
