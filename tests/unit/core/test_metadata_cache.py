"""
Unit tests for core.metadata_cache module.

Tests:
- get/put and snapshot persistence
- fetch(): fresh hits, stale refresh, misses, timeouts, transport errors
- load(): missing, malformed and partially malformed files
"""

import asyncio
import json
import time
from unittest.mock import AsyncMock, patch

import pytest

from nostrcord.core.exceptions import PersistenceError, TransportError
from nostrcord.core.metadata_cache import MetadataCache
from nostrcord.models import Profile, ProfileAttributes


ALICE_ATTRS = ProfileAttributes(name="alice", display_name="Alice", picture="https://p/a.png")


class TestGetPut:
    """In-memory mapping."""

    def test_get_missing(self, cache, alice):
        assert cache.get(alice) is None

    async def test_put_then_get(self, cache, named_profile):
        await cache.put(named_profile)
        assert cache.get(named_profile.identity) == named_profile
        assert len(cache) == 1

    async def test_put_replaces(self, cache, alice):
        await cache.put(Profile(alice, name="old"))
        await cache.put(Profile(alice, name="new"))
        assert cache.get(alice).name == "new"
        assert len(cache) == 1


class TestFetch:
    """Cache-aside lookups."""

    async def test_miss_calls_fetcher(self, cache, alice):
        fetcher = AsyncMock(return_value=ALICE_ATTRS)
        profile = await cache.fetch(alice, fetcher)
        fetcher.assert_awaited_once_with(alice, cache._fetch_timeout)
        assert profile.best_name == "Alice"
        assert profile.picture == "https://p/a.png"
        assert cache.get(alice) == profile

    async def test_fresh_entry_not_refetched(self, cache, alice):
        fetcher = AsyncMock(return_value=ALICE_ATTRS)
        first = await cache.fetch(alice, fetcher)
        second = await cache.fetch(alice, fetcher)
        assert fetcher.await_count == 1
        assert second == first

    async def test_stale_entry_refetched(self, cache, alice):
        stale = Profile(alice, name="old", last_updated=int(time.time()) - cache.lifetime - 10)
        await cache.put(stale)
        fetcher = AsyncMock(return_value=ALICE_ATTRS)
        profile = await cache.fetch(alice, fetcher)
        assert fetcher.await_count == 1
        assert profile.name == "alice"

    async def test_not_found_caches_empty_profile(self, cache, alice):
        fetcher = AsyncMock(return_value=None)
        profile = await cache.fetch(alice, fetcher)
        assert profile.best_name == alice.short()
        assert cache.get(alice) == profile

    async def test_miss_not_retried_within_lifetime(self, cache, alice):
        fetcher = AsyncMock(return_value=None)
        await cache.fetch(alice, fetcher)
        await cache.fetch(alice, fetcher)
        await cache.fetch(alice, fetcher)
        assert fetcher.await_count == 1

    async def test_transport_error_caches_empty_profile(self, cache, alice, caplog):
        fetcher = AsyncMock(side_effect=TransportError("no relays"))
        with caplog.at_level("WARNING"):
            profile = await cache.fetch(alice, fetcher)
        assert profile.best_name == alice.short()
        assert "metadata_fetch_failed" in caplog.text

    async def test_timeout_caches_empty_profile(self, alice, caplog):
        cache = MetadataCache(fetch_timeout=0.05)

        async def slow_fetcher(identity, timeout):
            await asyncio.sleep(5)
            return ALICE_ATTRS

        with caplog.at_level("WARNING"):
            profile = await cache.fetch(alice, slow_fetcher)
        assert profile.name is None
        assert "metadata_fetch_timeout" in caplog.text

    async def test_unexpected_error_caches_empty_profile(self, cache, alice, caplog):
        fetcher = AsyncMock(side_effect=RuntimeError("ffi"))
        with caplog.at_level("ERROR"):
            profile = await cache.fetch(alice, fetcher)
        assert profile.best_name == alice.short()
        assert "metadata_fetch_failed" in caplog.text

    @pytest.mark.parametrize("field", ["name", "display_name", "nip05", "picture", "about"])
    async def test_malformed_profile_caches_empty(self, cache, alice, field, caplog):
        fetcher = AsyncMock(return_value=ProfileAttributes(**{field: "evil\x00value"}))
        with caplog.at_level("WARNING"):
            profile = await cache.fetch(alice, fetcher)
        assert profile == cache.get(alice)
        assert profile.best_name == alice.short()
        assert "metadata_invalid" in caplog.text


class TestPersistence:
    """JSON snapshot file."""

    async def test_put_writes_snapshot(self, tmp_path, named_profile):
        path = tmp_path / "metadata_cache.json"
        cache = MetadataCache(path)
        await cache.put(named_profile)
        data = json.loads(path.read_text())
        npub = named_profile.identity.to_bech32()
        assert list(data) == [npub]
        assert data[npub]["display_name"] == "Alice"
        assert data[npub]["last_updated"] == named_profile.last_updated

    async def test_reload_round_trip(self, tmp_path, named_profile, bob):
        path = tmp_path / "metadata_cache.json"
        cache = MetadataCache(path)
        await cache.put(named_profile)
        await cache.put(Profile.empty(bob, now=5))
        reloaded = MetadataCache(path)
        assert reloaded.load() == 2
        assert reloaded.get(named_profile.identity) == named_profile
        assert reloaded.get(bob) == Profile.empty(bob, now=5)

    async def test_write_failure_logged(self, tmp_path, named_profile, caplog):
        cache = MetadataCache(tmp_path / "cache.json")
        with (
            patch(
                "nostrcord.core.metadata_cache.write_snapshot",
                side_effect=PersistenceError("read-only"),
            ),
            caplog.at_level("ERROR"),
        ):
            await cache.put(named_profile)
        assert cache.get(named_profile.identity) == named_profile
        assert "metadata_write_failed" in caplog.text


class TestLoad:
    """Loading the snapshot file."""

    def test_memory_only(self):
        assert MetadataCache().load() == 0

    def test_missing_file(self, tmp_path):
        assert MetadataCache(tmp_path / "nope.json").load() == 0

    def test_malformed_json(self, tmp_path, caplog):
        path = tmp_path / "cache.json"
        path.write_text("{not json")
        with caplog.at_level("WARNING"):
            assert MetadataCache(path).load() == 0
        assert "metadata_file_malformed" in caplog.text

    def test_non_object_top_level(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("[1, 2, 3]")
        assert MetadataCache(path).load() == 0

    def test_malformed_records_skipped(self, tmp_path, alice, bob):
        path = tmp_path / "cache.json"
        path.write_text(
            json.dumps(
                {
                    alice.to_bech32(): {"name": "alice", "last_updated": 10},
                    "npub1garbage": {"name": "x"},
                    bob.to_bech32(): "not a record",
                }
            )
        )
        cache = MetadataCache(path)
        assert cache.load() == 1
        assert cache.get(alice).name == "alice"
        assert cache.get(bob) is None
