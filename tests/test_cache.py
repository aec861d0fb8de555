"""Tests for the cache stores."""

import json

from divicatalog.models.cache_entry import CacheEntry
from divicatalog.services.cache import FileCacheStore, MemoryCacheStore, cache_key


class TestCacheKey:
    def test_is_sha1_hex(self):
        key = cache_key("https://site/layouts/")
        assert len(key) == 40
        assert all(c in "0123456789abcdef" for c in key)

    def test_differs_per_url(self):
        assert cache_key("https://site/a") != cache_key("https://site/b")


class TestMemoryCacheStore:
    def test_miss_then_hit(self):
        store = MemoryCacheStore()
        assert store.get("k") is None
        store.put("k", CacheEntry(body="x"))
        assert store.get("k").body == "x"


class TestFileCacheStore:
    def test_one_file_per_key_with_camel_case_fields(self, tmp_path):
        store = FileCacheStore(tmp_path / "http")
        store.put("abc", CacheEntry(etag='"e"', last_modified="yesterday", body="<html/>"))

        written = json.loads((tmp_path / "http" / "abc.json").read_text())
        assert written == {"etag": '"e"', "lastModified": "yesterday", "body": "<html/>"}

        entry = store.get("abc")
        assert entry.etag == '"e"'
        assert entry.last_modified == "yesterday"

    def test_missing_key_is_a_miss(self, tmp_path):
        assert FileCacheStore(tmp_path).get("nope") is None

    def test_corrupt_file_is_a_miss(self, tmp_path):
        (tmp_path / "bad.json").write_text("{not json")
        assert FileCacheStore(tmp_path).get("bad") is None

    def test_put_overwrites(self, tmp_path):
        store = FileCacheStore(tmp_path)
        store.put("k", CacheEntry(body="old"))
        store.put("k", CacheEntry(body="new"))
        assert store.get("k").body == "new"
