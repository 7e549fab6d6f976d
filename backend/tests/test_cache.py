"""
Tests for the parsed-rows cache.
"""
import pytest
import time
from studio.core.cache import SimpleCache, get_rows_cache, generate_rows_cache_key


@pytest.mark.unit
def test_simple_cache_set_get():
    cache = SimpleCache(default_ttl=1.0)

    cache.set("key1", [{"a": 1}])
    assert cache.get("key1") == [{"a": 1}]
    assert cache.get("missing") is None


@pytest.mark.unit
def test_simple_cache_expiration():
    cache = SimpleCache(default_ttl=0.1)

    cache.set("key1", "value1")
    assert cache.get("key1") == "value1"

    time.sleep(0.15)
    assert cache.get("key1") is None


@pytest.mark.unit
def test_simple_cache_cleanup():
    cache = SimpleCache(default_ttl=0.1)

    cache.set("key1", "value1")
    cache.set("key2", "value2", ttl=1.0)

    time.sleep(0.15)
    assert cache.cleanup_expired() == 1
    assert cache.get("key2") == "value2"


@pytest.mark.unit
def test_simple_cache_stats_and_clear():
    cache = SimpleCache(default_ttl=1.0)
    cache.set("key1", "value1")
    cache.set("key2", "value2")

    assert cache.get_stats() == {"size": 2, "default_ttl": 1.0}

    cache.clear()
    assert cache.get_stats()["size"] == 0


@pytest.mark.unit
def test_generate_rows_cache_key():
    key1 = generate_rows_cache_key(b"a,b\n1,2", "file.csv")
    key2 = generate_rows_cache_key(b"a,b\n1,2", "file.csv")
    key3 = generate_rows_cache_key(b"a,b\n1,3", "file.csv")

    assert key1 == key2
    assert key1 != key3
    assert key1.startswith("rows:")


@pytest.mark.unit
def test_rows_cache_key_depends_on_name_and_sheet():
    content = b"same bytes"
    assert generate_rows_cache_key(content, "a.csv") != generate_rows_cache_key(content, "a.json")
    assert generate_rows_cache_key(content, "book.xlsx", 0) != generate_rows_cache_key(content, "book.xlsx", 1)


@pytest.mark.unit
def test_rows_cache_singleton():
    assert get_rows_cache() is get_rows_cache()
