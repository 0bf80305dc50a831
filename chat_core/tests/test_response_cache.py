import pytest

from chat_core.infrastructure.storage.response_cache import ResponseCache


def test_cache_get_and_put():
    cache = ResponseCache(capacity=3)
    assert cache.get("hi") is None
    cache.put("hi", "hello")
    assert cache.get("hi") == "hello"
    assert "hi" in cache
    assert len(cache) == 1


def test_cache_key_is_exact_text():
    cache = ResponseCache()
    cache.put("Hello", "a")
    assert cache.get("hello") is None
    assert cache.get("Hello ") is None


def test_cache_evicts_oldest_insertion_first():
    cache = ResponseCache(capacity=100)
    for i in range(101):
        cache.put(f"prompt-{i}", f"answer-{i}")
    assert len(cache) == 100
    assert "prompt-0" not in cache
    assert cache.get("prompt-1") == "answer-1"
    assert cache.get("prompt-100") == "answer-100"


def test_cache_reads_do_not_refresh_entries():
    cache = ResponseCache(capacity=2)
    cache.put("a", "1")
    cache.put("b", "2")
    assert cache.get("a") == "1"
    cache.put("c", "3")
    # 读取不影响淘汰顺序：a 依然最早插入
    assert cache.keys() == ["b", "c"]


def test_cache_overwrite_keeps_position():
    cache = ResponseCache(capacity=2)
    cache.put("a", "1")
    cache.put("b", "2")
    cache.put("a", "1b")
    cache.put("c", "3")
    assert cache.keys() == ["b", "c"]


def test_cache_clear_and_invalid_capacity():
    cache = ResponseCache(capacity=2)
    cache.put("a", "1")
    cache.clear()
    assert len(cache) == 0
    with pytest.raises(ValueError):
        ResponseCache(capacity=0)
