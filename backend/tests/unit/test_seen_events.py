"""Unit tests for the process-local seen-event cache."""

import pytest

from app.infrastructure.payments.seen_events import SeenEventCache


class TestSeenEventCache:

    def test_mark_then_seen(self):
        cache = SeenEventCache(10)
        assert cache.seen("evt_1") is False

        cache.mark("evt_1")

        assert cache.seen("evt_1") is True
        assert "evt_1" in cache

    def test_evicts_least_recently_used(self):
        cache = SeenEventCache(2)
        cache.mark("a")
        cache.mark("b")
        cache.seen("a")  # refresh a
        cache.mark("c")

        assert "a" in cache
        assert "b" not in cache
        assert len(cache) == 2

    def test_none_key_never_seen(self):
        assert SeenEventCache(1).seen(None) is False

    def test_clear(self):
        cache = SeenEventCache(5)
        cache.mark("a")
        cache.clear()
        assert len(cache) == 0

    def test_rejects_empty_capacity(self):
        with pytest.raises(ValueError):
            SeenEventCache(0)
