"""Tests for DedupCache and RedisDedupCache."""

from unittest.mock import MagicMock

import redis

from memobot.core.dedup import DedupCache, RedisDedupCache, build_dedup_cache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_first_delivery_is_not_seen():
    cache = DedupCache(ttl_seconds=300)
    assert cache.seen("telegram", "456") is False


def test_redelivery_within_ttl_is_seen():
    cache = DedupCache(ttl_seconds=300)
    cache.seen("telegram", "456")
    assert cache.seen("telegram", "456") is True


def test_same_id_on_other_channel_is_distinct():
    cache = DedupCache(ttl_seconds=300)
    cache.seen("telegram", "456")
    assert cache.seen("whatsapp", "456") is False


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = DedupCache(ttl_seconds=300, clock=clock)
    cache.seen("telegram", "456")
    clock.now += 301
    assert cache.seen("telegram", "456") is False
    assert len(cache) == 1


def test_sweep_drops_expired_entries():
    clock = FakeClock()
    cache = DedupCache(ttl_seconds=10, clock=clock)
    for i in range(5):
        cache.seen("telegram", str(i))
    clock.now += 11
    cache.seen("telegram", "fresh")
    assert len(cache) == 1


def test_missing_message_id_is_never_deduplicated():
    cache = DedupCache()
    assert cache.seen("telegram", None) is False
    assert cache.seen("telegram", None) is False
    assert len(cache) == 0


def test_redis_cache_uses_set_nx():
    client = MagicMock()
    client.set.side_effect = [True, None]
    cache = RedisDedupCache(client, ttl_seconds=300)
    assert cache.seen("whatsapp", "wamid.1") is False
    assert cache.seen("whatsapp", "wamid.1") is True
    client.set.assert_called_with("memobot:dedup:whatsapp:wamid.1", "1", nx=True, ex=300)


def test_redis_cache_processes_message_when_redis_is_down():
    client = MagicMock()
    client.set.side_effect = redis.ConnectionError("down")
    cache = RedisDedupCache(client)
    assert cache.seen("whatsapp", "wamid.1") is False


def test_build_dedup_cache_defaults_to_process_local(test_settings):
    assert isinstance(build_dedup_cache(test_settings, MagicMock()), DedupCache)


def test_build_dedup_cache_redis(test_settings):
    test_settings.dedup_backend = "redis"
    assert isinstance(build_dedup_cache(test_settings, MagicMock()), RedisDedupCache)
