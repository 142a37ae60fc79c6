##########################################################################################
#
# Script name: test_cache.py
#
# Description: Rolling seen-cache expiry and file persistence tests.
#
##########################################################################################

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

from theme_park_brief.cache import JsonFileCache, MemoryCache


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_memory_cache_expires_after_ttl() -> None:
    clock = FakeClock(START)
    cache = MemoryCache(ttl=timedelta(hours=72), clock=clock)
    cache.set('article_abc')
    assert cache.has('article_abc')
    assert cache.get('article_abc') is True

    clock.advance(hours=71, minutes=59)
    assert cache.has('article_abc')

    clock.advance(minutes=1)
    assert not cache.has('article_abc')
    assert cache.get('article_abc') is None
    assert len(cache) == 0


def test_memory_cache_per_entry_ttl_override() -> None:
    clock = FakeClock(START)
    cache = MemoryCache(ttl=timedelta(hours=72), clock=clock)
    cache.set('short', ttl=timedelta(hours=1))
    cache.set('long')
    clock.advance(hours=2)
    assert not cache.has('short')
    assert cache.has('long')


def test_json_file_cache_survives_restart(tmp_path: Path) -> None:
    clock = FakeClock(START)
    path = tmp_path / 'state' / 'seen.json'
    cache = JsonFileCache(str(path), ttl=timedelta(hours=72), clock=clock)
    cache.set('article_one')
    assert path.exists()

    clock.advance(hours=10)
    reloaded = JsonFileCache(str(path), ttl=timedelta(hours=72), clock=clock)
    assert reloaded.has('article_one')

    clock.advance(hours=63)
    expired = JsonFileCache(str(path), ttl=timedelta(hours=72), clock=clock)
    assert not expired.has('article_one')


def test_json_file_cache_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / 'seen.json'
    path.write_text('{not json', encoding='utf-8')
    cache = JsonFileCache(str(path), ttl=timedelta(hours=72), clock=FakeClock(START))
    assert not cache.has('anything')
    cache.set('anything')
    payload = json.loads(path.read_text(encoding='utf-8'))
    assert 'anything' in payload
