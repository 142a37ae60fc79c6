##########################################################################################
#
# Script name: cache.py
#
# Description: Rolling seen-article cache with TTL expiry, in memory or backed by a
#              JSON file so it survives restarts.
#
##########################################################################################

import json
import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Callable, Protocol

from .utils import parse_timestamp, utc_now


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class SeenCache(Protocol):
    def has(self, key: str) -> bool: ...

    def get(self, key: str) -> bool | None: ...

    def set(self, key: str, value: bool = True, ttl: timedelta | None = None) -> None: ...


# ****************************************************************************************
# Classes
# ****************************************************************************************


class MemoryCache:
    """Key -> value store where every entry expires ``ttl`` after it was written."""

    def __init__(self, ttl: timedelta, clock: Clock = utc_now) -> None:
        self.ttl = ttl
        self.clock = clock
        self._entries: dict[str, tuple[bool, datetime]] = {}
        self._lock = threading.Lock()

    def _purge(self, now: datetime) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    def get(self, key: str) -> bool | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self.clock():
                del self._entries[key]
                return None
            return value

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def set(self, key: str, value: bool = True, ttl: timedelta | None = None) -> None:
        with self._lock:
            now = self.clock()
            self._entries[key] = (value, now + (ttl or self.ttl))
            self._purge(now)

    def __len__(self) -> int:
        with self._lock:
            self._purge(self.clock())
            return len(self._entries)


class JsonFileCache(MemoryCache):
    """MemoryCache that loads from and writes through to a JSON file."""

    def __init__(self, path: str, ttl: timedelta, clock: Clock = utc_now) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self.path = path
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r', encoding='utf-8') as handle:
                payload = json.load(handle) or {}
        except (OSError, ValueError) as exc:
            log.warning('Ignoring unreadable cache file %s: %s', self.path, exc)
            return
        now = self.clock()
        for key, row in payload.items():
            if not isinstance(row, dict):
                continue
            expires_at = parse_timestamp(row.get('expires_at'))
            if expires_at is None or expires_at <= now:
                continue
            self._entries[key] = (bool(row.get('value', True)), expires_at)
        log.debug('Loaded %d live cache entr(ies) from %s.', len(self._entries), self.path)

    def _save(self) -> None:
        payload = {
            key: {'value': value, 'expires_at': expires_at.isoformat()}
            for key, (value, expires_at) in self._entries.items()
        }
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f'{self.path}.tmp'
        with open(tmp_path, 'w', encoding='utf-8') as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
        os.replace(tmp_path, self.path)

    def set(self, key: str, value: bool = True, ttl: timedelta | None = None) -> None:
        super().set(key, value=value, ttl=ttl)
        with self._lock:
            self._save()
