##########################################################################################
#
# Script name: fetchers.py
#
# Description: Fetches raw items from RSS feeds and scraped news search pages.
#
##########################################################################################

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterator
from urllib.parse import quote

import feedparser
import requests
from bs4 import BeautifulSoup

from .config import SEARCH_SOURCE_LABEL, PipelineConfig, Source
from .models import RawItem
from .utils import (
    absolutize_url,
    extract_domain,
    is_recent,
    normalize_whitespace,
    parse_timestamp,
    stable_id,
    utc_now,
)


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

MIN_HEADLINE_CHARS = 10
SEARCH_FALLBACK_URL = 'https://news.google.com/search/headline/{headline_id}?q={query}'


@dataclass
class FetchResult:
    items: list[RawItem] = field(default_factory=list)
    failed_sources: list[str] = field(default_factory=list)
    source_count: int = 0

    @property
    def all_failed(self) -> bool:
        return self.source_count > 0 and len(self.failed_sources) == self.source_count


class RateLimiter:
    """Serializes requests per host and spaces them at least ``min_interval`` seconds apart."""

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.min_interval = min_interval
        self.clock = clock
        self.sleep = sleep
        self._last_request: dict[str, float] = {}
        self._host_locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, host: str) -> threading.Lock:
        with self._guard:
            lock = self._host_locks.get(host)
            if lock is None:
                lock = threading.Lock()
                self._host_locks[host] = lock
            return lock

    @contextmanager
    def throttle(self, host: str) -> Iterator[None]:
        with self._lock_for(host):
            last = self._last_request.get(host)
            if last is not None:
                remaining = self.min_interval - (self.clock() - last)
                if remaining > 0:
                    log.debug('Rate limiting %s for %.2fs', host, remaining)
                    self.sleep(remaining)
            try:
                yield
            finally:
                self._last_request[host] = self.clock()


# ****************************************************************************************
# Functions
# ****************************************************************************************


def _entry_published(entry) -> str | None:
    for key in ('published', 'updated', 'created', 'pubDate'):
        value = entry.get(key)
        if value:
            return value
    return None


def _entry_snippet(entry) -> str:
    if entry.get('summary'):
        return entry.get('summary')
    if entry.get('description'):
        return entry.get('description')
    content = entry.get('content') or []
    if content:
        return content[0].get('value', '')
    return ''


def parse_feed_entries(
    parsed,
    source: Source,
    max_items: int,
    now: datetime,
    window_hours: float,
) -> Iterator[RawItem]:
    for entry in parsed.entries[:max_items]:
        title = (entry.get('title') or '').strip()
        link = (entry.get('link') or '').strip()
        if not title or not link:
            continue
        published = _entry_published(entry)
        if not is_recent(parse_timestamp(published), now, window_hours):
            continue
        yield RawItem(
            title=title,
            link=absolutize_url(link, source.url),
            origin=source.url,
            source_type='rss',
            snippet=_entry_snippet(entry),
            author=entry.get('author') or entry.get('dc_creator') or '',
            fallback_source=source.name or '',
            published=published,
            topic_filter=source.topic_filter,
        )


def fetch_rss_source(
    source: Source,
    config: PipelineConfig,
    now: datetime | None = None,
    session: requests.Session | None = None,
) -> Iterator[RawItem]:
    now = now or utc_now()
    http = session or requests
    response = http.get(
        source.url,
        headers={'User-Agent': config.user_agent},
        timeout=config.request_timeout_seconds,
    )
    response.raise_for_status()
    parsed = feedparser.parse(response.content)
    if getattr(parsed, 'bozo', False):
        if not parsed.entries:
            raise ValueError(f'RSS parse failed for {source.id}: {parsed.get("bozo_exception")}')
        log.warning('RSS parse warning for %s', source.id)
    max_items = source.max_items or config.rss_max_items
    return parse_feed_entries(parsed, source, max_items, now, config.recency_window_hours)


def _primary_headlines(soup: BeautifulSoup, source: Source, now: datetime, window_hours: float) -> list[RawItem]:
    items: list[RawItem] = []
    for node in soup.find_all('article'):
        link_node = node.select_one('a[href*="/articles/"]')
        if link_node is None:
            continue
        title = normalize_whitespace(link_node.get_text(' '))
        href = (link_node.get('href') or '').strip()
        if not title or not href or len(title) <= MIN_HEADLINE_CHARS:
            continue
        publisher_node = node.select_one('div[data-n-tid]')
        publisher = normalize_whitespace(publisher_node.get_text(' ')) if publisher_node else ''
        time_node = node.find('time')
        published = time_node.get('datetime') if time_node else None
        if published and not is_recent(parse_timestamp(published), now, window_hours):
            continue
        items.append(
            RawItem(
                title=title,
                link=absolutize_url(href, source.url),
                origin=source.url,
                source_type='search',
                author=publisher,
                fallback_source=source.name or SEARCH_SOURCE_LABEL,
                published=published or now,
                topic_filter=source.topic_filter,
            )
        )
    return items


def _fallback_headlines(soup: BeautifulSoup, source: Source, now: datetime) -> list[RawItem]:
    items: list[RawItem] = []
    for node in soup.find_all(['h3', 'h4']):
        link_node = node.find('a')
        title = normalize_whitespace(link_node.get_text(' ')) if link_node else ''
        title = title or normalize_whitespace(node.get_text(' '))
        if len(title) <= MIN_HEADLINE_CHARS:
            continue
        href = (link_node.get('href') or '').strip() if link_node else ''
        has_link = bool(href) and not href.startswith(('#', 'javascript:'))
        if has_link:
            link = absolutize_url(href, source.url)
        else:
            # Per-headline path keeps canonical URLs distinct once the query is stripped.
            link = SEARCH_FALLBACK_URL.format(headline_id=stable_id(title), query=quote(title))
        items.append(
            RawItem(
                title=title,
                link=link,
                origin=source.url,
                source_type='search',
                fallback_source=source.name or SEARCH_SOURCE_LABEL,
                published=now,
                has_stable_url=has_link,
                topic_filter=source.topic_filter,
            )
        )
    return items


def parse_search_page(html: str, source: Source, now: datetime, window_hours: float) -> list[RawItem]:
    soup = BeautifulSoup(html, 'html.parser')
    items = _primary_headlines(soup, source, now, window_hours)
    if not items:
        items = _fallback_headlines(soup, source, now)
        if items:
            log.debug('Fallback selector used for %s (%d headline(s)).', source.id, len(items))
    return items


def fetch_search_source(
    source: Source,
    config: PipelineConfig,
    limiter: RateLimiter,
    now: datetime | None = None,
    session: requests.Session | None = None,
) -> Iterator[RawItem]:
    now = now or utc_now()
    http = session or requests
    headers = {
        'User-Agent': config.user_agent,
        'Accept': 'text/html,application/xhtml+xml',
        'Accept-Language': 'en-US,en;q=0.9',
    }
    with limiter.throttle(extract_domain(source.url)):
        response = http.get(source.url, headers=headers, timeout=config.request_timeout_seconds)
    response.raise_for_status()
    return iter(parse_search_page(response.text, source, now, config.recency_window_hours))


def fetch_source(
    source: Source,
    config: PipelineConfig,
    limiter: RateLimiter,
    now: datetime,
    session: requests.Session | None = None,
) -> list[RawItem]:
    if source.type == 'rss':
        return list(fetch_rss_source(source, config, now=now, session=session))
    if source.type == 'search':
        return list(fetch_search_source(source, config, limiter, now=now, session=session))
    raise ValueError(f'Unsupported source type: {source.type}')


def fetch_all_sources(
    sources: list[Source],
    config: PipelineConfig,
    now: datetime | None = None,
    limiter: RateLimiter | None = None,
    session: requests.Session | None = None,
) -> FetchResult:
    now = now or utc_now()
    limiter = limiter or RateLimiter(config.rate_limit_seconds)
    result = FetchResult(source_count=len(sources))
    if not sources:
        return result

    def _fetch_one(source: Source) -> list[RawItem] | None:
        try:
            items = fetch_source(source, config, limiter, now, session=session)
        except Exception as exc:  # noqa: BLE001
            log.exception('Source fetch failed for %s: %s', source.id, exc)
            return None
        log.debug('Fetched %d item(s) from %s.', len(items), source.id)
        return items

    workers = max(1, min(config.fetch_max_workers, len(sources)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        batches = list(executor.map(_fetch_one, sources))

    for source, batch in zip(sources, batches):
        if batch is None:
            result.failed_sources.append(source.id)
            continue
        result.items.extend(batch)
    log.info(
        'Fetched %d raw item(s) from %d/%d source(s).',
        len(result.items),
        len(sources) - len(result.failed_sources),
        len(sources),
    )
    return result
