##########################################################################################
#
# Script name: config.py
#
# Description: Static configuration, keyword rule tables, and source settings for the
#              daily theme park brief.
#
##########################################################################################

import logging
from dataclasses import dataclass, field, fields, replace

import yaml


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

SOURCE_TYPES = ('rss', 'search')

BROWSER_USER_AGENT = (
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 '
    '(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36'
)

RECENCY_WINDOW_HOURS = 48.0
RSS_MAX_ITEMS = 10
SIMILARITY_THRESHOLD = 0.85
TOP_STORIES_COUNT = 10
ALSO_NOTED_COUNT = 5
RATE_LIMIT_SECONDS = 1.0
CACHE_TTL_HOURS = 72.0
REQUEST_TIMEOUT_SECONDS = 10.0
SUMMARY_TIMEOUT_SECONDS = 30.0
SUMMARY_MAX_TOKENS = 400
SUMMARY_MAX_CHARS = 250
FETCH_MAX_WORKERS = 4

GENERIC_SOURCE_LABEL = 'News Source'
SEARCH_SOURCE_LABEL = 'Google News'


@dataclass(frozen=True)
class KeywordRule:
    label: str
    keywords: tuple[str, ...]

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


# Order matters: the first matching rule wins.
CATEGORY_RULES = [
    KeywordRule('Safety', ('safety', 'injury', 'incident', 'evacuation')),
    KeywordRule('Announcements', ('opening', 'announcement', 'new', 'launch')),
    KeywordRule('Construction', ('construction', 'building', 'expansion')),
    KeywordRule('Financial', ('financial', 'earnings', 'revenue', 'stock')),
    KeywordRule('Events', ('festival', 'event', 'celebration')),
    KeywordRule('Technology', ('technology', 'digital', 'virtual', 'ai')),
]
DEFAULT_CATEGORY = 'General'
CATEGORIES = [rule.label for rule in CATEGORY_RULES] + [DEFAULT_CATEGORY]

SIGNIFICANCE_RULES = [
    KeywordRule('critical', ('injury', 'death', 'evacuation', 'fire', 'derail', 'accident')),
    KeywordRule('high', ('disney', 'universal', 'new ride', 'grand opening', 'acquisition', 'closure')),
    KeywordRule(
        'medium',
        ('announcement', 'opening', 'expansion', 'construction', 'technology', 'partnership'),
    ),
]
DEFAULT_SIGNIFICANCE = 'low'
SIGNIFICANCE_RANK = {'critical': 4, 'high': 3, 'medium': 2, 'low': 1}

ALERT_KEYWORDS = ('injury', 'death', 'evacuation', 'derail', 'fire', 'emergency')

TOPIC_KEYWORDS = (
    'theme park',
    'amusement park',
    'disney',
    'universal',
    'roller coaster',
    'attraction',
    'themed experience',
    'seaworld',
    'six flags',
    'cedar fair',
    'legoland',
    'knott',
    'dollywood',
    'busch gardens',
    'dark ride',
    'teamlab',
    'immersive',
    'meow wolf',
    'area15',
    'animatronic',
    'coaster',
    'ride',
    'park',
    'entertainment',
    'experience',
    'hersheypark',
    'silver dollar city',
    'magic kingdom',
    'epcot',
    'animal kingdom',
    'hollywood studios',
    'disneyland',
    'california adventure',
)

# Substring of the feed URL -> publisher display name.
KNOWN_SOURCE_DOMAINS = {
    'disneyparks': 'Disney Parks Blog',
    'universalstudios': 'Universal Studios Blog',
    'themeparkmagazine': 'Theme Park Magazine',
    'prnewswire': 'PR Newswire',
}

BLOCKED_DOMAINS = (
    'insidethemagic.net',
    'disneyfanatic.com',
)

PAYWALL_PHRASES = (
    'subscribe to read',
    'subscribers only',
    'subscription required',
    'sign in to continue reading',
)

_SEARCH_URL = 'https://news.google.com/search?q={query}&hl=en-US&gl=US&ceid=US%3Aen'
SEARCH_QUERIES = (
    'theme%20park',
    'disney%20park',
    'universal%20studios',
    'six%20flags',
    'cedar%20fair',
    'seaworld',
    'legoland',
    'roller%20coaster',
    'dark%20ride',
    'themed%20experience',
    'immersive%20experience',
    'teamlab',
    'meow%20wolf',
    'dollywood',
    'busch%20gardens',
)

RSS_FEEDS = (
    'https://disneyparks.disney.go.com/blog/feed/',
    'https://blog.universalstudios.com/feed/',
    'https://www.themeparkmagazine.com/feed/',
    'https://www.prnewswire.com/rss/consumer-products-retail-latest-news/consumer-products-retail-latest-news-list.rss',
)


@dataclass(frozen=True)
class Source:
    id: str
    type: str
    url: str
    name: str | None = None
    max_items: int | None = None
    topic_filter: bool = False


@dataclass(frozen=True)
class PipelineConfig:
    sources: tuple[Source, ...] = ()
    recency_window_hours: float = RECENCY_WINDOW_HOURS
    rss_max_items: int = RSS_MAX_ITEMS
    similarity_threshold: float = SIMILARITY_THRESHOLD
    top_stories_count: int = TOP_STORIES_COUNT
    also_noted_count: int = ALSO_NOTED_COUNT
    rate_limit_seconds: float = RATE_LIMIT_SECONDS
    cache_ttl_hours: float = CACHE_TTL_HOURS
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    summary_timeout_seconds: float = SUMMARY_TIMEOUT_SECONDS
    summary_max_tokens: int = SUMMARY_MAX_TOKENS
    summary_max_chars: int = SUMMARY_MAX_CHARS
    fetch_max_workers: int = FETCH_MAX_WORKERS
    user_agent: str = BROWSER_USER_AGENT
    blocked_domains: tuple[str, ...] = BLOCKED_DOMAINS
    paywall_phrases: tuple[str, ...] = PAYWALL_PHRASES
    cache_path: str | None = None
    extra: dict = field(default_factory=dict, compare=False)


# ****************************************************************************************
# Functions
# ****************************************************************************************


def default_sources() -> tuple[Source, ...]:
    sources = [
        Source(
            id=f'search-{query.replace("%20", "-")}',
            type='search',
            url=_SEARCH_URL.format(query=query),
            name=SEARCH_SOURCE_LABEL,
            topic_filter=True,
        )
        for query in SEARCH_QUERIES
    ]
    for idx, url in enumerate(RSS_FEEDS, start=1):
        sources.append(Source(id=f'rss-{idx}', type='rss', url=url))
    return tuple(sources)


def _build_source(raw: dict, idx: int) -> Source:
    if not isinstance(raw, dict):
        raise ValueError(f'config.sources[{idx}] must be a mapping')
    source_type = (raw.get('type') or '').strip().lower()
    if source_type not in SOURCE_TYPES:
        raise ValueError(f'config.sources[{idx}] has unsupported type: {source_type!r}')
    url = (raw.get('url') or '').strip()
    if not url:
        raise ValueError(f'config.sources[{idx}] is missing url')
    max_items = raw.get('max_items')
    return Source(
        id=str(raw.get('id') or f'{source_type}-{idx}'),
        type=source_type,
        url=url,
        name=raw.get('name'),
        max_items=int(max_items) if max_items is not None else None,
        topic_filter=bool(raw.get('topic_filter', source_type == 'search')),
    )


def _coerce_setting(name: str, value, current):
    if isinstance(current, tuple):
        if not isinstance(value, (list, tuple)):
            raise ValueError(f'config.settings.{name} must be a list')
        return tuple(str(item) for item in value)
    if isinstance(current, bool):
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


def build_pipeline_config(payload: dict) -> PipelineConfig:
    raw_sources = payload.get('sources')
    if raw_sources is None:
        sources = default_sources()
    elif not isinstance(raw_sources, list):
        raise ValueError('config.sources must be a list')
    else:
        sources = tuple(_build_source(raw, idx) for idx, raw in enumerate(raw_sources, start=1))

    settings = payload.get('settings') or {}
    if not isinstance(settings, dict):
        raise ValueError('config.settings must be a mapping')

    config = PipelineConfig(sources=sources)
    known = {item.name for item in fields(PipelineConfig)} - {'sources', 'extra'}
    overrides = {}
    extra = {}
    for name, value in settings.items():
        if name not in known:
            extra[name] = value
            continue
        overrides[name] = _coerce_setting(name, value, getattr(config, name))
    if extra:
        log.warning('Ignoring unknown settings: %s', ', '.join(sorted(extra)))
    return replace(config, extra=extra, **overrides)


def load_pipeline_config(path: str) -> PipelineConfig:
    with open(path, 'r', encoding='utf-8') as handle:
        payload = yaml.safe_load(handle) or {}
    if not isinstance(payload, dict):
        raise ValueError(f'{path} must contain a mapping')
    config = build_pipeline_config(payload)
    log.info('Loaded %d source(s) from %s.', len(config.sources), path)
    return config
