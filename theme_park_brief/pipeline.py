##########################################################################################
#
# Script name: pipeline.py
#
# Description: One daily brief run: fetch, normalize, dedupe, rank, select, summarize.
#              Also holds the run guard and the manual/scheduled trigger helpers.
#
##########################################################################################

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from .cache import JsonFileCache, MemoryCache, SeenCache
from .config import PipelineConfig
from .curation import Similarity, dedupe_articles, dice_similarity, rank_articles, select_tiers
from .fetchers import FetchResult, RateLimiter, fetch_all_sources
from .models import Article, DailyBrief
from .normalize import normalize_items
from .summarizer import summarize_top_stories
from .utils import utc_now


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

Fetcher = Callable[[PipelineConfig, datetime], FetchResult]
Summarizer = Callable[[list[Article]], str]
Deliver = Callable[[DailyBrief], str]


# ****************************************************************************************
# Exceptions
# ****************************************************************************************


class PipelineError(RuntimeError):
    pass


class RunInProgressError(PipelineError):
    pass


# ****************************************************************************************
# Classes
# ****************************************************************************************


class RunGuard:
    """Rejects a run while another one holds the guard."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def __enter__(self) -> 'RunGuard':
        if not self._lock.acquire(blocking=False):
            raise RunInProgressError('A brief run is already in progress')
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._lock.release()


def _default_fetcher(config: PipelineConfig, now: datetime) -> FetchResult:
    limiter = RateLimiter(config.rate_limit_seconds)
    return fetch_all_sources(list(config.sources), config, now=now, limiter=limiter)


@dataclass
class PipelineContext:
    config: PipelineConfig
    cache: SeenCache
    clock: Callable[[], datetime] = utc_now
    fetcher: Fetcher = _default_fetcher
    summarizer: Summarizer | None = None
    similarity: Similarity = dice_similarity
    guard: RunGuard = field(default_factory=RunGuard)

    def summarize(self, top_stories: list[Article]) -> str:
        if self.summarizer is not None:
            return self.summarizer(top_stories)
        return summarize_top_stories(
            top_stories,
            max_tokens=self.config.summary_max_tokens,
            timeout=self.config.summary_timeout_seconds,
        )


@dataclass
class TriggerResult:
    success: bool
    message: str
    articles: int = 0
    delivery_id: str | None = None
    error: str | None = None


# ****************************************************************************************
# Functions
# ****************************************************************************************


def build_cache(config: PipelineConfig, clock: Callable[[], datetime] = utc_now) -> SeenCache:
    ttl = timedelta(hours=config.cache_ttl_hours)
    if config.cache_path:
        return JsonFileCache(config.cache_path, ttl=ttl, clock=clock)
    return MemoryCache(ttl=ttl, clock=clock)


def build_context(config: PipelineConfig, **overrides) -> PipelineContext:
    clock = overrides.pop('clock', utc_now)
    cache = overrides.pop('cache', None) or build_cache(config, clock=clock)
    return PipelineContext(config=config, cache=cache, clock=clock, **overrides)


def _run_stages(context: PipelineContext) -> DailyBrief:
    config = context.config
    now = context.clock()

    fetched = context.fetcher(config, now)
    if fetched.all_failed:
        raise PipelineError(
            f'All {fetched.source_count} source(s) failed: {", ".join(fetched.failed_sources)}'
        )
    if fetched.failed_sources:
        log.warning('Continuing without %d failed source(s).', len(fetched.failed_sources))

    articles = normalize_items(fetched.items, config)
    articles = dedupe_articles(articles, config, context.cache, similarity=context.similarity)
    log.info('Filtered to %d unique article(s).', len(articles))

    ranked = rank_articles(articles)
    alerts, top_stories, also_noted = select_tiers(
        ranked,
        top_n=config.top_stories_count,
        also_noted_n=config.also_noted_count,
    )
    log.info(
        'Selected %d top stor(ies), %d also noted, %d alert(s).',
        len(top_stories),
        len(also_noted),
        len(alerts),
    )

    summary = context.summarize(top_stories)
    return DailyBrief(
        generated_at=context.clock().replace(microsecond=0).isoformat(),
        summary=summary,
        alerts=alerts,
        top_stories=top_stories,
        also_noted=also_noted,
    )


def run_pipeline(context: PipelineContext) -> DailyBrief:
    with context.guard:
        log.info('Starting daily brief run with %d source(s).', len(context.config.sources))
        return _run_stages(context)


def trigger_brief(context: PipelineContext, deliver: Deliver) -> TriggerResult:
    """Manual trigger: run, deliver, and report the outcome to the caller."""
    try:
        brief = run_pipeline(context)
        delivery_id = deliver(brief)
    except Exception as exc:  # noqa: BLE001
        log.exception('Manual brief trigger failed: %s', exc)
        return TriggerResult(success=False, message='Brief failed', error=str(exc))
    return TriggerResult(
        success=True,
        message='Brief sent successfully',
        articles=len(brief.top_stories),
        delivery_id=delivery_id,
    )


def run_scheduled_brief(context: PipelineContext, deliver: Deliver) -> None:
    log.info('Starting scheduled daily brief generation...')
    try:
        brief = run_pipeline(context)
        delivery_id = deliver(brief)
    except RunInProgressError:
        log.warning('Skipping scheduled brief: a run is already in progress.')
        return
    except Exception as exc:  # noqa: BLE001
        log.exception('Scheduled brief failed: %s', exc)
        return
    log.info('Daily brief sent successfully: %s', delivery_id)
