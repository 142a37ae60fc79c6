##########################################################################################
#
# Script name: test_pipeline.py
#
# Description: End-to-end brief runs with fake sources, cache clock, and summarizer.
#
##########################################################################################

from datetime import datetime, timedelta, timezone

import pytest

from theme_park_brief.cache import MemoryCache
from theme_park_brief.config import PipelineConfig, Source
from theme_park_brief.fetchers import FetchResult
from theme_park_brief.models import DailyBrief, RawItem
from theme_park_brief.pipeline import (
    PipelineError,
    RunInProgressError,
    build_context,
    run_pipeline,
    run_scheduled_brief,
    trigger_brief,
)
from theme_park_brief.summarizer import NO_NEWS_MESSAGE


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


START = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
SOURCES = (Source(id='feed', type='rss', url='https://example.com/feed'),)


def _items() -> list[RawItem]:
    rows = [
        ('Evacuation after fire at coaster', 'https://news.example/fire', START - timedelta(hours=30)),
        ('Disney announces new ride', 'https://news.example/disney', START - timedelta(hours=2)),
        ('Disney Announces New Ride!!', 'https://other.example/disney-copy', START - timedelta(hours=1)),
        ('Kennywood construction update', 'https://news.example/kennywood', START - timedelta(hours=3)),
        ('Local family visits park', 'https://news.example/family', START - timedelta(hours=1)),
        ('Blocked site rumor about rides', 'https://insidethemagic.net/rumor', START),
    ]
    return [
        RawItem(title=title, link=link, origin='https://example.com/feed', source_type='rss', published=published)
        for title, link, published in rows
    ]


def _fetcher(items: list[RawItem]):
    def fetch(config: PipelineConfig, now: datetime) -> FetchResult:
        return FetchResult(items=list(items), source_count=len(config.sources))

    return fetch


def _context(clock: FakeClock, config: PipelineConfig | None = None, fetcher=None, summaries=None):
    config = config or PipelineConfig(sources=SOURCES, top_stories_count=2, also_noted_count=1)
    cache = MemoryCache(ttl=timedelta(hours=config.cache_ttl_hours), clock=clock)
    summaries = summaries if summaries is not None else []

    def summarize(stories):
        summaries.append(list(stories))
        return NO_NEWS_MESSAGE if not stories else f'{len(stories)} stories today.'

    return build_context(
        config,
        cache=cache,
        clock=clock,
        fetcher=fetcher or _fetcher(_items()),
        summarizer=summarize,
    )


def test_run_pipeline_builds_tiers_and_summary() -> None:
    context = _context(FakeClock(START))
    brief = run_pipeline(context)

    assert isinstance(brief, DailyBrief)
    titles = [article.title for article in brief.top_stories]
    assert titles == ['Evacuation after fire at coaster', 'Disney announces new ride']
    assert [article.title for article in brief.also_noted] == ['Kennywood construction update']
    assert [article.title for article in brief.alerts] == ['Evacuation after fire at coaster']
    assert brief.alerts[0].category == 'Safety'
    assert brief.summary == '2 stories today.'
    assert brief.generated_at == START.isoformat()


def test_alert_outside_top_tiers_still_surfaces() -> None:
    items = [
        RawItem(
            title=f'Disney ride story {idx}',
            link=f'https://news.example/{idx}',
            origin='https://example.com/feed',
            source_type='rss',
            snippet=f'Unique detail {idx * 7919}',
            published=START - timedelta(minutes=idx),
        )
        for idx in range(3)
    ]
    items.append(
        RawItem(
            title='Emergency crews at Silver Dollar City',
            link='https://news.example/emergency',
            origin='https://example.com/feed',
            source_type='rss',
            published=START,
        )
    )
    config = PipelineConfig(sources=SOURCES, top_stories_count=1, also_noted_count=1, similarity_threshold=0.99)
    brief = run_pipeline(_context(FakeClock(START), config=config, fetcher=_fetcher(items)))
    emergency = [article for article in brief.alerts if article.title.startswith('Emergency')]
    assert emergency
    assert emergency[0] not in brief.top_stories
    assert emergency[0] not in brief.also_noted


def test_second_run_is_suppressed_by_rolling_cache() -> None:
    clock = FakeClock(START)
    summaries: list = []
    context = _context(clock, summaries=summaries)
    first = run_pipeline(context)
    assert first.top_stories

    second = run_pipeline(context)
    assert second.top_stories == []
    assert second.also_noted == []
    assert second.alerts == []
    assert second.summary == NO_NEWS_MESSAGE
    assert summaries[-1] == []

    clock.now = START + timedelta(hours=73)
    third = run_pipeline(context)
    assert [article.title for article in third.top_stories] == [
        article.title for article in first.top_stories
    ]


def test_all_sources_failing_is_a_pipeline_error() -> None:
    def failing(config: PipelineConfig, now: datetime) -> FetchResult:
        return FetchResult(failed_sources=['feed'], source_count=1)

    context = _context(FakeClock(START), fetcher=failing)
    with pytest.raises(PipelineError):
        run_pipeline(context)


def test_overlapping_run_is_rejected() -> None:
    context = _context(FakeClock(START))
    with context.guard:
        with pytest.raises(RunInProgressError):
            run_pipeline(context)
    assert not context.guard.busy
    assert run_pipeline(context).top_stories


def test_manual_trigger_reports_count_and_delivery_id() -> None:
    context = _context(FakeClock(START))
    delivered: list[DailyBrief] = []

    def deliver(brief: DailyBrief) -> str:
        delivered.append(brief)
        return 'msg-123'

    result = trigger_brief(context, deliver)
    assert result.success
    assert result.articles == 2
    assert result.delivery_id == 'msg-123'
    assert delivered[0].to_dict()['topStories'][0]['isAlert'] is True


def test_failed_run_never_delivers() -> None:
    def failing(config: PipelineConfig, now: datetime) -> FetchResult:
        return FetchResult(failed_sources=['feed'], source_count=1)

    context = _context(FakeClock(START), fetcher=failing)
    delivered: list[DailyBrief] = []
    result = trigger_brief(context, delivered.append)
    assert not result.success
    assert 'failed' in result.error
    assert delivered == []

    run_scheduled_brief(context, delivered.append)
    assert delivered == []
