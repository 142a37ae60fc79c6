##########################################################################################
#
# Script name: test_config.py
#
# Description: YAML source/settings loading tests.
#
##########################################################################################

from pathlib import Path

import pytest

from theme_park_brief.config import (
    CATEGORIES,
    SIGNIFICANCE_RANK,
    build_pipeline_config,
    default_sources,
    load_pipeline_config,
)


def _write_file(path: Path, content: str) -> None:
    path.write_text(content.strip() + '\n', encoding='utf-8')


def test_load_pipeline_config_reads_sources_and_settings(tmp_path: Path) -> None:
    yaml_path = tmp_path / 'sources.yaml'
    _write_file(
        yaml_path,
        '''
settings:
  similarity_threshold: 0.9
  top_stories_count: 6
  recency_window_hours: 24
  blocked_domains: [spam.example]
  not_a_setting: 1
sources:
  - id: park-feed
    type: rss
    url: https://parks.example/feed
    max_items: 15
  - type: search
    url: https://news.google.com/search?q=dollywood
''',
    )
    config = load_pipeline_config(str(yaml_path))

    assert config.similarity_threshold == 0.9
    assert config.top_stories_count == 6
    assert config.recency_window_hours == 24.0
    assert config.blocked_domains == ('spam.example',)
    assert config.extra == {'not_a_setting': 1}
    assert config.also_noted_count == 5
    assert [source.id for source in config.sources] == ['park-feed', 'search-2']
    assert config.sources[0].max_items == 15
    assert config.sources[0].topic_filter is False
    assert config.sources[1].topic_filter is True


def test_missing_sources_key_uses_defaults() -> None:
    config = build_pipeline_config({})
    assert config.sources == default_sources()
    assert {source.type for source in config.sources} == {'rss', 'search'}


@pytest.mark.parametrize(
    'payload',
    [
        {'sources': {'id': 'not-a-list'}},
        {'sources': [{'type': 'ftp', 'url': 'ftp://example.com'}]},
        {'sources': [{'type': 'rss'}]},
        {'settings': ['nope']},
    ],
)
def test_invalid_config_raises(payload: dict) -> None:
    with pytest.raises(ValueError):
        build_pipeline_config(payload)


def test_taxonomy_order() -> None:
    assert CATEGORIES == [
        'Safety',
        'Announcements',
        'Construction',
        'Financial',
        'Events',
        'Technology',
        'General',
    ]
    assert sorted(SIGNIFICANCE_RANK, key=SIGNIFICANCE_RANK.get, reverse=True) == [
        'critical',
        'high',
        'medium',
        'low',
    ]


def test_shipped_sources_yaml_covers_builtin_sources() -> None:
    yaml_path = Path(__file__).resolve().parents[1] / 'config' / 'sources.yaml'
    config = load_pipeline_config(str(yaml_path))
    shipped = {(source.type, source.url) for source in config.sources}
    builtin = {(source.type, source.url) for source in default_sources()}
    assert shipped == builtin
    assert all(source.topic_filter for source in config.sources if source.type == 'search')
