##########################################################################################
#
# Script name: normalize.py
#
# Description: Maps raw fetched items into Articles: text cleanup, source resolution,
#              and keyword-based category/significance/alert tagging.
#
##########################################################################################

import logging
import re
from typing import Iterable

from .config import (
    ALERT_KEYWORDS,
    CATEGORY_RULES,
    DEFAULT_CATEGORY,
    DEFAULT_SIGNIFICANCE,
    GENERIC_SOURCE_LABEL,
    KNOWN_SOURCE_DOMAINS,
    SIGNIFICANCE_RULES,
    SUMMARY_MAX_CHARS,
    TOPIC_KEYWORDS,
    KeywordRule,
    PipelineConfig,
)
from .models import Article, RawItem
from .utils import (
    canonicalize_url,
    extract_domain,
    normalize_whitespace,
    parse_timestamp,
    stable_id,
    strip_html,
)


# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

log = logging.getLogger(__name__)

SHORT_TITLE_CHARS = 50
SUMMARY_TITLE_WORDS = 15


# ****************************************************************************************
# Functions
# ****************************************************************************************


def clean_title(title: str) -> str:
    text = normalize_whitespace(title)
    text = re.sub(r'\[.*?\]', '', text)
    text = re.sub(r'\|.*$', '', text)
    return normalize_whitespace(text)


def summary_from_title(title: str) -> str:
    if len(title) < SHORT_TITLE_CHARS:
        return title + '.'
    words = title.split(' ')
    if len(words) > SUMMARY_TITLE_WORDS:
        return ' '.join(words[:SUMMARY_TITLE_WORDS]) + '...'
    return title


def clean_summary(snippet: str, title: str, max_chars: int = SUMMARY_MAX_CHARS) -> str:
    text = strip_html(snippet)
    if not text:
        return summary_from_title(title)
    return text[:max_chars].rstrip()


def clean_source_label(label: str) -> str:
    """Trim publisher labels like "Orlando Sentinel - Local" or "wdwnt.com/news"."""
    text = re.sub(r'\s*-.*$', '', label or '')
    text = re.sub(r'\.com.*$', '.com', text)
    return text.strip()


def resolve_source(
    author: str,
    origin: str,
    fallback: str = GENERIC_SOURCE_LABEL,
    source_type: str = 'rss',
) -> str:
    # Only scraped publisher labels carry suffixes; feed authors are kept whole.
    explicit = clean_source_label(author) if source_type == 'search' else normalize_whitespace(author or '')
    if explicit:
        return explicit
    lowered = (origin or '').lower()
    for fragment, name in KNOWN_SOURCE_DOMAINS.items():
        if fragment in lowered:
            return name
    return fallback or GENERIC_SOURCE_LABEL


def first_matching_label(rules: list[KeywordRule], text: str, default: str) -> str:
    for rule in rules:
        if rule.matches(text):
            return rule.label
    return default


def _blob(title: str, summary: str) -> str:
    return f'{title} {summary}'.lower()


def classify_category(title: str, summary: str = '') -> str:
    return first_matching_label(CATEGORY_RULES, _blob(title, summary), DEFAULT_CATEGORY)


def assess_significance(title: str, summary: str = '') -> str:
    return first_matching_label(SIGNIFICANCE_RULES, _blob(title, summary), DEFAULT_SIGNIFICANCE)


def is_alert_worthy(title: str, summary: str = '') -> bool:
    text = _blob(title, summary)
    return any(keyword in text for keyword in ALERT_KEYWORDS)


def is_topic_relevant(title: str, summary: str = '') -> bool:
    text = _blob(title, summary)
    return any(keyword in text for keyword in TOPIC_KEYWORDS)


def normalize_item(raw: RawItem, max_summary_chars: int = SUMMARY_MAX_CHARS) -> Article:
    title = clean_title(raw.title)
    summary = clean_summary(raw.snippet, title, max_summary_chars)
    published_at = parse_timestamp(raw.published)
    canonical_url = canonicalize_url(raw.link)
    if raw.has_stable_url and canonical_url:
        article_id = stable_id(canonical_url)
    else:
        stamp = published_at.isoformat() if published_at else ''
        article_id = stable_id(title, stamp)
    # Tag on the raw snippet, not the truncated summary.
    tag_text = strip_html(raw.snippet)
    return Article(
        id=article_id,
        title=title,
        url=raw.link,
        source=resolve_source(raw.author, raw.origin, raw.fallback_source, raw.source_type),
        published_at=published_at,
        summary=summary,
        category=classify_category(title, tag_text),
        significance=assess_significance(title, tag_text),
        is_alert=is_alert_worthy(title, tag_text),
        source_type=raw.source_type,
        domain=extract_domain(raw.link),
    )


def normalize_items(raw_items: Iterable[RawItem], config: PipelineConfig) -> list[Article]:
    articles: list[Article] = []
    rejected = 0
    for raw in raw_items:
        article = normalize_item(raw, config.summary_max_chars)
        if not article.title:
            continue
        if raw.topic_filter and not is_topic_relevant(article.title, article.summary):
            rejected += 1
            continue
        articles.append(article)
    log.debug('Normalized %d article(s); %d rejected as off-topic.', len(articles), rejected)
    return articles
