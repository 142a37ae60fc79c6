from __future__ import annotations

import logging
import re
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Callable

from .cache import SeenCache
from .config import SIGNIFICANCE_RANK, PipelineConfig
from .models import Article
from .utils import canonicalize_url, stable_id


log = logging.getLogger(__name__)

Similarity = Callable[[str, str], float]

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


def _compact(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", (text or "").lower())


def _bigrams(compact: str) -> Counter:
    return Counter(compact[idx : idx + 2] for idx in range(len(compact) - 1))


def dice_similarity(first: str, second: str) -> float:
    """Sorensen-Dice coefficient over character bigrams, ignoring case and punctuation."""
    left = _compact(first)
    right = _compact(second)
    if left == right:
        return 1.0 if left else 0.0
    if len(left) < 2 or len(right) < 2:
        return 0.0
    left_grams = _bigrams(left)
    right_grams = _bigrams(right)
    overlap = sum((left_grams & right_grams).values())
    return 2.0 * overlap / (len(left) - 1 + len(right) - 1)


def cache_key(canonical_url: str) -> str:
    return f"article_{stable_id(canonical_url)}"


def _is_blocked(article: Article, blocked_domains: tuple[str, ...]) -> bool:
    return any(domain in article.url for domain in blocked_domains)


def _is_paywalled(article: Article, phrases: tuple[str, ...]) -> bool:
    text = article.canonical_text().lower()
    return any(phrase in text for phrase in phrases)


def dedupe_articles(
    articles: list[Article],
    config: PipelineConfig,
    cache: SeenCache,
    similarity: Similarity = dice_similarity,
) -> list[Article]:
    accepted: list[Article] = []
    seen_urls: set[str] = set()
    seen_titles: list[str] = []
    ttl = timedelta(hours=config.cache_ttl_hours)
    rejected: Counter = Counter()

    for article in articles:
        if _is_blocked(article, config.blocked_domains):
            rejected["blocked"] += 1
            continue
        if config.paywall_phrases and _is_paywalled(article, config.paywall_phrases):
            rejected["paywall"] += 1
            continue
        canonical = canonicalize_url(article.url)
        if canonical in seen_urls:
            rejected["url"] += 1
            continue
        if any(similarity(title, article.title) > config.similarity_threshold for title in seen_titles):
            rejected["title"] += 1
            continue
        key = cache_key(canonical)
        if cache.has(key):
            rejected["cache"] += 1
            continue

        seen_urls.add(canonical)
        seen_titles.append(article.title)
        cache.set(key, True, ttl=ttl)
        accepted.append(article)

    log.debug("Dedupe kept %d of %d article(s); rejected %s", len(accepted), len(articles), dict(rejected))
    return accepted


def rank_articles(articles: list[Article]) -> list[Article]:
    # sorted() stays stable with reverse=True, so input order breaks exact ties.
    return sorted(
        articles,
        key=lambda article: (
            SIGNIFICANCE_RANK.get(article.significance, 0),
            article.published_at or _OLDEST,
        ),
        reverse=True,
    )


def select_tiers(
    ranked: list[Article],
    top_n: int,
    also_noted_n: int,
) -> tuple[list[Article], list[Article], list[Article]]:
    """Split ranked articles into (alerts, top stories, also noted).

    Alerts are taken from the whole ranked list, so an alert can also be a top story.
    """
    top_stories = ranked[:top_n]
    also_noted = ranked[top_n : top_n + also_noted_n]
    alerts = [article for article in ranked if article.is_alert]
    return alerts, top_stories, also_noted
